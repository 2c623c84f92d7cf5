# src/taskboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from .ports import ActorDirectory, CompletionStore, TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules.
    settings: object

    task_store: TaskStore
    completion_store: CompletionStore
    actors: ActorDirectory
