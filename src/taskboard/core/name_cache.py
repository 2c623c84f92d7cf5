# src/taskboard/core/name_cache.py

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from .ports import ActorDirectory

logger = logging.getLogger(__name__)


class NameCache:
    """
    Read-through cache of actor display names.

    Create one per request (bootstrap.build_orchestrator does) and pass it in;
    entries expire after ttl_seconds even within a long-lived request.
    Unknown actors are cached too, as None.
    """

    def __init__(
        self,
        directory: ActorDirectory,
        *,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._directory = directory
        self._ttl = max(0.0, float(ttl_seconds))
        self._clock = clock
        self._entries: dict[str, tuple[float, str | None]] = {}

    def get(self, actor_id: str) -> str | None:
        now = self._clock()
        hit = self._entries.get(actor_id)
        if hit is not None and now - hit[0] < self._ttl:
            return hit[1]
        name = self._directory.display_name(actor_id)
        self._entries[actor_id] = (now, name)
        return name

    def name_or_id(self, actor_id: str) -> str:
        return self.get(actor_id) or actor_id

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
