"""
Recurring task subsystem.

Components:
- models.py: data structures (RecurringTask, CompletionRecord, Viewer, ...)
- scheduler.py: occurrence date arithmetic
- fiscal.py: April-March fiscal periods and which ones a pattern tracks
- assignment.py: per-employee client visibility
- completion.py: client x period completion matrix
- orchestrator.py: load/save façade used by the console and any transport
- store.py: SQLite-backed stores
"""
