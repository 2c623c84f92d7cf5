"""
Core plumbing shared by the engine.

Components:
- errors.py: error taxonomy + user-facing messages
- ports.py: storage / actor directory Protocols
- name_cache.py: request-scoped display-name cache
- state.py: AppState (wired stores)
"""
