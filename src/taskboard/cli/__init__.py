"""Operator console: composition root, slash commands, entrypoint."""
