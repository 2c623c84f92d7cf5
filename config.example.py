# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file,
see src/taskboard/config.py). Nothing here is imported at runtime.

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "TASKBOARD_APP_NAME": "App display name (default: taskboard).",
    "TASKBOARD_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKBOARD_FILE_LOG_LEVEL": "Log file level, file is <data_dir>/<app_name>.log (default: DEBUG).",
    # Paths (gitignored)
    "TASKBOARD_DATA_DIR": "Local data directory (default: .local/taskboard).",
    "TASKBOARD_DB_PATH": "SQLite database path (default: <data_dir>/taskboard.sqlite3).",
    # Engine tuning
    "TASKBOARD_DISPLAY_HORIZON_YEARS": "Fiscal years of tracking periods offered ahead (default: 5).",
    "TASKBOARD_NAME_CACHE_TTL_SECONDS": "Display-name cache lifetime within a request (default: 300).",
    # Console
    "TASKBOARD_OPERATOR_ID": "Actor id of the console operator, seeded as admin on first run (default: admin).",
}
