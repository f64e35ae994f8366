# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (a Redis password belongs in .env, which is gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKLOOM_APP_NAME": "Engine name; also namespaces the queue snapshot keys (default: taskloom).",
    "TASKLOOM_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "TASKLOOM_CONSOLE_ENABLED": "Run the console REPL (true/false). false => headless until SIGINT/SIGTERM.",
    # Paths (gitignored)
    "TASKLOOM_DATA_DIR": "Local data directory for logs and SQLite (default: .local/taskloom).",
    "TASKLOOM_QUEUE_DB_PATH": "SQLite snapshot store path (default: <data_dir>/queues.sqlite3).",
    # Queue store
    "TASKLOOM_STORE_BACKEND": "memory | sqlite | redis (default: sqlite).",
    "TASKLOOM_REDIS_URL": "Redis URL for the redis backend (falls back to REDIS_URL).",
    "REDIS_HOST": "Used when no Redis URL is set, together with REDIS_PORT and REDIS_PASSWORD.",
    # Engine limits
    "TASKLOOM_MAX_CONCURRENCY": "Tasks executing at once (default: 1).",
    "TASKLOOM_EXECUTION_QUEUE_SIZE": "Execution queue capacity (default: 3).",
    "TASKLOOM_WAITING_QUEUE_SIZE": "Waiting queue capacity (default: 10).",
    # Persistence
    "TASKLOOM_PERSISTENCE_STRATEGY": "fixed_duration | none (default: fixed_duration).",
    "TASKLOOM_FIXED_DURATION_SECONDS": "Max task age kept across restarts (default: 3600).",
    "TASKLOOM_RECOVERY_POLICY": "Snapshotted EXECUTING tasks on restart: requeue | fail | keep (default: requeue).",
    # Tuning
    "TASKLOOM_IDLE_INTERVAL": "Loop sleep when there is nothing to do, seconds (default: 1.0).",
    "TASKLOOM_PASS_INTERVAL": "Sleep between processing passes, seconds (default: 0.1).",
    "TASKLOOM_ERROR_BACKOFF": "Sleep after a failed pass, seconds (default: 2.0).",
    "TASKLOOM_COMPLETED_HISTORY_SIZE": "Completed tasks kept for /get (default: 100).",
}
