# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (API keys, the device PIN). Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "POCKET_APP_NAME": "App display name (default: pocket-pilot).",
    "POCKET_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    "POCKET_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    # Device
    "POCKET_DEVICE_PIN": "Lock-screen PIN used by wake-and-unlock (also read from DEVICE_PIN).",
    "POCKET_SHELL_AS_ROOT": "Run device commands through `su -c` (default: true).",
    "POCKET_SHELL_TIMEOUT_SECONDS": "Default per-command shell timeout (default: 10).",
    # Arbitration / scheduling
    "POCKET_LOCK_TIMEOUT_SECONDS": "Device lock auto-expiry (default: 120).",
    "POCKET_SCHEDULER_INTERVAL_SECONDS": "Scheduler tick interval (default: 60).",
    "POCKET_NOTIFICATION_POLL_SECONDS": "Notification poll interval (default: 5).",
    "POCKET_NOTIFICATION_MAX_AGE_SECONDS": "Skip notifications older than this (default: 60).",
    "POCKET_NOTIFICATIONS_AUTOSTART": "Start the notification watcher at boot (default: false).",
    "POCKET_INDICATOR_ENABLED": "Show an on-device notification while the triage agent drives (default: true).",
    "POCKET_LOG_CAPACITY": "Entries kept in the scheduler and triage logs (default: 100).",
    "POCKET_RESULT_MAX_CHARS": "Truncate stored task results to this length (default: 500).",
    # LLM (OpenAI-compatible)
    "POCKET_OPENAI_API_KEY": "API key (also read from OPENAI_API_KEY). Missing => offline agent.",
    "POCKET_OPENAI_BASE_URL": "Base URL (default: https://api.openai.com/v1).",
    "POCKET_LLM_MODELS": "Comma/space separated list of models to try in order.",
    # Paths (gitignored)
    "POCKET_DATA_DIR": "Local data directory for JSON documents and logs (default: .local/pocket).",
}
