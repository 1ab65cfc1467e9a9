"""Static configuration for whoiswatch.

All user-editable settings (database, sweep, notifications, logging) live in
a single JSON file for quick edits without touching Python.
"""

import json
import os
from datetime import timedelta

from core.config import (
    DEFAULT_COOLDOWN,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_SEND_TIMEOUT_SECONDS,
    DEFAULT_THRESHOLDS_DAYS,
    NotificationConfig,
    SweepConfig,
)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# WHOISWATCH_CONFIG points at an alternate config file (tests, deployments).
CONFIG_PATH = os.getenv("WHOISWATCH_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database.
_database = _CONFIG.get("database", {})
DB_PATH = _resolve_path(_database.get("path", "whoiswatch.db"))

# Sweep controls.
# - THRESHOLDS_DAYS: day counts that trigger an expiry reminder
# - COOLDOWN_HOURS: minimum gap between reminders for one domain
# - MAX_CONCURRENCY: domains fetched in parallel (1 = sequential)
# - INTERVAL_MINUTES: pause between sweeps in `run` mode
_sweep = _CONFIG.get("sweep", {})
THRESHOLDS_DAYS = tuple(int(value) for value in _sweep.get("thresholds_days", DEFAULT_THRESHOLDS_DAYS))
COOLDOWN_HOURS = float(_sweep.get("cooldown_hours", DEFAULT_COOLDOWN.total_seconds() / 3600))
FETCH_TIMEOUT_SECONDS = float(_sweep.get("fetch_timeout_seconds", DEFAULT_FETCH_TIMEOUT_SECONDS))
MAX_CONCURRENCY = int(_sweep.get("max_concurrency", 1))
INTERVAL_MINUTES = float(_sweep.get("interval_minutes", 60))

# Notification method switches adapters without changing core logic.
_notifications = _CONFIG.get("notifications", {})
NOTIFICATION_METHOD = _notifications.get("method", "log")
# Sender address is only required when method=resend.
FROM_EMAIL = _notifications.get("from_email")
SEND_TIMEOUT_SECONDS = float(_notifications.get("send_timeout_seconds", DEFAULT_SEND_TIMEOUT_SECONDS))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})


def build_sweep_config() -> SweepConfig:
    return SweepConfig(
        thresholds_days=THRESHOLDS_DAYS,
        cooldown=timedelta(hours=COOLDOWN_HOURS),
        fetch_timeout_seconds=FETCH_TIMEOUT_SECONDS,
        send_timeout_seconds=SEND_TIMEOUT_SECONDS,
        max_concurrency=MAX_CONCURRENCY,
    )


def build_notification_config() -> NotificationConfig:
    return NotificationConfig(
        method=NOTIFICATION_METHOD,
        from_email=FROM_EMAIL,
        send_timeout_seconds=SEND_TIMEOUT_SECONDS,
    )
