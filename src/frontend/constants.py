"""Shared constants for the Textual UI."""

from __future__ import annotations

import os
from pathlib import Path

ACCENT_GREEN = "#2EBD85"
PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_PATH = Path(os.getenv("WHOISWATCH_CONFIG") or PROJECT_ROOT / "config.json")
DEFAULT_DB_NAME = "whoiswatch.db"
