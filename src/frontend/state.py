"""State container for config loading and dirty tracking."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .constants import DEFAULT_DB_NAME, PROJECT_ROOT


@dataclass
class ConfigState:
    data: dict[str, Any] | None = None
    dirty: bool = False
    error: str | None = None

    @property
    def db_path(self) -> Path:
        """Database location from the loaded config, relative to the project root."""

        database = (self.data or {}).get("database")
        raw = database.get("path") if isinstance(database, dict) else None
        path = Path(raw or DEFAULT_DB_NAME)
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        return path
