"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

DEFAULT_THRESHOLDS_DAYS = (30, 7, 1)
DEFAULT_COOLDOWN = timedelta(hours=12)
DEFAULT_FETCH_TIMEOUT_SECONDS = 15.0
DEFAULT_SEND_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class SweepConfig:
    """Settings for one sweep: timeouts, concurrency, thresholds and cooldown."""

    thresholds_days: tuple[int, ...] = DEFAULT_THRESHOLDS_DAYS
    cooldown: timedelta = DEFAULT_COOLDOWN
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    send_timeout_seconds: float = DEFAULT_SEND_TIMEOUT_SECONDS
    max_concurrency: int = 1

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if any(days < 0 for days in self.thresholds_days):
            raise ValueError("thresholds_days must not be negative")


@dataclass(frozen=True)
class NotificationConfig:
    """Notification settings consumed by sender adapters."""

    method: str = "log"
    from_email: Optional[str] = None
    send_timeout_seconds: float = DEFAULT_SEND_TIMEOUT_SECONDS
