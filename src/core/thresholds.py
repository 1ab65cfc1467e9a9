"""Expiry threshold and cooldown policy (core domain)."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Iterable, Optional

_ONE_DAY_SECONDS = timedelta(days=1).total_seconds()


def days_until_expiry(expiry_date: datetime, now: datetime) -> int:
    """Return ``ceil((expiry_date - now) / 1 day)``."""

    return math.ceil((expiry_date - now).total_seconds() / _ONE_DAY_SECONDS)


def matching_threshold(
    expiry_date: datetime, now: datetime, thresholds_days: Iterable[int]
) -> Optional[int]:
    """Return the threshold that exactly equals the days left, if any.

    A domain not evaluated on the exact threshold day skips that alert.
    """

    remaining = days_until_expiry(expiry_date, now)
    if remaining in set(thresholds_days):
        return remaining
    return None


def in_cooldown(
    last_notification_sent_at: Optional[datetime], now: datetime, cooldown: timedelta
) -> bool:
    """True when a notification was sent less than ``cooldown`` ago."""

    if last_notification_sent_at is None:
        return False
    return now - last_notification_sent_at < cooldown
