from __future__ import annotations

from datetime import datetime, timedelta, timezone

from core.thresholds import days_until_expiry, in_cooldown, matching_threshold

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_days_until_expiry_rounds_up() -> None:
    assert days_until_expiry(NOW + timedelta(days=7), NOW) == 7
    assert days_until_expiry(NOW + timedelta(days=6, seconds=1), NOW) == 7
    assert days_until_expiry(NOW + timedelta(hours=1), NOW) == 1
    assert days_until_expiry(NOW, NOW) == 0
    assert days_until_expiry(NOW - timedelta(days=2), NOW) == -2


def test_matching_threshold_requires_exact_day() -> None:
    thresholds = (30, 7, 1)

    assert matching_threshold(NOW + timedelta(days=30), NOW, thresholds) == 30
    assert matching_threshold(NOW + timedelta(hours=5), NOW, thresholds) == 1
    assert matching_threshold(NOW + timedelta(days=6), NOW, thresholds) is None
    assert matching_threshold(NOW - timedelta(days=1), NOW, thresholds) is None


def test_empty_threshold_list_never_matches() -> None:
    assert matching_threshold(NOW + timedelta(days=7), NOW, ()) is None


def test_cooldown_window() -> None:
    cooldown = timedelta(hours=12)

    assert not in_cooldown(None, NOW, cooldown)
    assert in_cooldown(NOW - timedelta(hours=11, minutes=59), NOW, cooldown)
    assert not in_cooldown(NOW - timedelta(hours=12), NOW, cooldown)
    assert not in_cooldown(NOW - timedelta(days=2), NOW, cooldown)


def test_thirty_day_reminder_then_cooldown_on_reevaluation() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    expiry = datetime(2024, 1, 31, tzinfo=timezone.utc)
    cooldown = timedelta(hours=12)

    assert matching_threshold(expiry, start, (30, 7, 1)) == 30
    assert not in_cooldown(None, start, cooldown)

    later = datetime(2024, 1, 1, 6, 0, tzinfo=timezone.utc)
    assert matching_threshold(expiry, later, (30, 7, 1)) == 30
    assert in_cooldown(datetime(2024, 1, 1, 1, 0, tzinfo=timezone.utc), later, cooldown)
