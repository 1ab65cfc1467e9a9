from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import pytest

from core.config import SweepConfig
from core.errors import FetchError, NotificationError, PersistError, StoreUnavailableError
from core.models import Domain, FetchedWhois, IntentKind, NotificationIntent, Watcher, WhoisSnapshot
from core.sweep import SweepOrchestrator

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
FAR_EXPIRY = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeStore:
    def __init__(self, domains: list[Domain], watchers: Optional[dict[int, list[Watcher]]] = None) -> None:
        self.domains = list(domains)
        self.watchers = watchers or {}
        self.snapshots: dict[int, WhoisSnapshot] = {}
        self.checked: dict[int, datetime] = {}
        self.fail_persist_for: set[int] = set()
        self.fail_touch_once: set[int] = set()
        self.corrupt: set[int] = set()
        self.unavailable = False

    def list_tracked_domains(self) -> list[Domain]:
        if self.unavailable:
            raise StoreUnavailableError("database is locked")
        return list(self.domains)

    def get_snapshot(self, domain_id: int) -> Optional[WhoisSnapshot]:
        if domain_id in self.corrupt:
            raise ValueError("Invalid isoformat string: 'garbage'")
        return self.snapshots.get(domain_id)

    def upsert_snapshot(self, domain_id: int, snapshot: WhoisSnapshot) -> WhoisSnapshot:
        if domain_id in self.fail_persist_for:
            raise PersistError("disk full")
        existing = self.snapshots.get(domain_id)
        if existing is not None:
            snapshot = replace(snapshot, last_notification_sent_at=existing.last_notification_sent_at)
        self.snapshots[domain_id] = snapshot
        return snapshot

    def touch_last_checked(self, domain_id: int, checked_at: datetime) -> None:
        if domain_id in self.fail_touch_once:
            self.fail_touch_once.discard(domain_id)
            raise PersistError("database is locked")
        self.checked[domain_id] = checked_at

    def list_watchers(self, domain_id: int) -> list[Watcher]:
        return list(self.watchers.get(domain_id, []))

    def set_notification_sent_at(self, domain_id: int, sent_at: datetime) -> None:
        self.snapshots[domain_id] = replace(self.snapshots[domain_id], last_notification_sent_at=sent_at)

    def claim_notification_slot(
        self, domain_id: int, now: datetime, cooldown: timedelta
    ) -> tuple[bool, Optional[datetime]]:
        snapshot = self.snapshots.get(domain_id)
        if snapshot is None:
            return False, None
        previous = snapshot.last_notification_sent_at
        if previous is not None and now - previous < cooldown:
            return False, previous
        self.snapshots[domain_id] = replace(snapshot, last_notification_sent_at=now)
        return True, previous

    def release_notification_slot(
        self, domain_id: int, claimed_at: datetime, previous: Optional[datetime]
    ) -> None:
        snapshot = self.snapshots.get(domain_id)
        if snapshot is not None and snapshot.last_notification_sent_at == claimed_at:
            self.snapshots[domain_id] = replace(snapshot, last_notification_sent_at=previous)


class FakeProvider:
    def __init__(self, results: dict[str, Union[FetchedWhois, Exception]], delay: float = 0.0) -> None:
        self.results = results
        self.delay = delay
        self.calls: list[str] = []
        self.timeouts: list[float] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, domain_name: str, timeout: float) -> FetchedWhois:
        self.calls.append(domain_name)
        self.timeouts.append(timeout)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(min(self.delay, timeout))
        finally:
            self.in_flight -= 1
        if self.delay > timeout:
            raise FetchError(f"WHOIS lookup timed out after {timeout:g}s")
        result = self.results[domain_name]
        if isinstance(result, Exception):
            raise result
        return result


class FakeSender:
    def __init__(self, fail_for: Optional[set[str]] = None) -> None:
        self.fail_for = fail_for or set()
        self.sent: list[NotificationIntent] = []
        self.attempts = 0

    async def send(self, intent: NotificationIntent) -> None:
        self.attempts += 1
        if intent.recipient in self.fail_for:
            raise NotificationError("mailbox unavailable")
        self.sent.append(intent)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now


def _fetched(expiry: Optional[datetime], registrar: Optional[str] = "Example Registrar") -> FetchedWhois:
    return FetchedWhois(
        registrar=registrar,
        expiry_date=expiry,
        creation_date=datetime(2010, 1, 1, tzinfo=timezone.utc),
        raw_text="Domain Name: EXAMPLE.COM",
    )


def _snapshot(expiry: Optional[datetime], last_sent: Optional[datetime] = None) -> WhoisSnapshot:
    return WhoisSnapshot(
        registrar="Example Registrar",
        expiry_date=expiry,
        creation_date=datetime(2010, 1, 1, tzinfo=timezone.utc),
        raw_text="old",
        updated_at=NOW - timedelta(days=1),
        last_notification_sent_at=last_sent,
    )


def _watchers(*emails: str) -> list[Watcher]:
    return [Watcher(user_id=f"user-{index}", email=email) for index, email in enumerate(emails)]


def _orchestrator(store, provider, sender, config: Optional[SweepConfig] = None) -> SweepOrchestrator:
    return SweepOrchestrator(
        store=store,
        provider=provider,
        sender=sender,
        clock=FixedClock(NOW),
        config=config or SweepConfig(fetch_timeout_seconds=1.0, send_timeout_seconds=1.0),
    )


def test_first_observation_stores_snapshot_without_notifications() -> None:
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    provider = FakeProvider({"example.com": _fetched(FAR_EXPIRY)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.success == 1
    assert report.failed == 0
    assert report.errors == []
    assert sender.sent == []
    assert store.snapshots[1].expiry_date == FAR_EXPIRY
    assert store.snapshots[1].updated_at == NOW
    assert store.checked[1] == NOW


def test_dropped_registration_notifies_every_watcher() -> None:
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com", "b@example.com")})
    store.snapshots[1] = _snapshot(FAR_EXPIRY)
    provider = FakeProvider({"example.com": _fetched(None, registrar=None)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.notifications_sent == 2
    assert {intent.recipient for intent in sender.sent} == {"a@example.com", "b@example.com"}
    assert all(intent.kind is IntentKind.DROPPED for intent in sender.sent)
    assert sender.sent[0].previous_expiry_date == FAR_EXPIRY
    assert store.snapshots[1].expiry_date is None
    assert store.snapshots[1].last_notification_sent_at == NOW


def test_expiry_change_carries_both_dates() -> None:
    renewed = FAR_EXPIRY + timedelta(days=365)
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(FAR_EXPIRY)
    provider = FakeProvider({"example.com": _fetched(renewed)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.notifications_sent == 1
    (intent,) = sender.sent
    assert intent.kind is IntentKind.EXPIRY_CHANGED
    assert intent.previous_expiry_date == FAR_EXPIRY
    assert intent.expiry_date == renewed


def test_unchanged_record_only_refreshes_snapshot() -> None:
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(FAR_EXPIRY)
    provider = FakeProvider({"example.com": _fetched(FAR_EXPIRY)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.success == 1
    assert sender.sent == []
    assert store.snapshots[1].updated_at == NOW
    assert store.snapshots[1].raw_text == "Domain Name: EXAMPLE.COM"


def test_fetch_error_is_isolated_to_one_domain() -> None:
    store = FakeStore(
        [Domain(1, "bad.com"), Domain(2, "good.com")],
        {1: _watchers("a@example.com"), 2: _watchers("a@example.com")},
    )
    store.snapshots[1] = _snapshot(FAR_EXPIRY)
    provider = FakeProvider(
        {"bad.com": FetchError("connection reset"), "good.com": _fetched(FAR_EXPIRY)}
    )
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.success == 1
    assert report.failed == 1
    assert report.errors == ["Domain bad.com: connection reset"]
    assert store.snapshots[1].updated_at == NOW - timedelta(days=1)
    assert 1 not in store.checked
    assert store.checked[2] == NOW


def test_unexpected_provider_exception_is_reported_as_fetch_error() -> None:
    store = FakeStore([Domain(1, "example.com")])
    provider = FakeProvider({"example.com": ValueError("boom")})

    report = asyncio.run(_orchestrator(store, provider, FakeSender()).run_sweep())

    assert report.failed == 1
    assert report.errors == ["Domain example.com: boom"]


def test_fetch_timeout_counts_as_failure() -> None:
    store = FakeStore([Domain(1, "slow.com")])
    provider = FakeProvider({"slow.com": _fetched(FAR_EXPIRY)}, delay=0.5)
    config = SweepConfig(fetch_timeout_seconds=0.05, send_timeout_seconds=1.0)

    report = asyncio.run(_orchestrator(store, provider, FakeSender(), config).run_sweep())

    assert report.failed == 1
    assert "timed out" in report.errors[0]
    assert store.snapshots == {}
    assert provider.timeouts == [0.05]


def test_persist_failure_suppresses_notifications() -> None:
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(FAR_EXPIRY)
    store.fail_persist_for.add(1)
    provider = FakeProvider({"example.com": _fetched(None)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.failed == 1
    assert report.errors == ["Domain example.com: disk full"]
    assert sender.attempts == 0
    assert store.snapshots[1].expiry_date == FAR_EXPIRY


def test_failed_check_stamp_keeps_transition_for_next_sweep() -> None:
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(FAR_EXPIRY)
    store.fail_touch_once.add(1)
    provider = FakeProvider({"example.com": _fetched(None)})
    sender = FakeSender()
    orchestrator = _orchestrator(store, provider, sender)

    first = asyncio.run(orchestrator.run_sweep())

    assert first.failed == 1
    assert sender.sent == []
    assert store.snapshots[1].expiry_date == FAR_EXPIRY

    second = asyncio.run(orchestrator.run_sweep())

    assert second.success == 1
    assert second.notifications_sent == 1
    assert [intent.kind for intent in sender.sent] == [IntentKind.DROPPED]
    assert store.snapshots[1].expiry_date is None


def test_unexpected_store_error_is_isolated_to_one_domain() -> None:
    store = FakeStore([Domain(1, "a.com"), Domain(2, "b.com")])
    store.corrupt.add(1)
    provider = FakeProvider({"a.com": _fetched(FAR_EXPIRY), "b.com": _fetched(FAR_EXPIRY)})

    report = asyncio.run(_orchestrator(store, provider, FakeSender()).run_sweep())

    assert report.success == 1
    assert report.failed == 1
    assert report.errors[0].startswith("Domain a.com: Invalid isoformat string")
    assert store.snapshots[2].expiry_date == FAR_EXPIRY


def test_unexpected_store_error_is_isolated_with_concurrency() -> None:
    store = FakeStore([Domain(1, "a.com"), Domain(2, "b.com")])
    store.corrupt.add(1)
    provider = FakeProvider({"a.com": _fetched(FAR_EXPIRY), "b.com": _fetched(FAR_EXPIRY)})
    config = SweepConfig(fetch_timeout_seconds=1.0, send_timeout_seconds=1.0, max_concurrency=2)

    report = asyncio.run(_orchestrator(store, provider, FakeSender(), config).run_sweep())

    assert report.success == 1
    assert report.failed == 1
    assert 2 in store.snapshots


def test_one_failed_recipient_does_not_block_others() -> None:
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com", "b@example.com")})
    store.snapshots[1] = _snapshot(FAR_EXPIRY)
    provider = FakeProvider({"example.com": _fetched(None)})
    sender = FakeSender(fail_for={"a@example.com"})

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.success == 1
    assert report.notifications_sent == 1
    assert report.notifications_failed == 1
    assert [intent.recipient for intent in sender.sent] == ["b@example.com"]
    assert store.snapshots[1].last_notification_sent_at == NOW


def test_all_sends_failing_leaves_cooldown_marker_untouched() -> None:
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(FAR_EXPIRY)
    provider = FakeProvider({"example.com": _fetched(None)})
    sender = FakeSender(fail_for={"a@example.com"})

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.success == 1
    assert report.notifications_failed == 1
    assert store.snapshots[1].last_notification_sent_at is None


def test_threshold_day_sends_expiry_reminder() -> None:
    expiry = NOW + timedelta(days=7)
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(expiry)
    provider = FakeProvider({"example.com": _fetched(expiry)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    (intent,) = sender.sent
    assert intent.kind is IntentKind.EXPIRY_APPROACHING
    assert intent.threshold_days == 7
    assert intent.expiry_date == expiry
    assert report.notifications_sent == 1
    assert store.snapshots[1].last_notification_sent_at == NOW


def test_partial_day_rounds_up_to_threshold() -> None:
    expiry = NOW + timedelta(days=29, hours=1)
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(expiry)
    provider = FakeProvider({"example.com": _fetched(expiry)})
    sender = FakeSender()

    asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert [intent.threshold_days for intent in sender.sent] == [30]


def test_off_threshold_day_sends_nothing() -> None:
    expiry = NOW + timedelta(days=8)
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(expiry)
    provider = FakeProvider({"example.com": _fetched(expiry)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert sender.sent == []
    assert report.notifications_suppressed == 0


def test_cooldown_suppresses_repeat_reminder() -> None:
    expiry = NOW + timedelta(days=1)
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com", "b@example.com")})
    store.snapshots[1] = _snapshot(expiry, last_sent=NOW - timedelta(hours=1))
    provider = FakeProvider({"example.com": _fetched(expiry)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert sender.sent == []
    assert report.notifications_suppressed == 2
    assert store.snapshots[1].last_notification_sent_at == NOW - timedelta(hours=1)


def test_reminder_sent_once_cooldown_has_elapsed() -> None:
    expiry = NOW + timedelta(days=1)
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(expiry, last_sent=NOW - timedelta(hours=12))
    provider = FakeProvider({"example.com": _fetched(expiry)})
    sender = FakeSender()

    asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert len(sender.sent) == 1
    assert store.snapshots[1].last_notification_sent_at == NOW


def test_failed_reminder_releases_cooldown_slot() -> None:
    expiry = NOW + timedelta(days=7)
    previous = NOW - timedelta(days=3)
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(expiry, last_sent=previous)
    provider = FakeProvider({"example.com": _fetched(expiry)})
    sender = FakeSender(fail_for={"a@example.com"})

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.notifications_failed == 1
    assert store.snapshots[1].last_notification_sent_at == previous


def test_change_notification_starts_shared_cooldown() -> None:
    old_expiry = NOW + timedelta(days=3)
    new_expiry = NOW + timedelta(days=7)
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(old_expiry)
    provider = FakeProvider({"example.com": _fetched(new_expiry)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert [intent.kind for intent in sender.sent] == [IntentKind.EXPIRY_CHANGED]
    assert report.notifications_suppressed == 1


def test_reminder_uses_stored_snapshot_when_fetch_fails() -> None:
    expiry = NOW + timedelta(days=30)
    store = FakeStore([Domain(1, "example.com")], {1: _watchers("a@example.com")})
    store.snapshots[1] = _snapshot(expiry)
    provider = FakeProvider({"example.com": FetchError("timeout")})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.failed == 1
    assert [intent.threshold_days for intent in sender.sent] == [30]


def test_domains_without_watchers_are_still_reconciled() -> None:
    store = FakeStore([Domain(1, "example.com")])
    store.snapshots[1] = _snapshot(FAR_EXPIRY)
    provider = FakeProvider({"example.com": _fetched(None)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.success == 1
    assert sender.attempts == 0
    assert store.snapshots[1].expiry_date is None


def test_domains_are_fetched_in_store_order_once_each() -> None:
    domains = [Domain(3, "c.com"), Domain(1, "a.com"), Domain(3, "c.com"), Domain(2, "b.com")]
    store = FakeStore(domains)
    provider = FakeProvider({name: _fetched(FAR_EXPIRY) for name in ("a.com", "b.com", "c.com")})

    report = asyncio.run(_orchestrator(store, provider, FakeSender()).run_sweep())

    assert provider.calls == ["c.com", "a.com", "b.com"]
    assert report.success == 3


def test_concurrency_is_bounded() -> None:
    names = [f"site{index}.com" for index in range(6)]
    store = FakeStore([Domain(index, name) for index, name in enumerate(names)])
    provider = FakeProvider({name: _fetched(FAR_EXPIRY) for name in names}, delay=0.01)
    config = SweepConfig(fetch_timeout_seconds=1.0, send_timeout_seconds=1.0, max_concurrency=2)

    report = asyncio.run(_orchestrator(store, provider, FakeSender(), config).run_sweep())

    assert report.success == 6
    assert provider.max_in_flight == 2
    assert sorted(provider.calls) == sorted(names)


def test_sequential_sweep_runs_one_fetch_at_a_time() -> None:
    names = ["a.com", "b.com", "c.com"]
    store = FakeStore([Domain(index, name) for index, name in enumerate(names)])
    provider = FakeProvider({name: _fetched(FAR_EXPIRY) for name in names}, delay=0.01)

    asyncio.run(_orchestrator(store, provider, FakeSender()).run_sweep())

    assert provider.max_in_flight == 1


def test_unavailable_store_aborts_sweep() -> None:
    store = FakeStore([Domain(1, "example.com")])
    store.unavailable = True
    provider = FakeProvider({})

    with pytest.raises(StoreUnavailableError):
        asyncio.run(_orchestrator(store, provider, FakeSender()).run_sweep())

    assert provider.calls == []


def test_empty_store_returns_empty_report() -> None:
    report = asyncio.run(_orchestrator(FakeStore([]), FakeProvider({}), FakeSender()).run_sweep())

    assert report.as_dict() == {
        "success": 0,
        "failed": 0,
        "errors": [],
        "notifications_sent": 0,
        "notifications_failed": 0,
        "notifications_suppressed": 0,
    }


def test_invalid_concurrency_is_rejected() -> None:
    with pytest.raises(ValueError):
        SweepConfig(max_concurrency=0)


def test_unreadable_snapshot_does_not_block_other_reminders() -> None:
    expiry = NOW + timedelta(days=7)
    store = FakeStore([Domain(1, "a.com"), Domain(2, "b.com")], {2: _watchers("b@example.com")})
    store.snapshots[2] = _snapshot(expiry)
    store.corrupt.add(1)
    provider = FakeProvider({"a.com": _fetched(expiry), "b.com": _fetched(expiry)})
    sender = FakeSender()

    report = asyncio.run(_orchestrator(store, provider, sender).run_sweep())

    assert report.failed == 1
    assert [(intent.domain_name, intent.threshold_days) for intent in sender.sent] == [("b.com", 7)]
