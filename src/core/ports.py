"""Ports (interfaces) used by the core.

Ports define the minimal contracts for storage, WHOIS lookups, notification
delivery and time so that the core can be reused with different backends and
tested without network or database access.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Protocol

from core.models import Domain, FetchedWhois, NotificationIntent, User, Watcher, WhoisSnapshot


class DomainStore(Protocol):
    """Storage operations required by the sweep orchestrator."""

    def list_tracked_domains(self) -> list[Domain]:
        """Return every tracked domain, stalest ``last_checked_at`` first, nulls first."""
        ...

    def get_snapshot(self, domain_id: int) -> Optional[WhoisSnapshot]:
        ...

    def upsert_snapshot(self, domain_id: int, snapshot: WhoisSnapshot) -> WhoisSnapshot:
        ...

    def touch_last_checked(self, domain_id: int, checked_at: datetime) -> None:
        ...

    def list_watchers(self, domain_id: int) -> list[Watcher]:
        ...

    def set_notification_sent_at(self, domain_id: int, sent_at: datetime) -> None:
        ...

    def claim_notification_slot(
        self, domain_id: int, now: datetime, cooldown: timedelta
    ) -> tuple[bool, Optional[datetime]]:
        """Atomically set ``last_notification_sent_at`` to ``now`` if the cooldown elapsed.

        Returns ``(claimed, previous_value)``.
        """
        ...

    def release_notification_slot(
        self, domain_id: int, claimed_at: datetime, previous: Optional[datetime]
    ) -> None:
        """Restore ``previous`` if the slot still holds ``claimed_at``."""
        ...


class WatchlistStore(DomainStore, Protocol):
    """Additional storage operations used by watch management."""

    def find_domain_by_name(self, name: str) -> Optional[Domain]:
        ...

    def create_domain(self, name: str) -> Domain:
        ...

    def find_user_by_email(self, email: str) -> Optional[User]:
        ...

    def get_or_create_user(self, email: str) -> User:
        ...

    def is_watching(self, user_id: str, domain_id: int) -> bool:
        ...

    def add_watch(self, user_id: str, domain_id: int) -> None:
        ...

    def remove_watch(self, user_id: str, domain_id: int) -> bool:
        ...

    def list_domains_for_user(
        self, user_id: str, limit: int, offset: int
    ) -> list[tuple[Domain, Optional[WhoisSnapshot]]]:
        ...

    def count_domains_for_user(self, user_id: str) -> int:
        ...


class WhoisProvider(Protocol):
    """WHOIS lookups required by the core."""

    async def fetch(self, domain_name: str, timeout: float) -> FetchedWhois:
        """Return normalized fields or raise ``FetchError``.

        The lookup must give up after ``timeout`` seconds and raise
        ``FetchError`` then as well.
        """
        ...


class NotificationSender(Protocol):
    """Notification operations required by the core."""

    async def send(self, intent: NotificationIntent) -> None:
        """Deliver ``intent`` to ``intent.recipient`` or raise ``NotificationError``."""
        ...


class Clock(Protocol):
    def now(self) -> datetime:
        ...
