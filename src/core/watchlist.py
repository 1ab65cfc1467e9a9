"""Watch management (core domain).

Users add and remove domains from their watch list here. Domains are shared:
the first watch creates the domain row and later watches reuse it, and
removing the last watch keeps the domain and its WHOIS history.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.domain_names import normalize_domain
from core.errors import AlreadyWatchingError, DomainNotFoundError, FetchError, NotWatchingError
from core.models import Domain, FetchedWhois, WhoisSnapshot
from core.ports import WatchlistStore, WhoisProvider

LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 5


@dataclass(frozen=True)
class WatchedDomain:
    domain: Domain
    snapshot: Optional[WhoisSnapshot]


@dataclass(frozen=True)
class WatchPage:
    """One page of a user's watch list."""

    items: list[WatchedDomain]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass(frozen=True)
class StoredWhois:
    """Stored WHOIS view for one watched domain, with a status message when missing."""

    domain_name: str
    snapshot: Optional[WhoisSnapshot] = None
    last_checked_at: Optional[datetime] = None
    message: Optional[str] = None


class WatchlistService:
    """User-facing watch operations on top of a ``WatchlistStore``."""

    def __init__(self, store: WatchlistStore, provider: Optional[WhoisProvider] = None) -> None:
        self._store = store
        self._provider = provider

    def add_watch(self, email: str, raw_domain: str) -> Domain:
        """Start watching ``raw_domain`` for ``email``, creating the domain if needed."""

        name = normalize_domain(raw_domain)
        domain = self._store.find_domain_by_name(name)
        if domain is None:
            domain = self._store.create_domain(name)
            LOGGER.info("Now tracking %s", name)

        user = self._store.get_or_create_user(email)
        if self._store.is_watching(user.id, domain.id):
            raise AlreadyWatchingError(f"{email} is already watching {name}")

        self._store.add_watch(user.id, domain.id)
        LOGGER.info("%s started watching %s", email, name)
        return domain

    def remove_watch(self, email: str, raw_domain: str) -> None:
        """Stop watching a domain. The domain and its snapshot are kept."""

        name = normalize_domain(raw_domain)
        domain = self._store.find_domain_by_name(name)
        if domain is None:
            raise DomainNotFoundError(f"Domain not found: {name}")

        user = self._store.find_user_by_email(email)
        if user is None or not self._store.is_watching(user.id, domain.id):
            raise NotWatchingError(f"{email} is not watching {name}")

        if not self._store.remove_watch(user.id, domain.id):
            raise NotWatchingError(f"Failed to remove {name} for {email}")
        LOGGER.info("%s stopped watching %s", email, name)

    def list_watches(self, email: str, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> WatchPage:
        """Return one page of the user's domains with their stored snapshots."""

        if page < 1:
            raise ValueError("page must be at least 1")
        if limit < 1:
            raise ValueError("limit must be at least 1")

        user = self._store.find_user_by_email(email)
        if user is None:
            return WatchPage(items=[], page=page, limit=limit, total=0)

        rows = self._store.list_domains_for_user(user.id, limit=limit, offset=(page - 1) * limit)
        total = self._store.count_domains_for_user(user.id)
        items = [WatchedDomain(domain=domain, snapshot=snapshot) for domain, snapshot in rows]
        return WatchPage(items=items, page=page, limit=limit, total=total)

    def get_stored_whois(self, email: str, raw_domain: str) -> StoredWhois:
        """Return the stored WHOIS record of a domain the user watches."""

        name = normalize_domain(raw_domain)
        domain = self._store.find_domain_by_name(name)
        if domain is None:
            return StoredWhois(domain_name=name, message="This domain isn't being tracked yet")

        user = self._store.find_user_by_email(email)
        if user is None or not self._store.is_watching(user.id, domain.id):
            return StoredWhois(domain_name=name, message="You aren't watching this domain")

        snapshot = self._store.get_snapshot(domain.id)
        if snapshot is None:
            return StoredWhois(
                domain_name=name,
                last_checked_at=domain.last_checked_at,
                message="Domain has not been tracked yet",
            )
        return StoredWhois(domain_name=name, snapshot=snapshot, last_checked_at=domain.last_checked_at)

    async def lookup(self, raw_domain: str, timeout: float) -> FetchedWhois:
        """Run a live WHOIS lookup without persisting anything."""

        if self._provider is None:
            raise FetchError("No WHOIS provider configured for live lookups")
        name = normalize_domain(raw_domain)
        return await self._provider.fetch(name, timeout)
