"""Core sweep orchestration.

This module is integration-agnostic. It only relies on ports for storage,
WHOIS lookups, notifications and time, enabling other schedulers or adapters
without changes here.

One sweep runs in two passes:
1) Fetch pass: for every tracked domain (stalest first) fetch WHOIS data,
   reconcile it with the stored snapshot, persist, and deliver the resulting
   change notifications.
2) Expiry threshold pass: for every domain with a known expiry date, send an
   approaching-expiry notification when the days left hit a configured
   threshold and the per-domain cooldown has elapsed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional

from core.config import SweepConfig
from core.errors import FetchError, NotificationError, PersistError
from core.models import (
    Domain,
    DomainOutcome,
    IntentKind,
    NotificationIntent,
    OutcomeStatus,
    SweepReport,
    Watcher,
)
from core.ports import Clock, DomainStore, NotificationSender, WhoisProvider
from core.reconcile import reconcile
from core.thresholds import in_cooldown, matching_threshold

LOGGER = logging.getLogger(__name__)


class SweepOrchestrator:
    """Drives reconciliation across all tracked domains and isolates failures."""

    def __init__(
        self,
        store: DomainStore,
        provider: WhoisProvider,
        sender: NotificationSender,
        clock: Clock,
        config: Optional[SweepConfig] = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._sender = sender
        self._clock = clock
        self._config = config or SweepConfig()

    async def run_sweep(self) -> SweepReport:
        """Run one full sweep and return the aggregate report.

        Only a failure to list tracked domains escapes; every per-domain
        failure is folded into the report.
        """

        domains = _unique_by_id(self._store.list_tracked_domains())
        LOGGER.info("Sweep started for %s domains", len(domains))

        report = SweepReport()
        for outcome in await self._fetch_pass(domains):
            report.add_outcome(outcome)

        await self._threshold_pass(domains, report)

        LOGGER.info(
            "Sweep complete: success=%s, failed=%s, sent=%s, send_failed=%s, suppressed=%s",
            report.success,
            report.failed,
            report.notifications_sent,
            report.notifications_failed,
            report.notifications_suppressed,
        )
        return report

    async def _fetch_pass(self, domains: list[Domain]) -> list[DomainOutcome]:
        if self._config.max_concurrency == 1:
            return [await self._process_domain(domain) for domain in domains]

        # Domains are unique by id, so each one is handled by exactly one worker.
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def bounded(domain: Domain) -> DomainOutcome:
            async with semaphore:
                return await self._process_domain(domain)

        return list(await asyncio.gather(*(bounded(domain) for domain in domains)))

    async def _process_domain(self, domain: Domain) -> DomainOutcome:
        """Fetch, reconcile, persist and notify for one domain."""

        try:
            # The provider enforces the timeout and raises FetchError on expiry.
            fetched = await self._provider.fetch(domain.name, self._config.fetch_timeout_seconds)
        except FetchError as exc:
            LOGGER.warning("Fetch failed for %s: %s", domain.name, exc)
            return DomainOutcome(domain.name, OutcomeStatus.FETCH_ERROR, str(exc))
        except Exception as exc:
            LOGGER.exception("Unexpected WHOIS provider error for %s", domain.name)
            return DomainOutcome(domain.name, OutcomeStatus.FETCH_ERROR, str(exc) or type(exc).__name__)

        fetched_at = self._clock.now()
        try:
            previous = self._store.get_snapshot(domain.id)
            result = reconcile(domain.name, previous, fetched, fetched_at)
            # Snapshot goes last so a failed write leaves the transition to be
            # recomputed next sweep.
            self._store.touch_last_checked(domain.id, fetched_at)
            self._store.upsert_snapshot(domain.id, result.snapshot)
        except PersistError as exc:
            # Intents computed above are dropped so notified state never runs
            # ahead of persisted state.
            LOGGER.error("Persist failed for %s: %s", domain.name, exc)
            return DomainOutcome(domain.name, OutcomeStatus.PERSIST_ERROR, str(exc))
        except Exception as exc:
            LOGGER.exception("Unexpected store error for %s", domain.name)
            return DomainOutcome(domain.name, OutcomeStatus.PERSIST_ERROR, str(exc) or type(exc).__name__)

        if not result.intents:
            LOGGER.debug("No transition for %s", domain.name)
            return DomainOutcome(domain.name, OutcomeStatus.OK)

        watchers = self._watchers_for(domain)
        sent = failed = 0
        for intent in result.intents:
            LOGGER.info("Transition %s detected for %s", intent.kind.value, domain.name)
            intent_sent, intent_failed = await self._deliver(intent, watchers)
            sent += intent_sent
            failed += intent_failed

        if sent:
            self._record_sent(domain, self._clock.now())
        return DomainOutcome(
            domain.name,
            OutcomeStatus.OK,
            notifications_sent=sent,
            notifications_failed=failed,
        )

    async def _threshold_pass(self, domains: list[Domain], report: SweepReport) -> None:
        """Send approaching-expiry notifications using the freshly stored snapshots."""

        now = self._clock.now()
        for domain in domains:
            try:
                await self._remind_domain(domain, now, report)
            except PersistError as exc:
                LOGGER.error("Expiry check failed for %s: %s", domain.name, exc)
            except Exception:
                LOGGER.exception("Unexpected error during expiry check for %s", domain.name)

    async def _remind_domain(self, domain: Domain, now: datetime, report: SweepReport) -> None:
        snapshot = self._store.get_snapshot(domain.id)
        if snapshot is None or snapshot.expiry_date is None:
            return

        threshold = matching_threshold(snapshot.expiry_date, now, self._config.thresholds_days)
        if threshold is None:
            return

        watchers = self._watchers_for(domain)
        if not watchers:
            return

        if in_cooldown(snapshot.last_notification_sent_at, now, self._config.cooldown):
            LOGGER.info("Cooldown active for %s, skipping %s-day alert", domain.name, threshold)
            report.notifications_suppressed += len(watchers)
            return

        claimed, previous = self._store.claim_notification_slot(domain.id, now, self._config.cooldown)
        if not claimed:
            LOGGER.info("Notification slot for %s already taken", domain.name)
            report.notifications_suppressed += len(watchers)
            return

        intent = NotificationIntent(
            kind=IntentKind.EXPIRY_APPROACHING,
            domain_name=domain.name,
            expiry_date=snapshot.expiry_date,
            threshold_days=threshold,
        )
        sent, failed = await self._deliver(intent, watchers)
        report.notifications_sent += sent
        report.notifications_failed += failed

        if not sent:
            # Nothing was delivered: give the slot back so the next sweep retries.
            try:
                self._store.release_notification_slot(domain.id, now, previous)
            except PersistError as exc:
                LOGGER.error("Could not release notification slot for %s: %s", domain.name, exc)

    def _watchers_for(self, domain: Domain) -> list[Watcher]:
        try:
            return self._store.list_watchers(domain.id)
        except PersistError as exc:
            LOGGER.error("Could not list watchers for %s: %s", domain.name, exc)
            return []
        except Exception:
            LOGGER.exception("Unexpected error listing watchers for %s", domain.name)
            return []

    def _record_sent(self, domain: Domain, sent_at: datetime) -> None:
        try:
            self._store.set_notification_sent_at(domain.id, sent_at)
        except PersistError as exc:
            LOGGER.error("Could not record notification time for %s: %s", domain.name, exc)
        except Exception:
            LOGGER.exception("Unexpected error recording notification time for %s", domain.name)

    async def _deliver(
        self, intent: NotificationIntent, watchers: Iterable[Watcher]
    ) -> tuple[int, int]:
        """Deliver one intent to every watcher independently; return (sent, failed)."""

        results = await asyncio.gather(
            *(self._send_one(replace(intent, recipient=watcher.email)) for watcher in watchers)
        )
        sent = sum(1 for ok in results if ok)
        return sent, len(results) - sent

    async def _send_one(self, intent: NotificationIntent) -> bool:
        timeout = self._config.send_timeout_seconds
        try:
            await asyncio.wait_for(self._sender.send(intent), timeout=timeout)
        except asyncio.TimeoutError:
            LOGGER.error(
                "Sending %s for %s to %s timed out after %gs",
                intent.kind.value,
                intent.domain_name,
                intent.recipient,
                timeout,
            )
            return False
        except NotificationError as exc:
            LOGGER.error(
                "Sending %s for %s to %s failed: %s",
                intent.kind.value,
                intent.domain_name,
                intent.recipient,
                exc,
            )
            return False
        except Exception:
            LOGGER.exception(
                "Unexpected error sending %s for %s to %s",
                intent.kind.value,
                intent.domain_name,
                intent.recipient,
            )
            return False

        LOGGER.info("Sent %s for %s to %s", intent.kind.value, intent.domain_name, intent.recipient)
        return True


def _unique_by_id(domains: Iterable[Domain]) -> list[Domain]:
    seen: set[int] = set()
    unique: list[Domain] = []
    for domain in domains:
        if domain.id in seen:
            continue
        seen.add(domain.id)
        unique.append(domain)
    return unique
