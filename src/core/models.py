"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any WHOIS library, mail transport or database driver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Domain:
    """A tracked domain name, shared by every user watching it."""

    id: int
    name: str
    last_checked_at: Optional[datetime] = None


@dataclass(frozen=True)
class FetchedWhois:
    """Normalized registration fields returned by a WHOIS provider."""

    registrar: Optional[str]
    expiry_date: Optional[datetime]
    creation_date: Optional[datetime]
    raw_text: str


@dataclass(frozen=True)
class WhoisSnapshot:
    """Last-known WHOIS state persisted for a domain."""

    registrar: Optional[str]
    expiry_date: Optional[datetime]
    creation_date: Optional[datetime]
    raw_text: str
    updated_at: datetime
    last_notification_sent_at: Optional[datetime] = None


@dataclass(frozen=True)
class Watcher:
    """A user watching a domain, with the address notifications go to."""

    user_id: str
    email: str


@dataclass(frozen=True)
class User:
    id: str
    email: str


class IntentKind(str, Enum):
    DROPPED = "dropped"
    EXPIRY_CHANGED = "expiry_changed"
    EXPIRY_APPROACHING = "expiry_approaching"


@dataclass(frozen=True)
class NotificationIntent:
    """A notification decision that has not been delivered yet.

    The engine produces intents without a recipient; the orchestrator fills
    ``recipient`` in once per watcher before handing the intent to a sender.
    """

    kind: IntentKind
    domain_name: str
    previous_expiry_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    threshold_days: Optional[int] = None
    recipient: Optional[str] = None


class OutcomeStatus(str, Enum):
    OK = "ok"
    FETCH_ERROR = "fetch_error"
    PERSIST_ERROR = "persist_error"


@dataclass(frozen=True)
class DomainOutcome:
    """Typed result of processing one domain during a sweep."""

    domain_name: str
    status: OutcomeStatus
    error: Optional[str] = None
    notifications_sent: int = 0
    notifications_failed: int = 0


@dataclass
class SweepReport:
    """Aggregate result of one sweep invocation."""

    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    notifications_sent: int = 0
    notifications_failed: int = 0
    notifications_suppressed: int = 0

    def add_outcome(self, outcome: DomainOutcome) -> None:
        """Fold one per-domain outcome into the report."""

        if outcome.status is OutcomeStatus.OK:
            self.success += 1
        else:
            self.failed += 1
            self.errors.append(f"Domain {outcome.domain_name}: {outcome.error}")
        self.notifications_sent += outcome.notifications_sent
        self.notifications_failed += outcome.notifications_failed

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "failed": self.failed,
            "errors": list(self.errors),
            "notifications_sent": self.notifications_sent,
            "notifications_failed": self.notifications_failed,
            "notifications_suppressed": self.notifications_suppressed,
        }
