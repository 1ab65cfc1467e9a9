"""WHOIS reconciliation logic (core domain).

``reconcile`` compares the previously stored snapshot of a domain with a
freshly fetched one and decides what to persist and which notifications are
warranted. It performs no I/O and keeps no state, so calling it twice with
the same inputs yields the same result.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from core.models import FetchedWhois, IntentKind, NotificationIntent, WhoisSnapshot


@dataclass(frozen=True)
class Reconciliation:
    """The snapshot to persist plus the intents produced by a transition."""

    snapshot: WhoisSnapshot
    intents: List[NotificationIntent]


def reconcile(
    domain_name: str,
    old: Optional[WhoisSnapshot],
    new: FetchedWhois,
    fetched_at: datetime,
) -> Reconciliation:
    """Classify the transition from ``old`` to ``new``.

    Rules:
    - Dropped: the old snapshot had an expiry date and the new data has none.
    - ExpiryChanged: both expiry dates are known and differ (full precision).
    - Anything else, including the first observation of a domain or of its
      expiry date, produces no intent.

    The returned snapshot is always ``new`` verbatim, stamped with
    ``fetched_at``. ``last_notification_sent_at`` is carried over untouched.
    """

    snapshot = WhoisSnapshot(
        registrar=new.registrar,
        expiry_date=new.expiry_date,
        creation_date=new.creation_date,
        raw_text=new.raw_text,
        updated_at=fetched_at,
        last_notification_sent_at=old.last_notification_sent_at if old else None,
    )

    intents: List[NotificationIntent] = []
    previous_expiry = old.expiry_date if old else None

    if previous_expiry is not None and new.expiry_date is None:
        intents.append(
            NotificationIntent(
                kind=IntentKind.DROPPED,
                domain_name=domain_name,
                previous_expiry_date=previous_expiry,
            )
        )
    elif (
        previous_expiry is not None
        and new.expiry_date is not None
        and previous_expiry != new.expiry_date
    ):
        intents.append(
            NotificationIntent(
                kind=IntentKind.EXPIRY_CHANGED,
                domain_name=domain_name,
                previous_expiry_date=previous_expiry,
                expiry_date=new.expiry_date,
            )
        )

    return Reconciliation(snapshot=snapshot, intents=intents)
