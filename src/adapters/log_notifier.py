"""Logging notification adapter.

Writes notifications to the log instead of delivering them. Used when no
email transport is configured and for dry runs.
"""

from __future__ import annotations

import logging

from adapters.notification_formatting import format_notification, format_subject
from core.errors import NotificationError
from core.models import NotificationIntent

LOGGER = logging.getLogger(__name__)


class LogNotifier:
    """Notifier adapter that logs the rendered message."""

    async def send(self, intent: NotificationIntent) -> None:
        if not intent.recipient:
            raise NotificationError(f"No recipient for {intent.kind.value} on {intent.domain_name}")
        LOGGER.info(
            "[dry-run] to=%s subject=%s\n%s",
            intent.recipient,
            format_subject(intent),
            format_notification(intent, mode="text"),
        )
