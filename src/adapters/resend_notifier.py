"""Resend email notification adapter.

Uses the Resend HTTP API for delivery so notifications reach each watcher's
inbox.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request

from adapters.notification_formatting import format_notification, format_subject
from core.errors import NotificationError
from core.models import NotificationIntent

LOGGER = logging.getLogger(__name__)

RESEND_ENDPOINT = "https://api.resend.com/emails"


class ResendEmailNotifier:
    """Notifier adapter that sends email through the Resend API."""

    def __init__(self, api_key: str, from_email: str, timeout: float = 10.0) -> None:
        self._api_key = api_key
        self._from_email = from_email
        self._timeout = timeout

    def _build_request(self, intent: NotificationIntent) -> urllib.request.Request:
        payload = {
            "from": self._from_email,
            "to": [intent.recipient],
            "subject": format_subject(intent),
            "html": format_notification(intent, mode="html"),
            "text": format_notification(intent, mode="text"),
        }
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(RESEND_ENDPOINT, data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        request.add_header("Authorization", f"Bearer {self._api_key}")
        return request

    async def send(self, intent: NotificationIntent) -> None:
        """Send the formatted notification to ``intent.recipient``."""

        if not intent.recipient:
            raise NotificationError(f"No recipient for {intent.kind.value} on {intent.domain_name}")
        await asyncio.to_thread(self._post, self._build_request(intent))
        LOGGER.info("Email %s sent to %s for %s", intent.kind.value, intent.recipient, intent.domain_name)

    def _post(self, request: urllib.request.Request) -> None:
        try:
            with urllib.request.urlopen(request, timeout=self._timeout):
                pass
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise NotificationError(f"Resend API error {e.code}: {body}") from e
        except (urllib.error.URLError, OSError) as e:
            raise NotificationError(f"Resend API unreachable: {e}") from e
