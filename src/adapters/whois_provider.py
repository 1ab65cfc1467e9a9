"""python-whois adapter.

Implements the core WhoisProvider port on top of the python-whois package.
Lookups are blocking, so they run in a worker thread with a timeout.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import whois
from whois.parser import PywhoisError

from adapters.whois_parsing import normalize_record
from core.errors import FetchError
from core.models import FetchedWhois

LOGGER = logging.getLogger(__name__)

# Registry replies that mean "no such registration" rather than a failed lookup.
NOT_FOUND_MARKERS = (
    "no match",
    "not found",
    "no data found",
    "no entries found",
    "status: free",
    "status: available",
)


def _is_not_found(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in NOT_FOUND_MARKERS)


class PythonWhoisProvider:
    """WHOIS provider adapter backed by ``whois.whois``."""

    def __init__(self, lookup=None) -> None:
        self._lookup = lookup or whois.whois

    async def fetch(self, domain_name: str, timeout: float) -> FetchedWhois:
        """Look up ``domain_name`` and return normalized fields."""

        try:
            return await asyncio.wait_for(asyncio.to_thread(self._fetch_sync, domain_name), timeout)
        except asyncio.TimeoutError as exc:
            raise FetchError(f"WHOIS lookup timed out after {timeout:g}s") from exc

    def _fetch_sync(self, domain_name: str) -> FetchedWhois:
        LOGGER.info("WHOIS lookup for %s", domain_name)
        try:
            entry = self._lookup(domain_name)
        except PywhoisError as exc:
            message = str(exc).strip()
            if _is_not_found(message):
                # An unregistered domain is data, not a failure: it reconciles
                # as a record without an expiry date.
                LOGGER.info("WHOIS has no registration for %s", domain_name)
                return FetchedWhois(
                    registrar=None,
                    expiry_date=None,
                    creation_date=None,
                    raw_text=message,
                )
            raise FetchError(f"Failed to retrieve WHOIS data: {message or 'unknown error'}") from exc
        except Exception as exc:
            raise FetchError(f"Failed to retrieve WHOIS data: {exc}") from exc

        return self._normalize(domain_name, entry)

    @staticmethod
    def _normalize(domain_name: str, entry: Any) -> FetchedWhois:
        if entry is None:
            raise FetchError("Failed to retrieve WHOIS data: empty response")
        raw_text = getattr(entry, "text", None)
        record = dict(entry)
        if not record and not (raw_text or "").strip():
            # A blank reply usually means the registry dropped the connection.
            raise FetchError("Failed to retrieve WHOIS data: empty response")
        fetched = normalize_record(record, raw_text if isinstance(raw_text, str) else None)
        LOGGER.debug(
            "WHOIS for %s: registrar=%s expiry=%s creation=%s",
            domain_name,
            fetched.registrar,
            fetched.expiry_date,
            fetched.creation_date,
        )
        return fetched
