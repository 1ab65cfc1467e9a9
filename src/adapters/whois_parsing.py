"""Normalization of free-form WHOIS records into typed fields.

Providers return loosely structured mappings whose key names vary by
registry. Fields are picked by keyword so the core only ever sees
``FetchedWhois``.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from core.models import FetchedWhois

REGISTRAR_KEYWORDS = ("registrar",)
EXPIRY_KEYWORDS = ("expiry", "expiration", "expires")
CREATION_KEYWORDS = ("creation", "created")

NO_DATA_TEXT = "No WHOIS data available"

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%d %H:%M:%S",
    "%d-%b-%Y",
    "%d.%m.%Y",
    "%Y.%m.%d",
    "%Y/%m/%d",
)


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return next((item for item in value if item), None)
    return value


def parse_whois_date(value: Any) -> Optional[datetime]:
    """Coerce a WHOIS date value into an aware UTC datetime, or None."""

    value = _first(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        parsed = _parse_date_text(text)
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_date_text(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _matching_keys(record: Mapping[str, Any], keywords: Iterable[str]) -> list[str]:
    keywords = tuple(keywords)
    return [key for key in record if any(word in str(key).lower() for word in keywords)]


def extract_registrar(record: Mapping[str, Any]) -> Optional[str]:
    """Return the first string value whose key mentions the registrar."""

    keys = _matching_keys(record, REGISTRAR_KEYWORDS)
    # Exact "registrar" wins over "registrar_url", "registrar_iana_id", etc.
    keys.sort(key=lambda key: str(key).lower() != "registrar")
    for key in keys:
        value = _first(record[key])
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_date(record: Mapping[str, Any], keywords: Iterable[str]) -> Optional[datetime]:
    for key in _matching_keys(record, keywords):
        parsed = parse_whois_date(record[key])
        if parsed is not None:
            return parsed
    return None


def render_raw_text(record: Mapping[str, Any]) -> str:
    """Render a mapping as ``key: value`` lines when no raw response is available."""

    lines = []
    for key, value in record.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(item) for item in value)
        lines.append(f"{key}: {value}")
    return "\n".join(lines)


def normalize_record(record: Mapping[str, Any], raw_text: Optional[str] = None) -> FetchedWhois:
    """Build ``FetchedWhois`` from a provider mapping and optional raw response."""

    text = raw_text if raw_text and raw_text.strip() else render_raw_text(record)
    return FetchedWhois(
        registrar=extract_registrar(record),
        expiry_date=extract_date(record, EXPIRY_KEYWORDS),
        creation_date=extract_date(record, CREATION_KEYWORDS),
        raw_text=text or NO_DATA_TEXT,
    )
