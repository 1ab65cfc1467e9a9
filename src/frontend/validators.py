"""Validation helpers for config and watch editing."""

from __future__ import annotations

import re
from dataclasses import dataclass

from core.domain_names import clean_domain, is_valid_domain

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass
class DomainInfo:
    normalized: str | None
    error: str | None = None


def parse_domain(raw_value: str) -> DomainInfo:
    cleaned = clean_domain(raw_value)
    if not cleaned:
        return DomainInfo(None, "domain is required")
    if not is_valid_domain(cleaned):
        return DomainInfo(None, "domain is invalid (e.g. example.com)")
    return DomainInfo(cleaned)


def parse_email(raw_value: str) -> tuple[str | None, str | None]:
    """Return ``(email, error)`` with the address lower-cased."""

    value = raw_value.strip().lower()
    if not value:
        return None, "email is required"
    if not EMAIL_PATTERN.match(value):
        return None, "email is invalid"
    return value, None


def parse_thresholds(raw_value: str) -> tuple[list[int] | None, str | None]:
    """Parse a comma separated list of day counts, e.g. ``30, 7, 1``."""

    parts = [part.strip() for part in raw_value.split(",") if part.strip()]
    if not parts:
        return None, "at least one threshold is required"
    values: list[int] = []
    for part in parts:
        if not part.isdigit():
            return None, f"threshold must be a non-negative integer: {part}"
        values.append(int(part))
    # Keep the configured order but drop repeats.
    return list(dict.fromkeys(values)), None
