"""Helpers for cleaning and validating domain names."""

from __future__ import annotations

import re

from core.errors import ValidationError

DOMAIN_PATTERN = re.compile(r"^([a-z0-9]+(-[a-z0-9]+)*\.)+[a-z]{2,}$", re.IGNORECASE)

_SCHEME_PREFIX = re.compile(r"^https?://", re.IGNORECASE)
_WWW_PREFIX = re.compile(r"^www\.", re.IGNORECASE)


def clean_domain(raw_value: str) -> str:
    """Strip protocol, ``www.`` and any path, then lower-case."""

    value = raw_value.strip()
    value = _SCHEME_PREFIX.sub("", value)
    value = _WWW_PREFIX.sub("", value)
    return value.split("/", 1)[0].strip().lower()


def is_valid_domain(name: str) -> bool:
    return bool(DOMAIN_PATTERN.match(name))


def normalize_domain(raw_value: str) -> str:
    """Return the cleaned domain name or raise ``ValidationError``."""

    cleaned = clean_domain(raw_value)
    if not cleaned:
        raise ValidationError("Domain name is required")
    if not is_valid_domain(cleaned):
        raise ValidationError(
            f"Invalid domain format: {raw_value!r}. "
            "Please provide a valid domain name (e.g., example.com)"
        )
    return cleaned
