"""Shared notification formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from datetime import datetime
from typing import Optional

from core.models import IntentKind, NotificationIntent

FOOTER = "WHOIS Tracker - Automated Domain Monitoring"


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "unknown"
    return value.strftime("%B %d, %Y").replace(" 0", " ")


def urgency_level(days_left: int) -> str:
    if days_left <= 1:
        return "CRITICAL"
    if days_left <= 7:
        return "HIGH"
    return "MEDIUM"


def format_subject(intent: NotificationIntent) -> str:
    if intent.kind is IntentKind.EXPIRY_APPROACHING:
        return f"Domain Expiration Alert: {intent.domain_name}"
    if intent.kind is IntentKind.EXPIRY_CHANGED:
        return f"Domain Expiry Date Updated: {intent.domain_name}"
    return f"Domain Registration Dropped: {intent.domain_name}"


def _body_lines(intent: NotificationIntent) -> tuple[str, list[tuple[str, str]], str]:
    """Return (headline, labelled facts, closing sentence) for an intent."""

    if intent.kind is IntentKind.EXPIRY_APPROACHING:
        days = intent.threshold_days or 0
        facts = [
            ("Domain", intent.domain_name),
            ("Expiry Date", format_date(intent.expiry_date)),
            ("Days Remaining", f"{days} day{'' if days == 1 else 's'}"),
            ("Priority", urgency_level(days)),
        ]
        closing = "Please renew your domain registration before the expiry date to prevent service disruption."
        return "Domain Expiration Alert", facts, closing

    if intent.kind is IntentKind.EXPIRY_CHANGED:
        extended = bool(
            intent.expiry_date and intent.previous_expiry_date and intent.expiry_date > intent.previous_expiry_date
        )
        facts = [
            ("Domain", intent.domain_name),
            ("Previous Expiry Date", format_date(intent.previous_expiry_date)),
            ("New Expiry Date", format_date(intent.expiry_date)),
            ("Status", "Extended" if extended else "Shortened"),
        ]
        closing = (
            "The domain expiration date has been extended."
            if extended
            else "The domain expiration date has been moved to an earlier date."
        )
        return "Domain Expiry Date Updated", facts, closing

    facts = [
        ("Domain", intent.domain_name),
        ("Last Known Expiry Date", format_date(intent.previous_expiry_date)),
    ]
    closing = (
        "The WHOIS record no longer reports an expiry date. "
        "The registration may have lapsed or been deleted."
    )
    return "Domain Registration Dropped", facts, closing


def format_text(intent: NotificationIntent) -> str:
    """Create the plain-text notification body."""

    headline, facts, closing = _body_lines(intent)
    lines = [headline, ""]
    lines.extend(f"{label}: {value}" for label, value in facts)
    lines.extend(["", closing, "", FOOTER])
    return "\n".join(lines)


def format_html(intent: NotificationIntent) -> str:
    """Create the HTML notification body used by email adapters."""

    headline, facts, closing = _body_lines(intent)
    parts = [
        "<div style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333333; max-width: 600px;\">",
        f"<h2>{html.escape(headline)}</h2>",
        "<p>Hello,</p>",
        "<p>This is an automated notification regarding your tracked domain.</p>",
    ]
    parts.extend(
        f"<p><strong>{html.escape(label)}:</strong> {html.escape(value)}</p>" for label, value in facts
    )
    parts.append(f"<p>{html.escape(closing)}</p>")
    parts.append(
        "<p style=\"font-size: 12px; color: #666666;\">"
        f"{html.escape(FOOTER)}<br>"
        f"You are receiving this because {html.escape(intent.domain_name)} is in your monitored domains list."
        "</p>"
    )
    parts.append("</div>")
    return "\n".join(parts)


def format_notification(intent: NotificationIntent, mode: str) -> str:
    """Return the notification formatted for the requested mode."""

    if mode == "text":
        return format_text(intent)
    if mode == "html":
        return format_html(intent)
    raise ValueError(f"Unsupported notification format: {mode}")
