from __future__ import annotations

from frontend.validators import parse_domain, parse_email, parse_thresholds


def test_parse_domain() -> None:
    assert parse_domain("https://www.Example.com/x").normalized == "example.com"
    assert parse_domain("").error == "domain is required"
    assert parse_domain("nope").normalized is None


def test_parse_email() -> None:
    assert parse_email(" Alice@Example.com ") == ("alice@example.com", None)
    assert parse_email("alice") == (None, "email is invalid")
    assert parse_email("") == (None, "email is required")


def test_parse_thresholds() -> None:
    assert parse_thresholds("30, 7, 1, 7") == ([30, 7, 1], None)
    values, error = parse_thresholds("30, soon")
    assert values is None
    assert "soon" in error
    assert parse_thresholds(" , ") == (None, "at least one threshold is required")
