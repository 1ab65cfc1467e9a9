"""Application entry point for the whoiswatch domain tracker."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.clock import SystemClock
from adapters.log_notifier import LogNotifier
from adapters.resend_notifier import ResendEmailNotifier
from adapters.sqlite_storage import SQLiteDomainStore
from adapters.whois_provider import PythonWhoisProvider
from core.errors import WhoisWatchError
from core.models import FetchedWhois, SweepReport
from core.ports import NotificationSender
from core.sweep import SweepOrchestrator
from core.watchlist import WatchlistService

NAME = "WHOISWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/whoiswatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_store() -> SQLiteDomainStore:
    store = SQLiteDomainStore(settings.DB_PATH)
    store.init_db()
    return store


def _build_sender() -> NotificationSender:
    # Select the notification adapter based on configuration to keep the core
    # orchestrator independent from delivery details.
    config = settings.build_notification_config()
    if config.method == "resend":
        api_key = os.getenv("RESEND_API_KEY")
        if not api_key:
            raise RuntimeError("RESEND_API_KEY is required when notifications.method=resend")
        if not config.from_email:
            raise RuntimeError("notifications.from_email is required for resend notifications")
        sender: NotificationSender = ResendEmailNotifier(
            api_key=api_key,
            from_email=config.from_email,
            timeout=config.send_timeout_seconds,
        )
    elif config.method == "log":
        sender = LogNotifier()
    else:
        raise RuntimeError("notifications.method must be 'log' or 'resend'")
    LOGGER.info("Selected notification method - %s", config.method)
    return sender


def _build_orchestrator(store: SQLiteDomainStore) -> SweepOrchestrator:
    return SweepOrchestrator(
        store=store,
        provider=PythonWhoisProvider(),
        sender=_build_sender(),
        clock=SystemClock(),
        config=settings.build_sweep_config(),
    )


def _print_report(report: SweepReport) -> None:
    print(json.dumps(report.as_dict(), indent=2))


def _sweep() -> int:
    store = _build_store()
    orchestrator = _build_orchestrator(store)
    report = asyncio.run(orchestrator.run_sweep())
    _print_report(report)
    return 0 if report.failed == 0 else 1


async def _run_forever(orchestrator: SweepOrchestrator, interval_seconds: float) -> None:
    while True:
        try:
            await orchestrator.run_sweep()
        except WhoisWatchError:
            # An unavailable store aborts this sweep only; the next tick retries.
            LOGGER.exception("Sweep aborted")
        LOGGER.info("Next sweep in %.0f seconds", interval_seconds)
        await asyncio.sleep(interval_seconds)


def _run() -> int:
    _print_banner()
    LOGGER.info("Starting whoiswatch")
    store = _build_store()
    orchestrator = _build_orchestrator(store)
    try:
        asyncio.run(_run_forever(orchestrator, settings.INTERVAL_MINUTES * 60))
    except KeyboardInterrupt:
        LOGGER.info("Stopped")
    return 0


def _format_date(value) -> str:
    return value.isoformat() if value is not None else "-"


def _print_whois(domain_name: str, record: FetchedWhois) -> None:
    print(f"Domain:        {domain_name}")
    print(f"Registrar:     {record.registrar or '-'}")
    print(f"Expiry date:   {_format_date(record.expiry_date)}")
    print(f"Creation date: {_format_date(record.creation_date)}")


def _watch(args: argparse.Namespace) -> int:
    service = WatchlistService(_build_store())
    if args.watch_command == "add":
        domain = service.add_watch(args.email, args.domain)
        print(f"{args.email} is now watching {domain.name}")
        return 0
    if args.watch_command == "remove":
        service.remove_watch(args.email, args.domain)
        print(f"{args.email} stopped watching {args.domain}")
        return 0

    page = service.list_watches(args.email, page=args.page, limit=args.limit)
    if not page.items:
        print("No watched domains.")
        return 0
    for index, item in enumerate(page.items, start=(page.page - 1) * page.limit + 1):
        expiry = item.snapshot.expiry_date if item.snapshot else None
        print(f"{index}. {item.domain.name} | expires {_format_date(expiry)}")
    print(f"Page {page.page} of {page.total_pages} ({page.total} domains)")
    return 0


def _show(args: argparse.Namespace) -> int:
    service = WatchlistService(_build_store())
    stored = service.get_stored_whois(args.email, args.domain)
    if stored.snapshot is None:
        print(stored.message)
        return 1
    snapshot = stored.snapshot
    _print_whois(
        stored.domain_name,
        FetchedWhois(
            registrar=snapshot.registrar,
            expiry_date=snapshot.expiry_date,
            creation_date=snapshot.creation_date,
            raw_text=snapshot.raw_text,
        ),
    )
    print(f"Last checked:  {_format_date(stored.last_checked_at)}")
    return 0


def _lookup(args: argparse.Namespace) -> int:
    service = WatchlistService(_build_store(), provider=PythonWhoisProvider())
    record = asyncio.run(service.lookup(args.domain, timeout=settings.FETCH_TIMEOUT_SECONDS))
    _print_whois(args.domain, record)
    if args.raw:
        print()
        print(record.raw_text)
    return 0


def _setup() -> int:
    _print_banner()
    from frontend.app import ConfigPanelApp

    ConfigPanelApp().run()
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="whoiswatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("sweep", help="Run one sweep and print the report")
    subparsers.add_parser("run", help="Run sweeps on the configured interval")
    subparsers.add_parser("config", help="Launch the config TUI")

    watch = subparsers.add_parser("watch", help="Manage watched domains")
    watch_sub = watch.add_subparsers(dest="watch_command", required=True)
    add = watch_sub.add_parser("add", help="Start watching a domain")
    add.add_argument("email")
    add.add_argument("domain")
    remove = watch_sub.add_parser("remove", help="Stop watching a domain")
    remove.add_argument("email")
    remove.add_argument("domain")
    listing = watch_sub.add_parser("list", help="List watched domains")
    listing.add_argument("email")
    listing.add_argument("--page", type=int, default=1)
    listing.add_argument("--limit", type=int, default=5)

    show = subparsers.add_parser("show", help="Show the stored WHOIS record of a watched domain")
    show.add_argument("email")
    show.add_argument("domain")

    lookup = subparsers.add_parser("lookup", help="Run a live WHOIS lookup (not stored)")
    lookup.add_argument("domain")
    lookup.add_argument("--raw", action="store_true", help="Print the raw WHOIS text")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    _configure_logging()

    handlers = {
        "sweep": lambda: _sweep(),
        "watch": lambda: _watch(args),
        "show": lambda: _show(args),
        "lookup": lambda: _lookup(args),
        "config": lambda: _setup(),
    }
    handler = handlers.get(args.command, _run)
    try:
        code = handler()
    except (WhoisWatchError, ValueError) as exc:
        LOGGER.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
