"""Data tab for viewing and exporting stored WHOIS snapshots."""

from __future__ import annotations

import csv
import json
from datetime import datetime
from typing import Any

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static

from adapters.sqlite_storage import SQLiteDomainStore
from core.errors import WhoisWatchError

from ..constants import PROJECT_ROOT

EXPORT_FIELDS = [
    "domain_name",
    "registrar",
    "expiry_date",
    "creation_date",
    "updated_at",
    "last_checked_at",
    "last_notification_sent_at",
    "watchers",
]


class DataTab(Container):
    """Data tab to browse WHOIS snapshots and export to JSON/CSV."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._rows: list[dict[str, Any]] = []
        self._table_ready = False

    def compose(self):
        with Vertical(id="data-panel"):
            yield Static("WHOIS snapshots", id="data-title")
            yield DataTable(id="data-table", cursor_type="row")
            with Horizontal(id="data-actions"):
                yield Button("Export JSON", id="export-json", variant="success")
                yield Button("Export CSV", id="export-csv")
                yield Button("Refresh", id="data-refresh")
            yield Static("", id="data-output")

    def on_mount(self) -> None:
        table = self.query_one("#data-table", DataTable)
        table.add_column("domain", key="domain_name", width=26)
        table.add_column("registrar", key="registrar", width=28)
        table.add_column("expires", key="expiry_date", width=12)
        table.add_column("created", key="creation_date", width=12)
        table.add_column("updated", key="updated_at", width=18)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self.query_one("#data-actions").styles.height = 3
        self._table_ready = True
        self._load_snapshots()

    @on(Button.Pressed, "#export-json")
    def _on_export_json(self) -> None:
        self._export_rows("json")

    @on(Button.Pressed, "#export-csv")
    def _on_export_csv(self) -> None:
        self._export_rows("csv")

    @on(Button.Pressed, "#data-refresh")
    def _on_refresh(self) -> None:
        self._load_snapshots()

    def _load_snapshots(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#data-table", DataTable)
        table.clear()
        db_path = self.app.config_state.db_path
        if not db_path.exists():
            self._rows = []
            self._set_output(f"db not found: {db_path}")
            return
        try:
            rows = SQLiteDomainStore(str(db_path)).list_domain_overview()
        except WhoisWatchError as exc:
            self._rows = []
            self._set_output(f"db error: {exc}")
            return

        # Domains that were never fetched have no snapshot to show.
        self._rows = [
            {field: row.get(field) for field in EXPORT_FIELDS} for row in rows if row.get("updated_at")
        ]
        for row in self._rows:
            table.add_row(
                row["domain_name"],
                self._clip_text(row["registrar"] or ""),
                (row["expiry_date"] or "")[:10],
                (row["creation_date"] or "")[:10],
                self._format_date_display(row["updated_at"]),
                key=row["domain_name"],
            )
        self._set_output(f"loaded {len(self._rows)} snapshots from {db_path}")

    def _export_rows(self, fmt: str) -> None:
        if not self._rows:
            self._set_output("No snapshots to export.")
            return
        exports_dir = PROJECT_ROOT / "exports"
        exports_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = exports_dir / f"whois-{timestamp}.{fmt}"
        try:
            if fmt == "json":
                path.write_text(json.dumps(self._rows, indent=2, ensure_ascii=True), encoding="utf-8")
            else:
                with path.open("w", encoding="utf-8", newline="") as handle:
                    writer = csv.DictWriter(handle, fieldnames=EXPORT_FIELDS)
                    writer.writeheader()
                    writer.writerows(self._rows)
            self._set_output(f"exported {len(self._rows)} snapshots to {path}")
        except OSError as exc:
            self._set_output(f"export failed: {exc.strerror or exc}")

    def _set_output(self, message: str) -> None:
        self.query_one("#data-output", Static).update(message)

    @staticmethod
    def _clip_text(value: str, limit: int = 28) -> str:
        if len(value) <= limit:
            return value
        return value[: limit - 3] + "..."

    @staticmethod
    def _format_date_display(value: str) -> str:
        if not value:
            return ""
        return value.replace("T", " ")[:19]
