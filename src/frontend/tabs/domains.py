"""Domains tab implementation."""

from __future__ import annotations

from typing import Any, Optional

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static

from adapters.sqlite_storage import SQLiteDomainStore
from core.errors import WhoisWatchError
from core.watchlist import WatchlistService

from ..modals import AddWatchScreen, RemoveWatchScreen


class DomainsTab(Container):
    """Tracked domains with their watchers; add and remove watches."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._rows: dict[str, dict[str, Any]] = {}
        self._current_row_key: Optional[str] = None
        self._table_ready = False

    def compose(self):
        with Vertical(id="domains-panel"):
            with Horizontal(id="domains-body"):
                with Container(id="domains-left"):
                    yield DataTable(id="domains-table", cursor_type="row")
                with Container(id="domains-right"):
                    yield Static("Domain details", id="domains-title")
                    yield Static("registrar", classes="form-label")
                    yield Static("", id="domain-registrar")
                    yield Static("expiry date", classes="form-label")
                    yield Static("", id="domain-expiry")
                    yield Static("creation date", classes="form-label")
                    yield Static("", id="domain-creation")
                    yield Static("last checked", classes="form-label")
                    yield Static("", id="domain-checked")
                    yield Static("last notification", classes="form-label")
                    yield Static("", id="domain-notified")
                    yield Static("watchers", classes="form-label")
                    yield Static("", id="domain-watchers")
            with Horizontal(id="domains-actions"):
                yield Button("Add watch", id="add-watch", variant="success")
                yield Button("Remove watch", id="remove-watch", variant="error")
                yield Button("Refresh", id="refresh-domains")
            yield Static("", id="domains-output")

    def on_mount(self) -> None:
        table = self.query_one("#domains-table", DataTable)
        table.add_column("domain", key="domain_name", width=30)
        table.add_column("expires", key="expiry_date", width=12)
        table.add_column("checked", key="last_checked_at", width=18)
        table.add_column("watchers", key="watchers", width=8)
        table.zebra_stripes = True
        self._table_ready = True
        self.reload_from_db()

    def _store(self) -> SQLiteDomainStore:
        store = SQLiteDomainStore(str(self.app.config_state.db_path))
        store.init_db()
        return store

    def reload_from_db(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#domains-table", DataTable)
        table.clear()
        try:
            rows = self._store().list_domain_overview()
        except WhoisWatchError as exc:
            self._rows = {}
            self._set_output(f"db error: {exc}")
            return

        self._rows = {str(row["id"]): row for row in rows}
        for key, row in self._rows.items():
            watchers = self._watchers(row)
            table.add_row(
                row["domain_name"],
                (row["expiry_date"] or "")[:10],
                (row["last_checked_at"] or "never").replace("T", " ")[:16],
                str(len(watchers)),
                key=key,
            )
        if self._current_row_key not in self._rows:
            self._current_row_key = None
        self._show_details(self._current_row_key)
        self._update_action_state()
        self._set_output(f"{len(rows)} tracked domains")

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        value = event.row_key
        self._current_row_key = str(value.value) if hasattr(value, "value") else str(value)
        self._show_details(self._current_row_key)
        self._update_action_state()

    @on(Button.Pressed, "#refresh-domains")
    def _on_refresh(self) -> None:
        self.reload_from_db()

    @on(Button.Pressed, "#add-watch")
    def _on_add_watch(self) -> None:
        self.app.push_screen(AddWatchScreen(), self._handle_add_watch)

    @on(Button.Pressed, "#remove-watch")
    def _on_remove_watch(self) -> None:
        row = self._rows.get(self._current_row_key or "")
        if row is None:
            return
        screen = RemoveWatchScreen(row["domain_name"], self._watchers(row))
        self.app.push_screen(screen, self._handle_remove_watch)

    def _handle_add_watch(self, payload: tuple[str, str] | None) -> None:
        if not payload:
            return
        email, domain_name = payload
        try:
            WatchlistService(self._store()).add_watch(email, domain_name)
        except WhoisWatchError as exc:
            self._set_output(str(exc))
            return
        self.reload_from_db()
        self._set_output(f"{email} is now watching {domain_name}")

    def _handle_remove_watch(self, email: str | None) -> None:
        row = self._rows.get(self._current_row_key or "")
        if not email or row is None:
            return
        try:
            WatchlistService(self._store()).remove_watch(email, row["domain_name"])
        except WhoisWatchError as exc:
            self._set_output(str(exc))
            return
        self.reload_from_db()
        self._set_output(f"{email} stopped watching {row['domain_name']}")

    def _show_details(self, row_key: Optional[str]) -> None:
        row = self._rows.get(row_key or "") or {}
        self.query_one("#domains-title", Static).update(row.get("domain_name", "Domain details"))
        self.query_one("#domain-registrar", Static).update(row.get("registrar") or "-")
        self.query_one("#domain-expiry", Static).update(self._display(row.get("expiry_date")))
        self.query_one("#domain-creation", Static).update(self._display(row.get("creation_date")))
        self.query_one("#domain-checked", Static).update(self._display(row.get("last_checked_at")))
        self.query_one("#domain-notified", Static).update(self._display(row.get("last_notification_sent_at")))
        self.query_one("#domain-watchers", Static).update("\n".join(self._watchers(row)) or "-")

    def _update_action_state(self) -> None:
        self.query_one("#remove-watch", Button).disabled = self._current_row_key is None

    def _set_output(self, message: str) -> None:
        self.query_one("#domains-output", Static).update(message)

    @staticmethod
    def _watchers(row: dict[str, Any]) -> list[str]:
        raw = row.get("watchers") or ""
        return [email for email in raw.split(", ") if email]

    @staticmethod
    def _display(value: Optional[str]) -> str:
        if not value:
            return "-"
        return value.replace("T", " ")[:19]
