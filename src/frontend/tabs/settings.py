"""Settings tab implementation."""

from __future__ import annotations

from typing import Any, Callable, Optional

from textual import on
from textual.containers import Container, Horizontal, ScrollableContainer, Vertical
from textual.widgets import ContentSwitcher, DataTable, Input, Select, Static, Switch, TextArea

from ..validators import parse_thresholds

Parser = Callable[[str], tuple[Any, Optional[str]]]


def _parse_non_negative_int(value: str) -> tuple[Optional[int], Optional[str]]:
    stripped = value.strip()
    if not stripped.isdigit():
        return None, "Enter a non-negative integer"
    return int(stripped), None


def _parse_positive_int(value: str) -> tuple[Optional[int], Optional[str]]:
    parsed, error = _parse_non_negative_int(value)
    if error is None and parsed == 0:
        return None, "Enter an integer of at least 1"
    return parsed, error


def _parse_positive_number(value: str) -> tuple[Optional[float], Optional[str]]:
    try:
        parsed = float(value.strip())
    except ValueError:
        return None, "Enter a number"
    if parsed <= 0:
        return None, "Enter a number greater than 0"
    return (int(parsed) if parsed.is_integer() else parsed), None


def _parse_text(value: str) -> tuple[Optional[str], Optional[str]]:
    stripped = value.strip()
    if not stripped:
        return None, "Value is required"
    return stripped, None


def _parse_threshold_list(value: str) -> tuple[Optional[list[int]], Optional[str]]:
    return parse_thresholds(value)


# input id -> (section, key path, parser, default shown when the key is missing)
INPUT_FIELDS: dict[str, tuple[str, tuple[str, ...], Parser, Any]] = {
    "database-path": ("database", ("path",), _parse_text, "whoiswatch.db"),
    "sweep-thresholds": ("sweep", ("thresholds_days",), _parse_threshold_list, [30, 7, 1]),
    "sweep-cooldown": ("sweep", ("cooldown_hours",), _parse_positive_number, 12),
    "sweep-fetch-timeout": ("sweep", ("fetch_timeout_seconds",), _parse_positive_number, 15),
    "sweep-concurrency": ("sweep", ("max_concurrency",), _parse_positive_int, 1),
    "sweep-interval": ("sweep", ("interval_minutes",), _parse_positive_number, 60),
    "notifications-from": ("notifications", ("from_email",), _parse_text, ""),
    "notifications-timeout": ("notifications", ("send_timeout_seconds",), _parse_positive_number, 10),
    "logging-file-path": ("logging", ("file", "path"), _parse_text, "logs/whoiswatch.log"),
    "logging-file-max-bytes": ("logging", ("file", "max_bytes"), _parse_positive_int, 5 * 1024 * 1024),
    "logging-file-backup": ("logging", ("file", "backup_count"), _parse_non_negative_int, 5),
}

SWITCH_FIELDS: dict[str, tuple[str, tuple[str, ...], bool]] = {
    "logging-enabled": ("logging", ("enabled",), False),
    "logging-console": ("logging", ("console",), True),
    "logging-file-enabled": ("logging", ("file", "enabled"), False),
    "logging-redact-enabled": ("logging", ("redact", "enabled"), False),
}

SELECT_FIELDS: dict[str, tuple[str, tuple[str, ...], list[str]]] = {
    "notifications-method": ("notifications", ("method",), ["log", "resend"]),
    "logging-level": ("logging", ("level",), ["DEBUG", "INFO", "WARNING", "ERROR"]),
}


class SettingsTab(Container):
    """Settings tab for editing database, sweep, notifications, and logging."""

    SECTION_LABELS = [
        ("database", "Database", "SQLite file location"),
        ("sweep", "Sweep", "Thresholds, cooldown, timeouts"),
        ("notifications", "Notifications", "Delivery method and sender"),
        ("logging", "Logging", "Console/file logging + redaction"),
    ]

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._loading_form = False
        self._current_section: Optional[str] = None

    def compose(self):
        with Vertical(id="settings-panel"):
            with Horizontal(id="settings-body"):
                with Container(id="settings-left"):
                    yield DataTable(id="settings-table", cursor_type="row")
                with Container(id="settings-right"):
                    with ContentSwitcher(id="settings-forms"):
                        with Container(id="settings-database"):
                            yield Static("Database", classes="settings-title")
                            yield Static("path (relative to project root)", classes="form-label")
                            yield Input(id="database-path")
                            yield Static("", id="database-error", classes="settings-error")

                        with ScrollableContainer(id="settings-sweep"):
                            yield Static("Sweep", classes="settings-title")
                            yield Static("thresholds_days (comma separated)", classes="form-label")
                            yield Input(placeholder="30, 7, 1", id="sweep-thresholds")
                            yield Static("cooldown_hours", classes="form-label")
                            yield Input(placeholder="12", id="sweep-cooldown")
                            yield Static("fetch_timeout_seconds", classes="form-label")
                            yield Input(placeholder="15", id="sweep-fetch-timeout")
                            yield Static("max_concurrency", classes="form-label")
                            yield Input(placeholder="1", id="sweep-concurrency")
                            yield Static("interval_minutes", classes="form-label")
                            yield Input(placeholder="60", id="sweep-interval")
                            yield Static("", id="sweep-error", classes="settings-error")

                        with Container(id="settings-notifications"):
                            yield Static("Notifications", classes="settings-title")
                            yield Static("method", classes="form-label")
                            yield Select(
                                [(value, value) for value in SELECT_FIELDS["notifications-method"][2]],
                                id="notifications-method",
                                allow_blank=False,
                            )
                            yield Static("from_email", classes="form-label")
                            yield Input(placeholder="Alerts <alerts@example.com>", id="notifications-from")
                            yield Static("send_timeout_seconds", classes="form-label")
                            yield Input(placeholder="10", id="notifications-timeout")
                            yield Static("", id="notifications-error", classes="settings-error")

                        with ScrollableContainer(id="settings-logging"):
                            yield Static("Logging", classes="settings-title")
                            yield Static("enabled", classes="form-label")
                            yield Switch(id="logging-enabled")
                            yield Static("level", classes="form-label")
                            yield Select(
                                [(value, value) for value in SELECT_FIELDS["logging-level"][2]],
                                id="logging-level",
                                allow_blank=False,
                            )
                            yield Static("console", classes="form-label")
                            yield Switch(id="logging-console")
                            yield Static("file.enabled", classes="form-label")
                            yield Switch(id="logging-file-enabled")
                            yield Static("file.path", classes="form-label")
                            yield Input(id="logging-file-path")
                            yield Static("file.max_bytes", classes="form-label")
                            yield Input(id="logging-file-max-bytes")
                            yield Static("file.backup_count", classes="form-label")
                            yield Input(id="logging-file-backup")
                            yield Static("redact.enabled", classes="form-label")
                            yield Switch(id="logging-redact-enabled")
                            yield Static("redact.patterns (env var names, one per line)", classes="form-label")
                            yield TextArea(id="logging-redact-patterns")
                            yield Static("", id="logging-error", classes="settings-error")

    def on_mount(self) -> None:
        table = self.query_one("#settings-table", DataTable)
        table.add_column("section", key="section", width=16)
        table.add_column("description", key="description", width=32)
        for key, label, description in self.SECTION_LABELS:
            table.add_row(label, description, key=key)
        table.zebra_stripes = True
        self._select_section("sweep")
        self.reload_from_config()

    def reload_from_config(self) -> None:
        self._loading_form = True
        # Programmatic updates must not mark the config dirty.
        with self.prevent(Input.Changed, Switch.Changed, Select.Changed, TextArea.Changed):
            for section, _label, _description in self.SECTION_LABELS:
                self._set_error(section, "")
            for input_id, (section, path, _parser, default) in INPUT_FIELDS.items():
                value = self._read(section, path, default)
                if isinstance(value, list):
                    value = ", ".join(str(item) for item in value)
                self.query_one(f"#{input_id}", Input).value = "" if value is None else str(value)
            for switch_id, (section, path, default) in SWITCH_FIELDS.items():
                self.query_one(f"#{switch_id}", Switch).value = bool(self._read(section, path, default))
            for select_id, (section, path, allowed) in SELECT_FIELDS.items():
                value = self._read(section, path, allowed[0])
                self.query_one(f"#{select_id}", Select).value = value if value in allowed else allowed[0]
                if value not in allowed:
                    self._set_error(section, f"Invalid value: {value}")
            patterns = self._read("logging", ("redact", "patterns"), []) or []
            self.query_one("#logging-redact-patterns", TextArea).text = "\n".join(patterns)
            self._apply_state()
        self._loading_form = False

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        value = event.row_key
        self._select_section(str(value.value) if hasattr(value, "value") else str(value))

    def _select_section(self, section_id: str) -> None:
        self._current_section = section_id
        self.query_one("#settings-forms", ContentSwitcher).current = f"settings-{section_id}"

    @on(Input.Changed)
    def _on_input_changed(self, event: Input.Changed) -> None:
        field = INPUT_FIELDS.get(event.input.id or "")
        if self._loading_form or field is None:
            return
        section, path, parser, _default = field
        if not event.value.strip():
            self._set_error(section, "")
            return
        parsed, error = parser(event.value)
        self._set_error(section, error or "")
        if error is None:
            self._write(section, path, parsed)

    @on(Switch.Changed)
    def _on_switch_changed(self, event: Switch.Changed) -> None:
        field = SWITCH_FIELDS.get(event.switch.id or "")
        if self._loading_form or field is None:
            return
        section, path, _default = field
        self._write(section, path, bool(event.value))
        self._apply_state()

    @on(Select.Changed)
    def _on_select_changed(self, event: Select.Changed) -> None:
        field = SELECT_FIELDS.get(event.select.id or "")
        if self._loading_form or field is None or event.value is Select.BLANK:
            return
        section, path, _allowed = field
        self._write(section, path, event.value)
        self._apply_state()

    @on(TextArea.Changed, "#logging-redact-patterns")
    def _on_redact_patterns(self, event: TextArea.Changed) -> None:
        if self._loading_form:
            return
        patterns = [line.strip() for line in event.text_area.text.splitlines() if line.strip()]
        self._write("logging", ("redact", "patterns"), patterns)

    def _apply_state(self) -> None:
        file_enabled = bool(self._read("logging", ("file", "enabled"), False))
        redact_enabled = bool(self._read("logging", ("redact", "enabled"), False))
        method = self._read("notifications", ("method",), "log")
        self.query_one("#logging-file-path", Input).disabled = not file_enabled
        self.query_one("#logging-file-max-bytes", Input).disabled = not file_enabled
        self.query_one("#logging-file-backup", Input).disabled = not file_enabled
        self.query_one("#logging-redact-patterns", TextArea).disabled = not redact_enabled
        self.query_one("#notifications-from", Input).disabled = method != "resend"

    def _read(self, section: str, path: tuple[str, ...], default: Any) -> Any:
        node: Any = (self.app.config_state.data or {}).get(section)
        for key in path:
            if not isinstance(node, dict):
                return default
            node = node.get(key)
        return default if node is None else node

    def _write(self, section: str, path: tuple[str, ...], value: Any) -> None:
        data = self.app.config_state.data or {}
        config = data.get(section)
        if not isinstance(config, dict):
            config = {}
        node = config
        for key in path[:-1]:
            child = node.get(key)
            if not isinstance(child, dict):
                child = {}
                node[key] = child
            node = child
        node[path[-1]] = value
        self.app.update_config_section(section, config)

    def _set_error(self, section: str, message: str) -> None:
        self.query_one(f"#{section}-error", Static).update(message)
