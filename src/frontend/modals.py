"""Modal dialogs for the Textual config panel."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static

from .validators import parse_domain, parse_email


class UnsavedChangesScreen(ModalScreen[str]):
    """Prompt when exiting with unsaved config changes."""

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Unsaved changes", classes="modal-title"),
            Static("Save config.json before exit?", classes="modal-body"),
            Horizontal(
                Button("Save", id="unsaved-save", variant="success"),
                Button("Discard", id="unsaved-discard", variant="error"),
                Button("Cancel", id="unsaved-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--confirm",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        choices = {"unsaved-save": "save", "unsaved-discard": "discard"}
        self.dismiss(choices.get(event.button.id or "", "cancel"))


class ReloadConfirmScreen(ModalScreen[str]):
    """Prompt when reloading with unsaved config changes."""

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Reload config?", classes="modal-title"),
            Static("Unsaved edits to config.json will be lost.", classes="modal-body"),
            Horizontal(
                Button("Save", id="reload-save"),
                Button("Reload", id="reload-reload", variant="warning"),
                Button("Cancel", id="reload-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--confirm",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        choices = {"reload-save": "save", "reload-reload": "reload"}
        self.dismiss(choices.get(event.button.id or "", "cancel"))


class AddWatchScreen(ModalScreen[tuple[str, str] | None]):
    """Modal form returning ``(email, domain)`` for a new watch."""

    def __init__(self, email: str = "") -> None:
        super().__init__()
        self._email = email

    def compose(self) -> ComposeResult:
        yield Container(
            Static("Watch domain", classes="modal-title"),
            Static("", id="add-error", classes="modal-error"),
            Static("email", classes="form-label"),
            Input(value=self._email, placeholder="you@example.com", id="add-email"),
            Static("domain", classes="form-label"),
            Input(placeholder="example.com", id="add-domain"),
            Horizontal(
                Button("Watch", id="add-confirm", variant="success"),
                Button("Cancel", id="add-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--form",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "add-cancel":
            self.dismiss(None)
            return
        if event.button.id != "add-confirm":
            return
        error = self.query_one("#add-error", Static)
        email, email_error = parse_email(self.query_one("#add-email", Input).value)
        if email_error or email is None:
            error.update(email_error or "email is invalid")
            return
        info = parse_domain(self.query_one("#add-domain", Input).value)
        if info.error or info.normalized is None:
            error.update(info.error or "domain is invalid")
            return
        self.dismiss((email, info.normalized))


class RemoveWatchScreen(ModalScreen[str | None]):
    """Pick which watcher stops watching a domain; returns the email."""

    def __init__(self, domain_name: str, watchers: list[str]) -> None:
        super().__init__()
        self._domain_name = domain_name
        self._watchers = watchers

    def compose(self) -> ComposeResult:
        default = self._watchers[0] if len(self._watchers) == 1 else ""
        yield Container(
            Static(f"Stop watching {self._domain_name}?", classes="modal-title"),
            Static(", ".join(self._watchers) or "no watchers", classes="modal-body"),
            Static("", id="remove-error", classes="modal-error"),
            Static("email", classes="form-label"),
            Input(value=default, placeholder="you@example.com", id="remove-email"),
            Horizontal(
                Button("Remove", id="remove-confirm", variant="error"),
                Button("Cancel", id="remove-cancel"),
                classes="modal-actions",
            ),
            classes="modal-dialog modal-dialog--form",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id != "remove-confirm":
            self.dismiss(None)
            return
        email, email_error = parse_email(self.query_one("#remove-email", Input).value)
        if email_error or email is None:
            self.query_one("#remove-error", Static).update(email_error or "email is invalid")
            return
        self.dismiss(email)
