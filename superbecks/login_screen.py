"""Email/password sign-in screen."""

from __future__ import annotations

from rich.text import Text
from textual import work
from textual.app import ComposeResult
from textual.containers import Container
from textual.events import Key
from textual.reactive import reactive
from textual.screen import Screen
from textual.widgets import Header, Static

from superbecks.errors import SuperbecksError
from superbecks.logs import get_logger
from superbecks.models import Profile
from superbecks.session import sign_in

_logger = get_logger("login_screen")

_FIELDS = ("email", "password")


class LoginScreen(Screen):
    """Two typed fields; Tab switches, Enter signs in."""

    CSS = """
    LoginScreen {
        align: center middle;
    }

    #login-dialog {
        width: 60;
        height: auto;
        border: round $primary;
        padding: 1 2;
    }

    #login-title {
        text-style: bold;
        margin-bottom: 1;
    }

    .login-field {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
    }

    #login-status {
        color: #ffb3b3;
        margin-bottom: 1;
    }

    #login-help {
        color: #dddddd;
    }
    """

    focused_field = reactive("email")
    busy = reactive(False)

    def __init__(self) -> None:
        super().__init__()
        self.values = {"email": "", "password": ""}
        self.status = ""

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="login-dialog"):
            yield Static("Superbecks sign in", id="login-title")
            yield Static(id="login-email", classes="login-field")
            yield Static(id="login-password", classes="login-field")
            yield Static(id="login-status")
            yield Static("Tab switch field. Enter sign in. Ctrl+Q quit.", id="login-help")

    def on_mount(self) -> None:
        self._refresh_content()

    def on_key(self, event: Key) -> None:
        if event.key in {"tab", "shift+tab", "up", "down"}:
            index = _FIELDS.index(self.focused_field)
            self.focused_field = _FIELDS[(index + 1) % len(_FIELDS)]
            self._refresh_content()
            event.stop()
            return

        if event.key == "enter":
            self._submit()
            event.stop()
            return

        if event.key == "backspace":
            value = self.values[self.focused_field]
            if value:
                self.values[self.focused_field] = value[:-1]
                self._refresh_content()
            event.stop()
            return

        if event.is_printable and event.character:
            self.values[self.focused_field] += event.character
            self.status = ""
            self._refresh_content()
            event.stop()

    def _submit(self) -> None:
        if self.busy:
            return
        email = self.values["email"].strip()
        password = self.values["password"]
        if not email or not password:
            self.status = "Email and password are required."
            self._refresh_content()
            return
        self.busy = True
        self.status = "Signing in..."
        self._refresh_content()
        self._sign_in(email, password)

    @work(thread=True, exclusive=True)
    def _sign_in(self, email: str, password: str) -> None:
        try:
            profile = sign_in(self.app.backend, email, password)
        except SuperbecksError as exc:
            self.app.call_from_thread(self._sign_in_failed, exc.message)
            return
        self.app.call_from_thread(self._signed_in, profile)

    def _sign_in_failed(self, message: str) -> None:
        _logger.info("login_failed message=%r", message)
        self.busy = False
        self.status = message
        self.values["password"] = ""
        self._refresh_content()

    def _signed_in(self, profile: Profile) -> None:
        self.busy = False
        self.app.open_home(profile)

    def _refresh_content(self) -> None:
        for name in _FIELDS:
            widget = self.query_one(f"#login-{name}", Static)
            value = self.values[name]
            shown = "•" * len(value) if name == "password" else value
            text = Text()
            text.append(f"{name.title()}: ", style="bold" if name == self.focused_field else "dim")
            text.append(shown)
            if name == self.focused_field:
                text.append("|")
            widget.update(text)
        self.query_one("#login-status", Static).update(self.status)
