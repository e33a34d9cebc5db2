"""Main Textual app class."""

from __future__ import annotations

from textual import work
from textual.app import App

from superbecks.backend import Backend
from superbecks.cashier_screen import CashierScreen
from superbecks.confirm_modal import ConfirmModal
from superbecks.constant import ROLE_OWNER
from superbecks.errors import SuperbecksError
from superbecks.login_screen import LoginScreen
from superbecks.logs import get_logger
from superbecks.models import Profile
from superbecks.owner_screen import OwnerScreen
from superbecks.reporting import BranchCache
from superbecks.session import home_screen_for, sign_out

_logger = get_logger("pos_app")


class SuperbecksApp(App):
    """Cashier point of sale and owner dashboard over the hosted backend."""

    TITLE = "Superbecks"
    SUB_TITLE = "Point of Sale"

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, backend: Backend) -> None:
        super().__init__()
        self.backend = backend
        self.profile: Profile | None = None
        self.branch_cache = BranchCache()
        _logger.info("app_init url=%s", backend.url)

    def on_mount(self) -> None:
        self.push_screen(LoginScreen())

    def open_home(self, profile: Profile) -> None:
        """Replace the login screen with the screen for the profile's role."""
        self.profile = profile
        if home_screen_for(profile) == ROLE_OWNER:
            self.sub_title = "Owner dashboard"
            self.switch_screen(OwnerScreen(profile))
        else:
            self.sub_title = "Cashier"
            self.switch_screen(CashierScreen(profile))
        _logger.info("open_home user_id=%s role=%s", profile.user_id, profile.role)

    def request_logout(self) -> None:
        self.push_screen(ConfirmModal("Log out of Superbecks?"), self._logout_answered)

    def _logout_answered(self, confirmed: bool | None) -> None:
        if confirmed:
            self._sign_out()

    @work(thread=True, exclusive=True, group="session")
    def _sign_out(self) -> None:
        try:
            sign_out(self.backend)
        except SuperbecksError as exc:
            # The local token is dropped either way.
            self.call_from_thread(self.notify, f"Sign-out: {exc.message}", severity="warning")
        self.call_from_thread(self._show_login)

    def _show_login(self) -> None:
        self.profile = None
        self.branch_cache = BranchCache()
        self.sub_title = self.SUB_TITLE
        self.switch_screen(LoginScreen())
