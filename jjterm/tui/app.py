"""
Main TUI Application
"""

from textual.app import App
from typing import Optional

from backend.jj.runner import JJRunner
from backend.utils.logger import Logger

from .bridge import PasswordPromptRequested, PasswordPromptDismissed
from .dialogs import DialogPassword
from .overlay import PasswordOverlay
from .screens import LogScreen


class JJTermApp(App):
    """
    Main TUI Application.
    Owns the password overlay that askpass prompts are routed into.
    """

    CSS = """
    /* Global styles - Nord Theme */
    $background: #2e3440;
    $surface: #3b4252;
    $text: #eceff4;
    $text-muted: #d8dee9;
    $primary: #88c0d0;
    $secondary: #b48ead;
    $accent: #88c0d0;
    $success: #a3be8c;
    $warning: #ebcb8b;
    $error: #bf616a;
    $border: #4c566a;

    Screen {
        background: $background;
    }

    Input {
        background: $surface;
        color: $text;
        border: solid $border;
    }

    Input:focus {
        border: solid $primary;
    }

    Static {
        background: transparent;
    }

    ToastRack {
        align: right bottom;
        margin: 1 2;
    }
    """

    ENABLE_COMMAND_PALETTE = False

    # Shorter notification timeout (default is 5 seconds)
    NOTIFICATION_TIMEOUT = 2.5

    def __init__(
        self,
        runner: JJRunner,
        revset: str = "",
        limit: int = 0,
        auto_refresh_interval: int = 0,
    ):
        super().__init__()
        self.runner = runner
        self.revset = revset
        self.limit = limit
        self.auto_refresh_interval = auto_refresh_interval

        self.password_overlay = PasswordOverlay(self._show_password_dialog, self._hide_password_dialog)
        self._password_dialog: Optional[DialogPassword] = None

    def on_mount(self):
        """Initialize app"""
        self.push_screen(LogScreen())

    # -- Askpass prompts ----------------------------------------------------

    def on_password_prompt_requested(self, message: PasswordPromptRequested):
        self.password_overlay.request(message)

    def on_password_prompt_dismissed(self, message: PasswordPromptDismissed):
        self.password_overlay.dismiss()

    def _show_password_dialog(self, event: PasswordPromptRequested):
        overlay = self.password_overlay
        self._password_dialog = DialogPassword(
            prompt=event.prompt,
            label=event.label,
            on_submit=lambda value: overlay.submit(event, value),
            on_cancel=lambda: overlay.cancel(event),
        )
        self.push_screen(self._password_dialog)

    def _hide_password_dialog(self):
        dialog, self._password_dialog = self._password_dialog, None
        if dialog is None:
            return
        if self.screen is dialog:
            self.pop_screen()
        else:
            Logger.warning("[App] password dialog is not on top, leaving it to the screen stack")

    def action_force_quit(self):
        """Quit the application immediately"""
        self.password_overlay.clear()
        self.exit()
