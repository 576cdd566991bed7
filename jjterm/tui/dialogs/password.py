"""
Password Dialog for TUI
Masked input for askpass prompts relayed from ssh
"""

from textual.app import ComposeResult
from textual.screen import ModalScreen
from textual.widgets import Static, Input
from textual.containers import Vertical
from textual.binding import Binding
from textual import on
from typing import Callable


class DialogPassword(ModalScreen):
    """
    Password entry overlay.
    Does not dismiss itself: the owner decides when it goes away.
    """

    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    DEFAULT_CSS = """
    DialogPassword {
        align: center middle;
    }

    DialogPassword > Vertical {
        width: 60;
        max-width: 90%;
        height: auto;
        background: $surface;
        border: solid $warning;
        padding: 1 2;
    }

    DialogPassword .title {
        text-style: bold;
        color: $warning;
        padding-bottom: 1;
    }

    DialogPassword .description {
        color: $text;
        padding-bottom: 1;
    }

    DialogPassword Input {
        margin-bottom: 1;
    }

    DialogPassword .hint {
        color: $text-muted;
    }
    """

    def __init__(
        self,
        prompt: str,
        label: str = "ssh",
        on_submit: Callable[[str], None] = None,
        on_cancel: Callable[[], None] = None,
    ):
        super().__init__()
        self.prompt = prompt
        self.label = label
        self.on_submit_callback = on_submit
        self.on_cancel_callback = on_cancel

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(f"Authentication required ({self.label})", classes="title", markup=False)
            yield Static(self.prompt, classes="description", markup=False)
            yield Input(password=True, id="password")
            yield Static(r"\[Enter] Submit  \[Esc] Cancel", classes="hint")

    def on_mount(self):
        """Focus input on mount"""
        self.query_one("#password", Input).focus()

    @on(Input.Submitted, "#password")
    def on_password_submitted(self, event: Input.Submitted):
        """Handle enter key; an empty passphrase is a valid answer"""
        value = event.value
        event.input.value = ""
        if self.on_submit_callback:
            self.on_submit_callback(value)

    def action_cancel(self):
        """Cancel dialog"""
        if self.on_cancel_callback:
            self.on_cancel_callback()
