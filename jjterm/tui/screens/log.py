"""
Log Screen for TUI
Shows `jj log` for the repository and runs remote operations
"""

from textual.app import ComposeResult
from textual.screen import Screen
from textual.widgets import Static
from textual.containers import Horizontal, ScrollableContainer
from textual.binding import Binding
from textual import work
from rich.markup import escape
from rich.text import Text

from backend.jj.runner import JJCommandError
from backend.utils.logger import Logger


class LogScreen(Screen):
    """
    Main screen: revision log plus fetch/push.
    jj runs on worker threads; results come back via call_from_thread.
    """

    BINDINGS = [
        Binding("ctrl+c", "app.force_quit", "Quit Application"),
        Binding("q", "app.force_quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("f", "fetch", "Git Fetch"),
        Binding("p", "push", "Git Push"),
    ]

    DEFAULT_CSS = """
    LogScreen {
        background: $background;
    }

    LogScreen .header {
        dock: top;
        height: 1;
        background: $surface;
        padding: 0 2;
    }

    LogScreen .header-left {
        width: 1fr;
        color: $text;
    }

    LogScreen .header-right {
        width: auto;
        color: $text-muted;
    }

    LogScreen #log-area {
        height: 1fr;
        padding: 0 1;
    }

    LogScreen .hint-bar {
        dock: bottom;
        height: 1;
        background: $surface;
        color: $text-muted;
        padding: 0 2;
    }
    """

    def compose(self) -> ComposeResult:
        with Horizontal(classes="header"):
            yield Static(self._get_header_left(), classes="header-left", id="header-left")
            yield Static("", classes="header-right", id="header-right")

        with ScrollableContainer(id="log-area"):
            yield Static("", id="log")

        yield Static(self._get_hints(), classes="hint-bar", id="hint-bar")

    def _get_header_left(self) -> str:
        revset = self.app.revset or "default revset"
        return f"[bold]{escape(self.app.runner.root)}[/bold]  [dim]{escape(revset)}[/dim]"

    def _get_hints(self) -> str:
        hints = [
            r"\[r] Refresh",
            r"\[f] Fetch",
            r"\[p] Push",
            r"\[q] Quit",
        ]
        return "  |  ".join(hints)

    def on_mount(self):
        """Load the log and start auto-refresh if configured"""
        self.refresh_log()
        if self.app.auto_refresh_interval > 0:
            self.set_interval(self.app.auto_refresh_interval, self.refresh_log)

    def _set_status(self, text: str):
        self.query_one("#header-right", Static).update(text)

    def _update_log(self, output: str):
        self.query_one("#log", Static).update(Text.from_ansi(output))

    @work(exclusive=True, thread=True, group="log")
    def refresh_log(self):
        """Reload `jj log` (runs in worker thread)"""
        try:
            output = self.app.runner.log(self.app.revset, self.app.limit)
        except JJCommandError as e:
            Logger.error(f"[Log] jj log failed: {e}")
            self.app.call_from_thread(self.notify, str(e), severity="error")
            return
        self.app.call_from_thread(self._update_log, output)

    @work(thread=True, group="remote")
    def run_remote(self, title: str, operation: str):
        """
        Run a remote operation (runs in worker thread).
        ssh may ask for a passphrase meanwhile; that arrives as a password overlay.
        """
        self.app.call_from_thread(self._set_status, f"{title}...")
        try:
            getattr(self.app.runner, operation)()
        except JJCommandError as e:
            Logger.error(f"[Log] {operation} failed: {e}")
            self.app.call_from_thread(self.notify, f"{title} failed: {e}", severity="error", timeout=8)
        else:
            self.app.call_from_thread(self.notify, f"{title} done", severity="information")
        finally:
            self.app.call_from_thread(self._set_status, "")
        self.app.call_from_thread(self.refresh_log)

    def action_refresh(self):
        self.refresh_log()

    def action_fetch(self):
        self.run_remote("Fetching", "git_fetch")

    def action_push(self):
        self.run_remote("Pushing", "git_push")
