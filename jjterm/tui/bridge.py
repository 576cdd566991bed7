"""
Password Bridge for TUI
Carries askpass prompts from relay threads into the Textual event loop and
the typed secret back out.
"""

import queue
import threading
from typing import Callable, Optional

from textual.message import Message

from backend.utils.logger import Logger
from ..core.askpass.pending import CancelSignal

# Shown when ssh hands us a blank prompt
FALLBACK_PROMPT = "ssh-askpass: "


class SecretChannel:
    """
    Write-once hand-off of one secret from the UI thread to a relay thread.
    send() and close() race; the first one wins, the other is a no-op.
    """

    def __init__(self):
        self._queue: "queue.Queue[Optional[bytes]]" = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, secret: bytes) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            self._queue.put_nowait(secret)
        return True

    def close(self) -> bool:
        """Finish without an answer."""
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            self._queue.put_nowait(None)
        return True

    def receive(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """Block until send() or close(). Raises queue.Empty on timeout."""
        return self._queue.get(timeout=timeout)


class PasswordPromptRequested(Message):
    """Show the password overlay for one askpass request."""

    def __init__(self, label: str, prompt: str, reply: SecretChannel):
        super().__init__()
        self.label = label
        self.prompt = prompt
        self.reply = reply


class PasswordPromptDismissed(Message):
    """Hide overlays whose request went away (no payload)."""
    pass


def normalize_prompt(prompt: str) -> str:
    """Never show an empty or whitespace-only caption."""
    if not prompt or not prompt.strip():
        return FALLBACK_PROMPT
    return prompt


def make_prompt_handler(
    send: Callable[[Message], bool],
) -> Callable[[str, str, CancelSignal, Callable[[], None]], Optional[bytes]]:
    """
    Build the relay's prompt handler around the UI's message sink
    (App.post_message, which is thread-safe).

    The handler runs on a relay connection thread and blocks only that
    thread until the user answers, dismisses, or the request is cancelled.
    It calls `posted` as soon as the prompt message has been handed over,
    which lets the relay release the next prompt in arrival order.
    """

    def handler(name: str, prompt: str, cancelled: CancelSignal, posted: Callable[[], None]) -> Optional[bytes]:
        reply = SecretChannel()
        cancelled.add_callback(reply.close)

        try:
            accepted = send(PasswordPromptRequested(name, normalize_prompt(prompt), reply))
        finally:
            posted()

        if not accepted:
            Logger.warning("[Bridge] UI is not accepting messages, declining prompt")
            reply.close()
            return None

        secret = reply.receive()
        if secret is None:
            send(PasswordPromptDismissed())
        return secret

    return handler
