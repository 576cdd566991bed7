"""
Password overlay state machine.

Owned by the app and driven only on the UI thread. At most one prompt is
visible; the others wait in arrival order.

    HIDDEN  --request-->                  VISIBLE
    VISIBLE --submit / cancel / dismiss--> HIDDEN (then the next queued prompt)
"""

from collections import deque
from enum import Enum
from typing import Callable, Deque, Optional

from backend.utils.logger import Logger
from .bridge import PasswordPromptRequested


class OverlayState(Enum):
    HIDDEN = "hidden"
    VISIBLE = "visible"


class PasswordOverlay:
    """
    Args:
        show: renders the dialog for a prompt event
        hide: removes the currently rendered dialog
    """

    def __init__(
        self,
        show: Callable[[PasswordPromptRequested], None],
        hide: Callable[[], None],
    ):
        self._show = show
        self._hide = hide
        self._queue: Deque[PasswordPromptRequested] = deque()
        self._current: Optional[PasswordPromptRequested] = None

    @property
    def state(self) -> OverlayState:
        return OverlayState.VISIBLE if self._current is not None else OverlayState.HIDDEN

    @property
    def current(self) -> Optional[PasswordPromptRequested]:
        return self._current

    @property
    def queued(self) -> int:
        return len(self._queue)

    def request(self, event: PasswordPromptRequested) -> None:
        """A new prompt arrived: show it now or queue it behind the visible one."""
        self._queue.append(event)
        self._advance()

    def submit(self, event: PasswordPromptRequested, value: str) -> bool:
        """The user pressed enter on `event`'s dialog."""
        if event is not self._current:
            return False
        delivered = event.reply.send(value.encode("utf-8"))
        self._close_current()
        self._advance()
        return delivered

    def cancel(self, event: PasswordPromptRequested) -> None:
        """The user dismissed `event`'s dialog without answering."""
        if event is not self._current:
            return
        event.reply.close()
        self._close_current()
        self._advance()

    def dismiss(self) -> None:
        """Drop every prompt whose request already finished elsewhere."""
        self._queue = deque(event for event in self._queue if not event.reply.closed)
        if self._current is not None and self._current.reply.closed:
            self._close_current()
        self._advance()

    def clear(self) -> None:
        """Answer nothing to all prompts (app shutting down)."""
        for event in self._queue:
            event.reply.close()
        self._queue.clear()
        if self._current is not None:
            self._current.reply.close()
            self._close_current()

    def _close_current(self) -> None:
        self._current = None
        self._hide()

    def _advance(self) -> None:
        while self._current is None and self._queue:
            event = self._queue.popleft()
            if event.reply.closed:
                continue
            self._current = event
            Logger.debug(f"[Overlay] showing prompt from '{event.label}', {len(self._queue)} queued")
            self._show(event)
