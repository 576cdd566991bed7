"""
Pending prompt requests shared between the relay server and the UI bridge.
"""

import threading
from typing import Callable, List, Optional

from .protocol import PromptRequest, SecretResponse


class CancelSignal:
    """
    Set-once cancellation flag.

    Besides being waited on, it runs registered callbacks when set, so a
    waiter blocked on some other channel can be woken (the UI bridge links its
    secret channel this way).
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    def set(self) -> bool:
        """Returns True only for the call that actually set the flag."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run `callback` once the signal is set (immediately if it already is)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()


class PendingRequest:
    """
    One outstanding prompt awaiting a human answer.

    `deliver` writes the response to the stub. It runs at most once, under
    the request lock: whichever of resolve()/cancel() comes first wins and the
    other becomes a no-op. The secret itself is passed straight through and
    never stored here.
    """

    def __init__(self, req_id: str, request: PromptRequest, deliver: Callable[[SecretResponse], None]):
        self.id = req_id
        self.stub_id = request.id
        self.name = request.name
        self.prompt = request.prompt
        self.cancelled = CancelSignal()
        self._deliver = deliver
        self._lock = threading.Lock()
        self._resolved = False

    @property
    def resolved(self) -> bool:
        return self._resolved

    def resolve(self, secret: Optional[bytes]) -> bool:
        """
        Deliver `secret` (None means no answer). Returns False if the request
        was already resolved or cancelled. Errors raised by `deliver`
        propagate; the request still counts as resolved.
        """
        with self._lock:
            if self._resolved:
                return False
            self._resolved = True
            self._deliver(SecretResponse(id=self.stub_id, secret=secret))
        return True

    def cancel(self) -> bool:
        """Answer "no answer" on the wire, then wake whoever is waiting on the UI."""
        try:
            return self.resolve(None)
        finally:
            self.cancelled.set()
