"""
Askpass Relay Server

Loopback listener owned by the primary process. Every accepted connection is
one stub asking for one secret. The connection is handled on its own thread,
which hands the prompt to the UI through `prompt_handler` and writes back
exactly one SecretResponse. A stub that hangs up while waiting cancels its
request.

Usage:
    server = RelayServer.create()
    env = askpass_environment(server.address, program)   # give to jj children
    server.start()
    server.serve(make_prompt_handler(app.post_message))
    ...
    server.close()   # every still-pending stub gets "no answer"
"""

import functools
import hmac
import ipaddress
import itertools
import secrets
import select
import socket
import threading
from typing import Callable, Dict, Optional, Set

from backend.utils.logger import Logger

from .exceptions import BindError, MalformedRequestError
from .pending import CancelSignal, PendingRequest
from .protocol import (
    LOOPBACK_HOST,
    MAX_REQUEST_BYTES,
    PromptRequest,
    RelayAddress,
    SecretResponse,
    read_record,
)

# (name, prompt, cancelled, posted) -> secret bytes, or None for no answer.
# The handler calls posted() once the prompt is in the UI's queue; the next
# prompt is held back until then.
PromptHandler = Callable[[str, str, CancelSignal, Callable[[], None]], Optional[bytes]]

# How often the accept loop checks for shutdown
ACCEPT_POLL_INTERVAL = 0.5

# Time a connected stub has to send its request line
REQUEST_READ_TIMEOUT = 5.0

# How often a pending request checks whether its stub is still connected
PEER_POLL_INTERVAL = 0.2

LISTEN_BACKLOG = 16

# ---------------------------------------------------------------------------
# ID generator
# ---------------------------------------------------------------------------
_counter = itertools.count(1)


def _next_id(prefix: str = "askpass") -> str:
    return f"{prefix}-{next(_counter)}"


def _pick_free_port(host: str) -> int:
    """Ask the OS for a currently free port on `host`."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind((host, 0))
            return s.getsockname()[1]
    except OSError as e:
        raise BindError(f"cannot reserve a port on {host}: {e}") from e


class _Turnstile:
    """
    Lets prompts reach the UI in the order their requests arrived.

    A connection takes a ticket once its request has been read and may pass
    once every earlier ticket is done. Tickets can finish out of order (a
    later request may be cancelled while an earlier one is still waiting).
    done() is idempotent.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._issued = 0
        self._next = 0
        self._done: Set[int] = set()

    def take(self) -> int:
        with self._cond:
            ticket = self._issued
            self._issued += 1
            return ticket

    def wait_turn(self, ticket: int, give_up: Callable[[], bool]) -> None:
        """Block until every earlier ticket is done, or `give_up()` is true."""
        with self._cond:
            while self._next < ticket and not give_up():
                self._cond.wait(ACCEPT_POLL_INTERVAL)

    def done(self, ticket: int) -> None:
        with self._cond:
            if ticket < self._next:
                return
            self._done.add(ticket)
            while self._next in self._done:
                self._done.discard(self._next)
                self._next += 1
            self._cond.notify_all()


class RelayServer:
    """
    Server handle: address, lifecycle flags and the registry of in-flight
    requests. Thread-safe; the registry is guarded by `_lock`.
    """

    def __init__(self, address: RelayAddress):
        self.address = address

        self._sock: Optional[socket.socket] = None
        self._accept_thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._turnstile = _Turnstile()

        self._lock = threading.Lock()
        self._pending: Dict[str, PendingRequest] = {}
        self._started = False
        self._closed = False

    @classmethod
    def create(cls, token: Optional[str] = None, host: str = LOOPBACK_HOST, port: int = 0) -> "RelayServer":
        """
        Build an unstarted server with a fresh loopback address.

        The address (and token) can be handed to child processes before
        start() commits to listening.
        """
        if not ipaddress.ip_address(host).is_loopback:
            raise ValueError(f"relay host must be a loopback address, got {host!r}")
        if port == 0:
            port = _pick_free_port(host)
        return cls(RelayAddress(host=host, port=port, token=token or secrets.token_urlsafe(32)))

    # -- Lifecycle ----------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._started

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Bind and listen. Raises BindError if the address is unavailable."""
        with self._lock:
            if self._started:
                raise RuntimeError("relay server already started")
            if self._closed:
                raise BindError("relay server is closed")
            self._started = True

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.bind(self.address.endpoint)
            sock.listen(LISTEN_BACKLOG)
        except OSError as e:
            sock.close()
            raise BindError(f"cannot listen on {self.address.host}:{self.address.port}: {e}") from e

        sock.settimeout(ACCEPT_POLL_INTERVAL)
        self._sock = sock
        Logger.info(f"[Relay] listening on {self.address.host}:{self.address.port}")

    def serve(self, prompt_handler: PromptHandler) -> None:
        """Run the accept loop on a background thread and return."""
        if self._sock is None:
            raise RuntimeError("serve() called before start()")
        if self._accept_thread is not None:
            raise RuntimeError("relay server already serving")

        self._accept_thread = threading.Thread(
            target=self._accept_loop,
            args=(self._sock, prompt_handler),
            name="askpass-relay",
            daemon=True,
        )
        self._accept_thread.start()

    def close(self) -> None:
        """
        Stop accepting and answer every pending request with "no answer".
        Safe to call more than once.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = list(self._pending.values())

        self._stop.set()

        for request in pending:
            try:
                if request.cancel():
                    Logger.info(f"[Relay] cancelled {request.id} on shutdown")
            except OSError as e:
                Logger.warning(f"[Relay] could not notify stub for {request.id}: {e}")

        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(timeout=2 * ACCEPT_POLL_INTERVAL)

        if self._sock is not None:
            self._sock.close()
            self._sock = None
        Logger.info("[Relay] closed")

    def __enter__(self) -> "RelayServer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- Registry -----------------------------------------------------------

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _register(self, request: PendingRequest) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._pending[request.id] = request
            return True

    def _unregister(self, request: PendingRequest) -> None:
        with self._lock:
            self._pending.pop(request.id, None)

    # -- Connections --------------------------------------------------------

    def _accept_loop(self, sock: socket.socket, prompt_handler: PromptHandler) -> None:
        while not self._stop.is_set():
            try:
                conn, addr = sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._stop.is_set():
                    break
                Logger.error(f"[Relay] accept failed: {e}")
                self._stop.wait(ACCEPT_POLL_INTERVAL)
                continue

            threading.Thread(
                target=self._handle_connection,
                args=(conn, prompt_handler),
                name=f"askpass-conn-{addr[1]}",
                daemon=True,
            ).start()

    def _handle_connection(self, conn: socket.socket, prompt_handler: PromptHandler) -> None:
        ticket: Optional[int] = None
        pending: Optional[PendingRequest] = None
        watcher: Optional[threading.Thread] = None
        finished = threading.Event()
        stream = None
        try:
            conn.settimeout(REQUEST_READ_TIMEOUT)
            stream = conn.makefile("rb")
            try:
                line = read_record(stream, MAX_REQUEST_BYTES)
            except socket.timeout:
                raise MalformedRequestError(f"no request within {REQUEST_READ_TIMEOUT}s") from None
            if not line:
                Logger.debug("[Relay] connection closed before sending a request")
                return

            request = PromptRequest.from_line(line)
            if not hmac.compare_digest(request.token.encode("utf-8"), self.address.token.encode("utf-8")):
                raise MalformedRequestError("token mismatch")
            conn.settimeout(None)

            pending = PendingRequest(_next_id(), request, functools.partial(self._write_response, conn))
            if not self._register(pending):
                pending.cancel()
                return
            ticket = self._turnstile.take()
            Logger.info(f"[Relay] {pending.id} from '{pending.name}' waiting for the user")

            watcher = threading.Thread(
                target=self._watch_peer,
                args=(conn, pending, finished),
                name=f"{pending.id}-peer",
                daemon=True,
            )
            watcher.start()

            self._turnstile.wait_turn(ticket, lambda: self._stop.is_set() or pending.resolved)
            if pending.resolved:
                return

            try:
                secret = prompt_handler(
                    pending.name,
                    pending.prompt,
                    pending.cancelled,
                    functools.partial(self._turnstile.done, ticket),
                )
            except Exception as e:
                Logger.error(f"[Relay] prompt handler failed for {pending.id}: {e.__class__.__name__}: {e}")
                secret = None

            if pending.resolve(secret):
                Logger.info(f"[Relay] {pending.id} {'cancelled' if secret is None else 'answered'}")
            del secret

        except MalformedRequestError as e:
            Logger.warning(f"[Relay] dropping malformed request: {e}")
        except OSError as e:
            Logger.warning(f"[Relay] connection error: {e}")
        finally:
            if ticket is not None:
                self._turnstile.done(ticket)
            if pending is not None:
                self._unregister(pending)
            finished.set()
            if watcher is not None:
                watcher.join()
            if stream is not None:
                stream.close()
            conn.close()

    def _watch_peer(self, conn: socket.socket, pending: PendingRequest, finished: threading.Event) -> None:
        """
        Cancel `pending` if its stub goes away before an answer is written.
        A stub sends nothing after its request, so any readable state (EOF,
        reset or stray bytes) ends the request.
        """
        gone = False
        while not gone and not finished.is_set() and not pending.resolved:
            try:
                gone = bool(select.select([conn], [], [], PEER_POLL_INTERVAL)[0])
            except OSError:
                gone = True
        if not gone:
            return

        try:
            if pending.cancel():
                Logger.info(f"[Relay] {pending.id} cancelled, stub disconnected")
        except OSError as e:
            Logger.debug(f"[Relay] {pending.id} stub already gone: {e}")

    @staticmethod
    def _write_response(conn: socket.socket, response: SecretResponse) -> None:
        conn.sendall(response.to_line())
