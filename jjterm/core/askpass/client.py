"""
Askpass Stub Client: the code path of a process started as $SSH_ASKPASS.

Connects to the relay published in JJTERM_ASKPASS, sends the prompt, waits
for the user's answer and prints it for ssh. Nothing else may reach stdout,
and nothing reaches stderr: ssh reports the failure itself based on the exit
status.

Exit status:
    0  secret written to stdout
    1  declined (user dismissed the prompt, or the UI shut down)
    2  relay unreachable or address unusable
"""

import socket
import sys
import uuid
from typing import BinaryIO, Optional, Union

from backend.utils.logger import Logger

from .exceptions import MalformedRequestError, RelayConnectionError
from .protocol import (
    MAX_RESPONSE_BYTES,
    PromptRequest,
    RelayAddress,
    SecretResponse,
    read_record,
)

EXIT_OK = 0
EXIT_DECLINED = 1
EXIT_UNREACHABLE = 2

# The primary process listens before it spawns jj, so no retries
CONNECT_TIMEOUT = 2.0


def request_secret(
    prompt: str,
    address: RelayAddress,
    name: str = "ssh",
    connect_timeout: float = CONNECT_TIMEOUT,
) -> SecretResponse:
    """
    Ask the relay for one secret. Blocks until the user answers or the
    relay gives up on the request.

    Raises RelayConnectionError if the relay cannot be reached and
    MalformedRequestError if its reply is unreadable. A connection closed
    without a reply counts as "no answer".
    """
    request = PromptRequest(id=uuid.uuid4().hex, token=address.token, prompt=prompt, name=name)

    try:
        sock = socket.create_connection(address.endpoint, timeout=connect_timeout)
    except OSError as e:
        raise RelayConnectionError(f"cannot reach relay at {address.host}:{address.port}: {e}") from e

    with sock:
        try:
            sock.settimeout(None)
            sock.sendall(request.to_line())
            with sock.makefile("rb") as stream:
                line = read_record(stream, MAX_RESPONSE_BYTES)
        except OSError as e:
            raise RelayConnectionError(f"relay connection failed: {e}") from e

    if not line:
        return SecretResponse(id=request.id)
    return SecretResponse.from_line(line)


def run(
    prompt: str,
    address: Union[str, RelayAddress],
    stdout: Optional[BinaryIO] = None,
    connect_timeout: float = CONNECT_TIMEOUT,
) -> int:
    """Stub entry point. Returns the process exit status."""
    out = stdout if stdout is not None else sys.stdout.buffer

    if isinstance(address, str):
        try:
            address = RelayAddress.parse(address)
        except ValueError as e:
            Logger.error(f"[Askpass] {e}")
            return EXIT_UNREACHABLE

    try:
        response = request_secret(prompt, address, connect_timeout=connect_timeout)
    except RelayConnectionError as e:
        Logger.error(f"[Askpass] {e}")
        return EXIT_UNREACHABLE
    except MalformedRequestError as e:
        Logger.error(f"[Askpass] unreadable reply: {e}")
        return EXIT_DECLINED

    if response.cancelled:
        Logger.info("[Askpass] prompt declined")
        return EXIT_DECLINED

    # ssh strips the line ending itself; write the secret exactly as typed
    out.write(response.secret)
    out.flush()
    return EXIT_OK
