"""
Askpass relay: lets ssh (spawned by jj) ask the running TUI for a secret.

Primary process: RelayServer listens on loopback, publishes its address to jj
children via JJTERM_ASKPASS and hands each prompt to the UI.
Stub process: the same executable, started by ssh as $SSH_ASKPASS, relays the
prompt to the server and prints the answer.
"""

from .exceptions import (
    AskpassError,
    BindError,
    MalformedRequestError,
    RelayConnectionError,
)
from .protocol import (
    ENV_ADDRESS,
    PromptRequest,
    RelayAddress,
    SecretResponse,
    askpass_environment,
)
from .role import Invocation, Role, detect_role, resolve_invocation
from .pending import CancelSignal, PendingRequest
from .server import PromptHandler, RelayServer

__all__ = [
    "AskpassError",
    "BindError",
    "MalformedRequestError",
    "RelayConnectionError",
    "ENV_ADDRESS",
    "PromptRequest",
    "RelayAddress",
    "SecretResponse",
    "askpass_environment",
    "Invocation",
    "Role",
    "detect_role",
    "resolve_invocation",
    "CancelSignal",
    "PendingRequest",
    "PromptHandler",
    "RelayServer",
]
