"""
Role detection: primary application or askpass stub.

OpenSSH runs $SSH_ASKPASS with exactly one argument, the prompt text. The
primary process only ever publishes JJTERM_ASKPASS into the environment of
the jj children it spawns, so the combination of that variable and the
single-argument shape identifies a stub invocation. A user-started
`jjterm <location>` never carries the variable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence

from .protocol import ENV_ADDRESS


class Role(Enum):
    """Process role, decided once at startup"""
    PRIMARY = "primary"
    STUB = "stub"


@dataclass(frozen=True)
class Invocation:
    role: Role
    prompt: Optional[str] = None
    address: Optional[str] = None


def resolve_invocation(argv: Sequence[str], environ: Mapping[str, str]) -> Invocation:
    """Classify this process. Reads its inputs only; no side effects."""
    address = environ.get(ENV_ADDRESS, "")
    args = list(argv[1:])
    if address and len(args) == 1 and not args[0].startswith("-"):
        return Invocation(role=Role.STUB, prompt=args[0], address=address)
    return Invocation(role=Role.PRIMARY)


def detect_role(argv: Sequence[str], environ: Mapping[str, str]) -> Role:
    return resolve_invocation(argv, environ).role
