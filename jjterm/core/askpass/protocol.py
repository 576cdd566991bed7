"""
Askpass Relay Protocol: address format, environment names, wire records.

Transport: one newline-delimited JSON record each way over a loopback TCP
connection.
- Stub → Relay: PromptRequest  {"id", "token", "name", "prompt"}
- Relay → Stub: SecretResponse {"id", "cancelled", "secret"?}

The secret travels base64-encoded so arbitrary bytes survive the JSON layer
unchanged. The relay address is published to children as
"<token>@<host>:<port>" in a single environment variable.
"""

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Optional, Dict, BinaryIO

from .exceptions import MalformedRequestError

# ---------------------------------------------------------------------------
# Environment handoff
# ---------------------------------------------------------------------------

ENV_ADDRESS = "JJTERM_ASKPASS"
ENV_SSH_ASKPASS = "SSH_ASKPASS"
ENV_SSH_ASKPASS_REQUIRE = "SSH_ASKPASS_REQUIRE"

LOOPBACK_HOST = "127.0.0.1"

# Upper bound for a single record, newline included
MAX_REQUEST_BYTES = 64 * 1024
MAX_RESPONSE_BYTES = 64 * 1024


@dataclass(frozen=True)
class RelayAddress:
    """Where a stub finds the relay, plus the token proving it was sent by us."""
    host: str
    port: int
    token: str

    def __str__(self) -> str:
        return f"{self.token}@{self.host}:{self.port}"

    @property
    def endpoint(self) -> tuple:
        return (self.host, self.port)

    @classmethod
    def parse(cls, value: str) -> "RelayAddress":
        """
        Parse "<token>@<host>:<port>". Raises ValueError on anything else;
        the message never repeats the value, which carries the token.
        """
        token, sep, hostport = value.strip().rpartition("@")
        if not sep or not token:
            raise ValueError("relay address has no token")

        host, sep, port = hostport.rpartition(":")
        if not sep or not host:
            raise ValueError("relay address has no port")

        try:
            port_num = int(port)
        except ValueError:
            raise ValueError("relay address has a bad port") from None
        if not 0 < port_num < 65536:
            raise ValueError("relay address port out of range")

        return cls(host=host, port=port_num, token=token)


def askpass_environment(address: RelayAddress, program: str) -> Dict[str, str]:
    """
    Environment entries that make ssh (spawned by jj) call back into us.

    SSH_ASKPASS_REQUIRE=force makes OpenSSH use the helper even when a
    terminal is available.
    """
    return {
        ENV_SSH_ASKPASS: program,
        ENV_SSH_ASKPASS_REQUIRE: "force",
        ENV_ADDRESS: str(address),
    }


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------

def read_record(stream: BinaryIO, limit: int) -> bytes:
    """
    Read one newline-terminated record of at most `limit` bytes.

    Returns b"" on a clean EOF before any data. Raises MalformedRequestError
    for oversized or truncated records.
    """
    line = stream.readline(limit + 1)
    if not line:
        return b""
    if len(line) > limit:
        raise MalformedRequestError(f"record exceeds {limit} bytes")
    if not line.endswith(b"\n"):
        raise MalformedRequestError("record truncated before newline")
    return line


def _encode(obj: dict) -> bytes:
    return (json.dumps(obj, ensure_ascii=False) + "\n").encode("utf-8")


def _decode(line: bytes) -> dict:
    try:
        obj = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedRequestError(f"unreadable record: {e.__class__.__name__}") from None
    if not isinstance(obj, dict):
        raise MalformedRequestError("record is not an object")
    return obj


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass
class PromptRequest:
    """Stub → Relay: one prompt to show."""
    id: str
    token: str
    prompt: str
    name: str = "ssh"

    def to_line(self) -> bytes:
        return _encode({
            "id": self.id,
            "token": self.token,
            "name": self.name,
            "prompt": self.prompt,
        })

    @classmethod
    def from_line(cls, line: bytes) -> "PromptRequest":
        obj = _decode(line)
        fields = {}
        for key in ("id", "token", "prompt"):
            value = obj.get(key)
            if not isinstance(value, str):
                raise MalformedRequestError(f"field '{key}' missing or not a string")
            fields[key] = value
        name = obj.get("name", "ssh")
        if not isinstance(name, str):
            raise MalformedRequestError("field 'name' is not a string")
        return cls(name=name, **fields)


@dataclass
class SecretResponse:
    """
    Relay → Stub: the user's answer.
    secret=None is the explicit "no answer" marker (dismissed or shut down).
    """
    id: str
    secret: Optional[bytes] = None

    @property
    def cancelled(self) -> bool:
        return self.secret is None

    def to_line(self) -> bytes:
        obj = {"id": self.id, "cancelled": self.cancelled}
        if self.secret is not None:
            obj["secret"] = base64.b64encode(self.secret).decode("ascii")
        return _encode(obj)

    @classmethod
    def from_line(cls, line: bytes) -> "SecretResponse":
        obj = _decode(line)
        req_id = obj.get("id", "")
        if not isinstance(req_id, str):
            raise MalformedRequestError("field 'id' is not a string")
        if obj.get("cancelled", True):
            return cls(id=req_id)

        encoded = obj.get("secret")
        if not isinstance(encoded, str):
            raise MalformedRequestError("field 'secret' missing")
        try:
            secret = base64.b64decode(encoded.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError):
            raise MalformedRequestError("field 'secret' is not base64") from None
        return cls(id=req_id, secret=secret)
