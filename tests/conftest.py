"""Shared test fixtures."""

from __future__ import annotations

import io
import queue
import threading

import pytest

from backend.infra.config import Config
from jjterm.core.askpass import RelayServer
from jjterm.core.askpass import client
from jjterm.tui.bridge import PasswordPromptRequested, make_prompt_handler

# Upper bound for anything a test waits on; a hang fails instead of blocking the suite
TIMEOUT = 5.0


class MessageSink:
    """Stands in for App.post_message and records what the bridge sends."""

    def __init__(self, accepting: bool = True) -> None:
        self.messages: queue.Queue = queue.Queue()
        self.accepting = accepting

    def __call__(self, message) -> bool:
        if not self.accepting:
            return False
        self.messages.put(message)
        return True

    def next(self, kind=None, timeout: float = TIMEOUT):
        while True:
            message = self.messages.get(timeout=timeout)
            if kind is None or isinstance(message, kind):
                return message

    def next_prompt(self, timeout: float = TIMEOUT) -> PasswordPromptRequested:
        return self.next(PasswordPromptRequested, timeout=timeout)


class StubRun:
    """client.run on a background thread, the way ssh runs the helper."""

    def __init__(self, prompt: str, address, connect_timeout: float = client.CONNECT_TIMEOUT) -> None:
        self.stdout = io.BytesIO()
        self.exit_code: int | None = None
        self._thread = threading.Thread(
            target=self._run, args=(prompt, address, connect_timeout), daemon=True
        )
        self._thread.start()

    def _run(self, prompt, address, connect_timeout) -> None:
        self.exit_code = client.run(prompt, address, stdout=self.stdout, connect_timeout=connect_timeout)

    def wait(self, timeout: float = TIMEOUT) -> int:
        self._thread.join(timeout)
        assert not self._thread.is_alive(), "stub did not exit"
        return self.exit_code

    @property
    def done(self) -> bool:
        return not self._thread.is_alive()

    @property
    def output(self) -> bytes:
        return self.stdout.getvalue()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point Config at a temp dir and reset everything load_settings touches."""
    config_dir = tmp_path / "config"
    log_dir = tmp_path / "logs"
    monkeypatch.setattr(Config, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(Config, "_settings_path", str(config_dir / "config.json"))
    monkeypatch.setattr(Config, "_data", {})
    monkeypatch.setattr(Config, "LOG_DIR", str(log_dir))
    monkeypatch.setattr(Config, "LOG_PATH", str(log_dir / "debug.log"))
    monkeypatch.setattr(Config, "DEBUG", False)
    monkeypatch.setattr(Config, "HIJACK_ASKPASS", True)
    monkeypatch.setattr(Config, "ASKPASS_PROGRAM", "")
    monkeypatch.setattr(Config, "AUTO_REFRESH_INTERVAL", 0)
    monkeypatch.setattr(Config, "DEFAULT_REVSET", "")
    monkeypatch.setattr(Config, "LIMIT", 0)
    for var in ("JJTERM_CONFIG_DIR", "DEBUG", "JJTERM_ASKPASS", "EDITOR"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def relay():
    """A started, not yet serving relay; closed after the test."""
    server = RelayServer.create()
    server.start()
    yield server
    server.close()


@pytest.fixture
def sink() -> MessageSink:
    return MessageSink()


@pytest.fixture
def serving_relay(relay, sink):
    """Relay wired to the real bridge handler, with `sink` as the UI."""
    relay.serve(make_prompt_handler(sink))
    return relay
