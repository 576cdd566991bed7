"""Tests for the command line entry point."""

import os
from unittest.mock import MagicMock, patch

import pytest

from backend.infra.config import Config
from backend.jj.runner import JJCommandError
from jjterm import __version__, cli
from jjterm.core.askpass import BindError, ENV_ADDRESS, RelayServer
from jjterm.core.askpass import client


# ----------------------------------------------------------------
# Role dispatch
# ----------------------------------------------------------------

def test_stub_invocation_runs_client(monkeypatch):
    monkeypatch.setenv(ENV_ADDRESS, "tok@127.0.0.1:5022")
    fake_run = MagicMock(return_value=1)
    monkeypatch.setattr(client, "run", fake_run)

    assert cli.main(["jjterm", "Password: "]) == 1
    fake_run.assert_called_once_with("Password: ", "tok@127.0.0.1:5022")


def test_stub_does_not_load_config(monkeypatch):
    monkeypatch.setenv(ENV_ADDRESS, "tok@127.0.0.1:5022")
    monkeypatch.setattr(client, "run", MagicMock(return_value=0))
    with patch.object(Config, "initialize") as initialize:
        cli.main(["jjterm", "Password: "])
    initialize.assert_not_called()


def test_version(capsys):
    assert cli.main(["jjterm", "--version"]) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_version_with_relay_variable_is_primary(monkeypatch, capsys):
    monkeypatch.setenv(ENV_ADDRESS, "tok@127.0.0.1:5022")
    assert cli.main(["jjterm", "--version"]) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_config_flag_edits():
    with patch.object(Config, "edit", return_value=0) as edit:
        assert cli.main(["jjterm", "--config"]) == 0
    edit.assert_called_once_with()


def test_not_a_repo(capsys):
    with patch.object(cli.JJRunner, "root_of", side_effect=JJCommandError("Error: There is no jj repo")):
        assert cli.main(["jjterm", "/tmp"]) == 1
    assert "no jj repo" in capsys.readouterr().err


def test_bad_config(capsys):
    os.makedirs(Config.CONFIG_DIR, exist_ok=True)
    with open(Config.settings_path(), "w", encoding="utf-8") as f:
        f.write("{broken")
    with patch.object(Config, "_apply_env_overrides"):
        assert cli.main(["jjterm"]) == 1
    assert "Error loading configuration" in capsys.readouterr().err


# ----------------------------------------------------------------
# Primary startup
# ----------------------------------------------------------------

class TestRunPrimary:
    @pytest.fixture
    def fake_app(self):
        with patch("jjterm.tui.app.JJTermApp") as app_cls:
            app_cls.return_value.return_code = 0
            yield app_cls

    @pytest.fixture(autouse=True)
    def repo_root(self):
        with patch.object(cli.JJRunner, "root_of", return_value="/repo"):
            yield

    @pytest.fixture(autouse=True)
    def askpass_program(self):
        with patch.object(cli, "resolve_askpass_program", return_value="/usr/bin/jjterm"):
            yield

    def test_relay_env_reaches_runner_and_is_closed(self, fake_app):
        with patch.object(Config, "_apply_env_overrides"):
            assert cli.main(["jjterm", "-r", "trunk()", "-n", "7", "-p", "0"]) == 0

        runner = fake_app.call_args[0][0]
        assert runner.root == "/repo"
        assert set(runner.extra_env) == {"SSH_ASKPASS", "SSH_ASKPASS_REQUIRE", ENV_ADDRESS}
        assert runner.extra_env["SSH_ASKPASS_REQUIRE"] == "force"
        assert runner.extra_env["SSH_ASKPASS"] == "/usr/bin/jjterm"
        assert ENV_ADDRESS not in os.environ
        assert fake_app.call_args[1] == {"revset": "trunk()", "limit": 7, "auto_refresh_interval": 0}
        fake_app.return_value.run.assert_called_once_with()

    def test_relay_closed_when_app_crashes(self, fake_app):
        fake_app.return_value.run.side_effect = RuntimeError("boom")
        closed = []
        real_close = RelayServer.close

        def record_close(server):
            closed.append(server)
            real_close(server)

        with patch.object(Config, "_apply_env_overrides"), \
                patch.object(RelayServer, "close", record_close):
            with pytest.raises(RuntimeError):
                cli.main(["jjterm"])
        assert len(closed) == 1

    def test_config_values_used_when_flags_absent(self, fake_app):
        os.makedirs(Config.CONFIG_DIR, exist_ok=True)
        with open(Config.settings_path(), "w", encoding="utf-8") as f:
            f.write('{"ui": {"auto_refresh_interval": 4}, "revisions": {"revset": "all()"}, "limit": 3}')

        with patch.object(Config, "_apply_env_overrides"):
            cli.main(["jjterm"])
        assert fake_app.call_args[1] == {"revset": "all()", "limit": 3, "auto_refresh_interval": 4}

    def test_hijack_disabled(self, fake_app):
        os.makedirs(Config.CONFIG_DIR, exist_ok=True)
        with open(Config.settings_path(), "w", encoding="utf-8") as f:
            f.write('{"ssh": {"hijack_askpass": false}}')

        with patch.object(Config, "_apply_env_overrides"):
            cli.main(["jjterm"])
        assert fake_app.call_args[0][0].extra_env == {}

    def test_no_helper_executable_disables_relay(self, fake_app, capsys):
        with patch.object(Config, "_apply_env_overrides"), \
                patch.object(cli, "resolve_askpass_program", return_value=None), \
                patch.object(RelayServer, "create") as create:
            assert cli.main(["jjterm"]) == 0
        create.assert_not_called()
        assert fake_app.call_args[0][0].extra_env == {}
        assert "set ssh.askpass_program" in capsys.readouterr().err

    def test_bind_failure_degrades(self, fake_app, capsys):
        with patch.object(Config, "_apply_env_overrides"), \
                patch.object(RelayServer, "start", side_effect=BindError("address in use")):
            assert cli.main(["jjterm"]) == 0
        assert fake_app.call_args[0][0].extra_env == {}
        assert "ssh password prompts will fail" in capsys.readouterr().err


# ----------------------------------------------------------------
# Askpass program
# ----------------------------------------------------------------

def test_askpass_program_from_config(monkeypatch):
    monkeypatch.setattr(Config, "ASKPASS_PROGRAM", "/opt/bin/jjterm")
    assert cli.resolve_askpass_program("jjterm") == "/opt/bin/jjterm"


def test_askpass_program_is_own_executable(tmp_path):
    exe = tmp_path / "jjterm"
    exe.write_text("#!/bin/sh\n")
    exe.chmod(0o755)
    assert cli.resolve_askpass_program(str(exe)) == str(exe)


def test_askpass_program_for_module_run(monkeypatch):
    monkeypatch.setattr(cli.shutil, "which", lambda name: "/usr/bin/jjterm" if name == "jjterm" else None)
    assert cli.resolve_askpass_program("/src/jjterm/__main__.py") == "/usr/bin/jjterm"


def test_askpass_program_missing_for_module_run(monkeypatch):
    monkeypatch.setattr(cli.shutil, "which", lambda name: None)
    assert cli.resolve_askpass_program("/src/jjterm/__main__.py") is None
