"""
jjterm entry point.

The same executable serves two roles. Started by the user it is the TUI;
started by ssh as $SSH_ASKPASS it is a short-lived stub that relays one
prompt to the running TUI. The role is decided before anything else runs.
"""

import argparse
import os
import shutil
import sys
from typing import Dict, List, Optional, Sequence

from backend.infra.config import Config, ConfigError
from backend.jj.runner import JJRunner, JJCommandError
from backend.utils.logger import Logger

from . import __version__
from .core.askpass.role import Invocation, Role, resolve_invocation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jjterm", description="Terminal front-end for jj")
    parser.add_argument("location", nargs="?", default=None, help="Location of a jj repository (default: current directory)")
    parser.add_argument("-r", "--revset", type=str, default="", help="Set default revset")
    parser.add_argument("-p", "--period", type=int, default=-1, help="Override auto-refresh interval (seconds, set to 0 to disable)")
    parser.add_argument("-n", "--limit", type=int, default=0, help="Number of revisions to show (default: 0)")
    parser.add_argument("--version", action="store_true", help="Show version information")
    parser.add_argument("--config", action="store_true", help="Open configuration file in $EDITOR")
    return parser


def run_stub(invocation: Invocation) -> int:
    """Askpass stub: no config, no TUI. Only the relay client."""
    Config.DEBUG = bool(os.environ.get("DEBUG"))

    from .core.askpass import client
    return client.run(invocation.prompt, invocation.address)


def resolve_askpass_program(argv0: str) -> Optional[str]:
    """
    Path ssh should execute as $SSH_ASKPASS: ourselves.
    `python -m jjterm` has a .py argv[0]; fall back to the installed script.
    Returns None when no executable can be found.
    """
    if Config.ASKPASS_PROGRAM:
        return Config.ASKPASS_PROGRAM

    candidate = os.path.abspath(argv0) if os.sep in argv0 else shutil.which(argv0)
    if candidate and not candidate.endswith(".py") and os.access(candidate, os.X_OK):
        return candidate
    return shutil.which("jjterm")


def start_relay(argv0: str):
    """
    Create and start the askpass relay.
    Returns (server, child_env); (None, {}) if there is no helper executable
    or the relay cannot listen.
    """
    from .core.askpass import BindError, RelayServer, askpass_environment

    program = resolve_askpass_program(argv0)
    if program is None:
        Logger.error("[CLI] ssh.hijack_askpass: no executable jjterm found")
        print(
            "Warning: ssh.hijack_askpass: no executable `jjterm` found on PATH; "
            "set ssh.askpass_program. ssh password prompts will fail",
            file=sys.stderr,
        )
        return None, {}

    try:
        server = RelayServer.create()
        server.start()
    except BindError as e:
        Logger.error(f"[CLI] ssh.hijack_askpass: {e}")
        print(f"Warning: ssh.hijack_askpass: {e}; ssh password prompts will fail", file=sys.stderr)
        return None, {}

    env = askpass_environment(server.address, program)
    return server, env


def run_primary(argv0: str, args: List[str]) -> int:
    parsed = build_parser().parse_args(args)

    if parsed.version:
        print(__version__)
        return 0
    if parsed.config:
        return Config.edit()

    try:
        Config.initialize()
    except ConfigError as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    location = parsed.location
    if not location:
        try:
            location = os.getcwd()
        except OSError as e:
            print(f"Error: couldn't determine the current directory: {e}.", file=sys.stderr)
            print("Please pass the location of a `jj` repo as an argument to `jjterm`.", file=sys.stderr)
            return 1

    try:
        root = JJRunner.root_of(location)
    except JJCommandError as e:
        print(str(e), file=sys.stderr)
        return 1

    limit = parsed.limit if parsed.limit > 0 else Config.LIMIT
    period = parsed.period if parsed.period >= 0 else Config.AUTO_REFRESH_INTERVAL
    revset = parsed.revset or Config.DEFAULT_REVSET

    server = None
    child_env: Dict[str, str] = {}
    if Config.HIJACK_ASKPASS:
        server, child_env = start_relay(argv0)

    from .tui.app import JJTermApp
    from .tui.bridge import make_prompt_handler

    app = JJTermApp(
        JJRunner(root, extra_env=child_env),
        revset=revset,
        limit=limit,
        auto_refresh_interval=period,
    )
    Logger.info(f"[CLI] starting in {root} (askpass relay {'on' if server else 'off'})")

    try:
        if server is not None:
            server.serve(make_prompt_handler(app.post_message))
        app.run()
    finally:
        if server is not None:
            server.close()

    return app.return_code or 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    argv = list(sys.argv if argv is None else argv)
    invocation = resolve_invocation(argv, os.environ)
    if invocation.role == Role.STUB:
        return run_stub(invocation)
    return run_primary(argv[0] if argv else "jjterm", argv[1:])


if __name__ == "__main__":
    sys.exit(main())
