import os
import subprocess
from typing import Optional, Dict, List


class JJCommandError(Exception):
    """Raised when a jj invocation fails."""
    def __init__(self, message: str, exit_code: int = None):
        super().__init__(message)
        self.exit_code = exit_code


class JJRunner:
    """
    Runs the jj binary for one repository.

    extra_env is merged over os.environ for every child; the askpass relay
    address travels this way, never through our own os.environ.
    """
    def __init__(self, root: str, extra_env: Optional[Dict[str, str]] = None, binary: str = "jj", timeout: Optional[float] = None):
        self.root = os.path.abspath(root)
        self.extra_env = dict(extra_env or {})
        self.binary = binary
        self.timeout = timeout

    @staticmethod
    def root_of(location: str, binary: str = "jj") -> str:
        """Resolve the workspace root containing `location`."""
        try:
            result = subprocess.run(
                [binary, "root"],
                cwd=location,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise JJCommandError(f"Error: couldn't run '{binary}': {e}") from e

        if result.returncode != 0:
            raise JJCommandError(result.stderr.strip() or f"'{binary} root' failed", result.returncode)
        return result.stdout.strip()

    def build_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.extra_env)
        return env

    def run(self, args: List[str]) -> str:
        """Run `jj <args>` in the repository root and return stdout."""
        cmd = [self.binary] + list(args)
        try:
            result = subprocess.run(
                cmd,
                cwd=self.root,
                env=self.build_env(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                # no controlling tty: ssh must go through SSH_ASKPASS
                start_new_session=True,
            )
        except subprocess.TimeoutExpired as e:
            raise JJCommandError(f"'{' '.join(cmd)}' timed out after {self.timeout}s") from e
        except OSError as e:
            raise JJCommandError(f"Error: couldn't run '{self.binary}': {e}") from e

        if result.returncode != 0:
            message = result.stderr.strip() or f"'{' '.join(cmd)}' exited with {result.returncode}"
            raise JJCommandError(message, result.returncode)
        return result.stdout

    def log(self, revset: str = "", limit: int = 0) -> str:
        args = ["log", "--color=always"]
        if revset:
            args += ["-r", revset]
        if limit > 0:
            args += ["--limit", str(limit)]
        return self.run(args)

    def git_fetch(self) -> str:
        return self.run(["git", "fetch"])

    def git_push(self) -> str:
        return self.run(["git", "push"])
