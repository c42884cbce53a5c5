"""Thin wrapper over the docker CLI.

Every container operation the launcher performs goes through DockerRuntime,
so tests can substitute a recording fake with the same methods. Calls are
made with argument lists, never through a host shell.
"""

import logging
import shutil
import subprocess
from collections.abc import Sequence

from codex_container.core.config import SandboxConfig
from codex_container.core.errors import RuntimeNotAvailableError, SandboxError
from codex_container.core.models import ExecutionResult

logger = logging.getLogger(__name__)


class DockerRuntime:
    """Execute container operations with the docker CLI."""

    def __init__(self, config: SandboxConfig | None = None):
        self.config = config or SandboxConfig()

    @property
    def binary(self) -> str:
        return self.config.runtime

    def check_available(self) -> None:
        """Validate the runtime is installed and its daemon answers.

        Raises:
            RuntimeNotAvailableError: If the binary is missing or not running.
        """
        if not shutil.which(self.binary):
            raise RuntimeNotAvailableError(f"{self.binary} binary not found in PATH")

        result = self._call([self.binary, "version"])
        if not result.ok:
            raise RuntimeNotAvailableError(
                f"{self.binary} is not running or not accessible: {result.stderr.strip()}"
            )

    def remove(self, name: str) -> ExecutionResult:
        """Forcefully remove a container (running or not)."""
        return self._call([self.binary, "rm", "-f", name])

    def run_detached(
        self,
        name: str,
        command: Sequence[str],
        *,
        volumes: Sequence[tuple[str, str]] = (),
        env_names: Sequence[str] = (),
        cap_add: Sequence[str] = (),
    ) -> ExecutionResult:
        """Start a long-lived detached container from the configured image.

        ``env_names`` are passed as ``-e NAME`` so the runtime copies values
        from this process's environment; values never appear in argv.
        """
        cmd = [self.binary, "run", "--name", name, "-d"]
        for env_name in env_names:
            cmd.extend(["-e", env_name])
        for cap in cap_add:
            cmd.append(f"--cap-add={cap}")
        for host_path, container_path in volumes:
            cmd.extend(["-v", f"{host_path}:{container_path}"])
        cmd.append(self.config.image)
        cmd.extend(command)
        return self._call(cmd)

    def exec(
        self,
        name: str,
        argv: Sequence[str],
        *,
        user: str | None = None,
        input: str | None = None,
    ) -> ExecutionResult:
        """Run a command in a container with captured output."""
        cmd = [self.binary, "exec"]
        if user:
            cmd.extend(["--user", user])
        if input is not None:
            cmd.append("-i")
        cmd.append(name)
        cmd.extend(argv)
        return self._call(cmd, input=input)

    def exec_attached(
        self,
        name: str,
        argv: Sequence[str],
        *,
        user: str | None = None,
        tty: bool = False,
    ) -> int:
        """Run a command attached to this process's terminal.

        No timeout and no capture: the command owns stdin/stdout/stderr until
        it exits. Returns its exit status.
        """
        cmd = [self.binary, "exec", "-it" if tty else "-i"]
        if user:
            cmd.extend(["--user", user])
        cmd.append(name)
        cmd.extend(argv)

        logger.debug("Attached exec: %s", cmd)
        try:
            return subprocess.run(cmd).returncode
        except FileNotFoundError as e:
            raise RuntimeNotAvailableError(f"{self.binary} binary not found: {e}") from e

    def _call(self, cmd: list[str], input: str | None = None) -> ExecutionResult:
        logger.debug("Runtime call: %s", cmd)
        try:
            result = subprocess.run(
                cmd,
                input=input,
                capture_output=True,
                text=True,
                timeout=self.config.runtime_timeout,
            )
        except FileNotFoundError as e:
            raise RuntimeNotAvailableError(f"{self.binary} binary not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise SandboxError(
                f"{self.binary} call timed out after {self.config.runtime_timeout}s: {cmd[:3]}"
            ) from e

        return ExecutionResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
