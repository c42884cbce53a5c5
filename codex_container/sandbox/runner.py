"""Run the user's command inside a provisioned session."""

import logging
import sys

from codex_container.core.config import SandboxConfig
from codex_container.core.errors import CommandExecutionError, SessionStateError
from codex_container.core.models import CommandSpec
from codex_container.core.quoting import escape, escape_argv
from codex_container.sandbox.runtime import DockerRuntime
from codex_container.sandbox.session import Session, SessionState

logger = logging.getLogger(__name__)


def build_shell_command(spec: CommandSpec) -> str:
    """Shell line that changes into ``spec.workdir`` and execs ``spec.argv``.

    Every token is quoted individually, so the in-container shell sees the
    same argument boundaries the caller passed.
    """
    return f"cd {escape(spec.workdir)} && exec {escape_argv(spec.argv)}"


class CommandRunner:
    """Execute a CommandSpec as the unprivileged user, attached to the terminal."""

    def __init__(self, runtime: DockerRuntime, config: SandboxConfig | None = None):
        self.runtime = runtime
        self.config = config or SandboxConfig()

    def _use_tty(self) -> bool:
        if self.config.tty is not None:
            return self.config.tty
        return sys.stdin.isatty()

    def run(self, session: Session, spec: CommandSpec) -> int:
        """Run the command and return its exit status.

        Raises:
            SessionStateError: If the session is not running.
            CommandExecutionError: If the command exits non-zero.
        """
        if session.state is not SessionState.RUNNING:
            raise SessionStateError(
                f"Cannot run command in {session.identity}: session is {session.state.value}"
            )

        shell_command = build_shell_command(spec)
        logger.info("Running %s in %s:%s", spec.argv[0], session.name, spec.workdir)

        returncode = self.runtime.exec_attached(
            session.name,
            ["bash", "-c", shell_command],
            user=self.config.command_user,
            tty=self._use_tty(),
        )
        if returncode != 0:
            raise CommandExecutionError(returncode)
        return returncode
