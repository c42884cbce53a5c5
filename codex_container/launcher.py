"""Launch flow: validate everything, then run one command in one session.

    resolve workdir -> derive identity -> parse allowlist -> check runtime
    -> cleanup stale -> create -> provision policy -> run command -> destroy

Nothing touches the container runtime until every input has been
validated. Steps run strictly in order; any failure aborts the launch and
the session scope removes the container before the error propagates.
"""

import logging
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from codex_container.core.config import EnvironmentSettings, SandboxConfig
from codex_container.core.domains import Allowlist, parse_allowlist
from codex_container.core.errors import UsageError
from codex_container.core.identity import derive_identity, resolve_workdir
from codex_container.core.models import CommandSpec
from codex_container.core.quoting import shell_script
from codex_container.sandbox.firewall import PolicyProvisioner
from codex_container.sandbox.runner import CommandRunner
from codex_container.sandbox.runtime import DockerRuntime
from codex_container.sandbox.session import SessionManager, SessionRegistry

logger = logging.getLogger(__name__)

IdentityFn = Callable[[Path], str]

# Interprets the user's COMMAND inside the container when no prefix is set
SHELL_COMMAND = ("bash", "-c")


@dataclass(frozen=True)
class LaunchRequest:
    """What the user asked for on the command line."""

    command: str
    args: tuple[str, ...] = ()
    work_dir: str | None = None


@dataclass(frozen=True)
class LaunchPlan:
    """Fully validated launch inputs. Building one touches no container."""

    identity: str
    host_path: Path
    allowlist: Allowlist
    spec: CommandSpec


class Launcher:
    """Compose the session, policy and runner components."""

    def __init__(
        self,
        config: SandboxConfig | None = None,
        settings: EnvironmentSettings | None = None,
        runtime: DockerRuntime | None = None,
        identity_fn: IdentityFn | None = None,
        registry: SessionRegistry | None = None,
    ):
        self.config = config or SandboxConfig()
        self.settings = settings or EnvironmentSettings.from_environ()
        self.runtime = runtime or DockerRuntime(self.config)
        self.identity_fn = identity_fn or self._default_identity
        self.sessions = SessionManager(self.runtime, self.config, registry)
        self.provisioner = PolicyProvisioner(self.runtime, self.config)
        self.runner = CommandRunner(self.runtime, self.config)

    def _default_identity(self, path: Path) -> str:
        return derive_identity(path, self.config.namespace)

    def _pick_workdir(self, request: LaunchRequest) -> str:
        if request.work_dir is not None:
            return request.work_dir
        if self.settings.workdir:
            return self.settings.workdir
        return os.getcwd()

    def build_argv(self, command: str, args: Sequence[str] = ()) -> tuple[str, ...]:
        """Build the argv run in the container. ``command`` is never split here.

        With a ``command_prefix`` (e.g. ``codex --full-auto``) the command is
        one opaque argument to it. Otherwise it becomes the script of an
        in-container ``bash -c``, with ``args`` appended as quoted words.
        """
        if not command.strip() and not args:
            raise UsageError("Missing command")
        if self.config.command_prefix:
            return (*self.config.command_prefix, command, *args)
        return (*SHELL_COMMAND, shell_script(command, args))

    def prepare(self, request: LaunchRequest) -> LaunchPlan:
        """Validate every input without touching the runtime.

        Raises:
            UsageError, PathResolutionError, ConfigurationError,
            EmptyAllowlistError, DomainValidationError
        """
        argv = self.build_argv(request.command, request.args)
        host_path = resolve_workdir(self._pick_workdir(request))
        identity = self.identity_fn(host_path)
        allowlist = parse_allowlist(self.settings.domains_or_default(self.config))

        spec = CommandSpec(argv=argv, workdir=str(host_path))
        return LaunchPlan(identity=identity, host_path=host_path, allowlist=allowlist, spec=spec)

    def execute(self, plan: LaunchPlan) -> int:
        """Run a prepared plan inside a fresh session and return its status."""
        self.runtime.check_available()

        with self.sessions.session(plan.identity, plan.host_path) as session:
            activator = self.provisioner.activator_for(session)
            self.provisioner.apply(session, plan.allowlist, activator)
            return self.runner.run(session, plan.spec)

    def run(self, request: LaunchRequest) -> int:
        """Validate ``request`` and run it. Returns the command's exit status."""
        plan = self.prepare(request)
        logger.info(
            "Launching in %s (%s) with %d allowed domain(s)",
            plan.host_path,
            plan.identity,
            len(plan.allowlist),
        )
        return self.execute(plan)
