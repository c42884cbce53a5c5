"""Egress policy provisioning inside a session container.

Order matters and is fixed:
1. create the policy directory (root)
2. append each domain as its own line to the allowlist file (root)
3. seal the file: mode 444, owned by root
4. run the firewall script once, as root
5. delete the firewall script

The file is sealed before activation so the script reads a file the
unprivileged user can no longer change, and the script is removed only once
it has succeeded.
"""

import logging
from collections.abc import Sequence
from typing import Any, NoReturn

from codex_container.core.config import SandboxConfig
from codex_container.core.domains import Allowlist
from codex_container.core.errors import (
    CapabilityConsumedError,
    EmptyAllowlistError,
    FirewallActivationError,
    ProvisioningError,
    SandboxError,
    SessionStateError,
)
from codex_container.core.quoting import escape
from codex_container.sandbox.runtime import DockerRuntime
from codex_container.sandbox.session import Session, SessionState

logger = logging.getLogger(__name__)


class FirewallActivator:
    """One-shot privileged capability to install the egress rules.

    ``activate()`` can be called once. The activator is marked consumed
    before the privileged call, so a failed activation is not retryable, and
    a successful one deletes the script from the container. Instances cannot
    be copied.
    """

    def __init__(self, runtime: DockerRuntime, session: Session, config: SandboxConfig):
        self._runtime = runtime
        self._session = session
        self._config = config
        self._consumed = False

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def session(self) -> Session:
        return self._session

    def __copy__(self) -> NoReturn:
        raise TypeError("FirewallActivator is a one-shot capability and cannot be copied")

    def __deepcopy__(self, memo: dict[int, Any]) -> NoReturn:
        raise TypeError("FirewallActivator is a one-shot capability and cannot be copied")

    def __reduce_ex__(self, protocol: Any) -> NoReturn:
        raise TypeError("FirewallActivator is a one-shot capability and cannot be pickled")

    def activate(self) -> None:
        """Run the firewall script as root, then delete it.

        Raises:
            CapabilityConsumedError: If called more than once.
            FirewallActivationError: If the script exits non-zero.
            ProvisioningError: If the script cannot be deleted afterwards.
        """
        if self._consumed:
            raise CapabilityConsumedError(
                f"Firewall for {self._session.identity} has already been activated"
            )
        self._consumed = True

        script = self._config.firewall_script
        name = self._session.name
        user = self._config.privileged_user

        try:
            result = self._runtime.exec(name, [script], user=user)
        except SandboxError as e:
            raise FirewallActivationError(f"Firewall activation failed in {name}: {e}") from e
        if not result.ok:
            raise FirewallActivationError(
                f"Firewall activation failed in {name} (exit {result.returncode}): "
                f"{result.stderr.strip()}"
            )
        logger.info("Firewall activated in %s", name)

        try:
            removed = self._runtime.exec(name, ["rm", "-f", script], user=user)
        except SandboxError as e:
            raise ProvisioningError(f"Failed to remove firewall script in {name}: {e}") from e
        if not removed.ok:
            raise ProvisioningError(
                f"Failed to remove firewall script in {name}: {removed.stderr.strip()}"
            )


class PolicyProvisioner:
    """Write the allowlist into a session and activate the firewall."""

    def __init__(self, runtime: DockerRuntime, config: SandboxConfig | None = None):
        self.runtime = runtime
        self.config = config or SandboxConfig()

    def activator_for(self, session: Session) -> FirewallActivator:
        return FirewallActivator(self.runtime, session, self.config)

    def apply(
        self,
        session: Session,
        allowlist: Allowlist | Sequence[str],
        activator: FirewallActivator,
    ) -> None:
        """Provision ``allowlist`` in ``session`` and consume ``activator``.

        Raises:
            EmptyAllowlistError: If the allowlist has no entries.
            DomainValidationError: If a raw entry fails validation.
            SessionStateError: If the session is not running or the
                activator belongs to another session.
            ProvisioningError: If writing or sealing the file fails.
            FirewallActivationError: If the firewall script fails.
        """
        if not isinstance(allowlist, Allowlist):
            if not allowlist:
                raise EmptyAllowlistError("Allowed domain list is empty")
            allowlist = Allowlist.from_entries(allowlist)

        if session.state is not SessionState.RUNNING:
            raise SessionStateError(
                f"Cannot provision {session.identity}: session is {session.state.value}"
            )
        if activator.session is not session:
            raise SessionStateError(
                f"Firewall activator for {activator.session.identity} "
                f"cannot be used with {session.identity}"
            )

        policy_dir = self.config.policy_dir
        allowlist_file = self.config.allowlist_file
        root = self.config.privileged_user

        self._root_exec(session, ["mkdir", "-p", policy_dir], "create policy directory")

        append = f"cat >> {escape(allowlist_file)}"
        for domain in allowlist:
            self._root_exec(session, ["bash", "-c", append], f"write {domain}", input=f"{domain}\n")

        self._root_exec(session, ["chmod", "444", allowlist_file], "seal allowlist file")
        self._root_exec(session, ["chown", f"{root}:{root}", allowlist_file], "seal allowlist file")
        logger.info("Wrote %d allowed domain(s) to %s", len(allowlist), allowlist_file)

        activator.activate()

    def _root_exec(
        self,
        session: Session,
        argv: list[str],
        action: str,
        input: str | None = None,
    ) -> None:
        try:
            result = self.runtime.exec(
                session.name, argv, user=self.config.privileged_user, input=input
            )
        except SandboxError as e:
            raise ProvisioningError(f"Failed to {action} in {session.name}: {e}") from e
        if not result.ok:
            raise ProvisioningError(
                f"Failed to {action} in {session.name}: {result.stderr.strip()}"
            )
