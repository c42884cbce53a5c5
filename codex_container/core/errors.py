"""Exception hierarchy for the launcher.

Every error carries the process exit code the CLI should use. Validation
errors are raised before any container exists; sandbox errors may be raised
with a live container, which the session scope removes before the CLI exits.
"""


class LaunchError(Exception):
    """Base class for launch failures."""

    exit_code = 1


class UsageError(LaunchError):
    """Bad or missing command-line arguments."""

    pass


class ConfigurationError(LaunchError):
    """Required configuration is unset, empty or malformed."""

    pass


class EmptyAllowlistError(ConfigurationError):
    """The allowed-domain list has no entries."""

    pass


class PathResolutionError(LaunchError):
    """The working directory cannot be canonicalized."""

    pass


class DomainValidationError(LaunchError):
    """An allowlist entry does not match the hostname grammar."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(f"Invalid domain format: {domain!r}")


class SandboxError(LaunchError):
    """Error talking to the container runtime."""

    pass


class RuntimeNotAvailableError(SandboxError):
    """The container runtime binary is missing or the daemon is down."""

    pass


class EnvironmentStartError(SandboxError):
    """The runtime refused to start the session container."""

    pass


class ProvisioningError(SandboxError):
    """Writing or sealing the allowlist inside the container failed."""

    pass


class FirewallActivationError(SandboxError):
    """The privileged firewall script exited non-zero."""

    pass


class SessionStateError(SandboxError):
    """A session was asked to make a transition its state does not allow."""

    pass


class CapabilityConsumedError(SandboxError):
    """A one-shot capability was used a second time."""

    pass


class CommandExecutionError(LaunchError):
    """The user's command exited non-zero.

    Not a launcher failure: the CLI exits with the command's own status and
    prints no error banner.
    """

    def __init__(self, returncode: int):
        self.returncode = returncode
        super().__init__(f"Command exited with status {returncode}")

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        return self.returncode
