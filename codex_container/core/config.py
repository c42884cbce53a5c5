"""Launcher configuration.

Two sources:
- ``SandboxConfig``: container settings, optionally loaded from a YAML file.
- ``EnvironmentSettings``: the per-invocation environment variables.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, ConfigDict

from codex_container.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

WORKDIR_ENV = "WORKSPACE_ROOT_DIR"
ALLOWED_DOMAINS_ENV = "OPENAI_ALLOWED_DOMAINS"
API_KEY_ENV = "OPENAI_API_KEY"
CONFIG_PATH_ENV = "CODEX_CONTAINER_CONFIG"

DEFAULT_DOMAIN = "api.openai.com"


@dataclass
class SandboxConfig:
    """Configuration for session containers."""

    # Runtime and image
    runtime: str = "docker"
    image: str = "codex"

    # Container names are "<namespace>_<flattened path>"
    namespace: str = "codex"

    # Policy layout inside the image
    policy_dir: str = "/etc/codex"
    allowlist_file: str = "/etc/codex/allowed_domains.txt"
    firewall_script: str = "/usr/local/bin/init_firewall.sh"

    # Users inside the container (None = image default user)
    privileged_user: str = "root"
    command_user: str | None = None

    # Capabilities the firewall script needs
    capabilities: list[str] = field(default_factory=lambda: ["NET_ADMIN", "NET_RAW"])

    # Host variables passed through by name; values never hit argv or disk
    forwarded_env: list[str] = field(default_factory=lambda: [API_KEY_ENV])

    # Prepended to every command, e.g. ["codex", "--full-auto"]
    command_prefix: list[str] = field(default_factory=list)

    # Used when OPENAI_ALLOWED_DOMAINS is unset
    default_domains: list[str] = field(default_factory=lambda: [DEFAULT_DOMAIN])

    # Pseudo-terminal for the user command: None = only when stdin is a TTY
    tty: bool | None = None

    # Timeout for non-interactive runtime calls (seconds)
    runtime_timeout: int = 60


class _ConfigFile(BaseModel):
    """Schema for the optional YAML configuration file."""

    model_config = ConfigDict(extra="forbid")

    runtime: str | None = None
    image: str | None = None
    namespace: str | None = None
    policy_dir: str | None = None
    allowlist_file: str | None = None
    firewall_script: str | None = None
    privileged_user: str | None = None
    command_user: str | None = None
    capabilities: list[str] | None = None
    forwarded_env: list[str] | None = None
    command_prefix: list[str] | None = None
    default_domains: list[str] | None = None
    tty: bool | None = None
    runtime_timeout: pydantic.PositiveInt | None = None


def load_config(path: str | os.PathLike[str] | None) -> SandboxConfig:
    """Load a SandboxConfig from YAML, falling back to defaults.

    Only keys present in the file override defaults.

    Raises:
        ConfigurationError: If the file is unreadable, not a mapping, or
            contains unknown keys or wrongly typed values.
    """
    if path is None:
        return SandboxConfig()

    config_path = Path(path)
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file '{config_path}': {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file '{config_path}': {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid config file '{config_path}': expected a mapping, "
            f"got {type(data).__name__}"
        )

    try:
        parsed = _ConfigFile.model_validate(data)
    except pydantic.ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid config file '{config_path}': {problems}") from e

    overrides: dict[str, Any] = parsed.model_dump(exclude_none=True)
    logger.debug("Loaded config overrides from %s: %s", config_path, sorted(overrides))
    return SandboxConfig(**overrides)


@dataclass(frozen=True)
class EnvironmentSettings:
    """Values read from the invoking environment."""

    workdir: str | None
    allowed_domains: str | None
    config_path: str | None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "EnvironmentSettings":
        env = os.environ if environ is None else environ
        return cls(
            workdir=env.get(WORKDIR_ENV) or None,
            allowed_domains=env.get(ALLOWED_DOMAINS_ENV),
            config_path=env.get(CONFIG_PATH_ENV) or None,
        )

    def domains_or_default(self, config: SandboxConfig) -> str:
        """Raw domain list: the environment value if set, else the defaults.

        A variable that is set but blank is returned as-is so it is reported
        as an empty allowlist rather than silently replaced.
        """
        if self.allowed_domains is None:
            return " ".join(config.default_domains)
        return self.allowed_domains
