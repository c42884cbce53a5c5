"""Core modules: validation, identity, quoting and configuration."""

from codex_container.core.config import EnvironmentSettings, SandboxConfig, load_config
from codex_container.core.domains import Allowlist, is_valid_domain, parse_allowlist
from codex_container.core.identity import derive_identity, resolve_workdir
from codex_container.core.models import CommandSpec, ExecutionResult

__all__ = [
    "Allowlist",
    "CommandSpec",
    "EnvironmentSettings",
    "ExecutionResult",
    "SandboxConfig",
    "derive_identity",
    "is_valid_domain",
    "load_config",
    "parse_allowlist",
    "resolve_workdir",
]
