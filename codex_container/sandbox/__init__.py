"""Sandbox module: container sessions, egress policy and command execution."""

from codex_container.sandbox.firewall import FirewallActivator, PolicyProvisioner
from codex_container.sandbox.runner import CommandRunner
from codex_container.sandbox.runtime import DockerRuntime
from codex_container.sandbox.session import Session, SessionManager, SessionRegistry, SessionState

__all__ = [
    "CommandRunner",
    "DockerRuntime",
    "FirewallActivator",
    "PolicyProvisioner",
    "Session",
    "SessionManager",
    "SessionRegistry",
    "SessionState",
]
