# conftest.py - Shared pytest fixtures for all tests
"""Shared pytest fixtures for the codex-container test suite.

This module provides:
- A recording fake container runtime that models containers, files inside
  them, and the one-shot firewall script
- Sample configuration and environment settings
- Temporary work directories

Usage:
    Import fixtures implicitly via pytest's fixture discovery.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from codex_container.core.config import EnvironmentSettings, SandboxConfig
from codex_container.core.errors import RuntimeNotAvailableError
from codex_container.core.models import ExecutionResult
from codex_container.sandbox.session import SessionRegistry

# =============================================================================
# Fake Runtime
# =============================================================================


@dataclass
class FakeContainer:
    """State of one container in the fake runtime."""

    name: str
    volumes: list[tuple[str, str]]
    env_names: list[str]
    cap_add: list[str]
    command: list[str]
    dirs: set[str] = field(default_factory=set)
    files: dict[str, str] = field(default_factory=dict)
    modes: dict[str, str] = field(default_factory=dict)
    owners: dict[str, str] = field(default_factory=dict)
    firewall_present: bool = True
    firewall_runs: int = 0
    # Content of the allowlist file at the moment the firewall ran
    firewall_saw: str | None = None
    firewall_saw_mode: str | None = None


class FakeRuntime:
    """In-memory stand-in for DockerRuntime.

    Records every call in ``calls`` and keeps ``containers`` keyed by name,
    so tests can assert what is still running after a launch.
    """

    def __init__(self, config: SandboxConfig | None = None):
        self.config = config or SandboxConfig()
        self.calls: list[tuple[Any, ...]] = []
        self.containers: dict[str, FakeContainer] = {}
        self.removed: list[str] = []
        self.started: list[str] = []
        self.available = True
        self.start_result: ExecutionResult | None = None
        self.firewall_returncode = 0
        self.attached_returncode = 0
        # Raised by the next remove() call only
        self.remove_raises: BaseException | None = None
        self.remove_result: ExecutionResult | None = None
        # argv[0] -> result to return instead of simulating
        self.exec_overrides: dict[str, ExecutionResult] = {}
        self.on_attached: Any = None

    # -- DockerRuntime interface -------------------------------------------

    def check_available(self) -> None:
        self.calls.append(("check_available",))
        if not self.available:
            raise RuntimeNotAvailableError("docker binary not found in PATH")

    def remove(self, name: str) -> ExecutionResult:
        self.calls.append(("rm", name))
        if self.remove_raises is not None:
            error, self.remove_raises = self.remove_raises, None
            raise error
        if self.remove_result is not None:
            return self.remove_result
        if name in self.containers:
            del self.containers[name]
            self.removed.append(name)
            return ExecutionResult(returncode=0, stdout=f"{name}\n")
        return ExecutionResult(
            returncode=1, stderr=f"Error response from daemon: No such container: {name}"
        )

    def run_detached(self, name, command, *, volumes=(), env_names=(), cap_add=()):
        self.calls.append(("run", name, tuple(command)))
        if self.start_result is not None:
            return self.start_result
        if name in self.containers:
            return ExecutionResult(
                returncode=125,
                stderr=f'Conflict. The container name "/{name}" is already in use',
            )
        self.containers[name] = FakeContainer(
            name=name,
            volumes=list(volumes),
            env_names=list(env_names),
            cap_add=list(cap_add),
            command=list(command),
        )
        self.started.append(name)
        return ExecutionResult(returncode=0, stdout="0123456789ab\n")

    def exec(self, name, argv, *, user=None, input=None):
        self.calls.append(("exec", name, tuple(argv), user, input))
        container = self.containers.get(name)
        if container is None:
            return ExecutionResult(returncode=1, stderr=f"No such container: {name}")
        if argv[0] in self.exec_overrides:
            return self.exec_overrides[argv[0]]
        return self._simulate(container, list(argv), user, input)

    def exec_attached(self, name, argv, *, user=None, tty=False):
        self.calls.append(("exec_attached", name, tuple(argv), user, tty))
        if self.on_attached is not None:
            self.on_attached()
        if name not in self.containers:
            return 1
        return self.attached_returncode

    # -- helpers -------------------------------------------------------------

    def _simulate(self, container, argv, user, input):
        firewall = self.config.firewall_script
        if argv[:2] == ["mkdir", "-p"]:
            container.dirs.add(argv[2])
        elif argv[:2] == ["bash", "-c"] and argv[2].startswith("cat >> "):
            target = shlex.split(argv[2])[2]
            if container.modes.get(target) == "444" and user != "root":
                return ExecutionResult(returncode=1, stderr="Permission denied")
            container.files[target] = container.files.get(target, "") + (input or "")
        elif argv[0] == "chmod":
            container.modes[argv[2]] = argv[1]
        elif argv[0] == "chown":
            container.owners[argv[2]] = argv[1]
        elif argv == [firewall]:
            if not container.firewall_present:
                return ExecutionResult(returncode=127, stderr=f"{firewall}: not found")
            container.firewall_runs += 1
            container.firewall_saw = container.files.get(self.config.allowlist_file)
            container.firewall_saw_mode = container.modes.get(self.config.allowlist_file)
            return ExecutionResult(
                returncode=self.firewall_returncode,
                stderr="" if self.firewall_returncode == 0 else "ipset: failed",
            )
        elif argv == ["rm", "-f", firewall]:
            container.firewall_present = False
        return ExecutionResult(returncode=0)

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def sandbox_config() -> SandboxConfig:
    """Default config with TTY allocation disabled for tests."""
    return SandboxConfig(tty=False)


@pytest.fixture
def fake_runtime(sandbox_config: SandboxConfig) -> FakeRuntime:
    return FakeRuntime(sandbox_config)


@pytest.fixture
def registry() -> SessionRegistry:
    """Registry that is never installed (no signal handlers in tests)."""
    return SessionRegistry()


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """An existing project directory."""
    path = tmp_path / "proj"
    path.mkdir()
    return path


@pytest.fixture
def default_settings() -> EnvironmentSettings:
    """Environment with nothing set (default allowlist, cwd fallback)."""
    return EnvironmentSettings.from_environ({})
