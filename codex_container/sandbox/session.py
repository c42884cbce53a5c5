"""Session lifecycle: one container per identity, always removed.

State machine:
    absent -> running            (create)
    running -> terminating       (destroy begins)
    terminating -> absent        (destroy ends)
    running/terminating -> absent (cleanup)

``SessionManager.session()`` is the only way the launch flow obtains a
session; its ``finally`` removes the container whether the body returns,
raises, or is interrupted by a signal (the registry turns signals into
``SystemExit`` so the ``finally`` runs).
"""

import atexit
import logging
import signal
import subprocess
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from codex_container.core.config import SandboxConfig
from codex_container.core.errors import EnvironmentStartError, SandboxError, SessionStateError
from codex_container.sandbox.runtime import DockerRuntime

logger = logging.getLogger(__name__)

# Matched lowercased against the runtime's stderr
NO_SUCH_CONTAINER = "no such container"


class SessionState(str, Enum):
    """Lifecycle state of a session container."""

    ABSENT = "absent"
    RUNNING = "running"
    TERMINATING = "terminating"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.ABSENT: frozenset({SessionState.RUNNING}),
    SessionState.RUNNING: frozenset({SessionState.TERMINATING, SessionState.ABSENT}),
    SessionState.TERMINATING: frozenset({SessionState.ABSENT}),
}


@dataclass
class Session:
    """A container bound to one working directory."""

    identity: str
    host_path: Path
    container_id: str | None = None
    state: SessionState = SessionState.ABSENT
    mounts: dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.identity

    @property
    def container_path(self) -> str:
        """Where the host directory appears inside the container."""
        return self.mounts.get(str(self.host_path), str(self.host_path))

    def transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise SessionStateError(
                f"Session {self.identity}: invalid transition "
                f"{self.state.value} -> {new_state.value}"
            )
        logger.debug("Session %s: %s -> %s", self.identity, self.state.value, new_state.value)
        self.state = new_state


class SessionRegistry:
    """Track live sessions so they are removed on exit or signal.

    Uses RLock so a signal handler firing while the lock is held by the same
    thread cannot deadlock.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)

    def __init__(self) -> None:
        self._sessions: dict[str, "SessionManager"] = {}
        self._lock = threading.RLock()
        self._installed = False

    def install(self) -> None:
        """Register the atexit hook and signal handlers (main thread only)."""
        if self._installed:
            return
        atexit.register(self.cleanup_all)
        for signum in self.SIGNALS:
            signal.signal(signum, self._signal_handler)
        self._installed = True

    def add(self, identity: str, manager: "SessionManager") -> None:
        with self._lock:
            self._sessions[identity] = manager

    def remove(self, identity: str) -> None:
        with self._lock:
            self._sessions.pop(identity, None)

    def __contains__(self, identity: str) -> bool:
        with self._lock:
            return identity in self._sessions

    def cleanup_all(self) -> None:
        """Remove every tracked container. Failures stay tracked."""
        with self._lock:
            for identity, manager in list(self._sessions.items()):
                if manager.cleanup(identity):
                    self._sessions.pop(identity, None)

    def _signal_handler(self, signum: int, frame: Any) -> None:
        # Unwinds through SessionManager.session()'s finally.
        raise SystemExit(128 + signum)


class SessionManager:
    """Create, find and destroy session containers keyed by identity."""

    SLEEP_COMMAND = ("sleep", "infinity")

    def __init__(
        self,
        runtime: DockerRuntime,
        config: SandboxConfig | None = None,
        registry: SessionRegistry | None = None,
    ):
        self.runtime = runtime
        self.config = config or SandboxConfig()
        self.registry = registry or SessionRegistry()

    def cleanup(self, identity: str) -> bool:
        """Remove any container named ``identity``. Never raises on runtime errors.

        Returns False when a container may still be running.
        """
        try:
            result = self.runtime.remove(identity)
        except (SandboxError, subprocess.SubprocessError, OSError) as e:
            logger.warning("Cleanup of %s failed: %s", identity, e)
            return False
        if result.ok:
            logger.debug("Removed container %s", identity)
            return True
        stderr = result.stderr.strip()
        if NO_SUCH_CONTAINER in stderr.lower():
            logger.debug("Nothing removed for %s: %s", identity, stderr)
            return True
        logger.warning(
            "Could not remove container %s (run '%s rm -f %s' by hand): %s",
            identity,
            self.config.runtime,
            identity,
            stderr,
        )
        return False

    def create(self, identity: str, host_path: Path) -> Session:
        """Start a fresh detached container named ``identity``.

        The host directory is mounted at the same path inside the container.

        Raises:
            EnvironmentStartError: If the runtime rejects the request.
        """
        session = Session(identity=identity, host_path=host_path)
        session.mounts[str(host_path)] = str(host_path)

        try:
            result = self.runtime.run_detached(
                identity,
                self.SLEEP_COMMAND,
                volumes=list(session.mounts.items()),
                env_names=self.config.forwarded_env,
                cap_add=self.config.capabilities,
            )
        except SandboxError as e:
            raise EnvironmentStartError(f"Failed to start container {identity}: {e}") from e

        if not result.ok:
            raise EnvironmentStartError(
                f"Failed to start container {identity}: {result.stderr.strip()}"
            )

        session.container_id = result.stdout.strip() or None
        session.transition(SessionState.RUNNING)
        self.registry.add(identity, self)
        logger.info("Started container %s for %s", identity, host_path)
        return session

    def destroy(self, session: Session) -> None:
        """Forcefully remove the session's container. Never raises on runtime errors.

        The session leaves the registry only once removal succeeded. A failed
        or interrupted removal leaves it TERMINATING and registered, so the
        exit hook tries again.
        """
        if session.state is SessionState.ABSENT:
            return
        if session.state is SessionState.RUNNING:
            session.transition(SessionState.TERMINATING)
        if not self.cleanup(session.identity):
            return
        self.registry.remove(session.identity)
        session.transition(SessionState.ABSENT)
        logger.info("Removed container %s", session.identity)

    @contextmanager
    def session(self, identity: str, host_path: Path) -> Iterator[Session]:
        """Scoped session: clear stale state, create, always destroy.

        The container is removed even when ``create`` itself fails part way,
        since the runtime may have registered the name before failing.
        """
        self.cleanup(identity)
        session = Session(identity=identity, host_path=host_path)
        try:
            session = self.create(identity, host_path)
            yield session
        finally:
            if session.state is SessionState.ABSENT:
                self.cleanup(identity)
            else:
                self.destroy(session)
