"""Container identity derived from a working directory.

The identity doubles as the container name, so it is restricted to
``[A-Za-z0-9_-]`` and prefixed with a namespace tag that keeps it away from
containers created by other tools.
"""

import logging
import os
import re
from pathlib import Path

from codex_container.core.errors import ConfigurationError, PathResolutionError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "codex"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")
_NAMESPACE_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")


def resolve_workdir(path: str | os.PathLike[str]) -> Path:
    """Return the canonical absolute form of an existing directory.

    Raises:
        PathResolutionError: If the path does not exist, cannot be resolved,
            or is not a directory.
    """
    if not str(path):
        raise PathResolutionError("No work directory provided")

    try:
        resolved = Path(path).expanduser().resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise PathResolutionError(f"Cannot resolve work directory '{path}': {e}") from e

    if not resolved.is_dir():
        raise PathResolutionError(f"Work directory is not a directory: {resolved}")
    return resolved


def derive_identity(path: str | os.PathLike[str], namespace: str = DEFAULT_NAMESPACE) -> str:
    """Map a canonical path to a container-safe identity.

    Separators become underscores and everything outside the safe alphabet is
    dropped, so ``/tmp/proj`` becomes ``codex__tmp_proj``. Paths that differ
    only in dropped characters share an identity.
    """
    if not _NAMESPACE_PATTERN.fullmatch(namespace):
        raise ConfigurationError(
            f"Invalid namespace {namespace!r}: must start with a letter or digit "
            "and contain only letters, digits, '_' and '-'"
        )

    flattened = str(path).replace("/", "_")
    identity = f"{namespace}_{_UNSAFE_CHARS.sub('', flattened)}"
    logger.debug("Derived identity %s for %s", identity, path)
    return identity
