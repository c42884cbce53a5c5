"""Shell quoting for commands crossing into the container.

Arguments travel as lists until the final ``bash -c`` call. There they are
joined with :func:`escape_argv`; each token survives the shell as exactly one
word. ``unescape(escape(x)) == x`` for every string ``x``.

The user's COMMAND string is never parsed on the host. It is handed to the
in-container shell as one quoted word, so only that shell interprets it.
"""

import shlex
from collections.abc import Sequence


def escape(arg: str) -> str:
    """Quote a single argument for a POSIX shell."""
    return shlex.quote(arg)


def unescape(quoted: str) -> str:
    """Inverse of :func:`escape`.

    Raises:
        ValueError: If ``quoted`` is not exactly one shell word.
    """
    words = shlex.split(quoted)
    if len(words) != 1:
        raise ValueError(f"Expected one shell word, got {len(words)}: {quoted!r}")
    return words[0]


def escape_argv(argv: Sequence[str]) -> str:
    """Join an argument vector into a shell command line."""
    return " ".join(escape(arg) for arg in argv)


def shell_script(command: str, args: Sequence[str] = ()) -> str:
    """Script for ``bash -c``: ``command`` as given, then each of ``args`` quoted.

    >>> shell_script("ls", ["-la", "my file"])
    "ls -la 'my file'"
    """
    if not args:
        return command
    if not command.strip():
        return escape_argv(args)
    return f"{command} {escape_argv(args)}"
