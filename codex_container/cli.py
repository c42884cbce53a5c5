"""CLI entry point for codex-container.

Usage:
    codex-container [--work_dir DIR] [--config FILE] [--verbose] COMMAND [ARGS...]

Examples:
    codex-container --work_dir project/code "ls -la"
    codex-container "echo Hello, world!"
    codex-container -- pytest -x tests/
"""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console
from rich.markup import escape

from codex_container import __version__
from codex_container.core.config import EnvironmentSettings, load_config
from codex_container.core.errors import CommandExecutionError, LaunchError, UsageError
from codex_container.launcher import LaunchRequest, Launcher
from codex_container.sandbox.runtime import DockerRuntime
from codex_container.sandbox.session import SessionRegistry

console = Console(stderr=True, soft_wrap=True)

# Live sessions for the atexit hook and signal handlers
_registry = SessionRegistry()


class LaunchCommand(click.Command):
    """Command whose argument errors exit with status 1 instead of click's 2."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            e.exit_code = 1
            raise


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@click.command(
    cls=LaunchCommand,
    context_settings={"allow_interspersed_args": False},
)
@click.version_option(version=__version__)
@click.option(
    "--work_dir",
    "--work-dir",
    "work_dir",
    default=None,
    help="Directory to mount and run in (default: $WORKSPACE_ROOT_DIR or the current directory)",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="YAML file with container settings (default: $CODEX_CONTAINER_CONFIG)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every container runtime call")
@click.argument("argv", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def main(
    ctx: click.Context,
    work_dir: str | None,
    config_path: str | None,
    verbose: bool,
    argv: tuple[str, ...],
) -> None:
    """Run COMMAND in a network-restricted container for the work directory.

    COMMAND is run by bash inside the container exactly as given; any
    further ARGS are appended as single quoted words. Put -- before a
    COMMAND that starts with a dash. Only the domains listed in
    $OPENAI_ALLOWED_DOMAINS (default: api.openai.com) are reachable.
    The container is removed when the command exits.
    """
    _configure_logging(verbose)

    if not argv:
        console.print(escape(ctx.get_usage()))
        console.print("[red]Error:[/red] Missing command")
        sys.exit(1)

    settings = EnvironmentSettings.from_environ()
    request = LaunchRequest(command=argv[0], args=tuple(argv[1:]), work_dir=work_dir)

    try:
        config = load_config(config_path or settings.config_path)
        launcher = Launcher(
            config=config,
            settings=settings,
            runtime=DockerRuntime(config),
            registry=_registry,
        )
        plan = launcher.prepare(request)

        _registry.install()
        returncode = launcher.execute(plan)
    except CommandExecutionError as e:
        sys.exit(e.exit_code)
    except UsageError as e:
        console.print(escape(ctx.get_usage()))
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(e.exit_code)
    except LaunchError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(e.exit_code)

    sys.exit(returncode)


if __name__ == "__main__":
    main()
