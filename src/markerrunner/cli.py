"""Command-line interface for MarkerRunner."""

import json
import os
import sys
from typing import Optional

import click
import structlog
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from markerrunner import __version__
from markerrunner.config import load_config
from markerrunner.core.loader import InvalidPathEntryError
from markerrunner.core.runner import TestRunner
from markerrunner.telemetry import setup_logging

# stdout belongs to the marker protocol
err_console = Console(stderr=True)
log = structlog.get_logger("markerrunner.cli")


def halt(status: int) -> None:
    """Terminate the process immediately with ``status``.

    Unlike ``sys.exit`` this skips atexit handlers, finalizers and the join
    of non-daemon threads, so cleanup registered by loaded test code never
    runs and cannot hang or crash the shutdown.
    """
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(status)


@click.command()
@click.version_option(version=__version__, prog_name="markerrunner")
@click.argument("path_list", nargs=-1)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False),
    help="Path to configuration file (default: nearest markerrunner.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging on stderr")
def main(path_list: tuple[str, ...], config: Optional[str], verbose: bool) -> None:
    """Run every pytest test found on PATH_LIST and report it as markers.

    PATH_LIST is a single os.pathsep separated list of import-path entries.
    An entry ending with '*' expands to the archives inside that directory,
    e.g. './wheels/*:./src:./tests'.
    """
    if len(path_list) != 1:
        err_console.print("[red]Missing classpath[/red]")
        sys.exit(1)

    setup_logging(verbose)

    try:
        runner_config = load_config(config)
    except (FileNotFoundError, json.JSONDecodeError, ValidationError) as e:
        err_console.print(f"[red]Error loading configuration:[/red] {escape(str(e))}")
        sys.exit(1)

    try:
        status = TestRunner(path_list[0], config=runner_config).execute()
    except InvalidPathEntryError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    log.debug("Exiting", status=int(status))
    halt(int(status))


if __name__ == "__main__":
    main()
