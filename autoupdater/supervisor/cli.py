"""CLI entry point for git-auto-updater."""

from __future__ import annotations

import asyncio
from typing import List, Optional

import typer
from rich.console import Console

from autoupdater import __version__
from autoupdater.config import (
    DEFAULT_BRANCH,
    DEFAULT_FREQUENCY_MINUTES,
    DEFAULT_SIGNAL,
    ConfigurationError,
    build_config,
)
from autoupdater.logging_config import setup_logging
from autoupdater.modules.git import SetupError
from autoupdater.supervisor.coordinator import UpdateCoordinator

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"git-auto-updater {__version__}")
        raise typer.Exit()


@app.command()
def run(
    ctx: typer.Context,
    repository: Optional[str] = typer.Option(None, "--repository", "-r", help="git repository URI"),
    branch: str = typer.Option(DEFAULT_BRANCH, "--branch", "-b", help="git branch"),
    path: Optional[str] = typer.Option(None, "--path", "-p", help="local clone path (Default: repository name)"),
    frequency: str = typer.Option(
        str(DEFAULT_FREQUENCY_MINUTES), "--frequency", "-f", help="update check frequency, in minutes",
    ),
    time: Optional[str] = typer.Option(
        None, "--time", "-t", help="update check time, overrides frequency, HHMM (e.g. 0200)",
    ),
    signal_name: str = typer.Option(
        DEFAULT_SIGNAL, "--signal", "-s", help="signal to terminate command",
    ),
    command: Optional[List[str]] = typer.Argument(
        None,
        help="command to run between updates; words after the options are taken as the command, "
        "put -- before it when it has options of its own",
        show_default=False,
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True, help="print the version and exit",
    ),
) -> None:
    """Periodically checks a git repository for updates and runs a command
    between updates.

    Everything after the options is the command to supervise, e.g.
    git-auto-updater -r URI -- npm start. Words given without -- are taken
    as the command too; -- is only needed before a command option such as
    --port.
    """
    try:
        config = build_config(
            repository=repository,
            branch=branch,
            path=path,
            frequency=frequency,
            time=time,
            signal_name=signal_name,
            command=command,
        )
    except ConfigurationError as exc:
        err_console.print("Not enough or invalid arguments", style="red")
        err_console.print(str(exc), style="red", markup=False)
        typer.echo(ctx.get_usage(), err=True)
        typer.echo("Try 'git-auto-updater -h' for help.", err=True)
        raise typer.Exit(1)

    setup_logging()
    coordinator = UpdateCoordinator(config)
    try:
        asyncio.run(coordinator.run())
    except SetupError as exc:
        err_console.print(str(exc), style="red", markup=False)
        raise typer.Exit(1)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
