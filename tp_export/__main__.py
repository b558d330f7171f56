"""Entry point for tp-export."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from tp_export import __version__
from tp_export.commands import export as export_commands
from tp_export.commands.auth import login_command, logout_command
from tp_export.commands.browse import items_command, libraries_command, plans_command
from tp_export.commands.render import render_command
from tp_export.core.config import ConfigError, default_config_path, load_config
from tp_export.core.state import CLIState

app = typer.Typer(
    add_completion=False,
    help="Export TrainingPeaks workouts and plans to Intervals.icu and PlanMyPeak",
    invoke_without_command=True,
)


def configure_logging(console: Console, verbose: bool, quiet: bool) -> None:
    """Route package logs through rich on stderr."""
    logger = logging.getLogger("tp_export")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    if quiet:
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.CRITICAL)
    else:
        logger.addHandler(RichHandler(console=console, show_time=False, show_path=verbose, markup=False))
        logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output JSON where available"),
    plain_output: bool = typer.Option(
        False,
        "--plain",
        help="Output plain text (no rich formatting/tables)",
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Quiet output"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
) -> None:
    """Initialize global CLI state."""
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if json_output and plain_output:
        typer.echo("Options --json and --plain are mutually exclusive.")
        raise typer.Exit(code=2)

    cfg_path = (config or default_config_path()).expanduser().resolve()
    try:
        cfg = load_config(cfg_path)
    except ConfigError as exc:
        typer.echo(f"Config error: {exc}")
        raise typer.Exit(code=2)

    console = Console(
        quiet=quiet,
        no_color=plain_output,
        log_time=False,
        log_path=False,
    )
    configure_logging(Console(stderr=True, no_color=plain_output), verbose=verbose, quiet=quiet)
    ctx.obj = CLIState(
        json_output=(json_output and not plain_output),
        plain_output=plain_output,
        verbose=verbose,
        quiet=quiet,
        config_path=cfg_path,
        config=cfg,
        console=console,
    )

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


# Top-level commands
app.command("login")(login_command)
app.command("logout")(logout_command)
app.command("libraries")(libraries_command)
app.command("items")(items_command)
app.command("plans")(plans_command)
app.command("render")(render_command)
app.add_typer(export_commands.app, name="export")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
