"""Kether CLI — inspect how messages are parsed, annotated and sent."""

import logging

import click
from kether import __version__
from kether.config import load_settings
from .shared import console

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="kether")
@click.option("--log-level", default=None, help="Override KETHER_LOG_LEVEL (DEBUG, INFO, ...)")
@click.pass_context
def cli(ctx, log_level):
    """Kether — chat message markup, mentions and delivery tooling"""
    settings = load_settings()
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format=_log_format,
    )
    ctx.obj = settings
    if ctx.invoked_subcommand is None:
        _show_help()


def _show_help():
    """Show all available commands."""
    console.print(f"[bold]Kether v{__version__}[/bold] — chat message tooling\n")

    commands = [
        ("preview TEXT", "Show parsed segments, mentions and wire text of a message"),
        ("mention ID...", "Build a message mentioning the given users"),
    ]
    for name, desc in commands:
        console.print(f"    [bold]kether {name:16s}[/bold] {desc}")
    console.print()
    console.print("[dim]Run 'kether <command> --help' for details on a specific command.[/dim]")


# Import command modules (registers commands onto cli group)
from . import cmd_preview  # noqa: E402, F401
