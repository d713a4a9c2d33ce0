"""wagate CLI: command line interface."""

import click
from wagate import __version__
from .shared import console


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="wagate")
@click.pass_context
def cli(ctx):
    """wagate: WhatsApp automation gateway"""
    if ctx.invoked_subcommand is None:
        _show_help()


def _show_help():
    """Show all available commands grouped by category."""
    console.print(f"[bold]wagate v{__version__}[/bold]: WhatsApp automation gateway\n")

    groups = {
        "Usage": [
            ("start", "Start the gateway (HTTP API + chat bot)"),
            ("status", "Show effective configuration"),
        ],
        "Tools": [
            ("resolve", "Show how targets resolve to WhatsApp addresses"),
            ("memory stats", "Show conversation memory statistics"),
            ("memory show", "Show one conversation's history"),
            ("memory clear", "Clear one conversation's history"),
        ],
    }

    for category, commands in groups.items():
        console.print(f"  [bold cyan]{category}[/bold cyan]")
        for name, desc in commands:
            console.print(f"    [bold]wagate {name:14s}[/bold] {desc}")
        console.print()

    console.print("[dim]Run 'wagate <command> --help' for details on a specific command.[/dim]")


# Import all command modules (registers commands onto cli group)
from . import cmd_start  # noqa: E402, F401
from . import cmd_resolve  # noqa: E402, F401
from . import cmd_memory  # noqa: E402, F401


@cli.command(name="help", hidden=True)
def help_cmd():
    """Show all available commands."""
    _show_help()


def main():
    cli()
