"""Start and status commands."""

import asyncio
import logging

import click
from rich.table import Table

from . import cli
from .shared import console, mask


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start the gateway."""
    from wagate.config import load_settings
    from wagate.main import run, setup_logging

    settings = load_settings()
    setup_logging(settings.log_file, level=logging.DEBUG if debug else logging.INFO)
    console.print(f"[bold blue]Starting wagate on {settings.host}:{settings.port}...[/bold blue]")
    asyncio.run(run(settings))


@cli.command()
def status():
    """Show effective configuration (secrets masked)."""
    from wagate.config import load_settings

    settings = load_settings()
    t = Table(title="wagate configuration")
    t.add_column("Setting")
    t.add_column("Value")
    t.add_row("Listen", f"{settings.host}:{settings.port}")
    t.add_row("API secret", mask(settings.api_secret))
    t.add_row("Gemini API key", mask(settings.gemini_api_key))
    t.add_row("Gemini model", settings.gemini_model)
    t.add_row("Country code", settings.country_code)
    t.add_row("Command prefixes", " ".join(settings.prefixes()))
    t.add_row("Personas", ", ".join(f"{kw} ({name})" for kw, name in settings.persona_list()))
    t.add_row("Notification targets", ", ".join(settings.targets()) or "-")
    t.add_row("Muted chats", str(len(settings.muted_chats())))
    t.add_row("Memory file", settings.memory_file)
    t.add_row("wacli", settings.wacli_path)
    console.print(t)
