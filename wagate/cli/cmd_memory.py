"""Conversation memory commands."""

from datetime import datetime

import click
from rich.table import Table

from . import cli
from .shared import console


def _open_memory():
    from wagate.config import load_settings
    from wagate.memory import ConversationMemory

    settings = load_settings()
    memory = ConversationMemory(settings.memory_file, cap=settings.memory_cap)
    memory.load()
    return memory


@cli.group()
def memory():
    """Conversation memory commands."""
    pass


@memory.command("stats")
def memory_stats():
    """Show memory statistics."""
    store = _open_memory()
    stats = store.stats()
    console.print(
        f"\n[bold]Conversations: {stats['conversations']}[/bold]  "
        f"[bold]Entries: {stats['entries']}[/bold]\n"
    )

    keys = store.keys()
    if keys:
        t = Table(title="Conversations")
        t.add_column("Chat")
        t.add_column("Persona")
        t.add_column("Entries", justify="right")
        for key in keys:
            t.add_row(key.chat_id, key.persona, str(len(store.history(key))))
        console.print(t)


@memory.command("show")
@click.argument("chat_id")
@click.argument("persona")
@click.option("--limit", "-n", default=10, help="Max entries (0 shows all)")
def memory_show(chat_id, persona, limit):
    """Show recent history for CHAT_ID and PERSONA."""
    from wagate.memory import ConversationKey

    store = _open_memory()
    entries = store.history(ConversationKey(chat_id, persona), limit or None)
    if not entries:
        console.print("[yellow]No history for this conversation.[/yellow]")
        return

    t = Table(title=f"{persona} @ {chat_id}")
    t.add_column("Time")
    t.add_column("Role")
    t.add_column("Text")
    for e in entries:
        text = e.text[:80] + "..." if len(e.text) > 80 else e.text
        t.add_row(datetime.fromtimestamp(e.timestamp).strftime("%Y-%m-%d %H:%M"), e.role, text)
    console.print(t)


@memory.command("clear")
@click.argument("chat_id")
@click.argument("persona")
@click.confirmation_option(prompt="Clear this conversation's history?")
def memory_clear(chat_id, persona):
    """Clear history for CHAT_ID and PERSONA."""
    from wagate.memory import ConversationKey

    store = _open_memory()
    removed = store.clear(ConversationKey(chat_id, persona))
    store.persist()
    console.print(f"[green]Removed {removed} entr{'y' if removed == 1 else 'ies'}.[/green]")
