"""Shared utilities for wagate CLI commands."""

from rich.console import Console

console = Console()


def mask(value: str | None, keep: int = 4) -> str:
    """Mask a secret for display, keeping the last ``keep`` characters."""
    if not value:
        return "[red]not set[/red]"
    if len(value) <= keep:
        return "*" * len(value)
    return "*" * (len(value) - keep) + value[-keep:]
