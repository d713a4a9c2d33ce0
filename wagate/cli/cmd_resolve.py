"""Target resolution preview."""

import click
from rich.table import Table

from . import cli
from .shared import console


@cli.command()
@click.argument("targets", nargs=-1, required=True)
@click.option("--country-code", "-c", default=None, help="Override WAGATE_COUNTRY_CODE")
def resolve(targets, country_code):
    """Show how TARGETS resolve to WhatsApp addresses."""
    from wagate.config import load_settings
    from wagate.targets import ResolutionError, resolve as resolve_target

    cc = country_code or load_settings().country_code
    t = Table(title=f"Targets (country code {cc})")
    t.add_column("Input")
    t.add_column("Type")
    t.add_column("Address")

    failed = False
    for raw in targets:
        try:
            target = resolve_target(raw, cc)
        except ResolutionError:
            failed = True
            t.add_row(raw, "[red]invalid[/red]", "-")
            continue
        t.add_row(raw, target.kind.value, target.jid)

    console.print(t)
    if failed:
        raise SystemExit(1)
