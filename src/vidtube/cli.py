from __future__ import annotations

import json

import click

from config.settings import get_safe_config_report
from vidtube.ops import audit


@click.group()
def cli() -> None:
    """vidtube operator tools."""


@cli.command("serve")
def serve() -> None:
    """Run the API server (same as `vidtube-server`)."""
    from vidtube.web.run import main

    main()


@cli.command("config")
def config_report() -> None:
    """Print the effective configuration. Secrets show as SET/UNSET only."""
    click.echo(json.dumps(get_safe_config_report(), indent=2, sort_keys=True, default=str))


@cli.command("audit")
@click.option("--limit", type=int, default=50, show_default=True)
@click.option("--event", "event_prefix", type=str, default=None, help="e.g. auth.login")
def audit_tail(limit: int, event_prefix: str | None) -> None:
    """Print recent audit records, one JSON object per line."""
    for rec in audit.read_events(limit=limit):
        if event_prefix and not str(rec.get("event", "")).startswith(event_prefix):
            continue
        click.echo(json.dumps(rec, sort_keys=True))


if __name__ == "__main__":  # pragma: no cover
    cli()
