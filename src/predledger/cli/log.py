"""Log subcommand: stats, events."""

from __future__ import annotations

import typer

from predledger.ledger import normalize_market_id
from predledger.storage.db import get_connection, init_schema
from predledger.storage.event_log import log_stats, stream_events

app = typer.Typer(help="Ledger event log inspection")


@app.command("stats")
def stats(ctx: typer.Context) -> None:
    """Show event log statistics (counts, time range, by type and market)."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        s = log_stats(conn)
        typer.echo(f"Total events: {s['total_events']}")
        typer.echo(f"Min ts: {s.get('min_ts')}")
        typer.echo(f"Max ts: {s.get('max_ts')}")
        for event_type, count in s["by_type"].items():
            typer.echo(f"  {event_type:<18} {count}")
        if s.get("by_market"):
            typer.echo("By market (top 20):")
            for row in s["by_market"]:
                typer.echo(f"  {row['market_id']}  {row['count']}")
    finally:
        conn.close()


@app.command("events")
def events(
    ctx: typer.Context,
    market: str | None = typer.Option(None, "--market", "-m", help="Filter by market ID"),
) -> None:
    """Print events in append order."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        for e in stream_events(conn, market_id=normalize_market_id(market) if market else None):
            typer.echo(f"  {e.ts}  {e.event_type:<18} {e.market_id}  {e.account or '-'}  {e.payload}")
    finally:
        conn.close()
