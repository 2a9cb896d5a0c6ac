"""Markets subcommand: create, list, info."""

from __future__ import annotations

import typer

from predledger.cli.common import open_ledger, parse_timestamp
from predledger.ledger.format import format_units, state_label, time_remaining
from predledger.ledger.portfolio import filter_markets

app = typer.Typer(help="Create and inspect markets")


@app.command("create")
def create(
    ctx: typer.Context,
    creator: str = typer.Option(..., "--creator", "-a", help="Creator account (resolves the market)"),
    question: str = typer.Option(..., "--question", "-q", help="Yes/no question"),
    description: str = typer.Option("", "--description", "-d", help="Resolution criteria"),
    resolves_at: str = typer.Option(..., "--resolves-at", "-r", help="Unix seconds or ISO date"),
) -> None:
    """Create a new market."""
    settings = ctx.obj["settings"]
    resolution_time = parse_timestamp(resolves_at)
    with open_ledger(settings) as ledger:
        market_id = ledger.create_market(creator, question, description, resolution_time)
        typer.echo(f"Market created: {market_id}")


@app.command("list")
def list_markets(
    ctx: typer.Context,
    which: str = typer.Option("all", "--filter", "-f", help="all | active | resolved"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max markets (newest first)"),
) -> None:
    """List the latest markets."""
    if which not in ("all", "active", "resolved"):
        typer.echo(f"Unknown filter: {which}. Choose from: all, active, resolved")
        raise typer.Exit(1)
    settings = ctx.obj["settings"]
    with open_ledger(settings) as ledger:
        markets = [ledger.get_market(mid) for mid in ledger.get_latest_markets(limit)]
        rows = filter_markets(markets, which)
        for m in rows:
            yes = ledger.get_yes_probability(m.market_id)
            pool = format_units(m.total_pool, settings.native_decimals, settings.display_places)
            typer.echo(f"  {m.market_id}  {state_label(m):<14} YES {yes:>3}%  pool {pool:>10}  {m.question[:50]}")
        typer.echo(f"Total: {ledger.get_market_count()} markets")


@app.command("info")
def info(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market ID"),
) -> None:
    """Show one market."""
    settings = ctx.obj["settings"]
    with open_ledger(settings) as ledger:
        i = ledger.get_market_info(market)
        m = ledger.get_market(market)
        fmt = lambda v: format_units(v, settings.native_decimals, settings.display_places)  # noqa: E731
        typer.echo(f"Market: {i.market_id}")
        typer.echo(f"Question: {i.question}")
        if i.description:
            typer.echo(f"Description: {i.description}")
        typer.echo(f"Creator: {i.creator}")
        typer.echo(f"State: {state_label(m)}  Resolves: {time_remaining(i.resolution_time, ledger.now())}")
        typer.echo(f"YES {i.yes_probability}%  NO {i.no_probability}%")
        typer.echo(f"YES shares: {fmt(i.total_yes_shares)}  NO shares: {fmt(i.total_no_shares)}")
        typer.echo(f"Pool: {fmt(i.total_pool)}  Unclaimed: {fmt(ledger.unclaimed_balance(market))}")
