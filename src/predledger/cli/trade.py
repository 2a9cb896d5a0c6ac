"""Trade subcommand: buy, resolve, cancel, claim, position, positions."""

from __future__ import annotations

import typer

from predledger.cli.common import open_ledger
from predledger.ledger.format import format_units, state_label
from predledger.ledger.portfolio import positions_for
from predledger.models.market import MarketState, Outcome

app = typer.Typer(help="Buy shares, resolve, cancel and claim")

OUTCOMES = {"yes": Outcome.YES, "no": Outcome.NO, "invalid": Outcome.INVALID}


@app.command("buy")
def buy(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market ID"),
    account: str = typer.Option(..., "--account", "-a", help="Buyer account"),
    side: str = typer.Option(..., "--side", "-s", help="yes | no"),
    amount: int = typer.Option(..., "--amount", "-n", help="Smallest native units (1 unit = 1 share)"),
) -> None:
    """Buy YES or NO shares at 1:1."""
    if side.lower() not in ("yes", "no"):
        typer.echo(f"Unknown side: {side}. Choose from: yes, no")
        raise typer.Exit(1)
    settings = ctx.obj["settings"]
    with open_ledger(settings) as ledger:
        position = ledger.buy_shares(market, account, side.lower() == "yes", amount)
        typer.echo(f"Bought {amount} {side.upper()} shares")
        typer.echo(f"Position: YES {position.yes_shares}  NO {position.no_shares}")
        typer.echo(f"YES probability: {ledger.get_yes_probability(market)}%")


@app.command("resolve")
def resolve(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market ID"),
    account: str = typer.Option(..., "--account", "-a", help="Creator account"),
    outcome: str = typer.Option(..., "--outcome", "-o", help="yes | no | invalid"),
) -> None:
    """Resolve a market (creator only, after its resolution time)."""
    if outcome.lower() not in OUTCOMES:
        typer.echo(f"Unknown outcome: {outcome}. Choose from: {list(OUTCOMES)}")
        raise typer.Exit(1)
    settings = ctx.obj["settings"]
    with open_ledger(settings) as ledger:
        m = ledger.resolve(market, account, OUTCOMES[outcome.lower()])
        typer.echo(f"Market {market}: {state_label(m)}")


@app.command("cancel")
def cancel(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market ID"),
    reason: str = typer.Option("", "--reason", help="Recorded in the event log"),
) -> None:
    """Cancel an active market; stakes become refundable."""
    settings = ctx.obj["settings"]
    with open_ledger(settings) as ledger:
        ledger.cancel(market, reason=reason)
        typer.echo(f"Market {market}: Cancelled")


@app.command("claim")
def claim(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market ID"),
    account: str = typer.Option(..., "--account", "-a", help="Claiming account"),
) -> None:
    """Claim winnings or refund from a settled market."""
    settings = ctx.obj["settings"]
    with open_ledger(settings) as ledger:
        payout = ledger.claim(market, account)
        if payout == 0:
            typer.echo("Nothing to claim.")
        else:
            typer.echo(f"Claimed {format_units(payout, settings.native_decimals, settings.display_places)} ({payout} units)")


@app.command("position")
def position(
    ctx: typer.Context,
    market: str = typer.Argument(..., help="Market ID"),
    account: str = typer.Option(..., "--account", "-a", help="Account"),
) -> None:
    """Show an account's position in one market."""
    settings = ctx.obj["settings"]
    with open_ledger(settings) as ledger:
        p = ledger.get_user_position(market, account)
        typer.echo(f"YES: {p.yes_shares}  NO: {p.no_shares}  Claimable: {ledger.claimable(market, account)}")


@app.command("positions")
def positions(
    ctx: typer.Context,
    account: str = typer.Option(..., "--account", "-a", help="Account"),
) -> None:
    """List every market where the account holds shares."""
    settings = ctx.obj["settings"]
    fmt = lambda v: format_units(v, settings.native_decimals, settings.display_places)  # noqa: E731
    with open_ledger(settings) as ledger:
        rows = positions_for(ledger, account)
        for s in rows:
            label = "Winnings" if s.market.state == MarketState.RESOLVED else "If win"
            typer.echo(
                f"  {s.market.market_id}  {state_label(s.market):<14} "
                f"YES {fmt(s.position.yes_shares)}  NO {fmt(s.position.no_shares)}  "
                f"invested {fmt(s.invested)}  {label} {fmt(s.potential_winnings)}  {s.market.question[:40]}"
            )
        typer.echo(f"Total: {len(rows)} positions")
