"""API server command."""

import typer

from predledger.api.main import run_api

app = typer.Typer(help="Start the ledger HTTP API")


@app.callback(invoke_without_command=True)
def api(
    ctx: typer.Context,
    host: str | None = typer.Option(None, "--host", help="Bind host (default from config)"),
    port: int | None = typer.Option(None, "--port", help="Bind port (default from config)"),
) -> None:
    if ctx.invoked_subcommand is not None:
        return
    settings = ctx.obj["settings"]
    run_api(
        host=host or settings.api_host,
        port=port or settings.api_port,
        profile=ctx.obj["profile"],
        db_path=settings.db_path,
        config_dir=ctx.obj["config_dir"],
    )


if __name__ == "__main__":
    app()
