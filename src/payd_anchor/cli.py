"""
payd-anchor command-line interface.

Usage:
    payd-anchor [OPTIONS] COMMAND [ARGS]...
"""
from __future__ import annotations

import asyncio
import sys
from typing import Any, Awaitable, Callable

import click
from rich.console import Console
from rich.table import Table

from .config import (
    DEFAULT_HORIZON_URLS,
    DEFAULT_RPC_URLS,
    StellarNetwork,
    build_default_config,
    set_config,
)
from .errors import PaydAnchorError
from .logging_utils import setup_logging
from .orchestrator import PaymentOrchestrator

console = Console()

SEVERITY_STYLES = {
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


def _run(ctx: click.Context, action: Callable[[PaymentOrchestrator], Awaitable[Any]]) -> Any:
    """Run ``action`` with an orchestrator and turn library errors into exit code 1."""
    async def runner() -> Any:
        async with PaymentOrchestrator(config=ctx.obj["config"]) as orchestrator:
            return await action(orchestrator)

    try:
        return asyncio.run(runner())
    except PaydAnchorError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(1)


@click.group()
@click.version_option(package_name="payd-anchor", message="%(prog)s %(version)s")
@click.option(
    "--network",
    type=click.Choice([n.value for n in StellarNetwork]),
    envvar="PAYD_ANCHOR_NETWORK",
    help="Ledger network",
)
@click.option("--horizon-url", envvar="PAYD_ANCHOR_HORIZON_URL", help="Horizon base URL")
@click.option("--rpc-url", envvar="PAYD_ANCHOR_RPC_URL", help="Simulation RPC URL")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, network: str | None, horizon_url: str | None, rpc_url: str | None, verbose: bool):
    """payd-anchor - anchor settlement and transaction preflight tools."""
    ctx.ensure_object(dict)
    setup_logging("DEBUG" if verbose else "WARNING")

    config = build_default_config()
    if network:
        config.network = StellarNetwork(network)
        config.horizon_url = DEFAULT_HORIZON_URLS[config.network]
        config.rpc_url = DEFAULT_RPC_URLS[config.network]
    if horizon_url:
        config.horizon_url = horizon_url.rstrip("/")
    if rpc_url:
        config.rpc_url = rpc_url.rstrip("/")

    set_config(config)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


@cli.command()
@click.pass_context
def status(ctx):
    """Show the active configuration."""
    config = ctx.obj["config"]
    console.print("\n[bold blue]payd-anchor configuration[/bold blue]\n")
    for key, value in config.to_dict().items():
        console.print(f"{key}: [cyan]{value}[/cyan]")
    console.print()


@cli.command()
@click.argument("domain")
@click.pass_context
def discover(ctx, domain: str):
    """Show the endpoints an anchor publishes in its stellar.toml."""
    info = _run(ctx, lambda o: o.directory.resolve(domain))

    table = Table(title=f"Anchor {info.domain}")
    table.add_column("Capability", style="cyan")
    table.add_column("Endpoint")
    rows = [
        ("SEP-10 auth", info.auth_endpoint),
        ("SEP-31 settlement", info.settlement_endpoint),
        ("Transfer server", info.transfer_server),
        ("Network passphrase", info.network_passphrase),
        ("Signing key", info.signing_key),
    ]
    for name, value in rows:
        table.add_row(name, value or "[yellow]not published[/yellow]")
    console.print(table)


@cli.command()
@click.argument("domain")
@click.pass_context
def info(ctx, domain: str):
    """Show an anchor's SEP-31 capabilities."""
    capabilities = _run(ctx, lambda o: o.get_anchor_info(domain))

    receive = capabilities.get("receive", {})
    if not receive:
        console.print(f"[yellow]{domain} lists no receivable assets[/yellow]")
        return

    table = Table(title=f"SEP-31 assets at {domain}")
    table.add_column("Asset", style="cyan")
    table.add_column("Min", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Quotes")
    for code, asset in receive.items():
        table.add_row(
            code,
            str(asset.get("min_amount", "")),
            str(asset.get("max_amount", "")),
            "required" if asset.get("quotes_required") else "optional",
        )
    console.print(table)


@cli.command()
@click.option("--batch", type=click.IntRange(min=0), default=None, help="Budget N transactions")
@click.pass_context
def fees(ctx, batch: int | None):
    """Show the current fee recommendation."""
    async def action(orchestrator: PaymentOrchestrator):
        recommendation = await orchestrator.fees.get_recommendation()
        budget = None
        if batch is not None:
            budget = await orchestrator.fees.estimate_batch(batch)
        return recommendation, budget

    recommendation, budget = _run(ctx, action)

    console.print("\n[bold blue]Fee Recommendation[/bold blue]\n")
    console.print(f"Congestion: [cyan]{recommendation.congestion_level}[/cyan] "
                  f"({recommendation.ledger_capacity_usage:.0%} of ledger capacity)")
    console.print(f"Base fee: {recommendation.base_fee} stroops ({recommendation.base_fee_xlm} XLM)")
    console.print(f"Recommended: [green]{recommendation.recommended_fee}[/green] stroops "
                  f"({recommendation.recommended_fee_xlm} XLM)")
    console.print(f"Max: {recommendation.max_fee} stroops ({recommendation.max_fee_xlm} XLM)")
    if recommendation.should_bump_fee:
        console.print("[yellow]Network is congested; consider a fee bump.[/yellow]")

    if budget is not None:
        console.print(f"\nBatch of {budget.transaction_count}: "
                      f"{budget.fee_per_transaction} stroops each x{budget.safety_margin} margin, "
                      f"total [bold]{budget.total_budget_xlm} XLM[/bold]")
    console.print()


@cli.command()
@click.argument("envelopes", nargs=-1, required=True)
@click.pass_context
def simulate(ctx, envelopes: tuple[str, ...]):
    """Simulate one or more transaction envelopes (base64 XDR)."""
    async def action(orchestrator: PaymentOrchestrator):
        return await orchestrator.simulator.simulate_batch(list(envelopes))

    results = _run(ctx, action)

    for index, result in enumerate(results):
        style = SEVERITY_STYLES[result.severity]
        console.print(f"[{style}]#{index} {result.title}[/{style}]: {result.description}")
        for error in result.errors:
            where = f"op {error.operation_index}" if error.operation_index is not None else "tx"
            console.print(f"    [{style}]{error.code}[/{style}] ({where}) {error.message}")

    failed = sum(1 for r in results if not r.success)
    if failed:
        sys.exit(2)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
