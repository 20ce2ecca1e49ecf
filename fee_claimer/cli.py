"""
Command line interface for the partner fee claimer.
"""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from solders.message import MessageV0

from fee_claimer.core.config import settings
from fee_claimer.core.exceptions import FeeClaimerException
from fee_claimer.core.logging import setup_logging
from fee_claimer.models.fees import format_lamports
from fee_claimer.models.notifications import Notification, Severity
from fee_claimer.services.fee_claim_service import FeeClaimService
from fee_claimer.services.wallet import display_address, load_wallet

console = Console()
app = typer.Typer(help="Discover and claim partner fees")


async def _confirm_signature(message: MessageV0) -> bool:
    return await asyncio.to_thread(
        typer.confirm,
        f"Sign transaction with {len(message.instructions)} instruction(s)?",
        default=False
    )


def _print_notification(notification: Notification) -> None:
    color = "green" if notification.severity == Severity.SUCCESS else "red"
    console.print(f"[{color}]{notification.message}[/{color}]")


def _build_service(yes: bool) -> FeeClaimService:
    setup_logging()
    wallet = load_wallet(settings, approve=None if yes else _confirm_signature)
    service = FeeClaimService(wallet=wallet)
    service.notifications.subscribe(_print_notification)
    return service


def _render_fees(service: FeeClaimService) -> None:
    if not service.state.fees:
        console.print("No pool fees found")
        return

    table = Table(title="Partner Pool Fees")
    table.add_column("Pool")
    table.add_column("Partner base (SOL)", justify="right")
    table.add_column("Partner quote (SOL)", justify="right")
    table.add_column("Creator base (SOL)", justify="right")
    table.add_column("Creator quote (SOL)", justify="right")
    table.add_column("Value (USD)", justify="right")
    table.add_column("Claimable")

    per_sol = service.config.lamports_per_sol
    for fee in service.state.fees:
        table.add_row(
            fee.pool,
            format_lamports(fee.partner_base_fee, per_sol),
            format_lamports(fee.partner_quote_fee, per_sol),
            format_lamports(fee.creator_base_fee, per_sol),
            format_lamports(fee.creator_quote_fee, per_sol),
            f"{service.gate.value_of(fee):.2f}",
            "yes" if service.gate.is_claimable(fee) else f"below {service.gate.minimum_label}",
        )
    console.print(table)


async def _load(service: FeeClaimService) -> bool:
    wallet = display_address(service.wallet)
    console.print(f"Connected: {wallet}" if wallet else "[yellow]No wallet configured[/yellow]")
    with console.status("Loading pool fees..."):
        completed = await service.fetch()
    if completed is None:
        console.print(f"[red]{service.state.error}[/red]")
        console.print("If the error persists, the RPC endpoints may be experiencing issues.")
        return False
    return True


@app.command()
def fees():
    """Fetch and show partner fees for every pool."""
    async def _fees():
        service = _build_service(yes=True)
        if not await _load(service):
            raise typer.Exit(code=1)
        _render_fees(service)

    asyncio.run(_fees())


@app.command()
def claim(pool: str, yes: bool = typer.Option(False, "--yes", "-y", help="Sign without asking")):
    """Claim partner fees of one pool."""
    async def _claim():
        service = _build_service(yes)
        if not await _load(service):
            raise typer.Exit(code=1)
        try:
            outcome = await service.claim_one(pool)
        except FeeClaimerException as e:
            console.print(f"[red]{e.message}[/red]")
            raise typer.Exit(code=1)
        if not outcome.succeeded:
            raise typer.Exit(code=1)

    asyncio.run(_claim())


@app.command("claim-all")
def claim_all(yes: bool = typer.Option(False, "--yes", "-y", help="Sign without asking")):
    """Claim every pool above the minimum, one at a time."""
    async def _claim_all():
        service = _build_service(yes)
        if not await _load(service):
            raise typer.Exit(code=1)
        _render_fees(service)
        result = await service.claim_all()
        if result.success == 0 and result.failed > 0:
            raise typer.Exit(code=1)

    asyncio.run(_claim_all())


@app.command()
def serve(host: Optional[str] = None, port: Optional[int] = None):
    """Run the REST API."""
    import uvicorn

    from fee_claimer.api.main import create_app

    uvicorn.run(create_app(), host=host or settings.host, port=port or settings.port)


if __name__ == "__main__":
    app()
