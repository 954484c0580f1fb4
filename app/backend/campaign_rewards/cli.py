"""
Operator CLI for the campaign rewards backend.

    campaign-rewards init-db
    campaign-rewards reset --yes
    campaign-rewards balance
    campaign-rewards simulate 3 4 7
    campaign-rewards disburse 3 4 7
    campaign-rewards reconcile
    campaign-rewards repair 4 <signature>
"""

import asyncio
import sys
from typing import Awaitable, Callable, List, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from alembic.config import Config
from alembic import command

from campaign_rewards.core.config import settings
from campaign_rewards.core.database import (
    DatabaseManager, close_database, get_async_session, get_engine, init_database
)
from campaign_rewards.core.exceptions import RewardsException
from campaign_rewards.core.logging import setup_logging
from campaign_rewards.services.campaign_service import CampaignService
from campaign_rewards.services.ledger import format_token_amount, get_ledger, shutdown_ledger
from campaign_rewards.services.payout_engine import PayoutEngine, total_amount
from campaign_rewards.services.reconciliation import ReconciliationService

console = Console()
app = typer.Typer(help="Campaign rewards operator commands")

T = TypeVar("T")


def _run(job: Callable[[], Awaitable[T]]) -> T:
    """Run ``job`` with logging, database and ledger set up and torn down."""
    async def _wrapper():
        setup_logging()
        await init_database()
        try:
            return await job()
        finally:
            await shutdown_ledger()
            await close_database()

    try:
        return asyncio.run(_wrapper())
    except RewardsException as e:
        console.print(f"[red]❌ {e.message}[/red]")
        if e.details:
            console.print(e.details)
        sys.exit(1)


@app.command("init-db")
def init_db():
    """Create all tables (development databases; use `upgrade` elsewhere)."""
    async def _init():
        await DatabaseManager.create_tables()
        console.print("✅ Database initialized successfully!")

    _run(_init)


@app.command()
def upgrade(revision: str = "head"):
    """Apply migrations."""
    command.upgrade(Config("alembic.ini"), revision)
    console.print(f"✅ Database upgraded to: {revision}")


@app.command()
def reset(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """Drop all tables."""
    if not yes and not typer.confirm("Are you sure you want to drop all tables?"):
        console.print("❌ Operation cancelled")
        return

    async def _reset():
        await DatabaseManager.drop_tables()
        console.print("🗑️ All tables dropped!")

    _run(_reset)


@app.command()
def seed():
    """Create the default campaign when no campaign exists."""
    async def _seed():
        async with get_async_session() as db:
            campaign = await CampaignService(db).ensure_default_campaign()
        if campaign:
            console.print(f"🌱 Created campaign #{campaign.id}: {campaign.name}")
        else:
            console.print("Campaigns already present, nothing to seed")

    _run(_seed)


@app.command()
def health():
    """Check database health."""
    async def _health():
        return await DatabaseManager.health_check()

    if _run(_health):
        console.print("✅ Database is healthy!")
    else:
        console.print("❌ Database health check failed!")
        sys.exit(1)


@app.command()
def balance():
    """Show the treasury balance."""
    async def _balance():
        ledger = get_ledger()
        address = ledger.treasury_address()
        raw = await ledger.balance(address)
        console.print(f"Treasury: [cyan]{address}[/cyan]")
        console.print(
            f"Balance:  [green]{format_token_amount(raw, ledger.decimals)} "
            f"{settings.reward_token_symbol}[/green] ({raw} base units)"
        )

    _run(_balance)


@app.command()
def simulate(submission_ids: List[int] = typer.Argument(..., help="Submission ids")):
    """Preview a payout without sending anything."""
    async def _simulate():
        async with get_async_session() as db:
            preview = await PayoutEngine(db, get_ledger()).simulate(submission_ids)

        table = Table(title="Payout Preview")
        table.add_column("Submission", style="cyan")
        table.add_column("Recipient")
        table.add_column("Amount", style="green", justify="right")
        table.add_column("TikTok user")
        for item in preview.items:
            table.add_row(
                str(item["id"]),
                item["recipient"],
                item["amount"],
                item["submitter_username"] or "-"
            )
        console.print(table)
        console.print(
            f"{preview.count} payable, total {preview.total_amount} {settings.reward_token_symbol}"
        )

    _run(_simulate)


@app.command()
def disburse(
    submission_ids: List[int] = typer.Argument(..., help="Submission ids"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")
):
    """Pay the reward to every eligible or winner submission given."""
    if not yes and not typer.confirm(f"Send rewards for {len(submission_ids)} submission(s)?"):
        console.print("❌ Operation cancelled")
        return

    async def _disburse():
        ledger = get_ledger()
        async with get_async_session() as db:
            report = await PayoutEngine(db, ledger, get_engine()).disburse(submission_ids)

        table = Table(title="Payout Results")
        table.add_column("Submission", style="cyan")
        table.add_column("Result")
        table.add_column("Amount", justify="right")
        table.add_column("Transaction / error")
        for outcome in report.results:
            if outcome.success:
                result, detail = "[green]paid[/green]", outcome.tx_reference
            elif outcome.reconciliation_required:
                result, detail = "[yellow]reconcile[/yellow]", f"{outcome.tx_reference} {outcome.error}"
            else:
                result, detail = "[red]failed[/red]", outcome.error
            table.add_row(str(outcome.id), result, outcome.amount or "-", detail or "")
        console.print(table)

        settled = total_amount(report.results, ledger.decimals)
        console.print(f"{report.message} ({settled} {settings.reward_token_symbol} sent)")

    _run(_disburse)


@app.command()
def reconcile(limit: Optional[int] = typer.Option(None, help="Treasury signatures to scan")):
    """List treasury transfers that settled a submission not marked paid."""
    async def _reconcile():
        async with get_async_session() as db:
            matches = await ReconciliationService(db, get_ledger()).find_unrecorded_settlements(limit)

        if not matches:
            console.print("✅ No unrecorded settlements found")
            return

        table = Table(title="Unrecorded Settlements")
        table.add_column("Submission", style="cyan")
        table.add_column("Recipient")
        table.add_column("Raw amount", justify="right")
        table.add_column("Transaction")
        for match in matches:
            table.add_row(
                str(match.submission_id),
                match.recipient,
                str(match.raw_amount),
                match.tx_reference
            )
        console.print(table)
        console.print("Run `campaign-rewards repair <submission> <transaction>` to record them")

    _run(_reconcile)


@app.command()
def repair(submission_id: int, tx_reference: str):
    """Mark a submission paid with a confirmed treasury transfer."""
    async def _repair():
        async with get_async_session() as db:
            submission = await ReconciliationService(db, get_ledger()).repair(
                submission_id, tx_reference
            )
        console.print(f"✅ Submission {submission.id} recorded as paid by {submission.tx_reference}")

    _run(_repair)


if __name__ == "__main__":
    app()
