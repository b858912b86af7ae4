#!/usr/bin/env python3
"""
Management script for the influencer platform backend.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

# Add backend to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import typer
from rich.console import Console
from rich.table import Table

from influencer_platform.core.database import init_database, close_database, DatabaseManager, get_async_session
from influencer_platform.core.logging import setup_logging, get_logger
from influencer_platform.scheduler.view_tracking_scheduler import ViewTrackingScheduler
from influencer_platform.services.earnings_calculator import EarningsCalculator
from influencer_platform.services.view_recording_service import ViewRecordingService
from influencer_platform.services.view_tracking import ViewTrackingOrchestrator

console = Console()
logger = get_logger(__name__)
app = typer.Typer(help="Influencer platform management commands")


@app.command()
def init():
    """Initialize database with tables."""
    async def _init():
        setup_logging()
        await init_database()
        await DatabaseManager.create_tables()
        await close_database()
        console.print("✅ Database initialized successfully!")

    asyncio.run(_init())


@app.command()
def reset():
    """Reset database (drop all tables)."""
    confirm = typer.confirm("Are you sure you want to drop all tables?")
    if not confirm:
        console.print("❌ Operation cancelled")
        return

    async def _reset():
        setup_logging()
        await init_database()
        await DatabaseManager.drop_tables()
        await close_database()
        console.print("🗑️ All tables dropped!")

    asyncio.run(_reset())


@app.command()
def health():
    """Check database health."""
    async def _health() -> bool:
        setup_logging()
        await init_database()
        try:
            return await DatabaseManager.health_check()
        finally:
            await close_database()

    if asyncio.run(_health()):
        console.print("✅ Database is healthy!")
    else:
        console.print("❌ Database health check failed!")
        raise typer.Exit(code=1)


@app.command("refresh-views")
def refresh_views(
    campaign_id: Optional[str] = typer.Option(None, "--campaign-id", help="Only this campaign"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Deadline in seconds"),
):
    """Refresh view counts of all approved applications."""
    async def _refresh():
        setup_logging()
        await init_database()
        try:
            async with ViewTrackingOrchestrator() as orchestrator:
                return await orchestrator.batch_refresh(campaign_id=campaign_id, timeout_seconds=timeout)
        finally:
            await close_database()

    result = asyncio.run(_refresh())
    if not result.success:
        console.print(f"❌ {result.error_code}: {result.message}")
        raise typer.Exit(code=1)

    stats = result.data

    table = Table(title="View Tracking Batch")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Applications", str(stats.total_applications))
    table.add_row("Processed", str(stats.processed_applications))
    table.add_row("With updates", str(stats.applications_updated))
    table.add_row("Failed", str(stats.failed_applications))
    table.add_row("Links updated", str(stats.links_updated))
    table.add_row("Links skipped", str(stats.links_skipped))
    table.add_row("Anomalies", str(stats.anomalies))
    table.add_row("Timed out", "yes" if stats.timed_out else "no")
    table.add_row("Unprocessed", str(stats.unprocessed_applications))
    table.add_row("Time", f"{stats.total_processing_time:.2f}s")
    console.print(table)

    if stats.anomalies:
        console.print(f"⚠️ {stats.anomalies} view count anomalies need review")


@app.command("record-views")
def record_views(
    link_id: str = typer.Argument(..., help="Content link id"),
    view_count: int = typer.Argument(..., min=0, help="Current cumulative views"),
    actor_id: str = typer.Option(..., "--actor-id", help="Brand or admin user id"),
    allow_decrease: bool = typer.Option(False, "--allow-decrease", help="Accept a lower count"),
):
    """Record a link's view count by hand (Instagram content)."""
    async def _record():
        setup_logging()
        await init_database()
        try:
            async with get_async_session() as db:
                return await ViewRecordingService(db).record_link_views(
                    actor_id,
                    link_id,
                    view_count,
                    allow_decrease=allow_decrease
                )
        finally:
            await close_database()

    result = asyncio.run(_record())
    if not result.success:
        console.print(f"❌ {result.error_code}: {result.message}")
        raise typer.Exit(code=1)

    recorded = result.data
    console.print(f"✅ Link {link_id}: {recorded.previous_views:,} → {recorded.views_tracked:,} views")
    console.print(
        f"📊 Campaign aggregate: {recorded.tracking.views_tracked:,} views, "
        f"payout ${recorded.tracking.payout_calculated or 0:,.2f}"
    )


@app.command()
def earnings(application_id: str = typer.Argument(..., help="Application id")):
    """Show current earnings of an application."""
    async def _earnings():
        setup_logging()
        await init_database()
        try:
            async with get_async_session() as db:
                return await EarningsCalculator(db).compute(application_id)
        finally:
            await close_database()

    result = asyncio.run(_earnings())
    if not result.success:
        console.print(f"❌ {result.error_code}: {result.message}")
        raise typer.Exit(code=1)

    breakdown = result.data
    table = Table(title=f"Earnings for {application_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Payment model", breakdown.payment_model)
    table.add_row("Selected links", str(breakdown.selected_links))
    table.add_row("Total views", f"{breakdown.total_views:,}")
    table.add_row("Earnings", f"${breakdown.earnings:,.2f}")
    console.print(table)


@app.command("run-scheduler")
def run_scheduler(
    interval: Optional[float] = typer.Option(None, "--interval", help="Seconds between runs"),
):
    """Run the view tracking scheduler in the foreground."""
    async def _run():
        setup_logging()
        await init_database()
        scheduler = ViewTrackingScheduler(interval_seconds=interval, enabled=True)
        try:
            await scheduler.start()
            console.print(f"🕒 Scheduler running, next run at {scheduler.stats.next_run.isoformat()}")
            while True:
                await asyncio.sleep(3600)
        finally:
            await scheduler.stop()
            await scheduler.orchestrator.shutdown()
            await close_database()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("👋 Scheduler stopped")


if __name__ == "__main__":
    app()
