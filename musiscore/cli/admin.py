"""
MUSISCORE - CLI Admin Commands
Command-line interface for running the scoring jobs and the worker

    musiscore daily-scores
    musiscore weekly-leaderboard
    musiscore weekly-snapshot
    musiscore rules
    musiscore worker
    musiscore serve
    musiscore db stats | migrate
"""

import asyncio
import logging
import signal
import subprocess
import sys
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from musiscore.core.logging_config import configure_logging

console = Console()
logger = logging.getLogger(__name__)

STORE_TABLES = [
    "seasons", "profiles", "artists_cache", "featured_artists", "weekly_snapshots",
    "weekly_scores", "daily_score_logs", "teams", "daily_promos",
    "leaderboard_config", "weekly_leaderboard_history",
]


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level: Optional[str]):
    """MUSISCORE - Fantasy music league scoring engine"""
    configure_logging(log_level)


# ============== Job Commands ==============

def _print_summary(summary) -> None:
    if summary.error is not None:
        console.print(f"[red]✗[/red] {summary.job} failed: {summary.error}")
        return

    marker = "[green]✓[/green]" if summary.success else "[yellow]⚠[/yellow]"
    console.print(f"{marker} {summary.message}")

    if summary.details:
        tbl = Table(title=summary.job)
        tbl.add_column("Field", style="cyan")
        tbl.add_column("Value", justify="right", style="green")
        for key, value in summary.details.items():
            tbl.add_row(key, str(value))
        console.print(tbl)


def _run_job_command(name: str) -> None:
    from musiscore.core.database import get_database_manager
    from musiscore.pipeline.runner import run_job

    async def run():
        try:
            return await run_job(name)
        finally:
            await get_database_manager().close()

    summary = asyncio.run(run())
    _print_summary(summary)
    if summary.error is not None:
        sys.exit(1)


@cli.command("daily-scores")
def daily_scores():
    """Score the current week, settle promo bets and accrue the ledger."""
    _run_job_command("daily-scores")


@cli.command("weekly-leaderboard")
def weekly_leaderboard():
    """Archive the week's standings, pay rewards and reset scores."""
    _run_job_command("weekly-leaderboard")


@cli.command("weekly-snapshot")
def weekly_snapshot():
    """Freeze the next week's baseline from the artist cache."""
    _run_job_command("weekly-snapshot")


@cli.command()
def rules():
    """Show the scoring constants in effect"""
    from musiscore.core.config import LEADERBOARD_REWARD_TIERS, get_settings

    settings = get_settings()

    tbl = Table(title="Scoring Rules")
    tbl.add_column("Rule", style="cyan")
    tbl.add_column("Value", justify="right", style="green")
    for key, value in settings.get_scoring_rules().items():
        tbl.add_row(key, str(value))
    console.print(tbl)

    console.print("Reward tiers: " + ", ".join(
        f"{tier} (rank <= {upper})" for tier, upper in LEADERBOARD_REWARD_TIERS
    ))


# ============== Worker Command ==============

@cli.command()
def worker():
    """
    Run the scheduler in the foreground.

    Runs daily-scores, weekly-leaderboard and weekly-snapshot on their
    configured crons until interrupted.
    """
    from musiscore.core.config import get_settings

    settings = get_settings()

    console.print(Panel.fit(
        "[bold green]MUSISCORE[/bold green]\n"
        "Scoring Worker",
        title="Worker Starting"
    ))
    console.print(f"Environment: {settings.environment}")
    console.print(f"Daily scores: {settings.DAILY_SCORES_CRON}")
    console.print(f"Weekly leaderboard: {settings.WEEKLY_LEADERBOARD_CRON}")
    console.print(f"Weekly snapshot: {settings.WEEKLY_SNAPSHOT_CRON}")

    async def run_worker():
        from musiscore.core.database import get_database_manager
        from musiscore.services.scheduling import SchedulerService

        scheduler = SchedulerService(enabled=True)
        db_manager = get_database_manager()

        try:
            await db_manager.initialize()
            console.print("[green]✓[/green] Database connected")

            await scheduler.initialize()
            await scheduler.start()
            console.print("[green]✓[/green] Scheduler started")

            console.print("\n[bold green]Worker is running![/bold green]")
            console.print("Press Ctrl+C to stop\n")

            stop_event = asyncio.Event()

            def signal_handler():
                console.print("\n[yellow]Shutdown signal received...[/yellow]")
                stop_event.set()

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                try:
                    loop.add_signal_handler(sig, signal_handler)
                except NotImplementedError:
                    # Windows doesn't support add_signal_handler
                    pass

            await stop_event.wait()

        except Exception as e:
            console.print(f"[red]✗[/red] Worker error: {e}")
            logger.exception("Worker failed")
            raise
        finally:
            console.print("[yellow]Shutting down worker...[/yellow]")
            await scheduler.stop()
            await db_manager.close()
            console.print("[green]Worker stopped[/green]")

    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        console.print("\n[yellow]Worker interrupted[/yellow]")


# ============== Database Commands ==============

@cli.group()
def db():
    """Database management commands"""


@db.command()
def migrate():
    """Run alembic migrations up to head"""
    console.print("[yellow]Running database migrations...[/yellow]")
    result = subprocess.run(["alembic", "upgrade", "head"], capture_output=True, text=True)
    if result.returncode == 0:
        console.print("[green]✓[/green] Migrations applied successfully")
        if result.stdout:
            console.print(result.stdout)
    else:
        console.print("[red]✗[/red] Migration failed")
        console.print(result.stderr)
        sys.exit(1)


@db.command()
@click.option("--table", "-t", help="Specific table to show stats for")
def stats(table: Optional[str]):
    """Show row counts of the league tables"""

    async def run():
        from sqlalchemy import text
        from sqlalchemy.exc import SQLAlchemyError

        from musiscore.core.database import get_database_manager

        db_manager = get_database_manager()
        await db_manager.initialize()

        tables = [table] if table else STORE_TABLES

        tbl = Table(title="Database Statistics")
        tbl.add_column("Table", style="cyan")
        tbl.add_column("Row Count", justify="right", style="green")

        try:
            for t in tables:
                if t not in STORE_TABLES:
                    tbl.add_row(t, "[red]Unknown table[/red]")
                    continue
                try:
                    async with db_manager.session() as session:
                        result = await session.execute(text(f"SELECT COUNT(*) FROM {t}"))
                        tbl.add_row(t, str(result.scalar()))
                except SQLAlchemyError:
                    tbl.add_row(t, "[red]Error/Not exists[/red]")
        finally:
            await db_manager.close()

        console.print(tbl)

    asyncio.run(run())


# ============== Server Command ==============

@cli.command()
@click.option("--host", default=None, help="Bind host (defaults to HOST)")
@click.option("--port", default=None, type=int, help="Bind port (defaults to PORT)")
@click.option("--reload", is_flag=True, help="Enable auto-reload")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Start the API server with the job triggers"""
    import uvicorn

    from musiscore.core.config import get_settings

    settings = get_settings()
    host = host or settings.HOST
    port = port or settings.PORT

    console.print(Panel.fit(
        "[bold green]MUSISCORE[/bold green]\n"
        f"Starting API server on {host}:{port}",
        title="Server"
    ))

    uvicorn.run(
        "musiscore.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    cli()
