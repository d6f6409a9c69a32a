"""Sync command implementation logic."""

import asyncio
from typing import Any

import typer
from rich.table import Table

from ..config import Config
from ..domain.entities.sync import SyncReport
from ..exceptions import LogseqMochiSyncError
from ..logseq.client import LogseqClient
from ..mochi.client import MochiClient
from ..sync.orchestrator import SyncOrchestrator
from ..sync.state_db import StateDB
from ..utils.resilience import SlidingWindowRateLimiter
from .shared import console

MAX_FAILURES_SHOWN = 20


async def execute_sync(config: Config) -> SyncReport:
    """Wire up the clients for one run and execute it."""
    rate_limiter = SlidingWindowRateLimiter(
        max_requests=config.rate_limit.max_requests,
        window_seconds=config.rate_limit.window_seconds,
    )
    async with (
        MochiClient(
            config.mochi_api_key,
            base_url=config.mochi_base_url,
            timeout=config.request_timeout,
            rate_limiter=rate_limiter,
        ) as mochi,
        LogseqClient(
            config.logseq_api_url,
            token=config.logseq_api_token,
            timeout=config.request_timeout,
        ) as logseq,
    ):
        with StateDB(config.get_db_path()) as state:
            orchestrator = SyncOrchestrator(config, mochi, logseq, state)
            return await orchestrator.run()


def run_sync(
    config: Config,
    logger: Any,
    dry_run: bool = False,
    no_delete: bool = False,
) -> None:
    """Execute the sync operation.

    Args:
        config: Configuration object
        logger: Logger instance
        dry_run: Preview changes without applying
        no_delete: Keep orphaned Mochi cards

    Raises:
        typer.Exit: On sync failure
    """
    if dry_run:
        config.run_mode = "dry-run"
    if no_delete:
        config.delete_orphans = False

    try:
        config.validate_config()
        report = asyncio.run(execute_sync(config))
    except LogseqMochiSyncError as e:
        logger.error("sync_failed", error=str(e), **e.to_dict())
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    _display_sync_results(report)


def _display_sync_results(report: SyncReport) -> None:
    """Display sync results in a formatted table."""
    title = "Sync Results (dry run)" if report.dry_run else "Sync Results"
    console.print(f"\n[bold cyan]{title}:[/bold cyan]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")

    for key, value in report.as_dict().items():
        if key == "dry_run":
            continue
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    console.print(table)

    if not report.failures:
        return

    console.print(f"\n[bold yellow]{report.failed} card(s) failed:[/bold yellow]")
    failures = Table(show_header=True, header_style="bold magenta")
    failures.add_column("Block", style="cyan")
    failures.add_column("Mochi id", style="yellow")
    failures.add_column("Error", style="red")
    for failure in report.failures[:MAX_FAILURES_SHOWN]:
        failures.add_row(
            failure.source_uuid or "-",
            failure.remote_id or "-",
            f"{failure.error_type}: {failure.error}",
        )
    console.print(failures)
    if report.failed > MAX_FAILURES_SHOWN:
        console.print(f"[dim]... and {report.failed - MAX_FAILURES_SHOWN} more (see log file)[/dim]")
