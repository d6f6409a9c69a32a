"""Mochi and id map inspection commands."""

import asyncio
from typing import Any

import typer
from rich.table import Table

from ..config import Config
from ..domain.entities.remote import Deck
from ..exceptions import LogseqMochiSyncError
from ..mochi.client import MochiClient
from ..sync.state_db import StateDB
from .shared import console


async def _fetch_decks(config: Config) -> list[Deck]:
    async with MochiClient(
        config.mochi_api_key,
        base_url=config.mochi_base_url,
        timeout=config.request_timeout,
    ) as mochi:
        return await mochi.list_decks()


def run_list_decks(config: Config, logger: Any) -> None:
    """Execute the list-decks operation.

    Raises:
        typer.Exit: On list-decks failure
    """
    logger.info("list_decks_started")

    try:
        config.validate_config()
        decks = asyncio.run(_fetch_decks(config))
    except LogseqMochiSyncError as e:
        logger.error("list_decks_failed", error=str(e))
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if not decks:
        console.print("[yellow]No decks available.[/yellow]")
    else:
        names = {deck.id: deck.name for deck in decks}
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Deck", style="cyan")
        table.add_column("Id", style="yellow")
        table.add_column("Parent", style="dim")
        for deck in sorted(decks, key=lambda d: d.name.casefold()):
            parent = names.get(deck.parent_id, deck.parent_id) if deck.parent_id else ""
            table.add_row(deck.name, deck.id, parent or "")
        console.print(table)

    logger.info("list_decks_completed", count=len(decks))


def run_show_id_map(config: Config, logger: Any) -> None:
    """Print the persisted block-to-card mapping.

    Raises:
        typer.Exit: If the database cannot be read
    """
    db_path = config.get_db_path()
    if not db_path.exists():
        console.print(f"[yellow]No id map yet ({db_path}).[/yellow]")
        return

    try:
        with StateDB(db_path) as db:
            entries = db.get_entries()
    except LogseqMochiSyncError as e:
        logger.error("id_map_read_failed", error=str(e))
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if not entries:
        console.print("[yellow]The id map is empty.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Block uuid", style="cyan")
    table.add_column("Mochi card id", style="green")
    table.add_column("Synced at", style="dim")
    for entry in entries:
        table.add_row(entry["block_uuid"], entry["remote_id"], str(entry["synced_at"] or ""))
    console.print(table)
    console.print(f"[dim]{len(entries)} entries[/dim]")
