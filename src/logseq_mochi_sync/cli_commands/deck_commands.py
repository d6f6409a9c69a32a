"""Deck and id map CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from .mochi_handler import run_list_decks, run_show_id_map
from .shared import get_config_and_logger


def register(app: typer.Typer) -> None:
    """Register deck-related commands on the given Typer app."""

    @app.command(name="decks")
    def list_decks(
        config_path: Annotated[
            Path | None,
            typer.Option("--config", help="Path to config.yaml", exists=True),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help="Log level (DEBUG, INFO, WARN, ERROR)"),
        ] = None,
    ) -> None:
        """List Mochi decks."""
        config, logger = get_config_and_logger(config_path, log_level)
        run_list_decks(config=config, logger=logger)

    @app.command(name="id-map")
    def show_id_map(
        config_path: Annotated[
            Path | None,
            typer.Option("--config", help="Path to config.yaml", exists=True),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help="Log level (DEBUG, INFO, WARN, ERROR)"),
        ] = None,
    ) -> None:
        """Show the persisted Logseq block to Mochi card mapping."""
        config, logger = get_config_and_logger(config_path, log_level)
        run_show_id_map(config=config, logger=logger)
