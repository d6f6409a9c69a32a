"""Core CLI commands: sync."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Annotated

import typer

from .shared import get_config_and_logger
from .sync_handler import run_sync


def register(app: typer.Typer) -> None:
    """Register core commands on the given Typer app."""

    @app.command()
    def sync(
        dry_run: Annotated[
            bool,
            typer.Option(
                "--dry-run",
                help="Preview changes without writing to Mochi or Logseq",
            ),
        ] = False,
        no_delete: Annotated[
            bool,
            typer.Option(
                "--no-delete",
                help="Keep Mochi cards whose Logseq block no longer exists",
            ),
        ] = False,
        config_path: Annotated[
            Path | None,
            typer.Option("--config", help="Path to config.yaml", exists=True),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help="Log level (DEBUG, INFO, WARN, ERROR)"),
        ] = None,
        verbose: Annotated[
            bool,
            typer.Option(
                "--verbose",
                "-v",
                help="Show all log messages on terminal (for debugging)",
            ),
        ] = False,
    ) -> None:
        """Synchronize Logseq flashcard blocks to Mochi cards."""
        start_time = time.time()
        config, logger = get_config_and_logger(config_path, log_level, verbose=verbose)

        logger.info(
            "cli_command_started",
            command="sync",
            dry_run=dry_run,
            no_delete=no_delete,
            config_path=str(config_path) if config_path else None,
        )

        run_sync(config=config, logger=logger, dry_run=dry_run, no_delete=no_delete)

        logger.info(
            "cli_command_completed",
            command="sync",
            duration=round(time.time() - start_time, 2),
        )
