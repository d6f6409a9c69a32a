"""Shared utilities for CLI commands."""

from pathlib import Path
from typing import Any

import typer
from rich.console import Console

from logseq_mochi_sync.config import Config, load_config, set_config
from logseq_mochi_sync.exceptions import ConfigurationError
from logseq_mochi_sync.utils.logging import configure_logging, get_logger

# Shared console for all commands
console = Console()

_config: Config | None = None
_logger: Any | None = None


def get_config_and_logger(
    config_path: Path | None = None,
    log_level: str | None = None,
    verbose: bool = False,
) -> tuple[Config, Any]:
    """Load configuration and logger (dependency injection helper).

    The result is cached for the lifetime of the process.

    Args:
        config_path: Optional path to config file
        log_level: Console log level; falls back to the configured one
        verbose: Show all log messages on terminal (for debugging)

    Raises:
        typer.Exit: If the configuration cannot be loaded
    """
    global _config, _logger

    if _config is None:
        try:
            _config = load_config(config_path)
        except ConfigurationError as e:
            console.print(f"\n[bold red]Configuration error:[/bold red] {e}")
            raise typer.Exit(code=1) from e
        set_config(_config)

        configure_logging(
            log_level or _config.log_level,
            log_dir=_config.get_log_dir(),
            verbose=verbose,
        )
        _logger = get_logger("cli")

    return _config, _logger
