"""CLI command modules for logseq-mochi-sync.

This package contains modular command handlers for the CLI.
Implemented modules:
- shared.py: Common utilities (config/logger loading, console)
- sync_handler.py: Sync command implementation
- mochi_handler.py: Mochi deck listing and id map inspection
"""

from .mochi_handler import run_list_decks, run_show_id_map
from .shared import console, get_config_and_logger
from .sync_handler import run_sync

__all__ = [
    "console",
    "get_config_and_logger",
    "run_list_decks",
    "run_show_id_map",
    "run_sync",
]
