"""Test fixtures package."""

from .mock_byte_source import MockByteSource
from .mock_mochi_client import MockMochiClient
from .mock_source_store import MockSourceStore
from .mock_state_repository import MockIdMapRepository

__all__ = [
    "MockByteSource",
    "MockIdMapRepository",
    "MockMochiClient",
    "MockSourceStore",
]
