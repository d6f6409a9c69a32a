"""Interfaces of the external collaborators."""

from .byte_source import IByteSource
from .mochi_client import IMochiClient
from .source_store import ISourceStore
from .state_repository import IIdMapRepository

__all__ = ["IByteSource", "IIdMapRepository", "IMochiClient", "ISourceStore"]
