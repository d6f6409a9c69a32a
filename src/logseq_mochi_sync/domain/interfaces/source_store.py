"""Interface for the Logseq graph."""

from abc import ABC, abstractmethod
from pathlib import Path

from ..entities.block import Block, Page


class ISourceStore(ABC):
    """Interface for reading blocks from, and writing ids back to, Logseq."""

    @abstractmethod
    async def find_tagged_blocks(self, tag: str) -> list[Block]:
        """Return every block referencing the ``tag`` page (children not loaded)."""
        pass

    @abstractmethod
    async def get_block(
        self, block_ref: int | str, include_children: bool = False
    ) -> Block | None:
        """Fetch a block by entity id or uuid."""
        pass

    @abstractmethod
    async def get_page(self, page_ref: int | str) -> Page | None:
        """Fetch a page by entity id or name."""
        pass

    @abstractmethod
    async def set_block_property(self, uuid: str, key: str, value: str) -> None:
        """Write a single property on a block."""
        pass

    @abstractmethod
    async def get_graph_path(self) -> Path | None:
        """Return the directory of the current graph, if known."""
        pass
