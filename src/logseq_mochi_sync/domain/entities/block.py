"""Read-only views of the Logseq graph."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Block:
    """A Logseq block.

    ``children`` is fully expanded when the block comes from a snapshot.
    ``properties`` is Logseq's own property bag; the block text may carry the
    same properties as ``key:: value`` lines. A child with ``loaded=False`` is a
    placeholder that only carries its uuid.
    """

    uuid: str
    content: str = ""
    format: str = "markdown"
    properties: Mapping[str, Any] = field(default_factory=dict)
    children: tuple[Block, ...] = ()
    id: int | None = None
    parent_id: int | None = None
    page_id: int | None = None
    loaded: bool = True

    @property
    def is_org(self) -> bool:
        return self.format.lower() == "org"

    def walk(self) -> Iterator[Block]:
        """Yield this block and every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class Page:
    """A Logseq page."""

    id: int | None
    name: str
    original_name: str | None = None
    properties: Mapping[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str:
        return self.original_name or self.name


@dataclass(frozen=True)
class BlockSnapshot:
    """Everything needed to build one card, fetched once.

    Attributes:
        block: The tagged block with its descendants expanded
        ancestors: Parent chain ordered from the root block to the immediate
            parent; the page itself is not included
        page: The page containing the block, if it could be resolved
    """

    block: Block
    ancestors: tuple[Block, ...] = ()
    page: Page | None = None
