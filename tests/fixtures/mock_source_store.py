"""In-memory implementation of ISourceStore for testing."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from logseq_mochi_sync.domain.entities.block import Block, Page
from logseq_mochi_sync.domain.interfaces.source_store import ISourceStore


@dataclass
class _Node:
    id: int
    uuid: str
    content: str
    page_id: int
    parent_id: int
    format: str = "markdown"
    properties: dict[str, Any] = field(default_factory=dict)
    children: list[int] = field(default_factory=list)


def _camel(key: str) -> str:
    head, *rest = key.split("-")
    return head + "".join(part.capitalize() for part in rest)


class MockSourceStore(ISourceStore):
    """Mock Logseq graph.

    Blocks are added top-down with ``add_page`` and ``add_block``. Writing a
    property behaves like Logseq: the ``key:: value`` line is added to (or
    replaced in) the block text and the camelCase bag is updated.
    """

    def __init__(self, graph_path: Path | None = None) -> None:
        self.graph_path = graph_path
        self.pages: dict[int, Page] = {}
        self.nodes: dict[int, _Node] = {}
        self.property_writes: list[tuple[str, str, str]] = []
        self.failures: dict[str, Exception] = {}
        # uuids whose getBlock call raises
        self.broken_blocks: dict[str, Exception] = {}
        # children returned as ["uuid", ...] tuples instead of objects
        self.lazy_children = False
        self._next_id = 1

    def _id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def add_page(self, name: str, properties: dict[str, Any] | None = None) -> int:
        page_id = self._id()
        self.pages[page_id] = Page(
            id=page_id,
            name=name.lower(),
            original_name=name,
            properties=properties or {},
        )
        return page_id

    def add_block(
        self,
        uuid: str,
        content: str,
        *,
        page: int,
        parent: str | None = None,
        properties: dict[str, Any] | None = None,
        format: str = "markdown",
    ) -> str:
        parent_node = self._by_uuid(parent) if parent else None
        node = _Node(
            id=self._id(),
            uuid=uuid,
            content=content,
            page_id=page,
            parent_id=parent_node.id if parent_node else page,
            format=format,
            properties=properties or {},
        )
        self.nodes[node.id] = node
        if parent_node:
            parent_node.children.append(node.id)
        return uuid

    def remove_block(self, uuid: str) -> None:
        node = self._by_uuid(uuid)
        for parent in self.nodes.values():
            if node.id in parent.children:
                parent.children.remove(node.id)
        del self.nodes[node.id]

    def edit_block(self, uuid: str, content: str) -> None:
        self._by_uuid(uuid).content = content

    def _by_uuid(self, uuid: str | None) -> _Node:
        for node in self.nodes.values():
            if node.uuid == uuid:
                return node
        raise KeyError(uuid)

    def _to_block(self, node: _Node, include_children: bool) -> Block:
        children: tuple[Block, ...] = ()
        if include_children:
            if self.lazy_children:
                children = tuple(
                    Block(uuid=self.nodes[c].uuid, loaded=False) for c in node.children
                )
            else:
                children = tuple(
                    self._to_block(self.nodes[c], True) for c in node.children
                )
        return Block(
            uuid=node.uuid,
            content=node.content,
            format=node.format,
            properties=dict(node.properties),
            children=children,
            id=node.id,
            parent_id=node.parent_id,
            page_id=node.page_id,
        )

    async def find_tagged_blocks(self, tag: str) -> list[Block]:
        if "find_tagged_blocks" in self.failures:
            raise self.failures["find_tagged_blocks"]
        pattern = re.compile(
            rf"#{re.escape(tag)}\b|#?\[\[{re.escape(tag)}\]\]", re.IGNORECASE
        )
        return [
            self._to_block(node, False)
            for node in self.nodes.values()
            if pattern.search(node.content)
        ]

    async def get_block(
        self, block_ref: int | str, include_children: bool = False
    ) -> Block | None:
        if isinstance(block_ref, str) and block_ref in self.broken_blocks:
            raise self.broken_blocks[block_ref]
        if isinstance(block_ref, int):
            node = self.nodes.get(block_ref)
        else:
            node = next((n for n in self.nodes.values() if n.uuid == block_ref), None)
        return self._to_block(node, include_children) if node else None

    async def get_page(self, page_ref: int | str) -> Page | None:
        if isinstance(page_ref, int):
            return self.pages.get(page_ref)
        return next((p for p in self.pages.values() if p.name == page_ref.lower()), None)

    async def set_block_property(self, uuid: str, key: str, value: str) -> None:
        if "set_block_property" in self.failures:
            raise self.failures["set_block_property"]
        node = self._by_uuid(uuid)
        lines = [
            line for line in node.content.split("\n") if not line.startswith(f"{key}::")
        ]
        lines.append(f"{key}:: {value}")
        node.content = "\n".join(lines)
        node.properties[_camel(key)] = value
        self.property_writes.append((uuid, key, value))

    async def get_graph_path(self) -> Path | None:
        return self.graph_path
