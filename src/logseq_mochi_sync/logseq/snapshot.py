"""Loading complete block snapshots from the source store."""

from __future__ import annotations

from logseq_mochi_sync.domain.entities.block import Block, BlockSnapshot, Page
from logseq_mochi_sync.domain.interfaces.source_store import ISourceStore
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import SourceStoreError, TransformError
from logseq_mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)

MAX_ANCESTOR_DEPTH = 256


class SnapshotLoader:
    """Fetches a tagged block with its descendants, ancestors and page.

    Pages and ancestor blocks are cached for the lifetime of the loader, since
    sibling cards usually share them. Use one loader per sync run.
    """

    def __init__(self, store: ISourceStore, max_depth: int = MAX_ANCESTOR_DEPTH):
        self.store = store
        self.max_depth = max_depth
        self._pages: dict[int, Page | None] = {}
        self._blocks: dict[int, Block | None] = {}

    async def load(self, block: Block) -> BlockSnapshot:
        """
        Build the snapshot for a tagged block.

        Raises:
            TransformError: If the block no longer exists or Logseq fails
                while it is being read
        """
        try:
            return await self._load(block)
        except SourceStoreError as e:
            msg = f"Failed to read block {block.uuid}: {e.message}"
            raise TransformError(
                msg,
                suggestion=e.suggestion,
                error_code=e.error_code,
                context={"block_uuid": block.uuid},
            ) from e

    async def _load(self, block: Block) -> BlockSnapshot:
        full = await self.store.get_block(block.uuid, include_children=True)
        if full is None:
            msg = f"Block {block.uuid} not found"
            raise TransformError(
                msg,
                error_code=ErrorCode.TRF_BLOCK_MISSING.value,
                context={"block_uuid": block.uuid},
            )

        expanded = await self._expand(full)
        ancestors = await self._ancestors(expanded)
        page = await self._page(expanded.page_id) if expanded.page_id is not None else None
        return BlockSnapshot(block=expanded, ancestors=ancestors, page=page)

    async def _expand(self, block: Block) -> Block:
        """Replace placeholder children with fetched blocks, recursively."""
        children: list[Block] = []
        for child in block.children:
            if not child.loaded:
                fetched = await self.store.get_block(child.uuid, include_children=True)
                if fetched is None:
                    logger.warning("child_block_missing", block_uuid=child.uuid)
                    continue
                child = fetched
            children.append(await self._expand(child))
        return Block(
            uuid=block.uuid,
            content=block.content,
            format=block.format,
            properties=block.properties,
            children=tuple(children),
            id=block.id,
            parent_id=block.parent_id,
            page_id=block.page_id,
        )

    async def _ancestors(self, block: Block) -> tuple[Block, ...]:
        chain: list[Block] = []
        seen: set[int] = set()
        parent_id = block.parent_id

        while (
            parent_id is not None
            and parent_id != block.page_id
            and parent_id not in seen
            and len(chain) < self.max_depth
        ):
            seen.add(parent_id)
            if parent_id not in self._blocks:
                self._blocks[parent_id] = await self.store.get_block(parent_id)
            parent = self._blocks[parent_id]
            if parent is None:
                break
            chain.append(parent)
            parent_id = parent.parent_id

        chain.reverse()
        return tuple(chain)

    async def _page(self, page_id: int) -> Page | None:
        if page_id not in self._pages:
            self._pages[page_id] = await self.store.get_page(page_id)
        return self._pages[page_id]
