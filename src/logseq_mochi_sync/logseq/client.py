"""Logseq HTTP API client."""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import Any, Literal

import httpx

from logseq_mochi_sync.domain.entities.block import Block, Page
from logseq_mochi_sync.domain.interfaces.source_store import ISourceStore
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import SourceStoreError
from logseq_mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)

TAGGED_BLOCKS_QUERY = (
    '[:find (pull ?b [*]) :where [?t :block/name "{tag}"] [?b :block/refs ?t]]'
)


def _ref_id(value: Any) -> int | None:
    """Entity id of a ``{"id": n}`` reference (or a bare id)."""
    if isinstance(value, dict):
        value = value.get("id")
    return value if isinstance(value, int) else None


def _format(value: Any) -> str:
    return str(value or "markdown").lstrip(":").lower()


def parse_block(data: dict[str, Any]) -> Block:
    """Build a Block from an API block object.

    Children given as ``["uuid", "<uuid>"]`` tuples become placeholders with
    ``loaded=False``.
    """
    children: list[Block] = []
    for child in data.get("children") or []:
        if isinstance(child, dict):
            children.append(parse_block(child))
        elif isinstance(child, (list, tuple)) and len(child) == 2 and child[0] == "uuid":
            children.append(Block(uuid=str(child[1]), loaded=False))

    return Block(
        uuid=str(data.get("uuid") or ""),
        content=data.get("content") or "",
        format=_format(data.get("format")),
        properties=data.get("properties") or {},
        children=tuple(children),
        id=data.get("id"),
        parent_id=_ref_id(data.get("parent")),
        page_id=_ref_id(data.get("page")),
    )


def parse_page(data: dict[str, Any]) -> Page:
    return Page(
        id=data.get("id"),
        name=data.get("name") or "",
        original_name=data.get("originalName") or data.get("original-name"),
        properties=data.get("properties") or {},
    )


class LogseqClient(ISourceStore):
    """Client for the Logseq HTTP API server.

    Every call is a POST of ``{"method": ..., "args": [...]}`` to a single
    endpoint, authorized with the server's bearer token.
    """

    def __init__(
        self,
        url: str,
        token: str = "",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize client.

        Args:
            url: Logseq API endpoint (``http://127.0.0.1:12315/api``)
            token: Authorization token configured in Logseq
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client
        """
        self.url = url
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers)
        logger.debug("logseq_client_initialized", url=url)

    async def invoke(self, method: str, *args: Any) -> Any:
        """
        Call a Logseq API method.

        Raises:
            SourceStoreError: On connection failure, non-2xx status or an
                error returned by Logseq
        """
        payload = {"method": method, "args": list(args)}
        logger.debug("logseq_invoke", method=method)

        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            msg = f"Connection error to Logseq: {e}"
            raise SourceStoreError(
                msg,
                suggestion="Check that Logseq is running with the HTTP API server enabled",
                error_code=ErrorCode.LSQ_CONNECTION.value,
                context={"method": method},
            ) from e
        except httpx.HTTPStatusError as e:
            msg = f"HTTP {e.response.status_code} from Logseq calling {method}"
            raise SourceStoreError(
                msg,
                suggestion="Check the Logseq API token",
                error_code=ErrorCode.LSQ_METHOD_FAILED.value,
                context={"method": method, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            msg = f"HTTP error calling Logseq: {e}"
            raise SourceStoreError(
                msg, error_code=ErrorCode.LSQ_CONNECTION.value, context={"method": method}
            ) from e

        if not response.content:
            return None
        try:
            result = response.json()
        except ValueError as e:
            msg = f"Invalid JSON response from Logseq calling {method}"
            raise SourceStoreError(
                msg, error_code=ErrorCode.LSQ_METHOD_FAILED.value, context={"method": method}
            ) from e

        if isinstance(result, dict) and result.get("error"):
            msg = f"Logseq error calling {method}: {result['error']}"
            raise SourceStoreError(
                msg, error_code=ErrorCode.LSQ_METHOD_FAILED.value, context={"method": method}
            )
        return result

    async def find_tagged_blocks(self, tag: str) -> list[Block]:
        query = TAGGED_BLOCKS_QUERY.format(tag=tag.lower().replace('"', '\\"'))
        rows = await self.invoke("logseq.DB.datascriptQuery", query) or []

        blocks: list[Block] = []
        for row in rows:
            data = row[0] if isinstance(row, list) and row else row
            if isinstance(data, dict) and data.get("uuid"):
                blocks.append(parse_block(data))
        logger.debug("logseq_tagged_blocks_found", tag=tag, count=len(blocks))
        return blocks

    async def get_block(
        self, block_ref: int | str, include_children: bool = False
    ) -> Block | None:
        data = await self.invoke(
            "logseq.Editor.getBlock", block_ref, {"includeChildren": include_children}
        )
        return parse_block(data) if isinstance(data, dict) else None

    async def get_page(self, page_ref: int | str) -> Page | None:
        data = await self.invoke("logseq.Editor.getPage", page_ref)
        return parse_page(data) if isinstance(data, dict) else None

    async def set_block_property(self, uuid: str, key: str, value: str) -> None:
        await self.invoke("logseq.Editor.upsertBlockProperty", uuid, key, value)
        logger.debug("logseq_block_property_set", block_uuid=uuid, key=key)

    async def get_graph_path(self) -> Path | None:
        data = await self.invoke("logseq.App.getCurrentGraph")
        if isinstance(data, dict) and data.get("path"):
            return Path(data["path"])
        return None

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
            logger.debug("logseq_client_closed", url=self.url)

    async def __aenter__(self) -> LogseqClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        await self.aclose()
        return False
