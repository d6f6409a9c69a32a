"""Mochi HTTP API client."""

from __future__ import annotations

from collections.abc import Mapping
from types import TracebackType
from typing import Any, Literal

import httpx

from logseq_mochi_sync.domain.entities.card import MediaAttachment
from logseq_mochi_sync.domain.entities.remote import (
    Deck,
    RemoteCard,
    Template,
    TemplateField,
)
from logseq_mochi_sync.domain.interfaces.mochi_client import IMochiClient
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import RemoteApiError
from logseq_mochi_sync.utils.logging import get_logger
from logseq_mochi_sync.utils.resilience import SlidingWindowRateLimiter

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://app.mochi.cards/api"
PAGE_LIMIT = 100


def _attachment_names(value: Any) -> frozenset[str]:
    if isinstance(value, dict):
        return frozenset(str(name) for name in value)
    names: set[str] = set()
    for item in value or []:
        if isinstance(item, str):
            names.add(item)
        elif isinstance(item, dict):
            name = item.get("file-name") or item.get("filename") or item.get("name")
            if name:
                names.add(str(name))
    return frozenset(names)


def parse_card(data: dict[str, Any]) -> RemoteCard:
    raw_fields = data.get("fields")
    fields = None
    if isinstance(raw_fields, dict):
        fields = {}
        for field_id, value in raw_fields.items():
            if isinstance(value, dict):
                value = value.get("value", "")
            fields[str(field_id)] = "" if value is None else str(value)
    return RemoteCard(
        id=str(data["id"]),
        content=data.get("content") or "",
        deck_id=data.get("deck-id"),
        tags=frozenset(data.get("manual-tags") or ()),
        # "trashed?" holds a timestamp when set
        trashed=bool(data.get("trashed?")),
        template_id=data.get("template-id"),
        fields=fields,
        attachment_filenames=_attachment_names(data.get("attachments")),
    )


def parse_deck(data: dict[str, Any]) -> Deck:
    return Deck(id=str(data["id"]), name=data.get("name") or "", parent_id=data.get("parent-id"))


def parse_template(data: dict[str, Any]) -> Template:
    fields: dict[str, TemplateField] = {}
    for field_id, value in (data.get("fields") or {}).items():
        if isinstance(value, dict):
            fid = str(value.get("id") or field_id)
            fields[fid] = TemplateField(id=fid, name=str(value.get("name") or fid))
    return Template(id=str(data["id"]), name=data.get("name") or "", fields=fields)


def card_payload(
    content: str,
    deck_id: str,
    tags: list[str],
    template_id: str | None,
    fields: Mapping[str, str] | None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "content": content,
        "deck-id": deck_id,
        "manual-tags": tags,
    }
    if template_id:
        payload["template-id"] = template_id
    if fields:
        payload["fields"] = {
            field_id: {"id": field_id, "value": value} for field_id, value in fields.items()
        }
    return payload


class MochiClient(IMochiClient):
    """Async client for the Mochi REST API.

    Authenticates with HTTP basic auth (the API key as user name, empty
    password). Every HTTP request, including each page of a listing, first
    passes through the rate limiter.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize client.

        Args:
            api_key: Mochi API key
            base_url: API base URL
            timeout: Request timeout in seconds
            rate_limiter: Limiter shared by every call of the run
            client: Optional preconfigured httpx client
        """
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            auth=(api_key, ""),
            timeout=timeout,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        logger.debug("mochi_client_initialized", base_url=self.base_url)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send one rate-limited request.

        Raises:
            RemoteApiError: On transport failure or a non-2xx status
        """
        await self.rate_limiter.acquire()
        url = f"{self.base_url}{path}"
        logger.debug("mochi_request", method=method, path=path)

        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            msg = f"Connection error to Mochi: {e}"
            raise RemoteApiError(
                msg,
                suggestion="Check your network connection and mochi_base_url",
                error_code=ErrorCode.MOC_CONNECTION.value,
                context={"method": method, "path": path},
            ) from e

        if response.is_success or (method == "HEAD" and response.status_code == 404):
            return response

        msg = f"HTTP {response.status_code} from Mochi for {method} {path}"
        suggestion = (
            "Check the Mochi API key" if response.status_code in (401, 403) else None
        )
        raise RemoteApiError(
            msg,
            status_code=response.status_code,
            body=response.text,
            suggestion=suggestion,
            error_code=ErrorCode.MOC_HTTP_STATUS.value,
            context={"method": method, "path": path},
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            msg = f"Invalid JSON response from Mochi: {e}"
            raise RemoteApiError(
                msg,
                status_code=response.status_code,
                body=response.text,
                error_code=ErrorCode.MOC_INVALID_RESPONSE.value,
            ) from e

    async def _list(self, path: str) -> list[dict[str, Any]]:
        """Collect every document of a paginated listing."""
        docs: list[dict[str, Any]] = []
        bookmark: str | None = None
        seen: set[str] = set()

        while True:
            params: dict[str, Any] = {"limit": PAGE_LIMIT}
            if bookmark:
                params["bookmark"] = bookmark
            data = self._json(await self._request("GET", path, params=params))

            batch = data.get("docs") or []
            docs.extend(batch)
            bookmark = data.get("bookmark")
            # The API keeps returning a bookmark on the final page
            if not batch or not bookmark or bookmark in seen:
                break
            seen.add(bookmark)

        return docs

    async def list_cards(self, tag: str | None = None) -> list[RemoteCard]:
        cards = [parse_card(doc) for doc in await self._list("/cards/")]
        if tag is not None:
            cards = [card for card in cards if tag in card.tags]
        logger.debug("mochi_cards_listed", count=len(cards), tag=tag)
        return cards

    async def list_decks(self) -> list[Deck]:
        return [parse_deck(doc) for doc in await self._list("/decks/")]

    async def create_deck(self, name: str, parent_id: str | None = None) -> Deck:
        payload: dict[str, Any] = {"name": name}
        if parent_id:
            payload["parent-id"] = parent_id
        deck = parse_deck(self._json(await self._request("POST", "/decks/", json=payload)))
        logger.info("deck_created", deck=name, deck_id=deck.id)
        return deck

    async def list_templates(self) -> list[Template]:
        return [parse_template(doc) for doc in await self._list("/templates/")]

    async def create_card(
        self,
        content: str,
        deck_id: str,
        *,
        tags: list[str],
        template_id: str | None = None,
        fields: Mapping[str, str] | None = None,
    ) -> RemoteCard:
        payload = card_payload(content, deck_id, tags, template_id, fields)
        data = self._json(await self._request("POST", "/cards/", json=payload))
        return parse_card(data)

    async def update_card(
        self,
        card_id: str,
        content: str,
        deck_id: str,
        *,
        tags: list[str],
        template_id: str | None = None,
        fields: Mapping[str, str] | None = None,
    ) -> RemoteCard:
        payload = card_payload(content, deck_id, tags, template_id, fields)
        data = self._json(await self._request("POST", f"/cards/{card_id}", json=payload))
        return parse_card(data)

    async def delete_card(self, card_id: str) -> None:
        await self._request("DELETE", f"/cards/{card_id}")

    async def has_attachment(self, card_id: str, filename: str) -> bool:
        response = await self._request("HEAD", f"/cards/{card_id}/attachments/{filename}")
        return response.status_code != 404

    async def upload_attachment(self, card_id: str, attachment: MediaAttachment) -> None:
        files = {"file": (attachment.filename, attachment.data, attachment.content_type)}
        await self._request(
            "POST", f"/cards/{card_id}/attachments/{attachment.filename}", files=files
        )
        logger.debug(
            "mochi_attachment_uploaded",
            card_id=card_id,
            filename=attachment.filename,
            size=attachment.size,
        )

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> MochiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        await self.aclose()
        return False
