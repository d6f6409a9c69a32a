"""Tests for the Mochi HTTP client."""

import json

import httpx
import pytest
import respx

from logseq_mochi_sync.domain.entities.card import MediaAttachment
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import RemoteApiError
from logseq_mochi_sync.mochi import MochiClient, parse_card, parse_template

BASE = "https://mochi.test/api"


@pytest.fixture
def client():
    return MochiClient("key", base_url=BASE)


class TestParsing:
    """Test JSON to entity conversion."""

    def test_parse_card(self) -> None:
        card = parse_card(
            {
                "id": "c1",
                "content": "Q",
                "deck-id": "d1",
                "manual-tags": ["logseq", "es"],
                "trashed?": "2024-01-01T00:00:00Z",
                "template-id": "t1",
                "fields": {"f1": {"id": "f1", "value": "perro"}},
                "attachments": {"a.png": {"size": 3}},
            }
        )

        assert card.deck_id == "d1"
        assert card.tags == frozenset({"logseq", "es"})
        assert card.trashed
        assert card.fields == {"f1": "perro"}
        assert card.attachment_filenames == frozenset({"a.png"})

    def test_parse_card_defaults(self) -> None:
        card = parse_card({"id": "c1"})

        assert card.content == ""
        assert not card.trashed
        assert card.fields is None
        assert card.attachment_filenames == frozenset()

    def test_parse_template(self) -> None:
        template = parse_template(
            {"id": "t1", "name": "Vocab", "fields": {"name": {"id": "name", "name": "Word"}}}
        )

        assert template.fields["name"].name == "Word"


class TestListing:
    """Test paginated listings."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_follows_bookmarks(self, client) -> None:
        route = respx.get(f"{BASE}/cards/")
        route.side_effect = [
            httpx.Response(200, json={"docs": [{"id": "1", "manual-tags": ["logseq"]}], "bookmark": "b1"}),
            httpx.Response(200, json={"docs": [{"id": "2", "manual-tags": ["other"]}], "bookmark": "b2"}),
            httpx.Response(200, json={"docs": [], "bookmark": "b3"}),
        ]

        cards = await client.list_cards(tag="logseq")

        assert [c.id for c in cards] == ["1"]
        assert route.call_count == 3
        assert route.calls[1].request.url.params["bookmark"] == "b1"
        assert route.calls[0].request.url.params["limit"] == "100"

    @respx.mock
    @pytest.mark.asyncio
    async def test_repeated_bookmark_stops(self, client) -> None:
        route = respx.get(f"{BASE}/decks/")
        route.side_effect = [
            httpx.Response(200, json={"docs": [{"id": "d1", "name": "A"}], "bookmark": "same"}),
            httpx.Response(200, json={"docs": [{"id": "d2", "name": "B"}], "bookmark": "same"}),
            httpx.Response(200, json={"docs": [{"id": "d3", "name": "C"}], "bookmark": "same"}),
        ]

        decks = await client.list_decks()

        assert [d.name for d in decks] == ["A", "B"]
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_uses_basic_auth(self, client) -> None:
        route = respx.get(f"{BASE}/templates/").mock(
            return_value=httpx.Response(200, json={"docs": []})
        )

        await client.list_templates()

        assert route.calls.last.request.headers["authorization"].startswith("Basic ")


class TestWrites:
    """Test card and attachment writes."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_create_card_payload(self, client) -> None:
        route = respx.post(f"{BASE}/cards/").mock(
            return_value=httpx.Response(200, json={"id": "new", "content": "Q", "deck-id": "d1"})
        )

        card = await client.create_card(
            "Q", "d1", tags=["logseq"], template_id="t1", fields={"f1": "v"}
        )

        assert card.id == "new"
        body = json.loads(route.calls.last.request.content)
        assert body == {
            "content": "Q",
            "deck-id": "d1",
            "manual-tags": ["logseq"],
            "template-id": "t1",
            "fields": {"f1": {"id": "f1", "value": "v"}},
        }

    @respx.mock
    @pytest.mark.asyncio
    async def test_update_and_delete(self, client) -> None:
        update = respx.post(f"{BASE}/cards/c1").mock(
            return_value=httpx.Response(200, json={"id": "c1", "content": "new"})
        )
        delete = respx.delete(f"{BASE}/cards/c1").mock(return_value=httpx.Response(200))

        await client.update_card("c1", "new", "d1", tags=["logseq"])
        await client.delete_card("c1")

        assert "template-id" not in json.loads(update.calls.last.request.content)
        assert delete.called

    @respx.mock
    @pytest.mark.asyncio
    async def test_has_attachment(self, client) -> None:
        respx.head(f"{BASE}/cards/c1/attachments/a.png").mock(return_value=httpx.Response(200))
        respx.head(f"{BASE}/cards/c1/attachments/b.png").mock(return_value=httpx.Response(404))

        assert await client.has_attachment("c1", "a.png")
        assert not await client.has_attachment("c1", "b.png")

    @respx.mock
    @pytest.mark.asyncio
    async def test_upload_attachment_multipart(self, client) -> None:
        route = respx.post(f"{BASE}/cards/c1/attachments/a.png").mock(
            return_value=httpx.Response(200)
        )
        attachment = MediaAttachment(
            hash="h", original_path="x.png", filename="a.png", content_type="image/png", data=b"img"
        )

        await client.upload_attachment("c1", attachment)

        request = route.calls.last.request
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="file"' in request.content


class TestErrors:
    """Test error mapping."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_http_status_error(self, client) -> None:
        respx.delete(f"{BASE}/cards/c1").mock(return_value=httpx.Response(500, text="boom"))

        with pytest.raises(RemoteApiError) as exc_info:
            await client.delete_card("c1")

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "boom"
        assert exc_info.value.error_code == ErrorCode.MOC_HTTP_STATUS.value

    @respx.mock
    @pytest.mark.asyncio
    async def test_unauthorized_has_suggestion(self, client) -> None:
        respx.get(f"{BASE}/decks/").mock(return_value=httpx.Response(401))

        with pytest.raises(RemoteApiError) as exc_info:
            await client.list_decks()

        assert exc_info.value.suggestion == "Check the Mochi API key"

    @respx.mock
    @pytest.mark.asyncio
    async def test_connection_error(self, client) -> None:
        respx.get(f"{BASE}/decks/").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(RemoteApiError) as exc_info:
            await client.list_decks()

        assert exc_info.value.error_code == ErrorCode.MOC_CONNECTION.value

    @respx.mock
    @pytest.mark.asyncio
    async def test_invalid_json(self, client) -> None:
        respx.post(f"{BASE}/decks/").mock(return_value=httpx.Response(200, text="not json"))

        with pytest.raises(RemoteApiError) as exc_info:
            await client.create_deck("A")

        assert exc_info.value.error_code == ErrorCode.MOC_INVALID_RESPONSE.value
