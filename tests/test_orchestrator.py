"""End-to-end tests of a sync run against in-memory collaborators."""

import pytest

from logseq_mochi_sync.exceptions import (
    ConfigurationError,
    RemoteApiError,
    SourceStoreError,
    SyncError,
)
from logseq_mochi_sync.logseq.assets import LocalAssetSource
from logseq_mochi_sync.sync.orchestrator import SyncOrchestrator
from tests.fixtures import (
    MockByteSource,
    MockIdMapRepository,
    MockMochiClient,
    MockSourceStore,
)


@pytest.fixture
def graph() -> MockSourceStore:
    store = MockSourceStore()
    page = store.add_page("Arithmetic")
    store.add_block("b1", "What is 2+2? #card", page=page)
    store.add_block("b1-answer", "4", page=page, parent="b1")
    store.add_block("b2", "What is 3*3? #card", page=page)
    return store


@pytest.fixture
def mochi() -> MockMochiClient:
    return MockMochiClient()


@pytest.fixture
def repository() -> MockIdMapRepository:
    return MockIdMapRepository()


@pytest.fixture
def media() -> MockByteSource:
    return MockByteSource()


@pytest.fixture
def make_orchestrator(config, graph, mochi, repository, media):
    def _make(cfg=None) -> SyncOrchestrator:
        return SyncOrchestrator(cfg or config, mochi, graph, repository, byte_source=media)

    return _make


class TestCreation:
    """Test the first sync of a graph."""

    @pytest.mark.asyncio
    async def test_creates_cards_and_default_deck(self, make_orchestrator, mochi, graph, repository) -> None:
        report = await make_orchestrator().run()

        assert report.created == 2
        assert report.failed == 0
        assert mochi.created_decks == ["Logseq"]

        contents = sorted(c.content for c in mochi.cards.values())
        assert contents == ["What is 2+2?\n\n---\n\n4", "What is 3*3?"]
        assert all(c.tags == frozenset({"logseq"}) for c in mochi.cards.values())

        assert set(repository.id_map) == {"b1", "b2"}
        assert {uuid for uuid, _, _ in graph.property_writes} == {"b1", "b2"}

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, make_orchestrator, mochi) -> None:
        await make_orchestrator().run()
        created = list(mochi.created)

        report = await make_orchestrator().run()

        assert report.created == 0
        assert report.updated == 0
        assert report.deleted == 0
        assert report.unchanged == 2
        assert mochi.created == created
        assert mochi.updated == []

    @pytest.mark.asyncio
    async def test_id_map_used_without_write_back(self, make_config, make_orchestrator, mochi, graph) -> None:
        config = make_config(write_back_ids=False)
        await make_orchestrator(config).run()
        assert graph.property_writes == []

        report = await make_orchestrator(config).run()

        assert report.unchanged == 2
        assert len(mochi.cards) == 2

    @pytest.mark.asyncio
    async def test_stale_remote_id_recreated(self, make_orchestrator, mochi, graph, repository) -> None:
        await make_orchestrator().run()
        old_id = repository.id_map["b2"]
        del mochi.cards[old_id]

        report = await make_orchestrator().run()

        assert report.created == 1
        assert repository.id_map["b2"] != old_id
        assert repository.id_map["b2"] in mochi.cards


class TestChangeDetection:
    """Test update decisions."""

    @pytest.mark.asyncio
    async def test_descendant_change_updates_card(self, make_orchestrator, mochi, graph, repository) -> None:
        await make_orchestrator().run()
        graph.edit_block("b1-answer", "four")

        report = await make_orchestrator().run()

        assert report.updated == 1
        assert mochi.cards[repository.id_map["b1"]].content.endswith("four")

    @pytest.mark.asyncio
    async def test_deck_change_updates_card(self, make_orchestrator, mochi, graph, repository) -> None:
        await make_orchestrator().run()
        graph.edit_block("b2", "What is 3*3? #card\ndeck:: Math\nmochi-id:: " + repository.id_map["b2"])

        report = await make_orchestrator().run()

        assert report.updated == 1
        assert "Math" in mochi.created_decks
        card = mochi.cards[repository.id_map["b2"]]
        assert mochi.decks[card.deck_id].name == "Math"


class TestOrphans:
    """Test deletion of cards whose block is gone."""

    @pytest.mark.asyncio
    async def test_removed_block_deletes_card(self, make_orchestrator, mochi, graph, repository) -> None:
        await make_orchestrator().run()
        orphan_id = repository.id_map["b2"]
        graph.remove_block("b2")

        report = await make_orchestrator().run()

        assert report.deleted == 1
        assert mochi.deleted == [orphan_id]
        assert "b2" not in repository.id_map

    @pytest.mark.asyncio
    async def test_no_deletion_when_disabled(self, make_config, make_orchestrator, mochi, graph) -> None:
        config = make_config(delete_orphans=False)
        await make_orchestrator(config).run()
        graph.remove_block("b2")

        report = await make_orchestrator(config).run()

        assert report.deleted == 0
        assert mochi.deleted == []
        assert len(mochi.cards) == 2

    @pytest.mark.asyncio
    async def test_new_card_is_not_an_orphan(self, make_orchestrator, mochi) -> None:
        report = await make_orchestrator().run()

        assert report.created == 2
        assert report.deleted == 0
        assert mochi.deleted == []

    @pytest.mark.asyncio
    async def test_untagged_remote_cards_are_ignored(self, make_orchestrator, mochi) -> None:
        foreign = mochi.add_card("made in Mochi", tags=frozenset({"manual"}))

        await make_orchestrator().run()

        assert foreign.id in mochi.cards

    @pytest.mark.asyncio
    async def test_failed_block_protects_its_card(self, make_orchestrator, mochi, graph, repository) -> None:
        await make_orchestrator().run()
        graph.broken_blocks["b2"] = SourceStoreError("Logseq error calling getBlock")

        report = await make_orchestrator().run()

        assert report.failed == 1
        assert report.deleted == 0
        assert repository.id_map["b2"] in mochi.cards


class TestAttachments:
    """Test media upload."""

    @pytest.mark.asyncio
    async def test_one_upload_per_filename(self, make_orchestrator, mochi, graph, media) -> None:
        media.files["../assets/cell.png"] = b"png-bytes"
        media.files["../assets/cell-copy.png"] = b"png-bytes"
        page = graph.add_page("Biology")
        graph.add_block("c1", "![](../assets/cell.png) #card", page=page)
        graph.add_block("c1-child", "![](../assets/cell-copy.png)", page=page, parent="c1")

        report = await make_orchestrator().run()

        assert report.attachments_uploaded == 1
        assert len(mochi.uploads) == 1
        card_id, filename = mochi.uploads[0]
        assert f"@media/{filename}" in mochi.cards[card_id].content

        await make_orchestrator().run()
        assert len(mochi.uploads) == 1


class TestFailures:
    """Test error isolation."""

    @pytest.mark.asyncio
    async def test_card_failure_does_not_stop_siblings(self, make_orchestrator, mochi, repository) -> None:
        mochi.fail_content = lambda content: "3*3" in content

        report = await make_orchestrator().run()

        assert report.created == 1
        assert report.failed == 1
        assert report.failures[0].source_uuid == "b2"
        assert report.failures[0].error_type == "RemoteApiError"
        assert set(repository.id_map) == {"b1"}

    @pytest.mark.asyncio
    async def test_fetch_failure_aborts_run(self, make_orchestrator, mochi, repository) -> None:
        mochi.failures["list_cards"] = RemoteApiError("HTTP 503", status_code=503)

        with pytest.raises(SyncError):
            await make_orchestrator().run()

        assert repository.saves == 0
        assert mochi.created == []

    @pytest.mark.asyncio
    async def test_block_query_failure_aborts_run(self, make_orchestrator, graph, repository) -> None:
        graph.failures["find_tagged_blocks"] = SourceStoreError("Connection refused")

        with pytest.raises(SyncError):
            await make_orchestrator().run()

        assert repository.saves == 0

    @pytest.mark.asyncio
    async def test_missing_api_key(self, make_config, make_orchestrator, mochi) -> None:
        with pytest.raises(ConfigurationError):
            await make_orchestrator(make_config(mochi_api_key="")).run()

        assert mochi.created == []

    @pytest.mark.asyncio
    async def test_write_back_failure_keeps_id(self, make_orchestrator, graph, repository) -> None:
        graph.failures["set_block_property"] = SourceStoreError("read-only graph")

        report = await make_orchestrator().run()

        assert report.created == 2
        assert report.failed == 0
        assert set(repository.id_map) == {"b1", "b2"}

    @pytest.mark.asyncio
    async def test_unresolvable_home_reference_does_not_stop_run(
        self, config, mochi, repository, tmp_path
    ) -> None:
        store = MockSourceStore()
        page = store.add_page("Pictures")
        store.add_block("good", "Good question #card", page=page)
        store.add_block("bad", "Bad ![img](~nosuchuser123/pic.png) #card", page=page)
        orchestrator = SyncOrchestrator(
            config, mochi, store, repository, byte_source=LocalAssetSource(tmp_path)
        )

        report = await orchestrator.run()

        assert report.created == 2
        assert report.failed == 0
        assert "~nosuchuser123/pic.png" in mochi.cards[repository.id_map["bad"]].content
        assert repository.saves == 1

    @pytest.mark.asyncio
    async def test_unexpected_build_error_is_per_card(
        self, make_orchestrator, mochi, graph, repository
    ) -> None:
        await make_orchestrator().run()
        graph.broken_blocks["b2"] = KeyError("uuid")

        report = await make_orchestrator().run()

        assert report.failed == 1
        assert report.failures[0].error_type == "KeyError"
        assert report.unchanged == 1
        assert report.deleted == 0
        assert repository.id_map["b2"] in mochi.cards

    @pytest.mark.asyncio
    async def test_unexpected_create_error_is_per_card(self, make_orchestrator, mochi, repository) -> None:
        mochi.failures["create_card"] = KeyError("id")

        report = await make_orchestrator().run()

        assert report.failed == 2
        assert {f.error_type for f in report.failures} == {"KeyError"}
        assert repository.saves == 1

    @pytest.mark.asyncio
    async def test_upload_error_keeps_created_card(self, make_orchestrator, mochi, graph, media, repository) -> None:
        media.files["../assets/cell.png"] = b"png-bytes"
        page = graph.add_page("Biology")
        graph.add_block("c1", "![](../assets/cell.png) #card", page=page)
        mochi.failures["upload_attachment"] = RuntimeError("connection reset")

        report = await make_orchestrator().run()

        assert report.created == 3
        assert report.failed == 1
        assert report.failures[0].source_uuid == "c1"
        assert report.failures[0].remote_id == repository.id_map["c1"]
        assert repository.id_map["c1"] in mochi.cards


class TestDryRun:
    """Test dry-run mode."""

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, make_config, make_orchestrator, mochi, graph, repository) -> None:
        report = await make_orchestrator(make_config(run_mode="dry-run")).run()

        assert report.dry_run
        assert report.created == 2
        assert mochi.created == []
        assert mochi.created_decks == []
        assert graph.property_writes == []
        assert repository.saves == 0

    @pytest.mark.asyncio
    async def test_dry_run_counts_orphans(self, make_config, make_orchestrator, mochi, graph) -> None:
        await make_orchestrator().run()
        graph.remove_block("b2")

        report = await make_orchestrator(make_config(run_mode="dry-run")).run()

        assert report.deleted == 1
        assert mochi.deleted == []
