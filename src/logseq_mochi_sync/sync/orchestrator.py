"""One-way synchronization of Logseq flashcard blocks into Mochi."""

from __future__ import annotations

import asyncio
import time
import uuid

import structlog

from logseq_mochi_sync.cards.attachments import AttachmentResolver
from logseq_mochi_sync.cards.builder import CardBuilder
from logseq_mochi_sync.cards.content_transformer import ContentTransformer
from logseq_mochi_sync.cards.property_resolver import pairs_from_mapping
from logseq_mochi_sync.config import Config
from logseq_mochi_sync.domain.entities.block import Block
from logseq_mochi_sync.domain.entities.card import Card
from logseq_mochi_sync.domain.entities.remote import RemoteCard, Template
from logseq_mochi_sync.domain.entities.sync import (
    SyncAction,
    SyncActionType,
    SyncPlan,
    SyncReport,
)
from logseq_mochi_sync.domain.interfaces.byte_source import IByteSource
from logseq_mochi_sync.domain.interfaces.mochi_client import IMochiClient
from logseq_mochi_sync.domain.interfaces.source_store import ISourceStore
from logseq_mochi_sync.domain.interfaces.state_repository import IIdMapRepository
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import (
    LogseqMochiSyncError,
    RemoteApiError,
    ResolutionError,
    SourceStoreError,
    StateError,
    SyncError,
    TransformError,
)
from logseq_mochi_sync.logseq.assets import LocalAssetSource
from logseq_mochi_sync.logseq.snapshot import SnapshotLoader
from logseq_mochi_sync.sync.reconciler import (
    ReconciliationEngine,
    index_templates,
    needed_deck_names,
)
from logseq_mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)


class SyncOrchestrator:
    """Runs one sync: read everything, decide, then apply writes in order.

    Reads without ordering dependencies run concurrently; every write to Mochi
    or Logseq is issued sequentially. Failures while fetching the initial
    state abort the run with a single ``SyncError`` and leave the id map
    untouched. Failures of individual cards are recorded in the report and
    never stop sibling cards.
    """

    def __init__(
        self,
        config: Config,
        mochi: IMochiClient,
        source: ISourceStore,
        id_repository: IIdMapRepository,
        byte_source: IByteSource | None = None,
    ):
        """
        Args:
            config: Validated service configuration
            mochi: Mochi client (shares the run's rate limiter)
            source: Logseq source store
            id_repository: Persistence of the block-to-card id map
            byte_source: Media reader; defaults to the graph directory
        """
        self.config = config
        self.mochi = mochi
        self.source = source
        self.id_repository = id_repository
        self.byte_source = byte_source
        self.engine = ReconciliationEngine(
            system_tag=config.system_tag,
            default_deck_name=config.default_deck_name,
        )

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    async def run(self) -> SyncReport:
        """
        Perform synchronization.

        Raises:
            ConfigurationError: If required settings are missing
            SyncError: If the initial state cannot be fetched or the id map
                cannot be saved
        """
        self.config.validate_config()

        sync_run_id = str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(sync_run_id=sync_run_id)
        start_time = time.time()
        report = SyncReport(dry_run=self.dry_run)
        logger.info("sync_started", dry_run=self.dry_run)

        try:
            remote_cards, blocks, templates = await self._fetch_state()
            id_map = self._load_id_map()

            logger.info("sync_phase_started", phase="building_cards", blocks=len(blocks))
            cards, protected_ids = await self._build_cards(
                blocks, templates, id_map, report
            )

            logger.info("sync_phase_started", phase="resolving_decks")
            deck_map, pending_decks = await self._resolve_decks(cards)

            plan = self.engine.plan(cards, remote_cards, deck_map, pending_decks)
            logger.info("sync_plan", dry_run=self.dry_run, **plan.counts())

            logger.info("sync_phase_started", phase="applying_changes")
            synced_cards = await self._apply(plan, id_map, report)

            if self.config.delete_orphans:
                logger.info("sync_phase_started", phase="deleting_orphans")
                orphans = self.engine.find_orphans(synced_cards, remote_cards, protected_ids)
                await self._delete_orphans(orphans, id_map, report)

            if not self.dry_run:
                self._save_id_map(id_map)
        finally:
            structlog.contextvars.unbind_contextvars("sync_run_id")

        logger.info(
            "sync_completed",
            duration_seconds=round(time.time() - start_time, 2),
            **report.as_dict(),
        )
        return report

    async def _fetch_state(self) -> tuple[list[RemoteCard], list[Block], list[Template]]:
        logger.info("sync_phase_started", phase="fetching_state")
        try:
            remote_cards, blocks, templates = await asyncio.gather(
                self.mochi.list_cards(tag=self.config.system_tag),
                self.source.find_tagged_blocks(self.config.card_tag),
                self.mochi.list_templates(),
            )
            if self.byte_source is None:
                graph_path = self.config.graph_path or await self.source.get_graph_path()
                if graph_path is None:
                    logger.warning(
                        "config_warning",
                        message="Graph path unknown; local media will not be attached",
                    )
                self.byte_source = LocalAssetSource(graph_path)
        except (RemoteApiError, SourceStoreError) as e:
            msg = f"Failed to fetch initial state: {e.message}"
            raise SyncError(
                msg,
                suggestion=e.suggestion,
                error_code=ErrorCode.SYN_FETCH_FAILED.value,
                context=e.context,
            ) from e

        # A block referencing the tag twice is still one card
        unique_blocks = list({block.uuid: block for block in blocks if block.uuid}.values())
        logger.info(
            "state_fetched",
            remote_cards=len(remote_cards),
            tagged_blocks=len(unique_blocks),
            templates=len(templates),
        )
        return remote_cards, unique_blocks, templates

    def _load_id_map(self) -> dict[str, str]:
        try:
            return self.id_repository.load_id_map()
        except StateError as e:
            msg = f"Failed to load id map: {e.message}"
            raise SyncError(msg, error_code=ErrorCode.SYN_FETCH_FAILED.value) from e

    def _save_id_map(self, id_map: dict[str, str]) -> None:
        try:
            self.id_repository.save_id_map(id_map)
        except StateError as e:
            msg = f"Failed to save id map: {e.message}"
            raise SyncError(msg, error_code=ErrorCode.STA_DB_WRITE_FAILED.value) from e

    def _block_remote_id(self, block: Block, id_map: dict[str, str]) -> str | None:
        wanted = self.config.remote_id_property.casefold()
        for pair in pairs_from_mapping(block.properties):
            if pair.key.casefold() == wanted and pair.value:
                return pair.value
        return id_map.get(block.uuid)

    async def _build_cards(
        self,
        blocks: list[Block],
        templates: list[Template],
        id_map: dict[str, str],
        report: SyncReport,
    ) -> tuple[list[Card], set[str]]:
        """Build a card per block; return the cards and the protected remote ids."""
        byte_source = self.byte_source or LocalAssetSource(self.config.graph_path)
        transformer = ContentTransformer(
            card_tag=self.config.card_tag,
            attachment_resolver=AttachmentResolver(byte_source),
        )
        builder = CardBuilder.from_config(self.config, transformer, index_templates(templates))
        loader = SnapshotLoader(self.source)

        cards: list[Card] = []
        protected_ids: set[str] = set()
        for block in blocks:
            try:
                snapshot = await loader.load(block)
                cards.append(builder.build(snapshot, id_map))
            except TransformError as e:
                remote_id = self._build_failed(block, e, id_map, protected_ids, report)
                logger.warning(
                    "card_failed",
                    block_uuid=block.uuid,
                    remote_id=remote_id,
                    stage="build",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            except Exception as e:
                remote_id = self._build_failed(block, e, id_map, protected_ids, report)
                logger.error(
                    "card_failed_unexpected",
                    block_uuid=block.uuid,
                    remote_id=remote_id,
                    stage="build",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
        return cards, protected_ids

    def _build_failed(
        self,
        block: Block,
        error: Exception,
        id_map: dict[str, str],
        protected_ids: set[str],
        report: SyncReport,
    ) -> str | None:
        """Record a build failure and keep the block's existing card from deletion."""
        remote_id = self._block_remote_id(block, id_map)
        if remote_id:
            protected_ids.add(remote_id)
        report.record_failure(error, source_uuid=block.uuid, remote_id=remote_id)
        return remote_id

    async def _resolve_decks(self, cards: list[Card]) -> tuple[dict[str, str], set[str]]:
        """Map deck names to ids, creating missing decks.

        Returns:
            The deck map and, in dry runs, the names of decks that would be
            created
        """
        try:
            decks = await self.mochi.list_decks()
        except RemoteApiError as e:
            msg = f"Failed to list decks: {e.message}"
            raise SyncError(msg, error_code=ErrorCode.SYN_FETCH_FAILED.value) from e

        deck_map: dict[str, str] = {}
        for deck in decks:
            deck_map.setdefault(deck.name, deck.id)

        pending: set[str] = set()
        for name in needed_deck_names(cards, self.config.default_deck_name):
            if name in deck_map:
                continue
            if self.dry_run:
                pending.add(name)
                logger.info("deck_planned", deck=name)
                continue
            try:
                deck = await self.mochi.create_deck(name)
            except RemoteApiError as e:
                logger.warning("deck_create_failed", deck=name, error=str(e))
                continue
            deck_map[name] = deck.id
        return deck_map, pending

    async def _apply(
        self, plan: SyncPlan, id_map: dict[str, str], report: SyncReport
    ) -> list[Card]:
        """Apply the plan; return every card with the remote id it ended up with."""
        synced: list[Card] = []
        uploaded: set[str] = set()

        for action in plan.actions:
            card = action.source_card
            try:
                card = await self._apply_action(action, id_map, report, uploaded)
            except LogseqMochiSyncError as e:
                card = self._after_failure(card, id_map)
                report.record_failure(e, source_uuid=card.source_uuid, remote_id=card.remote_id)
                logger.warning(
                    "card_failed",
                    block_uuid=card.source_uuid,
                    remote_id=card.remote_id,
                    action=action.action_type.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            except Exception as e:
                card = self._after_failure(card, id_map)
                report.record_failure(e, source_uuid=card.source_uuid, remote_id=card.remote_id)
                logger.error(
                    "card_failed_unexpected",
                    block_uuid=card.source_uuid,
                    remote_id=card.remote_id,
                    action=action.action_type.value,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
            synced.append(card)
        return synced

    @staticmethod
    def _after_failure(card: Card, id_map: dict[str, str]) -> Card:
        """Carry over a remote id assigned before the failure (create, then upload)."""
        remote_id = id_map.get(card.source_uuid)
        if remote_id and remote_id != card.remote_id:
            return card.with_remote_id(remote_id)
        return card

    async def _apply_action(
        self,
        action: SyncAction,
        id_map: dict[str, str],
        report: SyncReport,
        uploaded: set[str],
    ) -> Card:
        card = action.source_card

        if action.action_type == SyncActionType.SKIP:
            raise ResolutionError(
                action.reason or "card could not be resolved",
                error_code=ErrorCode.RES_DECK_MISSING.value,
                context={"block_uuid": card.source_uuid},
            )

        if action.action_type == SyncActionType.NOOP:
            id_map[card.source_uuid] = action.remote_card.id
            report.unchanged += 1
            return card

        tags = self.engine.desired_tags(card)
        fields = self.engine.field_values(card)

        if action.action_type == SyncActionType.CREATE:
            if self.dry_run:
                report.created += 1
                logger.info("card_would_create", block_uuid=card.source_uuid, reason=action.reason)
                return card
            if action.deck_id is None:
                msg = f"Deck {self.engine.deck_name(card)!r} has no Mochi id"
                raise ResolutionError(
                    msg,
                    error_code=ErrorCode.RES_DECK_MISSING.value,
                    context={"block_uuid": card.source_uuid},
                )
            remote = await self.mochi.create_card(
                card.content,
                action.deck_id,
                tags=tags,
                template_id=card.template_id,
                fields=fields,
            )
            card = card.with_remote_id(remote.id)
            id_map[card.source_uuid] = remote.id
            report.created += 1
            logger.info(
                "card_created",
                block_uuid=card.source_uuid,
                remote_id=remote.id,
                reason=action.reason,
            )
            await self._write_back_id(card.source_uuid, remote.id)
            await self._upload_attachments(card, remote.id, report, uploaded)
            return card

        # UPDATE
        remote = action.remote_card
        remote_id = remote.id
        if self.dry_run:
            report.updated += 1
            logger.info(
                "card_would_update",
                block_uuid=card.source_uuid,
                remote_id=remote_id,
                changes=list(action.changes),
            )
            return card
        await self.mochi.update_card(
            remote_id,
            card.content,
            action.deck_id or remote.deck_id or "",
            tags=tags,
            template_id=card.template_id,
            fields=fields,
        )
        id_map[card.source_uuid] = remote_id
        report.updated += 1
        logger.info(
            "card_updated",
            block_uuid=card.source_uuid,
            remote_id=remote_id,
            changes=list(action.changes),
        )
        if "attachments" in action.changes:
            await self._upload_attachments(card, remote_id, report, uploaded)
        return card

    async def _write_back_id(self, block_uuid: str, remote_id: str) -> None:
        if not self.config.write_back_ids:
            return
        try:
            await self.source.set_block_property(
                block_uuid, self.config.remote_id_property, remote_id
            )
        except SourceStoreError as e:
            # The id map still holds the id, so the next run finds the card.
            logger.warning(
                "id_write_back_failed", block_uuid=block_uuid, remote_id=remote_id, error=str(e)
            )

    async def _upload_attachments(
        self, card: Card, remote_id: str, report: SyncReport, uploaded: set[str]
    ) -> None:
        for attachment in card.attachments:
            if attachment.filename in uploaded:
                continue
            if await self.mochi.has_attachment(remote_id, attachment.filename):
                continue
            await self.mochi.upload_attachment(remote_id, attachment)
            uploaded.add(attachment.filename)
            report.attachments_uploaded += 1
            logger.info(
                "attachment_uploaded",
                remote_id=remote_id,
                filename=attachment.filename,
                size=attachment.size,
            )

    async def _delete_orphans(
        self, orphans: list[SyncAction], id_map: dict[str, str], report: SyncReport
    ) -> None:
        for action in orphans:
            remote_id = action.remote_card.id
            if self.dry_run:
                report.deleted += 1
                logger.info("card_would_delete", remote_id=remote_id)
                continue
            try:
                await self.mochi.delete_card(remote_id)
            except RemoteApiError as e:
                report.record_failure(e, remote_id=remote_id)
                logger.warning("card_failed", remote_id=remote_id, action="delete", error=str(e))
                continue

            for block_uuid in [k for k, v in id_map.items() if v == remote_id]:
                del id_map[block_uuid]
            report.deleted += 1
            logger.info("card_deleted", remote_id=remote_id)
