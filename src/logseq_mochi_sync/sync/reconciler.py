"""Decides, per card, what has to change in Mochi."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping

from logseq_mochi_sync.domain.entities.card import Card
from logseq_mochi_sync.domain.entities.remote import RemoteCard, Template
from logseq_mochi_sync.domain.entities.sync import SyncAction, SyncActionType, SyncPlan
from logseq_mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)


def index_templates(templates: Iterable[Template]) -> dict[str, Template]:
    """Key templates by case-folded name; the first of duplicate names wins."""
    registry: dict[str, Template] = {}
    for template in templates:
        registry.setdefault(template.name.strip().casefold(), template)
    return registry


def needed_deck_names(cards: Iterable[Card], default_deck_name: str) -> list[str]:
    """Distinct deck names used by ``cards``, in order of first use."""
    names: dict[str, None] = {}
    for card in cards:
        names.setdefault(card.deck_name or default_deck_name, None)
    return list(names)


class ReconciliationEngine:
    """Compares locally built cards against the remote cards.

    Remote cards flagged as trashed are treated as absent: a card pointing at
    one is recreated, and trashed cards are never reported as orphans.
    """

    def __init__(self, system_tag: str = "logseq", default_deck_name: str = "Logseq"):
        self.system_tag = system_tag
        self.default_deck_name = default_deck_name

    def deck_name(self, card: Card) -> str:
        return card.deck_name or self.default_deck_name

    def desired_tags(self, card: Card) -> list[str]:
        """Tags to send for a card: its own tags plus the system tag."""
        return sorted(set(card.tags or ()) | {self.system_tag})

    @staticmethod
    def field_values(card: Card) -> dict[str, str] | None:
        if card.fields is None:
            return None
        return {field_id: f.value for field_id, f in card.fields.items()}

    @staticmethod
    def live_remote_cards(remote_cards: Iterable[RemoteCard]) -> dict[str, RemoteCard]:
        return {remote.id: remote for remote in remote_cards if not remote.trashed}

    def diff(self, card: Card, remote: RemoteCard, deck_id: str | None) -> list[str]:
        """List the aspects in which ``remote`` differs from ``card``."""
        changes: list[str] = []
        if card.content.rstrip() != remote.content.rstrip():
            changes.append("content")
        if deck_id != remote.deck_id:
            changes.append("deck")
        if set(self.desired_tags(card)) != set(remote.tags):
            changes.append("tags")
        # Template and fields are only owned by cards that declare a template
        if card.template_id is not None:
            if card.template_id != remote.template_id:
                changes.append("template")
            if (self.field_values(card) or {}) != (remote.fields or {}):
                changes.append("fields")
        if not card.attachment_filenames <= remote.attachment_filenames:
            changes.append("attachments")
        return changes

    def decide(
        self,
        card: Card,
        remote_by_id: Mapping[str, RemoteCard],
        deck_map: Mapping[str, str],
        pending_decks: Collection[str] = (),
    ) -> SyncAction:
        deck_name = self.deck_name(card)
        deck_id = deck_map.get(deck_name)
        if deck_id is None and deck_name not in pending_decks:
            return SyncAction(
                action_type=SyncActionType.SKIP,
                card=card,
                reason=f"deck '{deck_name}' could not be resolved",
            )

        remote = remote_by_id.get(card.remote_id) if card.remote_id else None
        if remote is None:
            reason = "stale remote id" if card.remote_id else "new card"
            return SyncAction(
                action_type=SyncActionType.CREATE, card=card, deck_id=deck_id, reason=reason
            )

        changes = self.diff(card, remote, deck_id)
        if changes:
            return SyncAction(
                action_type=SyncActionType.UPDATE,
                card=card,
                remote=remote,
                deck_id=deck_id,
                changes=tuple(changes),
            )
        return SyncAction(
            action_type=SyncActionType.NOOP, card=card, remote=remote, deck_id=deck_id
        )

    def plan(
        self,
        cards: Iterable[Card],
        remote_cards: Iterable[RemoteCard],
        deck_map: Mapping[str, str],
        pending_decks: Collection[str] = (),
    ) -> SyncPlan:
        """Decide create/update/noop/skip for every card.

        Args:
            cards: Cards built in this run
            remote_cards: Remote cards carrying the system tag
            deck_map: Deck name to deck id
            pending_decks: Deck names that will exist but have no id yet
                (dry runs)
        """
        remote_by_id = self.live_remote_cards(remote_cards)
        plan = SyncPlan(
            actions=[
                self.decide(card, remote_by_id, deck_map, pending_decks) for card in cards
            ]
        )
        logger.debug("sync_plan_computed", **plan.counts())
        return plan

    def find_orphans(
        self,
        cards: Iterable[Card],
        remote_cards: Iterable[RemoteCard],
        protected_ids: Iterable[str] = (),
    ) -> list[SyncAction]:
        """Remote cards that no card of this run refers to.

        ``cards`` must carry the ids assigned by creations in this run, and
        ``protected_ids`` the ids of tagged blocks whose card failed to build.
        """
        referenced = {card.remote_id for card in cards if card.remote_id}
        referenced.update(protected_ids)
        return [
            SyncAction(action_type=SyncActionType.DELETE, remote=remote, reason="orphan")
            for remote_id, remote in self.live_remote_cards(remote_cards).items()
            if remote_id not in referenced
        ]
