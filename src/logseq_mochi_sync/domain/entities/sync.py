"""Domain entities describing a sync run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .card import Card
from .remote import RemoteCard


class SyncActionType(Enum):
    """Enumeration of possible sync action types."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"
    SKIP = "skip"


@dataclass(frozen=True)
class SyncAction:
    """One decision of the reconciliation engine.

    ``card`` is set for every action except ``DELETE``; ``remote`` is the
    matching Mochi card for ``UPDATE``, ``NOOP`` and ``DELETE``.
    """

    action_type: SyncActionType
    card: Card | None = None
    remote: RemoteCard | None = None
    deck_id: str | None = None
    changes: tuple[str, ...] = ()
    reason: str | None = None

    @property
    def is_create(self) -> bool:
        return self.action_type == SyncActionType.CREATE

    @property
    def is_update(self) -> bool:
        return self.action_type == SyncActionType.UPDATE

    @property
    def is_delete(self) -> bool:
        return self.action_type == SyncActionType.DELETE

    @property
    def is_skip(self) -> bool:
        return self.action_type == SyncActionType.SKIP

    @property
    def source_card(self) -> Card:
        """The local card; only orphan deletions have none."""
        if self.card is None:
            msg = f"{self.action_type.value} action has no local card"
            raise ValueError(msg)
        return self.card

    @property
    def remote_card(self) -> RemoteCard:
        if self.remote is None:
            msg = f"{self.action_type.value} action has no remote card"
            raise ValueError(msg)
        return self.remote

    @property
    def remote_id(self) -> str | None:
        if self.remote is not None:
            return self.remote.id
        return self.card.remote_id if self.card else None


@dataclass
class SyncPlan:
    """Per-card decisions for one run (orphans are planned separately)."""

    actions: list[SyncAction] = field(default_factory=list)

    def of_type(self, action_type: SyncActionType) -> list[SyncAction]:
        return [a for a in self.actions if a.action_type == action_type]

    def counts(self) -> dict[str, int]:
        return {t.value: len(self.of_type(t)) for t in SyncActionType}


@dataclass
class CardFailure:
    source_uuid: str | None
    remote_id: str | None
    error: str
    error_type: str


@dataclass
class SyncReport:
    """Aggregate outcome of a sync run."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
    attachments_uploaded: int = 0
    dry_run: bool = False
    failures: list[CardFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def record_failure(
        self,
        error: Exception,
        *,
        source_uuid: str | None = None,
        remote_id: str | None = None,
    ) -> None:
        self.failures.append(
            CardFailure(
                source_uuid=source_uuid,
                remote_id=remote_id,
                error=str(error),
                error_type=type(error).__name__,
            )
        )

    def as_dict(self) -> dict[str, int | bool]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "unchanged": self.unchanged,
            "failed": self.failed,
            "attachments_uploaded": self.attachments_uploaded,
            "dry_run": self.dry_run,
        }
