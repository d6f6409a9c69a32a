"""Domain layer: entities and collaborator interfaces."""

from .entities import (
    Block,
    BlockSnapshot,
    Card,
    CardField,
    Deck,
    MediaAttachment,
    Page,
    PropertyPair,
    RemoteCard,
    SyncAction,
    SyncActionType,
    SyncPlan,
    SyncReport,
    Template,
    TemplateField,
)
from .interfaces import IByteSource, IIdMapRepository, IMochiClient, ISourceStore

__all__ = [
    "Block",
    "BlockSnapshot",
    "Card",
    "CardField",
    "Deck",
    "IByteSource",
    "IIdMapRepository",
    "IMochiClient",
    "ISourceStore",
    "MediaAttachment",
    "Page",
    "PropertyPair",
    "RemoteCard",
    "SyncAction",
    "SyncActionType",
    "SyncPlan",
    "SyncReport",
    "Template",
    "TemplateField",
]
