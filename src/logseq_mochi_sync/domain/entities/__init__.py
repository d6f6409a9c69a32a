"""Domain entities."""

from .block import Block, BlockSnapshot, Page
from .card import Card, CardField, MediaAttachment, PropertyPair
from .remote import Deck, RemoteCard, Template, TemplateField
from .sync import CardFailure, SyncAction, SyncActionType, SyncPlan, SyncReport

__all__ = [
    "Block",
    "BlockSnapshot",
    "Card",
    "CardFailure",
    "CardField",
    "Deck",
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
