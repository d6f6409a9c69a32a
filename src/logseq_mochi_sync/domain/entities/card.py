"""Domain entities for locally built cards."""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class PropertyPair:
    """A ``key:: value`` pair extracted from one line of block text."""

    key: str
    value: str


@dataclass(frozen=True)
class MediaAttachment:
    """A content-addressed media file referenced by a card.

    ``filename`` is derived from ``hash`` and the original extension, so it
    doubles as the dedup key: identical bytes always share a filename.
    """

    hash: str
    original_path: str
    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class CardField:
    """Value of one template field, keyed by the template's field id."""

    id: str
    value: str


@dataclass(frozen=True)
class Card:
    """A flashcard built from a tagged block.

    Cards are rebuilt on every run. ``content`` is a pure function of the
    block subtree, the resolved properties and the settings.
    """

    source_uuid: str
    content: str
    properties: dict[str, str] = field(default_factory=dict)
    deck_name: str | None = None
    tags: frozenset[str] | None = None
    template_name: str | None = None
    template_id: str | None = None
    fields: dict[str, CardField] | None = None
    remote_id: str | None = None
    attachments: tuple[MediaAttachment, ...] = ()

    @property
    def is_new(self) -> bool:
        """Check if card has never been synced."""
        return self.remote_id is None

    @property
    def attachment_filenames(self) -> frozenset[str]:
        return frozenset(a.filename for a in self.attachments)

    def with_remote_id(self, remote_id: str) -> Card:
        """Create a new Card instance carrying the Mochi card id."""
        return replace(self, remote_id=remote_id)
