"""Domain entities mirroring Mochi state."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RemoteCard:
    """A card as returned by the Mochi API."""

    id: str
    content: str
    deck_id: str | None
    tags: frozenset[str] = frozenset()
    trashed: bool = False
    template_id: str | None = None
    fields: dict[str, str] | None = None
    attachment_filenames: frozenset[str] = frozenset()


@dataclass(frozen=True)
class Deck:
    """A Mochi deck."""

    id: str
    name: str
    parent_id: str | None = None


@dataclass(frozen=True)
class TemplateField:
    id: str
    name: str


@dataclass(frozen=True)
class Template:
    """A Mochi template and its declared fields (keyed by field id)."""

    id: str
    name: str
    fields: dict[str, TemplateField] = field(default_factory=dict)

    def find_field(self, name: str) -> TemplateField | None:
        """Look up a field by name, case-insensitively."""
        wanted = name.strip().casefold()
        for template_field in self.fields.values():
            if template_field.name.casefold() == wanted:
                return template_field
        return None
