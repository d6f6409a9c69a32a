"""Builds one Card per tagged block from an immutable block snapshot."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from logseq_mochi_sync.cards.content_transformer import ContentTransformer
from logseq_mochi_sync.cards.org import org_to_markdown
from logseq_mochi_sync.cards.property_resolver import (
    PropertyCascade,
    extract_properties,
    pairs_from_mapping,
    parse_bool,
)
from logseq_mochi_sync.config import Config
from logseq_mochi_sync.domain.entities.block import Block, BlockSnapshot
from logseq_mochi_sync.domain.entities.card import (
    Card,
    CardField,
    MediaAttachment,
    PropertyPair,
)
from logseq_mochi_sync.domain.entities.remote import Template
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import TransformError
from logseq_mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)

DECK_KEYS = ("deck", "mochi-deck")
TEMPLATE_KEYS = ("template", "mochi-template")
TAGS_KEYS = ("tags",)
FIELD_PREFIX = "field-"
INCLUDE_PAGE_TITLE_KEYS = ("include-page-title",)
INCLUDE_ANCESTORS_KEYS = ("include-ancestors", "include-ancestor-blocks")

CHILD_DELIMITER = "---"
CHUNK_SEPARATOR = "\n\n"
INDENT = "  "

_TAG_DECORATION = re.compile(r"^#?\[\[(.*)\]\]$|^#(.*)$")


def parse_tags(value: str) -> frozenset[str]:
    """Split a comma-separated tag list, dropping ``#`` / ``[[ ]]`` decoration."""
    tags: set[str] = set()
    for raw in value.split(","):
        tag = raw.strip()
        match = _TAG_DECORATION.match(tag)
        if match:
            tag = (match.group(1) if match.group(1) is not None else match.group(2)).strip()
        if tag:
            tags.add(tag)
    return frozenset(tags)


@dataclass(frozen=True)
class _ParsedBlock:
    text: str
    properties: list[PropertyPair]


class CardBuilder:
    """Turns a BlockSnapshot into a Card.

    The build is a pure function of the snapshot, the id map, the template
    registry and the settings: rebuilding an unchanged snapshot gives a
    byte-identical card.
    """

    def __init__(
        self,
        transformer: ContentTransformer,
        *,
        include_page_title: bool = True,
        include_ancestors: bool = True,
        remote_id_property: str = "mochi-id",
        templates: Mapping[str, Template] | None = None,
    ):
        """
        Args:
            transformer: Content transformer (with attachment resolution)
            include_page_title: Default when a card has no override property
            include_ancestors: Default when a card has no override property
            remote_id_property: Block property holding the Mochi card id
            templates: Template registry keyed by case-folded template name
        """
        self.transformer = transformer
        self.include_page_title = include_page_title
        self.include_ancestors = include_ancestors
        self.remote_id_property = remote_id_property
        self.templates = dict(templates or {})

    @classmethod
    def from_config(
        cls,
        config: Config,
        transformer: ContentTransformer,
        templates: Mapping[str, Template] | None = None,
    ) -> CardBuilder:
        return cls(
            transformer,
            include_page_title=config.include_page_title,
            include_ancestors=config.include_ancestor_blocks,
            remote_id_property=config.remote_id_property,
            templates=templates,
        )

    def _parse(self, block: Block) -> _ParsedBlock:
        raw = block.content or ""
        if block.is_org:
            raw = org_to_markdown(raw)
        text, pairs = extract_properties(raw)
        return _ParsedBlock(text=text, properties=pairs)

    def _own_remote_id(self, block: Block, parsed: _ParsedBlock) -> str | None:
        wanted = self.remote_id_property.casefold()
        for pair in reversed(parsed.properties):
            if pair.key.casefold() == wanted and pair.value:
                return pair.value
        for pair in pairs_from_mapping(block.properties):
            if pair.key.casefold() == wanted and pair.value:
                return pair.value
        return None

    def _render_descendants(
        self, block: Block, level: int, attachments: dict[str, MediaAttachment]
    ) -> str:
        parsed = self._parse(block)
        result = self.transformer.transform(parsed.text)
        for attachment in result.attachments:
            attachments.setdefault(attachment.filename, attachment)

        text = result.text.rstrip("\n")
        if level == 0:
            lines = [f"{text}\n"] if text else []
        elif text:
            prefix = INDENT * (level - 1)
            first, *rest = text.split("\n")
            lines = [f"{prefix}- {first}", *(f"{prefix}{INDENT}{line}" for line in rest)]
        else:
            lines = []

        for child in block.children:
            rendered = self._render_descendants(child, level + 1, attachments)
            if rendered:
                lines.append(rendered)
        return "\n".join(lines)

    def _resolve_template(self, name: str | None, source_uuid: str) -> Template | None:
        if not name:
            return None
        template = self.templates.get(name.strip().casefold())
        if template is None:
            logger.warning(
                "template_not_found",
                template=name,
                block_uuid=source_uuid,
                error_code=ErrorCode.RES_TEMPLATE_MISSING.value,
            )
        return template

    def _resolve_fields(
        self, template: Template, raw_fields: dict[str, str]
    ) -> dict[str, CardField]:
        fields: dict[str, CardField] = {}
        for name, value in raw_fields.items():
            declared = template.find_field(name)
            if declared is not None:
                fields[declared.id] = CardField(id=declared.id, value=value)
            else:
                fields[name] = CardField(id=name, value=value)
        return fields

    def build(self, snapshot: BlockSnapshot, id_map: Mapping[str, str] | None = None) -> Card:
        """Build the card for a tagged block.

        Raises:
            TransformError: If the snapshot has no usable block
        """
        block = snapshot.block
        if not block.uuid:
            msg = "Tagged block has no uuid"
            raise TransformError(msg, error_code=ErrorCode.TRF_MALFORMED.value)

        cascade = PropertyCascade()
        if snapshot.page is not None:
            cascade.push("page", pairs_from_mapping(snapshot.page.properties))

        parsed_ancestors: list[_ParsedBlock] = []
        for ancestor in snapshot.ancestors:
            if not ancestor.content:
                continue
            parsed = self._parse(ancestor)
            cascade.push(f"ancestor:{ancestor.uuid}", parsed.properties)
            parsed_ancestors.append(parsed)

        own = self._parse(block)
        cascade.push("block", own.properties)

        # The remote id is never inherited.
        remote_id = self._own_remote_id(block, own)
        properties = cascade.merged(exclude=[self.remote_id_property])
        if remote_id:
            properties[self.remote_id_property] = remote_id
        elif id_map:
            remote_id = id_map.get(block.uuid)

        include_title = parse_bool(cascade.get(*INCLUDE_PAGE_TITLE_KEYS))
        if include_title is None:
            include_title = self.include_page_title
        include_ancestors = parse_bool(cascade.get(*INCLUDE_ANCESTORS_KEYS))
        if include_ancestors is None:
            include_ancestors = self.include_ancestors

        attachments: dict[str, MediaAttachment] = {}
        chunks: list[str] = []

        if include_title and snapshot.page is not None and snapshot.page.title:
            chunks.append(snapshot.page.title)

        if include_ancestors:
            for parsed in parsed_ancestors:
                result = self.transformer.transform(parsed.text)
                if result.text.strip():
                    chunks.append(result.text)
                    for attachment in result.attachments:
                        attachments.setdefault(attachment.filename, attachment)

        own_result = self.transformer.transform(own.text)
        if own_result.text:
            chunks.append(own_result.text)
        for attachment in own_result.attachments:
            attachments.setdefault(attachment.filename, attachment)

        for child in block.children:
            rendered = self._render_descendants(child, 0, attachments)
            if rendered.strip():
                chunks.append(CHILD_DELIMITER)
                chunks.append(rendered)

        content = CHUNK_SEPARATOR.join(chunk.rstrip("\n") for chunk in chunks)

        deck_name = (cascade.get(*DECK_KEYS) or "").strip() or None
        tags_value = cascade.get(*TAGS_KEYS)
        tags = parse_tags(tags_value) if tags_value is not None else None

        template_name = (cascade.get(*TEMPLATE_KEYS) or "").strip() or None
        template = self._resolve_template(template_name, block.uuid)
        fields = (
            self._resolve_fields(template, cascade.with_prefix(FIELD_PREFIX))
            if template is not None
            else None
        )

        card = Card(
            source_uuid=block.uuid,
            content=content,
            properties=properties,
            deck_name=deck_name,
            tags=tags,
            template_name=template.name if template else None,
            template_id=template.id if template else None,
            fields=fields,
            remote_id=remote_id or None,
            attachments=tuple(attachments.values()),
        )
        logger.debug(
            "card_built",
            block_uuid=block.uuid,
            remote_id=card.remote_id,
            deck=deck_name,
            attachments=len(card.attachments),
        )
        return card
