"""Rewrites Logseq markdown into Mochi markdown."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from logseq_mochi_sync.cards.attachments import AttachmentResolver
from logseq_mochi_sync.domain.entities.card import MediaAttachment
from logseq_mochi_sync.exceptions import AttachmentError
from logseq_mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)

CLOZE_PATTERN = re.compile(r"\{\{cloze (.*?)\}\}")
# Scanned left to right; a pair already preceded by a backslash is kept as is
LINK_BRACKETS_PATTERN = re.compile(r"\\?(?:\[\[|\]\])")

# ![alt](target "title"){:height 100, :width 200}, or [name](../assets/file)
MEDIA_PATTERN = re.compile(
    r"(?P<bang>!?)\[(?P<alt>[^\]\n]*)\]\((?P<target>[^)\s]+)(?:\s+\"[^\"]*\")?\)"
    r"(?P<size>\{:[^}\n]*\})?"
)


def card_marker_pattern(card_tag: str) -> re.Pattern[str]:
    """Pattern matching ``#tag``, ``#[[tag]]`` and ``[[tag]]`` plus trailing blanks."""
    tag = re.escape(card_tag)
    return re.compile(
        rf"(?<![\w\\])#(?:\[\[{tag}\]\]|{tag}(?![\w/-]))[ \t]*"
        rf"|(?<![\\#\[])\[\[{tag}\]\][ \t]*",
        re.IGNORECASE,
    )


@dataclass(frozen=True)
class TransformResult:
    text: str
    attachments: tuple[MediaAttachment, ...] = field(default_factory=tuple)


def canonical_newline(text: str) -> str:
    """Strip trailing whitespace; non-empty text ends with exactly one newline."""
    text = text.rstrip()
    return f"{text}\n" if text else ""


class ContentTransformer:
    """Turns property-stripped block text into Mochi markdown.

    Steps, in order: drop the card marker, convert cloze syntax, rewrite local
    media to ``@media/<filename>``, escape ``[[``/``]]`` and normalize the
    trailing newline. The transformation is idempotent.
    """

    def __init__(
        self,
        card_tag: str = "card",
        attachment_resolver: AttachmentResolver | None = None,
    ):
        self.card_tag = card_tag
        self._marker = card_marker_pattern(card_tag)
        self._attachments = attachment_resolver

    def remove_card_marker(self, text: str) -> str:
        """Drop the marker; only lines it was removed from lose trailing blanks."""
        lines = []
        for line in text.split("\n"):
            stripped = self._marker.sub("", line)
            lines.append(stripped.rstrip() if stripped != line else line)
        return "\n".join(lines)

    @staticmethod
    def convert_cloze(text: str) -> str:
        return CLOZE_PATTERN.sub(r"{{\1}}", text)

    @staticmethod
    def escape_links(text: str) -> str:
        return LINK_BRACKETS_PATTERN.sub(
            lambda m: m.group(0) if m.group(0).startswith("\\") else "\\" + m.group(0),
            text,
        )

    def rewrite_media(self, text: str) -> tuple[str, list[MediaAttachment]]:
        """Replace local media references with content-addressed ones.

        References that cannot be resolved are left as they are.
        """
        if self._attachments is None:
            return text, []

        found: list[MediaAttachment] = []
        resolver = self._attachments

        def _replace(match: re.Match[str]) -> str:
            target = match.group("target")
            is_embed = bool(match.group("bang"))
            if not resolver.is_candidate(target):
                return match.group(0)
            if not is_embed and "assets/" not in target:
                return match.group(0)
            try:
                attachment = resolver.resolve(target)
            except AttachmentError as e:
                logger.warning(
                    "attachment_rejected",
                    reference=target,
                    error=e.message,
                    error_code=e.error_code,
                )
                return match.group(0)
            found.append(attachment)
            return f"{match.group('bang')}[{match.group('alt')}](@media/{attachment.filename})"

        return MEDIA_PATTERN.sub(_replace, text), found

    def transform(self, text: str) -> TransformResult:
        text = self.remove_card_marker(text)
        text = self.convert_cloze(text)
        text, attachments = self.rewrite_media(text)
        text = self.escape_links(text)
        return TransformResult(text=canonical_newline(text), attachments=tuple(attachments))
