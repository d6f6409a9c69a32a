"""Minimal org-mode to markdown conversion for org-format blocks.

Covers what Logseq org blocks commonly contain: property drawers, headings,
plain lists, emphasis and links, plus greater blocks (source, example, quote,
verse, center and the admonitions). Anything else passes through unchanged.
"""

from __future__ import annotations

import re
from collections.abc import Callable

_DRAWER_START = re.compile(r"^\s*:PROPERTIES:\s*$", re.IGNORECASE)
_DRAWER_END = re.compile(r"^\s*:END:\s*$", re.IGNORECASE)
_DRAWER_ENTRY = re.compile(r"^\s*:([A-Za-z0-9?_\-]+):\s*(.*)$")
_BLOCK_BEGIN = re.compile(r"^\s*#\+BEGIN_(\w+)\s*(\S*)", re.IGNORECASE)
_BLOCK_END = re.compile(r"^\s*#\+END_(\w+)\s*$", re.IGNORECASE)
_HEADING = re.compile(r"^(\*+)\s+(.*)$")
_LIST_ITEM = re.compile(r"^(\s*)(?:\+|(\d+)\))\s+")

# Greater blocks by how their body is exported.
_VERBATIM_BLOCKS = frozenset({"SRC", "EXAMPLE"})
_QUOTED_BLOCKS = frozenset({"QUOTE", "NOTE", "TIP", "IMPORTANT", "CAUTION", "WARNING", "PINNED"})
_PLAIN_BLOCKS = frozenset({"VERSE", "CENTER"})
_GREATER_BLOCKS = _VERBATIM_BLOCKS | _QUOTED_BLOCKS | _PLAIN_BLOCKS

_IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "svg", "webp", "bmp")
_DESCRIBED_LINK = re.compile(r"\[\[([^\]]+)\]\[([^\]]+)\]\]")
_BARE_LINK = re.compile(r"\[\[([^\]]+)\]\]")

# Segments that emphasis rewriting must not touch.
_PROTECTED = re.compile(r"`[^`\n]*`|!?\[[^\]\n]*\]\([^)\n]*\)|\[\[[^\]\n]*\]\]")

_EMPHASIS: list[tuple[str, str]] = [
    ("=", "`"),
    ("~", "`"),
    ("*", "**"),
    ("/", "*"),
    ("+", "~~"),
]


def _emphasis_pattern(marker: str) -> re.Pattern[str]:
    m = re.escape(marker)
    return re.compile(rf"(?<![\w{m}]){m}(?=[^\s{m}])([^\n]*?[^\s{m}]|[^\s{m}]){m}(?![\w{m}])")


_EMPHASIS_PATTERNS = [(_emphasis_pattern(marker), repl) for marker, repl in _EMPHASIS]


def _map_outside(pattern: re.Pattern[str], text: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to the parts of ``text`` not matched by ``pattern``."""
    out: list[str] = []
    pos = 0
    for match in pattern.finditer(text):
        out.append(fn(text[pos:match.start()]))
        out.append(match.group(0))
        pos = match.end()
    out.append(fn(text[pos:]))
    return "".join(out)


def _convert_link(match: re.Match[str]) -> str:
    target = match.group(1)
    if "://" not in target and not target.startswith(("../", "./", "/", "file:")):
        # A page reference; leave it for link escaping.
        return match.group(0)
    if target.lower().rsplit(".", 1)[-1] in _IMAGE_EXTENSIONS:
        return f"![]({target.removeprefix('file:')})"
    return f"<{target}>"


def _convert_emphasis(segment: str) -> str:
    for pattern, repl in _EMPHASIS_PATTERNS:
        segment = pattern.sub(lambda m, r=repl: f"{r}{m.group(1)}{r}", segment)
    return segment


def convert_inline(line: str) -> str:
    """Convert org inline markup on a single line."""
    line = _DESCRIBED_LINK.sub(
        lambda m: f"[{m.group(2)}]({m.group(1).removeprefix('file:')})", line
    )
    line = _BARE_LINK.sub(_convert_link, line)
    return _map_outside(_PROTECTED, line, _convert_emphasis)


def convert_line(line: str) -> str:
    """Convert a body line: headings and list bullets, then inline markup."""
    heading = _HEADING.match(line)
    if heading:
        return f"{'#' * len(heading.group(1))} {convert_inline(heading.group(2))}"

    item = _LIST_ITEM.match(line)
    if item:
        bullet = f"{item.group(2)}." if item.group(2) else "-"
        return f"{item.group(1)}{bullet} {convert_inline(line[item.end():])}"
    return convert_inline(line)


def org_to_markdown(text: str) -> str:
    """Convert org-mode block text to markdown."""
    out: list[str] = []
    in_drawer = False
    open_block: str | None = None

    for line in text.split("\n"):
        if in_drawer:
            if _DRAWER_END.match(line):
                in_drawer = False
                continue
            entry = _DRAWER_ENTRY.match(line)
            if entry:
                out.append(f"{entry.group(1)}:: {entry.group(2).strip()}")
            continue

        if open_block is None and _DRAWER_START.match(line):
            in_drawer = True
            continue

        begin = _BLOCK_BEGIN.match(line)
        if open_block is None and begin and begin.group(1).upper() in _GREATER_BLOCKS:
            open_block = begin.group(1).upper()
            if open_block in _VERBATIM_BLOCKS:
                out.append(f"```{begin.group(2)}")
            continue

        end = _BLOCK_END.match(line)
        if open_block is not None and end and end.group(1).upper() == open_block:
            if open_block in _VERBATIM_BLOCKS:
                out.append("```")
            open_block = None
            continue

        if open_block in _VERBATIM_BLOCKS:
            out.append(line)
        elif open_block in _QUOTED_BLOCKS:
            out.append(f"> {convert_inline(line)}".rstrip())
        elif open_block in _PLAIN_BLOCKS:
            out.append(convert_inline(line))
        else:
            out.append(convert_line(line))

    return "\n".join(out)
