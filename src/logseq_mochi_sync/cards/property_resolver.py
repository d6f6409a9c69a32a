"""Extraction and cascading of ``key:: value`` block properties."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

from logseq_mochi_sync.domain.entities.card import PropertyPair

PROPERTY_PATTERN = re.compile(r"^([A-Za-z0-9?_\-]+)::\s*(.*)$")

_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0"}
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def extract_properties(text: str) -> tuple[str, list[PropertyPair]]:
    """Split block text into display text and property pairs.

    Every line matching ``key:: value`` is removed and returned as a pair, in
    order of appearance; all other lines are kept verbatim. Repeated keys are
    returned as separate pairs.
    """
    kept: list[str] = []
    pairs: list[PropertyPair] = []

    for line in text.split("\n"):
        match = PROPERTY_PATTERN.match(line.rstrip("\r"))
        if match:
            pairs.append(PropertyPair(key=match.group(1).strip(), value=match.group(2).strip()))
        else:
            kept.append(line)

    return "\n".join(kept), pairs


def kebab_case(key: str) -> str:
    """Convert Logseq's camelCase property-bag keys back to the authored form."""
    return _CAMEL_BOUNDARY.sub(lambda m: "-" + m.group(1).lower(), key)


def normalize_property_value(value: Any) -> str:
    """Flatten a property-bag value to the string form used by the cascade."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (set, frozenset)):
        return ", ".join(sorted(str(v) for v in value))
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value).strip()


def pairs_from_mapping(bag: Mapping[str, Any]) -> list[PropertyPair]:
    """Turn a Logseq property bag into pairs with kebab-case keys."""
    return [
        PropertyPair(key=kebab_case(str(key)), value=normalize_property_value(value))
        for key, value in bag.items()
    ]


def parse_bool(value: str | None) -> bool | None:
    """Read a boolean flag; returns None when the value is not recognised."""
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


def merge_properties(*layers: Iterable[PropertyPair]) -> dict[str, str]:
    """Merge property layers left to right into a new mapping (last writer wins)."""
    merged: dict[str, str] = {}
    for layer in layers:
        for pair in layer:
            merged[pair.key] = pair.value
    return merged


class PropertyCascade:
    """Ordered property layers: page, ancestors (root first), block.

    ``merged()`` gives the plain last-writer-wins mapping; ``get()`` resolves a
    special key case-insensitively while still honouring layer order.
    """

    def __init__(self) -> None:
        self._layers: list[tuple[str, list[PropertyPair]]] = []

    def push(self, source: str, pairs: Iterable[PropertyPair]) -> None:
        self._layers.append((source, list(pairs)))

    def merged(self, exclude: Iterable[str] = ()) -> dict[str, str]:
        excluded = {name.casefold() for name in exclude}
        return {
            key: value
            for key, value in merge_properties(*(pairs for _, pairs in self._layers)).items()
            if key.casefold() not in excluded
        }

    def get(self, *names: str) -> str | None:
        wanted = {name.casefold() for name in names}
        for _, pairs in reversed(self._layers):
            for pair in reversed(pairs):
                if pair.key.casefold() in wanted:
                    return pair.value
        return None

    def with_prefix(self, prefix: str) -> dict[str, str]:
        """Collect ``prefix*`` keys (case-insensitive); suffix keeps its casing."""
        folded = prefix.casefold()
        found: dict[str, tuple[str, str]] = {}
        for _, pairs in self._layers:
            for pair in pairs:
                if pair.key.casefold().startswith(folded) and len(pair.key) > len(prefix):
                    name = pair.key[len(prefix):]
                    found[name.casefold()] = (name, pair.value)
        return {name: value for name, value in found.values()}
