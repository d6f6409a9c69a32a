"""Mochi API client."""

from .client import MochiClient, parse_card, parse_deck, parse_template

__all__ = ["MochiClient", "parse_card", "parse_deck", "parse_template"]
