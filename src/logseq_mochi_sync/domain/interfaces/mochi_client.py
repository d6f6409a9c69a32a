"""Interface for the Mochi API."""

from abc import ABC, abstractmethod
from collections.abc import Mapping

from ..entities.card import MediaAttachment
from ..entities.remote import Deck, RemoteCard, Template


class IMochiClient(ABC):
    """Interface for the remote flashcard store.

    Every call of a real implementation passes through the run's rate limiter.
    """

    @abstractmethod
    async def list_cards(self, tag: str | None = None) -> list[RemoteCard]:
        """List all cards, optionally keeping only those carrying ``tag``."""
        pass

    @abstractmethod
    async def list_decks(self) -> list[Deck]:
        """List all decks."""
        pass

    @abstractmethod
    async def create_deck(self, name: str, parent_id: str | None = None) -> Deck:
        """Create a deck and return it."""
        pass

    @abstractmethod
    async def list_templates(self) -> list[Template]:
        """List all templates."""
        pass

    @abstractmethod
    async def create_card(
        self,
        content: str,
        deck_id: str,
        *,
        tags: list[str],
        template_id: str | None = None,
        fields: Mapping[str, str] | None = None,
    ) -> RemoteCard:
        """Create a card and return it (with its new id)."""
        pass

    @abstractmethod
    async def update_card(
        self,
        card_id: str,
        content: str,
        deck_id: str,
        *,
        tags: list[str],
        template_id: str | None = None,
        fields: Mapping[str, str] | None = None,
    ) -> RemoteCard:
        """Overwrite a card's content, deck, tags, template and fields."""
        pass

    @abstractmethod
    async def delete_card(self, card_id: str) -> None:
        """Delete a card."""
        pass

    @abstractmethod
    async def has_attachment(self, card_id: str, filename: str) -> bool:
        """Check whether a card already has an attachment with this filename."""
        pass

    @abstractmethod
    async def upload_attachment(self, card_id: str, attachment: MediaAttachment) -> None:
        """Upload an attachment to a card under ``attachment.filename``."""
        pass
