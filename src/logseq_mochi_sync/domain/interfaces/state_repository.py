"""Interface for the persisted block-to-card id map."""

from abc import ABC, abstractmethod


class IIdMapRepository(ABC):
    """Persistence of the mapping from block uuid to Mochi card id.

    This is the only state that outlives a sync run.
    """

    @abstractmethod
    def load_id_map(self) -> dict[str, str]:
        """Return the full mapping (block uuid -> remote card id)."""
        pass

    @abstractmethod
    def save_id_map(self, id_map: dict[str, str]) -> None:
        """Replace the stored mapping with ``id_map``."""
        pass
