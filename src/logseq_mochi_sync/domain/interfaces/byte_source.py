"""Interface for resolving media references to bytes."""

from abc import ABC, abstractmethod


class IByteSource(ABC):
    """Capability that turns a media reference into bytes.

    Implementations decide which references are local; anything they cannot
    serve raises ``AttachmentError``.
    """

    @abstractmethod
    def is_local(self, reference: str) -> bool:
        """Check whether the reference points at a locally readable file."""
        pass

    @abstractmethod
    def size(self, reference: str) -> int:
        """Return the size in bytes of the referenced file.

        Raises:
            AttachmentError: If the reference cannot be resolved
        """
        pass

    @abstractmethod
    def read(self, reference: str) -> bytes:
        """Read the referenced bytes.

        Raises:
            AttachmentError: If the reference cannot be resolved
        """
        pass
