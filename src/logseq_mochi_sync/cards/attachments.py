"""Content-addressed media attachments."""

from __future__ import annotations

import hashlib
import mimetypes
from pathlib import PurePosixPath

from logseq_mochi_sync.domain.entities.card import MediaAttachment
from logseq_mochi_sync.domain.interfaces.byte_source import IByteSource
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import AttachmentError
from logseq_mochi_sync.utils.logging import get_logger

logger = get_logger(__name__)

MAX_ATTACHMENT_BYTES = 5 * 1024 * 1024
HASH_PREFIX_LENGTH = 16


def reference_extension(reference: str) -> str:
    """Lower-case extension of a reference, without the dot ("" if none)."""
    path = reference.split("?", 1)[0].split("#", 1)[0]
    return PurePosixPath(path).suffix.lower().lstrip(".")


def attachment_filename(digest: str, reference: str) -> str:
    """Derive the stable filename for bytes hashing to ``digest``."""
    stem = digest[:HASH_PREFIX_LENGTH]
    extension = reference_extension(reference)
    return f"{stem}.{extension}" if extension else stem


class AttachmentResolver:
    """Turns media references into content-addressed attachments.

    The filename depends only on the bytes (and the original extension), so
    two references to identical files resolve to the same filename. Results
    are memoized per reference; one instance is used for a whole run.
    """

    def __init__(
        self,
        byte_source: IByteSource,
        max_bytes: int = MAX_ATTACHMENT_BYTES,
    ):
        self._source = byte_source
        self.max_bytes = max_bytes
        self._resolved: dict[str, MediaAttachment] = {}

    def is_candidate(self, reference: str) -> bool:
        """Check whether a reference should be turned into an attachment."""
        return not reference.startswith("@media/")

    def resolve(self, reference: str) -> MediaAttachment:
        """Resolve a reference to an attachment.

        Raises:
            AttachmentError: Remote URL, unreadable file, or file too large
        """
        cached = self._resolved.get(reference)
        if cached is not None:
            return cached

        if not self._source.is_local(reference):
            msg = f"Not a local media reference: {reference}"
            raise AttachmentError(
                msg,
                error_code=ErrorCode.ATT_REMOTE_URL.value,
                context={"reference": reference},
            )

        size = self._source.size(reference)
        if size > self.max_bytes:
            raise self._too_large(reference, size)

        data = self._source.read(reference)
        if len(data) > self.max_bytes:
            raise self._too_large(reference, len(data))

        digest = hashlib.sha256(data).hexdigest()
        filename = attachment_filename(digest, reference)
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        attachment = MediaAttachment(
            hash=digest,
            original_path=reference,
            filename=filename,
            content_type=content_type,
            data=data,
        )
        self._resolved[reference] = attachment
        logger.debug(
            "attachment_resolved",
            reference=reference,
            filename=filename,
            size=len(data),
        )
        return attachment

    def _too_large(self, reference: str, size: int) -> AttachmentError:
        msg = f"Attachment exceeds {self.max_bytes} bytes: {reference}"
        return AttachmentError(
            msg,
            error_code=ErrorCode.ATT_TOO_LARGE.value,
            context={"reference": reference, "size": size},
        )
