"""Reading graph assets from the local filesystem."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse

from logseq_mochi_sync.domain.interfaces.byte_source import IByteSource
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import AttachmentError

_REMOTE_SCHEMES = ("http://", "https://", "data:", "ftp://", "mailto:")


class LocalAssetSource(IByteSource):
    """Resolves media references against a graph directory.

    Relative references (``../assets/x.png``, ``assets/x.png``) resolve from
    the graph root; absolute paths and ``file://`` URLs are used as they are.
    """

    def __init__(self, graph_path: Path | None):
        self.graph_path = graph_path

    def is_local(self, reference: str) -> bool:
        if reference.lower().startswith(_REMOTE_SCHEMES):
            return False
        return self.resolve_path(reference) is not None

    def resolve_path(self, reference: str) -> Path | None:
        """Map a reference to a filesystem path (which may not exist).

        Raises:
            AttachmentError: If a ``~user`` prefix names an unknown home directory
        """
        reference = reference.split("?", 1)[0].split("#", 1)[0]
        if reference.lower().startswith("file://"):
            return Path(unquote(urlparse(reference).path))

        try:
            path = Path(unquote(reference)).expanduser()
        except RuntimeError as e:
            msg = f"Cannot resolve home directory in media reference: {reference}"
            raise AttachmentError(
                msg,
                error_code=ErrorCode.ATT_NOT_FOUND.value,
                context={"reference": reference},
            ) from e
        if path.is_absolute():
            return path
        if self.graph_path is None:
            return None

        relative = unquote(reference)
        while relative.startswith(("../", "./")):
            relative = relative.split("/", 1)[1]
        return self.graph_path / relative

    def _existing(self, reference: str) -> Path:
        path = self.resolve_path(reference)
        if path is None or not path.is_file():
            msg = f"Media file not found: {reference}"
            raise AttachmentError(
                msg,
                error_code=ErrorCode.ATT_NOT_FOUND.value,
                context={"reference": reference, "path": str(path) if path else None},
            )
        return path

    def size(self, reference: str) -> int:
        return self._existing(reference).stat().st_size

    def read(self, reference: str) -> bytes:
        path = self._existing(reference)
        try:
            return path.read_bytes()
        except OSError as e:
            msg = f"Cannot read media file {path}: {e}"
            raise AttachmentError(
                msg,
                error_code=ErrorCode.ATT_NOT_FOUND.value,
                context={"reference": reference},
            ) from e
