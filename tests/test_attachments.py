"""Tests for content-addressed attachments and local asset resolution."""

import hashlib

import pytest

from logseq_mochi_sync.cards.attachments import (
    AttachmentResolver,
    attachment_filename,
    reference_extension,
)
from logseq_mochi_sync.error_codes import ErrorCode
from logseq_mochi_sync.exceptions import AttachmentError
from logseq_mochi_sync.logseq.assets import LocalAssetSource
from tests.fixtures import MockByteSource


class TestFilenames:
    """Test filename derivation."""

    def test_extension(self) -> None:
        assert reference_extension("../assets/Photo.JPG") == "jpg"
        assert reference_extension("../assets/file.png?v=2") == "png"
        assert reference_extension("../assets/noext") == ""

    def test_filename_from_digest(self) -> None:
        digest = "0123456789abcdef" + "f" * 48

        assert attachment_filename(digest, "x/y.png") == "0123456789abcdef.png"
        assert attachment_filename(digest, "x/y") == "0123456789abcdef"


class TestAttachmentResolver:
    """Test attachment resolution."""

    def test_resolve_hashes_bytes(self) -> None:
        source = MockByteSource({"../assets/a.png": b"data"})
        attachment = AttachmentResolver(source).resolve("../assets/a.png")

        digest = hashlib.sha256(b"data").hexdigest()
        assert attachment.hash == digest
        assert attachment.filename == f"{digest[:16]}.png"
        assert attachment.content_type == "image/png"
        assert attachment.size == 4

    def test_results_are_memoized(self) -> None:
        source = MockByteSource({"../assets/a.png": b"data"})
        resolver = AttachmentResolver(source)

        first = resolver.resolve("../assets/a.png")
        second = resolver.resolve("../assets/a.png")

        assert first is second
        assert source.reads == ["../assets/a.png"]

    def test_too_large_rejected(self) -> None:
        source = MockByteSource({"../assets/big.bin": b"x" * 11})
        resolver = AttachmentResolver(source, max_bytes=10)

        with pytest.raises(AttachmentError) as exc_info:
            resolver.resolve("../assets/big.bin")

        assert exc_info.value.error_code == ErrorCode.ATT_TOO_LARGE.value

    def test_remote_url_rejected(self) -> None:
        resolver = AttachmentResolver(MockByteSource())

        with pytest.raises(AttachmentError) as exc_info:
            resolver.resolve("https://example.com/a.png")

        assert exc_info.value.error_code == ErrorCode.ATT_REMOTE_URL.value

    def test_media_references_are_not_candidates(self) -> None:
        resolver = AttachmentResolver(MockByteSource())

        assert not resolver.is_candidate("@media/abc.png")
        assert resolver.is_candidate("../assets/abc.png")


class TestLocalAssetSource:
    """Test resolving references against the graph directory."""

    @pytest.fixture
    def graph(self, tmp_path):
        assets = tmp_path / "assets"
        assets.mkdir()
        (assets / "cat.png").write_bytes(b"meow")
        (assets / "my file.png").write_bytes(b"spaces")
        return tmp_path

    def test_relative_references(self, graph) -> None:
        source = LocalAssetSource(graph)

        assert source.read("../assets/cat.png") == b"meow"
        assert source.read("assets/cat.png") == b"meow"
        assert source.size("./assets/cat.png") == 4

    def test_percent_encoded_reference(self, graph) -> None:
        source = LocalAssetSource(graph)

        assert source.read("../assets/my%20file.png") == b"spaces"

    def test_absolute_and_file_url(self, graph) -> None:
        source = LocalAssetSource(None)
        path = graph / "assets" / "cat.png"

        assert source.read(str(path)) == b"meow"
        assert source.read(path.as_uri()) == b"meow"

    def test_remote_references_not_local(self, graph) -> None:
        source = LocalAssetSource(graph)

        assert not source.is_local("https://example.com/cat.png")
        assert not source.is_local("data:image/png;base64,AAAA")

    def test_relative_reference_without_graph_is_not_local(self) -> None:
        assert not LocalAssetSource(None).is_local("../assets/cat.png")

    def test_missing_file(self, graph) -> None:
        source = LocalAssetSource(graph)

        with pytest.raises(AttachmentError) as exc_info:
            source.size("../assets/nope.png")

        assert exc_info.value.error_code == ErrorCode.ATT_NOT_FOUND.value

    def test_unknown_home_directory(self, graph) -> None:
        source = LocalAssetSource(graph)

        with pytest.raises(AttachmentError) as exc_info:
            source.is_local("~nosuchuser123/pic.png")

        assert exc_info.value.error_code == ErrorCode.ATT_NOT_FOUND.value
