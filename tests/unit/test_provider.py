"""
Unit tests for content specs and providers.
"""

import io
import tarfile
import zipfile
from pathlib import Path

import pytest

from dropserve.delivery.archive import ArchiveKind
from dropserve.delivery.provider import (
    ArchiveProvider,
    DirectorySpec,
    FileProvider,
    FileSpec,
    content_spec_for,
    provider_for,
)

from conftest import NonSeekableSink


class TestContentSpec:
    """Tests for content_spec_for()."""

    def test_file(self, sample_file: Path):
        """Test a regular file gives a FileSpec with its size."""
        spec = content_spec_for(sample_file)

        assert isinstance(spec, FileSpec)
        assert spec.display_name == "hello.txt"
        assert spec.size == 13
        assert spec.source == sample_file.resolve()

    def test_directory(self, sample_tree: Path):
        """Test a directory gives a DirectorySpec with the chosen format."""
        spec = content_spec_for(sample_tree, "zip")

        assert isinstance(spec, DirectorySpec)
        assert spec.display_name == "testdir"
        assert spec.archive_kind is ArchiveKind.ZIP

    def test_missing_path(self, tmp_path: Path):
        """Test that a missing path is reported as not found."""
        with pytest.raises(FileNotFoundError) as exc_info:
            content_spec_for(tmp_path / "nope.bin")

        assert "file not found" in str(exc_info.value)

    def test_invalid_archive_kind(self, sample_tree: Path):
        """Test that an unknown archive format is rejected."""
        with pytest.raises(ValueError):
            content_spec_for(sample_tree, "7z")


class TestFileProvider:
    """Tests for single-file delivery."""

    def test_metadata(self, sample_file: Path):
        """Test filename, type and length."""
        provider = provider_for(content_spec_for(sample_file))

        assert isinstance(provider, FileProvider)
        assert provider.filename() == "hello.txt"
        assert provider.content_type() == "text/plain; charset=utf-8"
        assert provider.content_length() == 13

    def test_write_to(self, sample_file: Path):
        """Test the file bytes are copied to the output."""
        provider = provider_for(content_spec_for(sample_file))
        sink = NonSeekableSink()

        provider.write_to(sink)

        assert sink.getvalue() == b"Hello, World!"

    def test_rereads_file(self, sample_file: Path):
        """Test a file changed after startup is served as it is now."""
        provider = provider_for(content_spec_for(sample_file))
        sample_file.write_bytes(b"changed")
        sink = NonSeekableSink()

        provider.write_to(sink)

        assert provider.content_length() == 7
        assert sink.getvalue() == b"changed"

    def test_removed_file(self, sample_file: Path):
        """Test that a vanished file fails the write with OSError."""
        provider = provider_for(content_spec_for(sample_file))
        sample_file.unlink()

        with pytest.raises(OSError):
            provider.write_to(NonSeekableSink())

    def test_unknown_extension(self, tmp_path: Path):
        """Test binary fallback for unknown extensions."""
        path = tmp_path / "blob.qqq"
        path.write_bytes(b"\x00\x01")

        provider = provider_for(content_spec_for(path))

        assert provider.content_type() == "application/octet-stream"


class TestArchiveProvider:
    """Tests for directory delivery."""

    @pytest.mark.parametrize("kind,filename,content_type", [
        (ArchiveKind.TAR_GZ, "testdir.tar.gz", "application/gzip"),
        (ArchiveKind.ZIP, "testdir.zip", "application/zip"),
        (ArchiveKind.TAR, "testdir.tar", "application/x-tar"),
    ])
    def test_metadata(self, sample_tree: Path, kind: ArchiveKind, filename: str, content_type: str):
        """Test filename suffix, type and unknown length per format."""
        provider = provider_for(content_spec_for(sample_tree, kind))

        assert isinstance(provider, ArchiveProvider)
        assert provider.filename() == filename
        assert provider.content_type() == content_type
        assert provider.content_length() is None

    def test_write_tar_gz(self, sample_tree: Path):
        """Test the default format produces a readable tar.gz."""
        provider = provider_for(content_spec_for(sample_tree))
        sink = NonSeekableSink()

        provider.write_to(sink)

        with tarfile.open(fileobj=io.BytesIO(sink.getvalue()), mode="r:gz") as tar:
            assert "testdir/subdir/file2.txt" in tar.getnames()

    def test_write_zip(self, sample_tree: Path):
        """Test zip output through the provider."""
        provider = provider_for(content_spec_for(sample_tree, "zip"))
        sink = NonSeekableSink()

        provider.write_to(sink)

        with zipfile.ZipFile(io.BytesIO(sink.getvalue())) as zf:
            assert "testdir/file1.txt" in zf.namelist()
