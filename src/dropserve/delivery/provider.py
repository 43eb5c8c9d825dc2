"""
=============================================================================
CONTENT PROVIDERS
=============================================================================

A content provider answers four questions about the one item this process
serves:

    filename()        name presented to the client
    content_type()    value of the Content-Type header
    content_length()  byte count, or None when unknown up front
    write_to(out)     stream the bytes

Two variants, chosen once at startup from a ContentSpec:

    ┌──────────────────┬──────────────────────────┬──────────────────────┐
    │                  │  FileProvider            │  ArchiveProvider     │
    ├──────────────────┼──────────────────────────┼──────────────────────┤
    │  filename        │  report.pdf              │  photos.tar.gz       │
    │  content_type    │  by extension            │  fixed per kind      │
    │  content_length  │  stat size               │  None                │
    │  write_to        │  open, copy, close       │  ArchiveStreamer     │
    └──────────────────┴──────────────────────────┴──────────────────────┘

Nothing is cached. Every request re-reads from disk, so an edited file is
picked up by the next download.

=============================================================================
"""

import os
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

from ..http.mime_types import get_content_type
from .archive import ArchiveKind, ArchiveStreamer, COPY_BUFFER_SIZE


# =============================================================================
# CONTENT SPEC
# =============================================================================

@dataclass(frozen=True)
class FileSpec:
    """A single regular file."""
    path: Path
    display_name: str
    size: int

    @property
    def source(self) -> Path:
        return self.path


@dataclass(frozen=True)
class DirectorySpec:
    """A directory served as an archive."""
    root: Path
    display_name: str
    archive_kind: ArchiveKind

    @property
    def source(self) -> Path:
        return self.root


ContentSpec = Union[FileSpec, DirectorySpec]


def content_spec_for(
    path: Union[str, Path],
    archive_kind: Union[str, ArchiveKind] = ArchiveKind.TAR_GZ,
) -> ContentSpec:
    """
    Inspect ``path`` and describe what will be served.

    Args:
        path: File or directory given by the operator.
        archive_kind: Archive format used when ``path`` is a directory.

    Returns:
        FileSpec or DirectorySpec.

    Raises:
        FileNotFoundError: If the path does not exist.
        ValueError: If the path is neither a file nor a directory, or the
                    archive kind is invalid.
    """
    kind = ArchiveKind.parse(archive_kind)
    resolved = Path(path).expanduser().resolve()

    if not resolved.exists():
        raise FileNotFoundError(f"file not found: {path}")

    if resolved.is_dir():
        return DirectorySpec(
            root=resolved,
            display_name=resolved.name or "archive",
            archive_kind=kind,
        )

    if resolved.is_file():
        return FileSpec(
            path=resolved,
            display_name=resolved.name,
            size=resolved.stat().st_size,
        )

    raise ValueError(f"not a regular file or directory: {path}")


# =============================================================================
# PROVIDERS
# =============================================================================

class ContentProvider(ABC):
    """Uniform view over "the bytes to deliver"."""

    @abstractmethod
    def filename(self) -> str:
        ...

    @abstractmethod
    def content_type(self) -> str:
        ...

    @abstractmethod
    def content_length(self) -> Optional[int]:
        """Byte length if known before streaming, else None."""
        ...

    @abstractmethod
    def write_to(self, out: BinaryIO) -> None:
        """
        Stream the content into ``out``.

        Raises:
            OSError: Any open, read or write failure aborts the transfer.
        """
        ...


class FileProvider(ContentProvider):
    """Serves one file with a known length."""

    def __init__(self, spec: FileSpec, buffer_size: int = COPY_BUFFER_SIZE):
        self.spec = spec
        self.buffer_size = buffer_size

    def filename(self) -> str:
        return self.spec.display_name

    def content_type(self) -> str:
        return get_content_type(self.spec.display_name)

    def content_length(self) -> Optional[int]:
        # Re-stat so a file rewritten in place is announced correctly
        try:
            return os.stat(self.spec.path).st_size
        except OSError:
            return self.spec.size

    def write_to(self, out: BinaryIO) -> None:
        with open(self.spec.path, "rb") as src:
            shutil.copyfileobj(src, out, self.buffer_size)


class ArchiveProvider(ContentProvider):
    """Serves a directory as a streamed archive of unknown length."""

    def __init__(self, spec: DirectorySpec, buffer_size: int = COPY_BUFFER_SIZE):
        self.spec = spec
        self.streamer = ArchiveStreamer(
            root=spec.root,
            base_name=spec.display_name,
            kind=spec.archive_kind,
            buffer_size=buffer_size,
        )

    def filename(self) -> str:
        return self.spec.display_name + self.spec.archive_kind.suffix

    def content_type(self) -> str:
        return self.spec.archive_kind.content_type

    def content_length(self) -> Optional[int]:
        return None

    def write_to(self, out: BinaryIO) -> None:
        self.streamer.write_to(out)


def provider_for(spec: ContentSpec, buffer_size: int = COPY_BUFFER_SIZE) -> ContentProvider:
    """Pick the provider variant for a content spec."""
    if isinstance(spec, DirectorySpec):
        return ArchiveProvider(spec, buffer_size)
    return FileProvider(spec, buffer_size)
