"""
=============================================================================
STREAMING ARCHIVE BUILDER
=============================================================================

Serializes a directory tree into a tar, tar.gz or zip stream in a single
pass, writing straight into the HTTP response. There is no temporary file
and the total size is never known in advance.

=============================================================================
TRAVERSAL ORDER
=============================================================================

Depth-first, root first, siblings in sorted name order:

    testdir/                    →  testdir
    ├── file1.txt               →  testdir/file1.txt
    └── subdir/                 →  testdir/subdir
        └── file2.txt           →  testdir/subdir/file2.txt

Every entry name is ``<base name>/<path relative to root>`` using forward
slashes, so the archive always unpacks into one folder named after the
shared directory. Symbolic links are skipped and never followed.

=============================================================================
ENCODERS
=============================================================================

    ┌───────────┬──────────────────────────────────────────────────────────┐
    │  Kind     │  Pipeline                                                │
    ├───────────┼──────────────────────────────────────────────────────────┤
    │  tar      │  tarfile("w|") ──► response                              │
    │  tar.gz   │  tarfile("w|") ──► GzipFile ──► response                 │
    │  zip      │  ZipFile (data descriptors) ──► response                 │
    └───────────┴──────────────────────────────────────────────────────────┘

For tar.gz the tar stream must be closed BEFORE the gzip stream, otherwise
the end-of-archive blocks never reach the compressor and the download is
corrupt.

Zip directory entries end with "/" and are stored; file entries are
deflated. The response stream is not seekable, so zipfile writes a data
descriptor after each file instead of patching the local header.

=============================================================================
FAILURE
=============================================================================

Any traversal, read or write error propagates immediately. Nothing is
finalized: headers were already sent without a length, so the client ends
up with a truncated archive. There is no rollback.

=============================================================================
"""

import gzip
import logging
import os
import shutil
import tarfile
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Iterator, Union


logger = logging.getLogger(__name__)


# Bounded copy buffer for file contents (64 KB)
COPY_BUFFER_SIZE = 64 * 1024

# Same level as gzip's default in most HTTP servers; 9 is much slower
GZIP_COMPRESS_LEVEL = 6


class ArchiveKind(Enum):
    """
    Supported archive formats.

    The value is the name used on the command line and the filename suffix
    without its leading dot.
    """
    TAR_GZ = "tar.gz"
    ZIP = "zip"
    TAR = "tar"

    @property
    def suffix(self) -> str:
        """Filename suffix, e.g. ".tar.gz"."""
        return f".{self.value}"

    @property
    def content_type(self) -> str:
        return _CONTENT_TYPES[self]

    @classmethod
    def parse(cls, text: Union[str, "ArchiveKind"]) -> "ArchiveKind":
        """
        Parse a format name ("tar.gz", "zip", "tar").

        Raises:
            ValueError: If the name is not a supported format.
        """
        if isinstance(text, cls):
            return text
        try:
            return cls(text.strip().lower())
        except ValueError:
            valid = ", ".join(kind.value for kind in cls)
            raise ValueError(
                f"invalid archive format {text!r}: valid formats are {valid}"
            ) from None


_CONTENT_TYPES = {
    ArchiveKind.TAR_GZ: "application/gzip",
    ArchiveKind.ZIP: "application/zip",
    ArchiveKind.TAR: "application/x-tar",
}


# =============================================================================
# TRAVERSAL
# =============================================================================

@dataclass(frozen=True)
class TreeEntry:
    """One visited filesystem entry and its name inside the archive."""
    path: Path
    name: str
    is_dir: bool


def walk_tree(root: Union[str, Path], base_name: str) -> Iterator[TreeEntry]:
    """
    Walk a directory depth-first in deterministic order.

    The root itself is yielded first (named ``base_name``). Each directory's
    children are visited in sorted name order; a subdirectory is descended
    into at its sorted position.

    Args:
        root: Directory to walk.
        base_name: Name of the top-level entry in the archive.

    Yields:
        TreeEntry for every directory and regular file.

    Raises:
        OSError: If a directory cannot be listed. Not caught here.
    """
    root = Path(root)
    yield TreeEntry(path=root, name=base_name, is_dir=True)
    yield from _walk_directory(root, base_name)


def _walk_directory(directory: Path, prefix: str) -> Iterator[TreeEntry]:
    with os.scandir(directory) as it:
        children = sorted(it, key=lambda entry: entry.name)

    for child in children:
        name = f"{prefix}/{child.name}"

        if child.is_symlink():
            logger.debug(f"Skipping symlink {child.path}")
            continue

        if child.is_dir(follow_symlinks=False):
            yield TreeEntry(path=Path(child.path), name=name, is_dir=True)
            yield from _walk_directory(Path(child.path), name)
        elif child.is_file(follow_symlinks=False):
            yield TreeEntry(path=Path(child.path), name=name, is_dir=False)
        else:
            # FIFOs, sockets, devices
            logger.debug(f"Skipping special file {child.path}")


# =============================================================================
# STREAMER
# =============================================================================

class ArchiveStreamer:
    """
    Writes one directory tree as an archive to a writable binary stream.

    The stream only needs ``write()``; it is never seeked or told. Each
    call to ``write_to`` re-reads the tree from disk.

    Usage:
        streamer = ArchiveStreamer("/srv/photos", "photos", ArchiveKind.ZIP)
        streamer.write_to(response_body)
    """

    def __init__(
        self,
        root: Union[str, Path],
        base_name: str,
        kind: ArchiveKind,
        buffer_size: int = COPY_BUFFER_SIZE,
    ):
        self.root = Path(root)
        self.base_name = base_name
        self.kind = kind
        self.buffer_size = buffer_size

    def write_to(self, out: BinaryIO) -> None:
        """
        Stream the whole archive into ``out``.

        Raises:
            OSError: On any traversal, read or write failure. The archive is
                     left unfinished.
        """
        if self.kind is ArchiveKind.TAR:
            self._write_tar(out)
        elif self.kind is ArchiveKind.TAR_GZ:
            self._write_tar_gz(out)
        elif self.kind is ArchiveKind.ZIP:
            self._write_zip(out)
        else:
            raise ValueError(f"Unsupported archive kind: {self.kind}")

    def entries(self) -> Iterator[TreeEntry]:
        return walk_tree(self.root, self.base_name)

    # ─────────────────────────────────────────────────────────────────────
    # TAR
    # ─────────────────────────────────────────────────────────────────────

    def _write_tar(self, out: BinaryIO) -> None:
        # "w|" is the stream mode: sequential writes only, no seeking
        tar = tarfile.open(
            fileobj=out,
            mode="w|",
            format=tarfile.PAX_FORMAT,
            copybufsize=self.buffer_size,
        )
        self._add_tar_entries(tar)
        tar.close()

    def _write_tar_gz(self, out: BinaryIO) -> None:
        gz = gzip.GzipFile(fileobj=out, mode="wb", compresslevel=GZIP_COMPRESS_LEVEL)
        tar = tarfile.open(
            fileobj=gz,
            mode="w|",
            format=tarfile.PAX_FORMAT,
            copybufsize=self.buffer_size,
        )
        self._add_tar_entries(tar)

        # Order matters: end-of-archive blocks first, then the gzip trailer
        tar.close()
        gz.close()

    def _add_tar_entries(self, tar: tarfile.TarFile) -> None:
        for entry in self.entries():
            info = tar.gettarinfo(str(entry.path), arcname=entry.name)

            if entry.is_dir:
                # gettarinfo sets DIRTYPE; directories carry no data
                tar.addfile(info)
                continue

            with open(entry.path, "rb") as src:
                tar.addfile(info, src)

    # ─────────────────────────────────────────────────────────────────────
    # ZIP
    # ─────────────────────────────────────────────────────────────────────

    def _write_zip(self, out: BinaryIO) -> None:
        zf = zipfile.ZipFile(out, mode="w", compression=zipfile.ZIP_DEFLATED)

        for entry in self.entries():
            # strict_timestamps=False clamps pre-1980 mtimes instead of failing
            zinfo = zipfile.ZipInfo.from_file(
                entry.path, arcname=entry.name, strict_timestamps=False
            )

            if entry.is_dir:
                # from_file already appended the trailing "/"
                zinfo.compress_type = zipfile.ZIP_STORED
                zf.writestr(zinfo, b"")
                continue

            zinfo.compress_type = zipfile.ZIP_DEFLATED
            with open(entry.path, "rb") as src, zf.open(zinfo, mode="w") as dest:
                shutil.copyfileobj(src, dest, self.buffer_size)

        # Writes the central directory
        zf.close()


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# walk_tree()      deterministic DFS, root first, sorted, no symlinks
# ArchiveKind      format name, suffix and Content-Type
# ArchiveStreamer  single-pass tar / tar.gz / zip writer over any stream
#
# KEY POINTS:
# - No temp files, no Content-Length
# - tar closed before gzip
# - Errors propagate, nothing is finalized after a failure
# =============================================================================
