"""
=============================================================================
CONTENT DELIVERY
=============================================================================

    provider.py    what to send: a file, or a directory as an archive
    archive.py     how a directory becomes a tar / tar.gz / zip stream
    lifecycle.py   how many downloads are running and have finished,
                   and when to stop

=============================================================================
"""

from .archive import ArchiveKind, ArchiveStreamer, TreeEntry, walk_tree
from .lifecycle import ActiveTransfers, ShutdownReason, ShutdownSignal, TransferLimit
from .provider import (
    ArchiveProvider,
    ContentProvider,
    ContentSpec,
    DirectorySpec,
    FileProvider,
    FileSpec,
    content_spec_for,
    provider_for,
)

__all__ = [
    "ArchiveKind",
    "ArchiveStreamer",
    "TreeEntry",
    "walk_tree",
    "ActiveTransfers",
    "ShutdownReason",
    "ShutdownSignal",
    "TransferLimit",
    "ArchiveProvider",
    "ContentProvider",
    "ContentSpec",
    "DirectorySpec",
    "FileProvider",
    "FileSpec",
    "content_spec_for",
    "provider_for",
]
