"""
Change detection between a live entry and its counterpart in a full backup.

Files are compared by size and modification time only, never by content:
two files with the same size and mtime but different bytes count as
unchanged.
"""

import os
import stat
from enum import Enum
from pathlib import Path

from .walker import Entry, EntryKind


class Change(Enum):
    UNCHANGED = "unchanged"
    CHANGED = "changed"


def classify_full(entry: Entry) -> Change:
    """Full backups capture everything."""
    return Change.CHANGED


def classify(entry: Entry, reference_path: Path) -> Change:
    """
    Compare an entry of the live source with the reference full backup.

    Args:
        entry: Entry from the source tree
        reference_path: Where the entry would be inside the full backup's data

    Returns:
        Change: CHANGED if the entry must be copied into the incremental
    """
    try:
        ref = os.lstat(reference_path)
    except (FileNotFoundError, NotADirectoryError):
        return Change.CHANGED

    if entry.kind is EntryKind.DIRECTORY:
        changed = not stat.S_ISDIR(ref.st_mode) or ref.st_mtime_ns != entry.mtime_ns
    elif entry.kind is EntryKind.SYMLINK:
        changed = (not stat.S_ISLNK(ref.st_mode)
                   or os.readlink(reference_path) != entry.symlink_target)
    else:
        changed = (not stat.S_ISREG(ref.st_mode)
                   or ref.st_mtime_ns != entry.mtime_ns
                   or ref.st_size != entry.size)

    return Change.CHANGED if changed else Change.UNCHANGED
