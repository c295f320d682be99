import errno
import logging
import os
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional


# Get logger instance (configuration is handled in cli.py)
logger = logging.getLogger('treebackup')


class EntryKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class Entry:
    """One filesystem object found while walking a tree."""
    path: Path
    relative_path: str
    kind: EntryKind
    size: int
    mtime_ns: int
    symlink_target: Optional[str] = None


def make_entry(path: Path, relative_path: str) -> Entry:
    """Describe a single path without following it if it is a symlink."""
    st = os.lstat(path)
    if stat.S_ISLNK(st.st_mode):
        return Entry(path, relative_path, EntryKind.SYMLINK, st.st_size,
                     st.st_mtime_ns, os.readlink(path))
    if stat.S_ISDIR(st.st_mode):
        return Entry(path, relative_path, EntryKind.DIRECTORY, st.st_size, st.st_mtime_ns)
    return Entry(path, relative_path, EntryKind.FILE, st.st_size, st.st_mtime_ns)


def _log_walk_error(error: OSError) -> None:
    logger.warning(f"Skipping unreadable entry '{error.filename}': {error.strerror}")


def walk_tree(root, on_error: Optional[Callable[[OSError], None]] = None,
              exclude: Optional[Path] = None) -> Iterator[Entry]:
    """
    Walk a directory tree, yielding every entry below the root.

    A directory is always yielded before anything it contains, so callers
    can create it before copying its children. Symlinks are never followed.
    Each call starts a new walk.

    Args:
        root: Directory to walk; the root itself is not yielded
        on_error: Called with any OSError met while listing or inspecting
            entries; by default the error is logged and the entry skipped
        exclude: Directory to leave out together with its contents

    Raises:
        FileNotFoundError: If the root does not exist
        NotADirectoryError: If the root is not a directory
    """
    root_path = Path(root)
    if not os.path.lexists(root_path):
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(root_path))
    if not root_path.is_dir():
        raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(root_path))
    return _walk(root_path, on_error or _log_walk_error, exclude)


def _walk(root_path: Path, on_error: Callable[[OSError], None],
          exclude: Optional[Path]) -> Iterator[Entry]:
    excluded = os.path.abspath(exclude) if exclude is not None else None

    for current, dirnames, filenames in os.walk(root_path, onerror=on_error, followlinks=False):
        current_path = Path(current)
        relative_dir = current_path.relative_to(root_path)

        if excluded is not None:
            dirnames[:] = [d for d in dirnames
                           if os.path.abspath(current_path / d) != excluded]
        dirnames.sort()

        for name in dirnames + sorted(filenames):
            path = current_path / name
            try:
                entry = make_entry(path, (relative_dir / name).as_posix())
            except OSError as e:
                on_error(e)
                continue
            yield entry
