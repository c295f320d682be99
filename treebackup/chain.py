import logging
import os
from pathlib import Path
from typing import List, Tuple

from .config import BackupLayout
from .errors import CorruptBackupError, NoValidFullBackupError
from .summary import BackupKind, read_summary


# Get logger instance (configuration is handled in cli.py)
logger = logging.getLogger('treebackup')


def list_backup_dirs(destination: Path, layout: BackupLayout) -> List[Path]:
    """
    Return timestamp-named subdirectories of a backup root, oldest first.

    Symlinks to directories count as backups.
    """
    backup_dirs = []
    with os.scandir(destination) as it:
        for entry in it:
            if entry.is_dir() and layout.is_timestamp(entry.name):
                backup_dirs.append(Path(entry.path))
    return sorted(backup_dirs, key=lambda p: p.name)


def _is_valid_full(backup_dir: Path, layout: BackupLayout) -> bool:
    try:
        record = read_summary(backup_dir, layout)
    except (OSError, CorruptBackupError) as e:
        logger.debug(f"Skipping '{backup_dir}': {e}")
        return False
    return record.kind is BackupKind.FULL and record.referenced_timestamp == backup_dir.name


def find_last_full(destination, layout: BackupLayout) -> Tuple[Path, str]:
    """
    Find the most recent valid full backup under a backup root.

    Candidates are scanned from newest to oldest; the first one whose summary
    records a full backup of its own timestamp wins.

    Args:
        destination: Backup root holding timestamp-named backups
        layout: Directory and summary naming constants

    Returns:
        Tuple[Path, str]: Path of the backup directory and its timestamp

    Raises:
        NoValidFullBackupError: If no candidate qualifies
    """
    destination = Path(destination)
    if not destination.is_dir():
        raise NoValidFullBackupError()

    try:
        candidates = list_backup_dirs(destination, layout)
    except OSError as e:
        logger.error(f"Cannot list backups in '{destination}': {e}")
        raise NoValidFullBackupError() from e

    for backup_dir in reversed(candidates):
        if _is_valid_full(backup_dir, layout):
            logger.info(f"Using full backup '{backup_dir.name}' as reference")
            return backup_dir, backup_dir.name

    raise NoValidFullBackupError()


def resolve_full(backup_root, timestamp: str, layout: BackupLayout) -> Path:
    """
    Locate the full backup a summary refers to.

    Args:
        backup_root: Directory holding the referring backup
        timestamp: Referenced full backup timestamp

    Returns:
        Path: The full backup directory

    Raises:
        NoValidFullBackupError: If it is missing, has no data tree or its
            summary is not a full backup of that timestamp
    """
    full_dir = Path(backup_root) / timestamp
    if not (full_dir / layout.data_dir).is_dir():
        raise NoValidFullBackupError(
            f"Full backup entity ({full_dir}) does not exist. Please use other backup.")
    if not _is_valid_full(full_dir, layout):
        raise NoValidFullBackupError(
            f"Full backup entity ({full_dir}) has no valid summary. Please use other backup.")
    return full_dir
