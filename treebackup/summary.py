import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath
from typing import FrozenSet, Iterable, Optional, Set

from .config import BackupLayout
from .errors import CorruptBackupError


# Get logger instance (configuration is handled in cli.py)
logger = logging.getLogger('treebackup')


class BackupKind(Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass(frozen=True)
class SummaryRecord:
    """Contents of the summary file stored in every backup directory."""
    kind: BackupKind
    referenced_timestamp: str
    deleted_paths: FrozenSet[str] = field(default_factory=frozenset)

    def to_text(self) -> str:
        lines = [f"{self.kind.value} {self.referenced_timestamp}", ""]
        lines.extend(sorted(self.deleted_paths))
        return "\n".join(lines) + "\n"

    def deleted_relative_paths(self, layout: BackupLayout) -> Set[str]:
        """
        Deleted paths relative to the referenced full backup's data tree.

        Recorded paths are absolute; each one is located by its
        '<timestamp>/<data>' component rather than the backup root it was
        written under.
        """
        relative = set()
        for recorded in self.deleted_paths:
            parts = PurePath(recorded).parts
            for i in range(1, len(parts)):
                if parts[i - 1] == self.referenced_timestamp and parts[i] == layout.data_dir:
                    if i + 1 < len(parts):
                        relative.add(PurePath(*parts[i + 1:]).as_posix())
                    break
            else:
                logger.warning(f"Ignoring deleted path outside the full backup: '{recorded}'")
        return relative


def parse_summary(text: str, layout: BackupLayout) -> SummaryRecord:
    """
    Parse summary file contents.

    Raises:
        CorruptBackupError: If the file is empty, the header does not hold a
            known kind and a well-formed timestamp, or it has extra tokens
    """
    lines = text.splitlines()
    if not lines or not lines[0].strip():
        raise CorruptBackupError("Summary file is empty.")

    header = lines[0].split()
    if len(header) != 2:
        raise CorruptBackupError(f"Summary header '{lines[0]}' is malformed.")

    kind_token, timestamp = header
    try:
        kind = BackupKind(kind_token)
    except ValueError:
        raise CorruptBackupError(f"Unknown backup type '{kind_token}'.") from None
    if not layout.is_timestamp(timestamp):
        raise CorruptBackupError("Timestamp is corrupted.")

    deleted = frozenset(line for line in lines[1:] if line)
    return SummaryRecord(kind, timestamp, deleted)


def read_summary(backup_dir: Path, layout: BackupLayout) -> SummaryRecord:
    """
    Read the summary file of a backup directory.

    Raises:
        FileNotFoundError: If the summary file is missing
        CorruptBackupError: If its contents are not text or cannot be parsed
    """
    summary_path = Path(backup_dir) / layout.summary_name
    try:
        with open(summary_path, 'r', encoding='utf-8') as f:
            text = f.read()
    except UnicodeDecodeError:
        raise CorruptBackupError(f"Summary file '{summary_path}' is not readable text.") from None
    return parse_summary(text, layout)


def write_summary(backup_dir: Path, layout: BackupLayout, kind: BackupKind,
                  referenced_timestamp: str, deleted_paths: Optional[Iterable[str]] = None) -> SummaryRecord:
    """Write the summary file for a new backup and return what was written."""
    record = SummaryRecord(kind, referenced_timestamp, frozenset(deleted_paths or ()))
    summary_path = Path(backup_dir) / layout.summary_name
    with open(summary_path, 'w', encoding='utf-8') as f:
        f.write(record.to_text())
    logger.debug(f"Wrote {kind.value} summary to '{summary_path}' "
                 f"with {len(record.deleted_paths)} deleted paths")
    return record
