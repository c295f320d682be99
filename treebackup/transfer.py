import errno
import logging
import os
import shutil
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional, Tuple

from .errors import ErrorHandler, describe_os_error
from .metadata import preserve_metadata
from .walker import Entry, EntryKind


# Get logger instance (configuration is handled in cli.py)
logger = logging.getLogger('treebackup')

ProgressCallback = Callable[[Path, Path], None]


class OutcomeStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"
    DELETE = "delete"


@dataclass(frozen=True)
class TransferOutcome:
    """Result of transferring one entry."""
    source: Path
    destination: Optional[Path]
    status: OutcomeStatus
    message: str = ""
    kind: Optional[EntryKind] = None

    @property
    def detail(self) -> str:
        """Right-hand column of the report tables."""
        if self.status is OutcomeStatus.ERROR:
            return self.message
        if self.status is OutcomeStatus.DELETE:
            return "DELETE"
        return str(self.destination)


class TransferLog:
    """Ordered success and error outcomes of one run."""

    def __init__(self):
        self.successes: List[TransferOutcome] = []
        self.errors: List[TransferOutcome] = []

    def record_success(self, source: Path, destination: Path, kind: EntryKind) -> None:
        self.successes.append(TransferOutcome(source, destination, OutcomeStatus.SUCCESS, kind=kind))

    def record_error(self, source: Path, destination: Path, message: str,
                     kind: Optional[EntryKind] = None) -> None:
        self.errors.append(TransferOutcome(source, destination, OutcomeStatus.ERROR, message, kind))

    def record_deletion(self, source: Path) -> None:
        self.successes.append(TransferOutcome(source, None, OutcomeStatus.DELETE))

    @property
    def transferred(self) -> List[TransferOutcome]:
        return [o for o in self.successes if o.status is OutcomeStatus.SUCCESS]

    @property
    def deletions(self) -> List[TransferOutcome]:
        return [o for o in self.successes if o.status is OutcomeStatus.DELETE]


def reconcile(successes: List[TransferOutcome],
              failures: Dict[int, str]) -> Tuple[List[TransferOutcome], List[TransferOutcome]]:
    """
    Split successes into those that stay successful and those that failed later.

    Args:
        successes: Outcomes recorded while copying
        failures: Index into successes -> message of a later metadata failure

    Returns:
        Tuple of the remaining successes and the outcomes turned into errors,
        both in their original relative order
    """
    kept, moved = [], []
    for index, outcome in enumerate(successes):
        if index in failures:
            moved.append(replace(outcome, status=OutcomeStatus.ERROR, message=failures[index]))
        else:
            kept.append(outcome)
    return kept, moved


class TransferExecutor:
    """
    Performs the copies of one run and keeps their outcomes.

    Args:
        handler: Applies the run's error policy
        log: Outcome lists shared by all passes of the run
        cleanup_path: What a fatal error cleans up
        progress: Called with (source, destination) before each transfer
    """

    def __init__(self, handler: ErrorHandler, log: TransferLog,
                 cleanup_path: Optional[Path] = None,
                 progress: Optional[ProgressCallback] = None):
        self.handler = handler
        self.log = log
        self.cleanup_path = cleanup_path
        self.progress = progress

    def transfer(self, entry: Entry, source_root: Path, target_root: Path) -> bool:
        """
        Recreate an entry under target_root at its relative path.

        Directories are created, regular files copied without overwriting,
        and symlinks recreated with the same target string.

        Returns:
            bool: True if the entry was transferred
        """
        target = target_root / entry.relative_path
        if self.progress is not None:
            self.progress(entry.path, target)

        try:
            self._create_parents(entry, source_root, target_root)
            if entry.kind is EntryKind.DIRECTORY:
                os.makedirs(target, exist_ok=True)
            elif entry.kind is EntryKind.SYMLINK:
                os.symlink(entry.symlink_target, target)
            else:
                if os.path.lexists(target):
                    raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST),
                                          str(entry.path), None, str(target))
                shutil.copyfile(entry.path, target, follow_symlinks=False)
        except OSError as e:
            # Recorded before the handler decides whether the run ends
            self.log.record_error(entry.path, target, describe_os_error(e), entry.kind)
            self.handler.handle(e, self.cleanup_path)
            return False

        logger.debug(f"Transferred '{entry.path}' -> '{target}'")
        self.log.record_success(entry.path, target, entry.kind)
        return True

    def _create_parents(self, entry: Entry, source_root: Path, target_root: Path) -> None:
        # Ancestors that were not transferred themselves (unchanged directories
        # holding changed entries) are created from their source counterparts.
        missing = []
        parent = PurePosixPath(entry.relative_path).parent
        while parent != PurePosixPath('.') and not os.path.lexists(target_root / parent):
            missing.append(parent)
            parent = parent.parent

        for relative in reversed(missing):
            source, target = source_root / relative, target_root / relative
            os.mkdir(target)
            self.log.record_success(source, target, EntryKind.DIRECTORY)

    def apply_metadata(self) -> None:
        """
        Copy metadata for every successful non-symlink transfer.

        Runs after all copies of the run are done. Entries whose metadata
        could not be copied are moved from the success list to the error list.
        """
        failures = {}
        for index, outcome in enumerate(self.log.successes):
            if outcome.status is not OutcomeStatus.SUCCESS or outcome.kind is EntryKind.SYMLINK:
                continue
            problems = preserve_metadata(outcome.source, outcome.destination)
            if problems:
                messages = [
                    self.handler.handle_errno(code, outcome.source, outcome.destination, self.cleanup_path)
                    for code, _ in problems
                ]
                failures[index] = "  ".join(messages)

        self.log.successes, moved = reconcile(self.log.successes, failures)
        self.log.errors.extend(moved)
        if moved:
            logger.warning(f"Metadata could not be copied for {len(moved)} entries")
