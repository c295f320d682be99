import errno
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from .chain import find_last_full
from .changes import Change, classify, classify_full
from .config import Configuration, Mode
from .errors import ErrorCategory, ErrorHandler, FatalError, fatal_from_os_error
from .report import NullReporter
from .summary import BackupKind, SummaryRecord, write_summary
from .transfer import TransferExecutor, TransferLog
from .walker import walk_tree


# Get logger instance (configuration is handled in cli.py)
logger = logging.getLogger('treebackup')


class BackupRun:
    """
    One full or incremental backup of a source tree.

    The run creates '<destination>/<timestamp>/data' holding the copied
    entries and '<destination>/<timestamp>/type.nt' describing the backup.
    An incremental run copies only entries that differ from the most recent
    full backup and records the entries deleted since then.

    Args:
        config: Run configuration; its mode must be FULL or INCREMENTAL
        reporter: Receives banners, progress and the final log
        timestamp: Name of the new backup directory; defaults to the
            current local time
    """

    def __init__(self, config: Configuration, reporter=None, timestamp: Optional[str] = None):
        if config.mode is Mode.RESTORE:
            raise ValueError("BackupRun requires a full or incremental configuration")

        self.config = config
        self.layout = config.layout
        self.reporter = reporter or NullReporter()
        self.timestamp = timestamp or datetime.now().strftime(self.layout.timestamp_format)
        if not self.layout.is_timestamp(self.timestamp):
            raise ValueError(f"Invalid backup timestamp: {self.timestamp}")

        self.handler = ErrorHandler(config)
        self.log = TransferLog()
        self.cleanup_path: Optional[Path] = None
        self.backup_dir: Optional[Path] = None
        self.summary: Optional[SummaryRecord] = None
        self.changed_count = 0

    def run(self) -> TransferLog:
        """
        Execute the backup.

        Returns:
            TransferLog: Successful and failed transfers

        Raises:
            FatalError: If the run has to abort; cleanup_path names the
                partially written backup directory, if any
        """
        source = self._check_source()
        reference_dir, reference_timestamp = self._resolve_reference()
        self._prepare_destination()

        logger.info(f"Starting {self.config.mode.value} backup of '{source}' into '{self.backup_dir}'")
        self.reporter.started(self.config.source, self.config.destination)

        progress = self.reporter.progress if self.config.show_progress else None
        executor = TransferExecutor(self.handler, self.log, self.backup_dir, progress)
        self._transfer(executor, source, reference_dir)
        executor.apply_metadata()
        self._write_summary(source, reference_dir, reference_timestamp)

        logger.info(f"Backup {self.timestamp} completed: {len(self.log.transferred)} entries copied, "
                    f"{len(self.log.errors)} errors, {len(self.log.deletions)} deletions recorded")
        self.reporter.finished(self.log)
        return self.log

    def _check_source(self) -> Path:
        source = self.config.source
        if not source.is_dir():
            raise FatalError(f"Source entity ({source}) does not exist. Please check source path.",
                             errno.ENOENT, ErrorCategory.NOT_FOUND)
        return source.resolve()

    def _resolve_reference(self) -> Tuple[Optional[Path], str]:
        if self.config.mode is Mode.FULL:
            return None, self.timestamp
        reference_dir, reference_timestamp = find_last_full(self.config.destination, self.layout)
        return reference_dir.resolve(), reference_timestamp

    def _prepare_destination(self) -> None:
        destination = self.config.destination
        if not destination.is_dir():
            if os.path.lexists(destination):
                raise FatalError(f"Destination path ({destination}) is not a folder. Please check destination path.",
                                 errno.ENOTDIR, ErrorCategory.NOT_A_DIRECTORY)
            if not self.config.create_destination:
                raise FatalError(f"Destination folder ({destination}) does not exist. "
                                 f"Please check path or add 'create' operand.",
                                 errno.ENOENT, ErrorCategory.NOT_FOUND)
        elif os.path.lexists(destination / self.timestamp):
            raise FatalError(f"Backup {self.timestamp} already exists.",
                             errno.ENOTEMPTY, ErrorCategory.DIRECTORY_NOT_EMPTY)

        backup_dir = destination / self.timestamp
        try:
            os.makedirs(backup_dir / self.layout.data_dir)
        except OSError as e:
            raise fatal_from_os_error(e, backup_dir if backup_dir.exists() else None) from e

        self.backup_dir = backup_dir.resolve()
        self.cleanup_path = self.backup_dir

    def _record_walk_error(self, error: OSError) -> None:
        message = self.handler.handle(error, self.cleanup_path)
        self.log.record_error(Path(error.filename or ""), None, message)

    def _transfer(self, executor: TransferExecutor, source: Path, reference_dir: Optional[Path]) -> None:
        data_root = self.backup_dir / self.layout.data_dir
        reference_data = reference_dir / self.layout.data_dir if reference_dir is not None else None

        for entry in walk_tree(source, on_error=self._record_walk_error,
                               exclude=self.config.destination.resolve()):
            try:
                if reference_data is None:
                    change = classify_full(entry)
                else:
                    change = classify(entry, reference_data / entry.relative_path)
            except OSError as e:
                self._record_walk_error(e)
                continue

            if change is Change.UNCHANGED:
                logger.debug(f"Unchanged since full backup: '{entry.relative_path}'")
                continue
            self.changed_count += 1
            executor.transfer(entry, source, data_root)

    def _scan_deletions(self, source: Path, reference_data: Path) -> List[str]:
        deleted = []
        for entry in walk_tree(reference_data, on_error=self._record_walk_error):
            live_path = source / entry.relative_path
            if not os.path.lexists(live_path):
                deleted.append(str(entry.path))
                self.log.record_deletion(live_path)
        return deleted

    def _write_summary(self, source: Path, reference_dir: Optional[Path], reference_timestamp: str) -> None:
        if self.config.mode is Mode.INCREMENTAL:
            kind = BackupKind.INCREMENTAL
            deleted = self._scan_deletions(source, reference_dir / self.layout.data_dir)
        else:
            kind = BackupKind.FULL
            deleted = []

        try:
            self.summary = write_summary(self.backup_dir, self.layout, kind, reference_timestamp, deleted)
        except OSError as e:
            raise FatalError("Cannot create summary file. Try to recreate backup.",
                             e.errno or errno.ENOENT, ErrorCategory.NOT_FOUND, self.cleanup_path) from e
