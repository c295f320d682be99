import errno
import logging
import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Optional, Set

from .chain import resolve_full
from .config import Configuration, Mode
from .errors import ErrorCategory, ErrorHandler, FatalError, fatal_from_os_error
from .report import NullReporter
from .summary import SummaryRecord, read_summary
from .transfer import TransferExecutor, TransferLog
from .walker import walk_tree


# Get logger instance (configuration is handled in cli.py)
logger = logging.getLogger('treebackup')


class RestoreRun:
    """
    Rebuilds a source tree from a backup directory.

    The backup's summary names the full backup it refers to. The full
    backup's data is restored first, leaving out entries present in the
    restored backup itself and entries recorded as deleted; then every entry
    of the restored backup is copied on top. Restoring a full backup copies
    it as is, since it refers to itself.

    Args:
        config: Run configuration; its mode must be RESTORE
        reporter: Receives banners, progress and the final log
    """

    def __init__(self, config: Configuration, reporter=None):
        if config.mode is not Mode.RESTORE:
            raise ValueError("RestoreRun requires a restore configuration")

        self.config = config
        self.layout = config.layout
        self.reporter = reporter or NullReporter()
        self.handler = ErrorHandler(config)
        self.log = TransferLog()
        self.cleanup_path: Optional[Path] = None
        self.summary: Optional[SummaryRecord] = None
        self.full_dir: Optional[Path] = None

    def run(self) -> TransferLog:
        """
        Execute the restore.

        Returns:
            TransferLog: Successful and failed transfers

        Raises:
            FatalError: If the run has to abort; once the destination has
                been prepared, cleanup_path is the destination
        """
        source = self._check_source()
        self.summary = self._read_summary(source)
        self.full_dir = resolve_full(source.parent, self.summary.referenced_timestamp, self.layout).resolve()
        deleted = self.summary.deleted_relative_paths(self.layout)
        destination = self._prepare_destination()

        logger.info(f"Restoring '{source}' (full backup '{self.full_dir.name}') into '{destination}'")
        self.reporter.started(self.config.source, self.config.destination)

        progress = self.reporter.progress if self.config.show_progress else None
        executor = TransferExecutor(self.handler, self.log, self.cleanup_path, progress)
        self._merge(executor, source / self.layout.data_dir,
                    self.full_dir / self.layout.data_dir, deleted, destination)
        executor.apply_metadata()

        logger.info(f"Restore completed: {len(self.log.transferred)} entries restored, "
                    f"{len(self.log.errors)} errors")
        self.reporter.finished(self.log)
        return self.log

    def _check_source(self) -> Path:
        source = self.config.source
        if not (source / self.layout.data_dir).is_dir():
            raise FatalError(f"Source entity ({source}) does not exist. Please check source path.",
                             errno.ENOENT, ErrorCategory.NOT_FOUND)
        return source.resolve()

    def _read_summary(self, source: Path) -> SummaryRecord:
        try:
            return read_summary(source, self.layout)
        except FileNotFoundError as e:
            raise FatalError("Cannot open summary file. Try to use other or recreate backup.",
                             errno.ENOENT, ErrorCategory.NOT_FOUND) from e
        except OSError as e:
            raise fatal_from_os_error(e) from e

    def _prepare_destination(self) -> Path:
        destination = self.config.destination
        if not destination.is_dir():
            if os.path.lexists(destination):
                raise FatalError(f"Destination path ({destination}) is not a folder. Please check destination path.",
                                 errno.ENOTDIR, ErrorCategory.NOT_A_DIRECTORY)
            if not self.config.create_destination:
                raise FatalError(f"Destination folder ({destination}) does not exist. "
                                 f"Please check path or add 'create' operand.",
                                 errno.ENOENT, ErrorCategory.NOT_FOUND)
            try:
                os.makedirs(destination)
            except OSError as e:
                raise fatal_from_os_error(e) from e
        else:
            contents = sorted(os.listdir(destination))
            if contents and not self.config.override_destination:
                raise FatalError(f"Destination folder ({destination}) is not empty. Please clear or save it first.",
                                 errno.ENOTEMPTY, ErrorCategory.DIRECTORY_NOT_EMPTY)
            for name in contents:
                path = destination / name
                try:
                    if path.is_dir() and not path.is_symlink():
                        shutil.rmtree(path)
                    else:
                        os.unlink(path)
                except OSError as e:
                    raise fatal_from_os_error(e) from e
            if contents:
                logger.info(f"Removed {len(contents)} entries from '{destination}' before restoring")

        self.cleanup_path = destination.resolve()
        return self.cleanup_path

    def _record_walk_error(self, error: OSError) -> None:
        message = self.handler.handle(error, self.cleanup_path)
        self.log.record_error(Path(error.filename or ""), None, message)

    @staticmethod
    def _is_deleted(relative_path: str, deleted: Set[str]) -> bool:
        path = PurePosixPath(relative_path)
        return relative_path in deleted or any(parent.as_posix() in deleted for parent in path.parents)

    def _merge(self, executor: TransferExecutor, source_data: Path, full_data: Path,
               deleted: Set[str], destination: Path) -> None:
        # The full backup goes first; the restored backup's own entries are
        # newer and are copied in the second pass.
        skipped = 0
        for entry in walk_tree(full_data, on_error=self._record_walk_error):
            if os.path.lexists(source_data / entry.relative_path) or self._is_deleted(entry.relative_path, deleted):
                skipped += 1
                continue
            executor.transfer(entry, full_data, destination)

        if full_data != source_data:
            logger.info(f"Skipped {skipped} entries of the full backup that are newer or deleted")

        for entry in walk_tree(source_data, on_error=self._record_walk_error):
            executor.transfer(entry, source_data, destination)
