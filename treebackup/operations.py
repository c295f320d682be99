import errno
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from .backup import BackupRun
from .config import CleanupMode, Configuration, Mode
from .errors import FatalError, fatal_from_os_error
from .report import NullReporter
from .restore import RestoreRun
from .transfer import TransferLog


# Get logger instance (configuration is handled in cli.py)
logger = logging.getLogger('treebackup')


class TransferRun(Protocol):
    """What BackupOperations needs from a backup or restore run."""
    log: TransferLog
    cleanup_path: Optional[Path]

    def run(self) -> TransferLog:
        ...


@dataclass
class RunResult:
    """
    Final state of a run.

    Attributes:
        exit_code: 0 on success, otherwise the OS error number of the cause
        log: Transfers recorded before the run ended
        message: The fatal error message, if the run aborted
    """
    exit_code: int
    log: TransferLog
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class BackupOperations:
    """Runs backups and restores, and cleans up after runs that abort."""

    def __init__(self, config: Configuration, reporter=None):
        """
        Initialize BackupOperations with the configuration of one run.

        Args:
            config (Configuration): What to back up or restore and how
            reporter (optional): Console reporter; nothing is printed by default
        """
        self.config = config
        self.reporter = reporter or NullReporter()
        logger.debug(f"Initialized BackupOperations for {config.mode.value} run")

    def run(self, timestamp: Optional[str] = None) -> RunResult:
        """Dispatch on the configured mode."""
        if self.config.mode is Mode.RESTORE:
            return self.restore()
        return self.backup(timestamp)

    def backup(self, timestamp: Optional[str] = None) -> RunResult:
        """
        Take a full or incremental backup.

        Args:
            timestamp (str, optional): Name of the new backup directory in
                YYYY-MM-DD_HH-MM-SS form. Defaults to the current local time.

        Returns:
            RunResult: Exit code, transfer log and fatal message if any

        Raises:
            ValueError: If the configuration is for a restore or the
                timestamp is malformed
        """
        return self._execute(BackupRun(self.config, self.reporter, timestamp))

    def restore(self) -> RunResult:
        """
        Restore a backup directory into the configured destination.

        Returns:
            RunResult: Exit code, transfer log and fatal message if any

        Raises:
            ValueError: If the configuration is not for a restore
        """
        return self._execute(RestoreRun(self.config, self.reporter))

    def _execute(self, run: TransferRun) -> RunResult:
        try:
            log = run.run()
        except FatalError as e:
            return self._abort(run, e)
        except OSError as e:
            return self._abort(run, fatal_from_os_error(e, run.cleanup_path))
        return RunResult(0, log)

    def _abort(self, run: TransferRun, error: FatalError) -> RunResult:
        logger.error(f"Aborting {self.config.mode.value} run: {error.message}")
        if error.cleanup_path is not None:
            self._cleanup(error.cleanup_path)
        self.reporter.fatal(error.message)
        return RunResult(error.code or errno.EIO, run.log, error.message)

    def _cleanup(self, path: Path) -> None:
        """
        Remove what an aborted run wrote.

        Depending on the configured CleanupMode either the path itself
        (a new backup directory) or only its contents (a restore
        destination) is removed. Failures are logged and do not stop the
        cleanup.
        """
        if not os.path.isdir(path):
            return

        if self.config.cleanup is CleanupMode.REMOVE_BASE:
            logger.info(f"Removing partially written '{path}'")
            self._remove(Path(path))
            return

        logger.info(f"Removing contents of '{path}'")
        for name in os.listdir(path):
            self._remove(Path(path) / name)

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                os.unlink(path)
        except OSError as e:
            logger.warning(f"Cleanup could not remove '{path}': {e}")
