import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Pattern


class Mode(Enum):
    """Kind of run requested by the caller."""
    FULL = "full"
    INCREMENTAL = "incremental"
    RESTORE = "restore"


class CleanupMode(Enum):
    """What to remove when a run aborts after it started writing."""
    REMOVE_BASE = "remove_base"
    REMOVE_CONTENTS = "remove_contents"


@dataclass(frozen=True)
class BackupLayout:
    """Fixed names shared by every backup directory."""
    data_dir: str = "data"
    summary_name: str = "type.nt"
    timestamp_format: str = "%Y-%m-%d_%H-%M-%S"
    timestamp_pattern: Pattern = field(
        default=re.compile(r"\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}"),
        compare=False,
    )

    def is_timestamp(self, value: str) -> bool:
        return self.timestamp_pattern.fullmatch(value) is not None


@dataclass(frozen=True)
class Configuration:
    """
    Settings for a single backup or restore run.

    Built once from the command line (or by a library caller) before any
    filesystem work and never modified afterwards.

    Attributes:
        mode: Full backup, incremental backup or restore
        source: Tree to back up, or backup directory to restore from
        destination: Backup root, or directory to restore into
        create_destination: Create the destination if it is missing
        ignore_errors: Collect per-entry errors instead of aborting
        show_errors: Print the error table after the run
        show_successes: Print the success table after the run
        silent: Suppress banners and the fatal message
        show_progress: Print each transfer as it happens
        override_destination: Restore only; clear a non-empty destination
        cleanup: What an abort removes once writing has started
        layout: Directory and summary naming constants
    """
    mode: Mode
    source: Path
    destination: Path
    create_destination: bool = False
    ignore_errors: bool = False
    show_errors: bool = False
    show_successes: bool = False
    silent: bool = False
    show_progress: bool = False
    override_destination: bool = False
    cleanup: CleanupMode = CleanupMode.REMOVE_BASE
    layout: BackupLayout = BackupLayout()

    @classmethod
    def for_backup(cls, mode: Mode, source, destination, **flags) -> 'Configuration':
        """Build a backup configuration; aborts remove the new backup directory."""
        if mode is Mode.RESTORE:
            raise ValueError("Backup mode must be 'full' or 'incremental'")
        flags.setdefault("cleanup", CleanupMode.REMOVE_BASE)
        return cls(mode=mode, source=Path(source), destination=Path(destination), **flags)

    @classmethod
    def for_restore(cls, source, destination, **flags) -> 'Configuration':
        """Build a restore configuration; aborts clear the destination's contents."""
        flags.setdefault("cleanup", CleanupMode.REMOVE_CONTENTS)
        return cls(mode=Mode.RESTORE, source=Path(source), destination=Path(destination), **flags)
