"""
Treebackup - Full and incremental directory-tree backups.

This package copies a directory tree into timestamp-named backup folders,
either completely or as a delta against the most recent full backup, and
restores such a folder by merging it with the full backup it refers to.
"""

__version__ = "0.1.0"

# Export public API
from .config import BackupLayout, CleanupMode, Configuration, Mode
from .operations import BackupOperations, RunResult

__all__ = ["BackupOperations", "RunResult", "Configuration", "Mode", "CleanupMode", "BackupLayout"]
