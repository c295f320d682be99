import errno
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .config import Configuration


# Get logger instance (configuration is handled in cli.py)
logger = logging.getLogger('treebackup')


class ErrorCategory(Enum):
    """Closed set of error kinds reported to the user."""
    PERMISSION_DENIED = "permission-denied"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    NOT_A_DIRECTORY = "not-a-directory"
    IS_A_DIRECTORY = "is-a-directory"
    DIRECTORY_NOT_EMPTY = "directory-not-empty"
    OUT_OF_SPACE = "out-of-space"
    SYMLINK_LOOP = "symlink-loop"
    READ_ONLY_FILESYSTEM = "read-only-filesystem"
    DEVICE_BUSY = "device-busy"
    CROSS_DEVICE_LINK = "cross-device-link"
    OPERATION_NOT_PERMITTED = "operation-not-permitted"
    NAME_TOO_LONG = "name-too-long"
    FILE_TOO_LARGE = "file-too-large"
    RESOURCE_UNAVAILABLE = "resource-temporarily-unavailable"
    INVALID_BACKUP = "invalid-backup"
    UNKNOWN = "unknown"


class BackupError(Exception):
    """Base class for errors raised by backup and restore runs."""

    def __init__(self, message: str, code: int = errno.EIO,
                 category: ErrorCategory = ErrorCategory.UNKNOWN):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category


class FatalError(BackupError):
    """
    An error that ends the run.

    Args:
        message: Human readable description
        code: OS error number used as the process exit status
        category: Classified kind of the error
        cleanup_path: Directory the driver cleans up before exiting, or None
            when nothing written by this run may be touched
    """

    def __init__(self, message: str, code: int = errno.EIO,
                 category: ErrorCategory = ErrorCategory.UNKNOWN,
                 cleanup_path: Optional[Path] = None):
        super().__init__(message, code, category)
        self.cleanup_path = cleanup_path


class CorruptBackupError(FatalError):
    """The summary file of a backup is missing data or malformed."""

    def __init__(self, message: str, cleanup_path: Optional[Path] = None):
        super().__init__(message, errno.EINVAL, ErrorCategory.INVALID_BACKUP, cleanup_path)


class NoValidFullBackupError(FatalError):
    """No usable full backup exists for the requested chain."""

    def __init__(self, message: str = "Correct full backup has not been found. Try to create it first.",
                 cleanup_path: Optional[Path] = None):
        super().__init__(message, errno.ENOENT, ErrorCategory.NOT_FOUND, cleanup_path)


# Mapping used for errors raised by directory creation and copies
_FS_CATEGORIES = {
    errno.EACCES: ErrorCategory.PERMISSION_DENIED,
    errno.ENOENT: ErrorCategory.NOT_FOUND,
    errno.EEXIST: ErrorCategory.ALREADY_EXISTS,
    errno.ENOTDIR: ErrorCategory.NOT_A_DIRECTORY,
    errno.EISDIR: ErrorCategory.IS_A_DIRECTORY,
    errno.ENOTEMPTY: ErrorCategory.DIRECTORY_NOT_EMPTY,
    errno.ENOSPC: ErrorCategory.OUT_OF_SPACE,
    errno.ELOOP: ErrorCategory.SYMLINK_LOOP,
    errno.EROFS: ErrorCategory.READ_ONLY_FILESYSTEM,
    errno.EBUSY: ErrorCategory.DEVICE_BUSY,
    errno.EXDEV: ErrorCategory.CROSS_DEVICE_LINK,
    errno.EPERM: ErrorCategory.OPERATION_NOT_PERMITTED,
    errno.ENAMETOOLONG: ErrorCategory.NAME_TOO_LONG,
    errno.EFBIG: ErrorCategory.FILE_TOO_LARGE,
    errno.EAGAIN: ErrorCategory.RESOURCE_UNAVAILABLE,
    errno.EINVAL: ErrorCategory.INVALID_BACKUP,
}

# Mapping used for chown/chmod/utime failures, keyed on the raw errno
_ERRNO_CATEGORIES = {
    errno.EPERM: ErrorCategory.PERMISSION_DENIED,
    errno.EACCES: ErrorCategory.PERMISSION_DENIED,
    errno.ENOENT: ErrorCategory.NOT_FOUND,
    errno.EFAULT: ErrorCategory.NOT_FOUND,
    errno.ENXIO: ErrorCategory.NOT_FOUND,
    errno.ELOOP: ErrorCategory.SYMLINK_LOOP,
    errno.EBUSY: ErrorCategory.DEVICE_BUSY,
    errno.EUSERS: ErrorCategory.DEVICE_BUSY,
    errno.ENAMETOOLONG: ErrorCategory.NAME_TOO_LONG,
    errno.ENOSPC: ErrorCategory.OUT_OF_SPACE,
    errno.EROFS: ErrorCategory.READ_ONLY_FILESYSTEM,
}

_MESSAGES = {
    ErrorCategory.PERMISSION_DENIED:
        "Cannot access '{path1}' or '{path2}'. Try to check permissions or run as root.",
    ErrorCategory.NOT_FOUND:
        "Cannot find entry '{path1}' or '{path2}'. Try to check the path.",
    ErrorCategory.ALREADY_EXISTS:
        "Entry '{target}' already exists.",
    ErrorCategory.NOT_A_DIRECTORY:
        "Entry '{path1}' is not a directory. Check if you selected the correct entry or check the path.",
    ErrorCategory.IS_A_DIRECTORY:
        "Entry '{path1}' is a directory. Ensure that you've selected the correct entry or check the path.",
    ErrorCategory.DIRECTORY_NOT_EMPTY:
        "Directory '{path1}' is not empty. Try to remove files from this path or select another directory.",
    ErrorCategory.OUT_OF_SPACE:
        "Not enough free space on the drive to complete the operation. Try to remove unnecessary files.",
    ErrorCategory.SYMLINK_LOOP:
        "Too many levels of symbolic links. Ensure that links do not refer to each other recursively.",
    ErrorCategory.READ_ONLY_FILESYSTEM:
        "File system is in read-only mode. Check permissions.",
    ErrorCategory.DEVICE_BUSY:
        "File system is busy. Try to wait or close processes which use it.",
    ErrorCategory.CROSS_DEVICE_LINK:
        "Attempt to link entries between different file systems. Check that both drives use the same file system.",
    ErrorCategory.OPERATION_NOT_PERMITTED:
        "Operation is not permitted. Try to check permissions of the file or directory.",
    ErrorCategory.NAME_TOO_LONG:
        "Filename '{path1}' is too long. Try to rename the file or directory.",
    ErrorCategory.FILE_TOO_LARGE:
        "File '{path1}' or '{path2}' is too large. Try to back up a different file.",
    ErrorCategory.RESOURCE_UNAVAILABLE:
        "Resource is temporarily unavailable. Try again later.",
    ErrorCategory.INVALID_BACKUP:
        "Broken backup. Try to use another backup or recreate it.",
}


def _render(category: ErrorCategory, code: Optional[int], fallback: str,
            path1: Union[str, Path, None], path2: Union[str, Path, None]) -> str:
    template = _MESSAGES.get(category)
    if template is None:
        if fallback:
            return fallback
        return os.strerror(code) if code else "Unknown error"
    return template.format(path1=path1 or "", path2=path2 or "", target=path2 or path1 or "")


def categorize_os_error(error: OSError) -> ErrorCategory:
    """Return the category of an error raised by a copy or directory call."""
    return _FS_CATEGORIES.get(error.errno, ErrorCategory.UNKNOWN)


def describe_os_error(error: OSError) -> str:
    """
    Turn an OSError from a transfer into a fixed user-facing message.

    Args:
        error: The raised error; its filename/filename2 name the paths involved

    Returns:
        str: Message for the error's category, or the OS description for
            codes outside the known set
    """
    category = categorize_os_error(error)
    return _render(category, error.errno, error.strerror or str(error),
                   error.filename, error.filename2)


def categorize_errno(code: int) -> ErrorCategory:
    """Return the category of a raw errno from a metadata call."""
    return _ERRNO_CATEGORIES.get(code, ErrorCategory.UNKNOWN)


def describe_errno(code: int, path1: Union[str, Path, None] = None,
                   path2: Union[str, Path, None] = None) -> str:
    """Message for a metadata failure reported only by its errno."""
    return _render(categorize_errno(code), code, "", path1, path2)


class ErrorHandler:
    """Applies a run's error policy to classified filesystem errors."""

    def __init__(self, config: Configuration):
        self.ignore_errors = config.ignore_errors

    def handle(self, error: OSError, cleanup_path: Optional[Path] = None) -> str:
        """
        Classify a transfer error and either return or escalate it.

        Args:
            error: Error raised by the filesystem call
            cleanup_path: Directory to clean up if the error ends the run

        Returns:
            str: The message, when errors are being ignored

        Raises:
            FatalError: When errors are not being ignored
        """
        message = describe_os_error(error)
        return self._apply(message, error.errno, categorize_os_error(error), cleanup_path)

    def handle_errno(self, code: int, path1, path2, cleanup_path: Optional[Path] = None) -> str:
        """Same as handle() for failures known only by their errno."""
        message = describe_errno(code, path1, path2)
        return self._apply(message, code, categorize_errno(code), cleanup_path)

    def _apply(self, message: str, code: Optional[int], category: ErrorCategory,
               cleanup_path: Optional[Path]) -> str:
        if self.ignore_errors:
            logger.warning(f"Ignoring error: {message}")
            return message
        raise FatalError(message, code or errno.EIO, category, cleanup_path)


def fatal_from_os_error(error: OSError, cleanup_path: Optional[Path] = None) -> FatalError:
    """Build a FatalError for an OSError that must end the run regardless of policy."""
    return FatalError(describe_os_error(error), error.errno or errno.EIO,
                      categorize_os_error(error), cleanup_path)
