import argparse
import errno
import logging
import sys
from typing import Dict, List, NoReturn, Optional, Sequence

from .config import Configuration, Mode
from .operations import BackupOperations
from .report import ConsoleReporter

# Configure logging to write to file only, not stdout
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    filename='treebackup.log',
    filemode='a'
)
logger = logging.getLogger('treebackup')


BACKUP_FLAGS = ("create", "ignore", "full_info", "error_info", "silent", "process")
RESTORE_FLAGS = ("create", "override", "ignore", "full_info", "error_info", "silent", "process")

FLAG_HELP = {
    "create": "Create the destination folder if it does not exist",
    "override": "Remove files from a non-empty destination before restoring",
    "ignore": "Continue despite errors on single entries",
    "full_info": "Display information about every entry after the run",
    "error_info": "Display information about errors only",
    "silent": "Silent mode (do not show banners or errors)",
    "process": "Show every transfer as it happens",
}


def print_error_and_exit(error_message: str, exit_code: int = errno.EINVAL) -> NoReturn:
    """
    Print an error message and exit the program with the specified exit code.

    Args:
        error_message (str): The error message to display
        exit_code (int, optional): The exit code to use. Defaults to EINVAL.
    """
    logger.error(error_message)
    print(f"Error: {error_message}", file=sys.stderr)
    sys.exit(exit_code)


class ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with EINVAL on a malformed invocation."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        print_error_and_exit(message, errno.EINVAL)


def _flags_epilog(flags: Sequence[str]) -> str:
    lines = ["options:"]
    for flag in flags:
        lines.append(f"  {flag:<12} {FLAG_HELP[flag]}")
    return "\n".join(lines)


def flags_to_options(flags: List[str], allowed: Sequence[str], parser: argparse.ArgumentParser) -> Dict[str, bool]:
    """
    Turn the bare-word flags of the command line into Configuration fields.

    Args:
        flags: Words given after the destination
        allowed: Flags accepted by this command
        parser: Used to report unknown words

    Returns:
        Dict[str, bool]: Keyword arguments for Configuration
    """
    for flag in flags:
        if flag not in allowed:
            parser.error(f"Wrong operand '{flag}'. Did you mean one of: {', '.join(allowed)}?")

    return {
        "create_destination": "create" in flags,
        "ignore_errors": "ignore" in flags,
        "show_errors": "error_info" in flags or "full_info" in flags,
        "show_successes": "full_info" in flags,
        "silent": "silent" in flags,
        "show_progress": "process" in flags,
        "override_destination": "override" in flags,
    }


def build_backup_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="treebackup",
        description="Create a backup of SOURCE in a timestamp-named folder inside DESTINATION.",
        epilog=_flags_epilog(BACKUP_FLAGS),
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    subparsers = parser.add_subparsers(dest="type", metavar="TYPE", help="Backup type")

    full_parser = subparsers.add_parser(
        "full",
        help="Create a full copy of SOURCE"
    )
    incremental_parser = subparsers.add_parser(
        "incremental",
        help="Copy only what changed in SOURCE since the last full backup"
    )
    for sub in (full_parser, incremental_parser):
        sub.add_argument("source", help="Directory to back up")
        sub.add_argument("destination", help="Folder holding the backups")
        sub.add_argument("flags", nargs="*", metavar="FLAG", help=f"One of: {', '.join(BACKUP_FLAGS)}")

    return parser


def build_restore_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="treerestore",
        description="Restore a backup folder created by treebackup into DESTINATION.",
        epilog=_flags_epilog(RESTORE_FLAGS),
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("source", help="Timestamp-named backup folder to restore")
    parser.add_argument("destination", help="Directory to restore into")
    parser.add_argument("flags", nargs="*", metavar="FLAG", help=f"One of: {', '.join(RESTORE_FLAGS)}")
    return parser


def _handle_help(argv: List[str], parser: ArgumentParser) -> bool:
    if not argv or argv[0] != "help":
        return False
    if len(argv) > 1:
        print_error_and_exit(f"Use just '{parser.prog} help' without any extra arguments for more information.")
    parser.print_help()
    return True


def backup_main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point of the treebackup command.

    Returns:
        int: Process exit status; 0 on success, the OS error number of the
            cause on a fatal error
    """
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = build_backup_parser()
    if _handle_help(argv, parser):
        return 0

    args = parser.parse_args(argv)
    if args.type is None:
        parser.error("Missing a backup type. Try 'treebackup help' for more information.")

    options = flags_to_options(args.flags, BACKUP_FLAGS, parser)
    config = Configuration.for_backup(Mode(args.type), args.source, args.destination, **options)
    logger.info(f"Starting {args.type} backup of '{args.source}' to '{args.destination}'")

    result = BackupOperations(config, ConsoleReporter(config)).backup()
    logger.info(f"Backup finished with exit code {result.exit_code}")
    return result.exit_code


def restore_main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point of the treerestore command.

    Returns:
        int: Process exit status; 0 on success, the OS error number of the
            cause on a fatal error
    """
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = build_restore_parser()
    if _handle_help(argv, parser):
        return 0

    args = parser.parse_args(argv)
    options = flags_to_options(args.flags, RESTORE_FLAGS, parser)
    config = Configuration.for_restore(args.source, args.destination, **options)
    logger.info(f"Starting restore of '{args.source}' to '{args.destination}'")

    result = BackupOperations(config, ConsoleReporter(config)).restore()
    logger.info(f"Restore finished with exit code {result.exit_code}")
    return result.exit_code


def main() -> None:
    """Console script wrapper for treebackup."""
    sys.exit(backup_main())


def restore() -> None:
    """Console script wrapper for treerestore."""
    sys.exit(restore_main())


if __name__ == "__main__":
    main()
