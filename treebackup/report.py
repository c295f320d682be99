import sys
from pathlib import Path
from typing import List, Optional, TextIO

from .config import Configuration, Mode
from .transfer import TransferLog, TransferOutcome


MAX_STR = 75


def prepare_path_output(path, width: int = MAX_STR) -> str:
    """Fit a path into a fixed-width column, keeping its tail."""
    text = str(path)
    if len(text) > width:
        text = "..." + text[len(text) - width + 3:]
    return text.ljust(width)


def format_title(title: str) -> str:
    """Centre a table title between dashes."""
    side = "-" * (MAX_STR - (len(title) - 7) // 2)
    return f"{side}{title}{side}"


def format_info(outcomes: List[TransferOutcome], title: str, empty: str) -> List[str]:
    """Render a report table as lines."""
    lines = ["", format_title(title)]
    if outcomes:
        for outcome in outcomes:
            lines.append(f"{prepare_path_output(outcome.source)}  -->  {prepare_path_output(outcome.detail)}")
    else:
        lines.append(empty)
    return lines


class NullReporter:
    """Reporter that prints nothing; used when the engine runs as a library."""

    def started(self, source: Path, destination: Path) -> None:
        pass

    def progress(self, source: Path, destination: Path) -> None:
        pass

    def finished(self, log: TransferLog) -> None:
        pass

    def fatal(self, message: str) -> None:
        pass


class ConsoleReporter:
    """
    Prints run banners, per-transfer progress and the final tables.

    Which parts are printed is decided by the run's configuration flags.
    """

    def __init__(self, config: Configuration, stdout: Optional[TextIO] = None,
                 stderr: Optional[TextIO] = None):
        self.config = config
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        self.restoring = config.mode is Mode.RESTORE

    def _print(self, text: str = "") -> None:
        print(text, file=self.stdout)

    def started(self, source: Path, destination: Path) -> None:
        if not self.config.silent:
            verb = "Restoring" if self.restoring else "Backing up"
            self._print(f"{verb} from {source} to {destination}...")
        if self.config.show_progress:
            self._print()
            self._print("-" * MAX_STR + "PROCESS" + "-" * MAX_STR)

    def progress(self, source: Path, destination: Path) -> None:
        self._print(f"{prepare_path_output(source)}  -->  {prepare_path_output(destination)}")

    def finished(self, log: TransferLog) -> None:
        if self.config.show_errors:
            for line in format_info(log.errors, "ERROR INFORMATION", "Everything is OK!"):
                self._print(line)
        if self.config.show_successes:
            title = "RESTORE INFORMATION" if self.restoring else "BACK UP INFORMATION"
            for line in format_info(log.successes, title, "No one entry has been backed up!"):
                self._print(line)
        if not self.config.silent:
            operation = "Restore" if self.restoring else "Backup"
            self._print()
            self._print(f"--> {operation} operation completed!")

    def fatal(self, message: str) -> None:
        if not self.config.silent:
            print(message, file=self.stderr)
