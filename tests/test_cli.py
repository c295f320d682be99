import errno
import os
import sys
import subprocess
import pytest
from pathlib import Path

from treebackup.cli import restore_main
from treebackup.config import BackupLayout, Mode
from tests.conftest import TestBase, T1, relative_paths


PROJECT_ROOT = Path(__file__).resolve().parent.parent


class TestCLI(TestBase):
    """Test CLI commands with proper isolation."""

    def _run_cli_command(self, args):
        """Run the backup command line in a subprocess."""
        env = dict(os.environ)
        env["PYTHONPATH"] = os.pathsep.join(p for p in (str(PROJECT_ROOT), env.get("PYTHONPATH")) if p)
        cmd = [sys.executable, "-m", "treebackup"] + [str(a) for a in args]
        return subprocess.run(cmd, capture_output=True, text=True, cwd=self.working_dir, env=env)

    def _backups(self):
        return sorted(p.name for p in self.backup_root.iterdir())

    def test_full_backup_command(self):
        result = self._run_cli_command(["full", self.source_dir, self.backup_root])

        assert result.returncode == 0, result.stderr
        assert f"Backing up from {self.source_dir} to {self.backup_root}..." in result.stdout
        assert "--> Backup operation completed!" in result.stdout

        backups = self._backups()
        assert len(backups) == 1
        assert BackupLayout().is_timestamp(backups[0])
        assert (self.backup_root / backups[0] / "type.nt").read_text() == f"full {backups[0]}\n\n"

    def test_incremental_backup_command(self):
        assert self.run_backup(Mode.FULL, T1).ok
        (self.source_dir / "file_new.txt").write_text("new file")

        result = self._run_cli_command(["incremental", self.source_dir, self.backup_root])

        assert result.returncode == 0, result.stderr
        newest = self._backups()[-1]
        assert newest != T1
        assert (self.backup_root / newest / "type.nt").read_text() == f"incremental {T1}\n\n"
        assert relative_paths(self.backup_root / newest / "data") == {"file_new.txt"}

    def test_incremental_without_full_backup(self):
        result = self._run_cli_command(["incremental", self.source_dir, self.backup_root])
        assert result.returncode == errno.ENOENT
        assert "full backup" in result.stderr
        assert self._backups() == []

    def test_help_command(self):
        result = self._run_cli_command(["help"])
        assert result.returncode == 0
        assert "usage" in result.stdout.lower()
        assert "incremental" in result.stdout
        assert "error_info" in result.stdout

    def test_help_with_extra_arguments(self):
        result = self._run_cli_command(["help", "full"])
        assert result.returncode == errno.EINVAL

    @pytest.mark.parametrize("args", [
        [],
        ["weekly", "src", "dst"],
        ["full", "src"],
    ])
    def test_malformed_invocation(self, args):
        result = self._run_cli_command(args)
        assert result.returncode == errno.EINVAL

    def test_unknown_flag(self):
        result = self._run_cli_command(["full", self.source_dir, self.backup_root, "override"])
        assert result.returncode == errno.EINVAL
        assert "Wrong operand" in result.stderr
        assert self._backups() == []

    def test_missing_destination(self):
        missing = self.working_dir / "missing"
        result = self._run_cli_command(["full", self.source_dir, missing])

        assert result.returncode == errno.ENOENT
        assert "add 'create' operand" in result.stderr
        assert not missing.exists()

    def test_silent_suppresses_output(self):
        missing = self.working_dir / "missing"
        result = self._run_cli_command(["full", self.source_dir, missing, "silent"])

        assert result.returncode == errno.ENOENT
        assert result.stdout == ""
        assert result.stderr == ""

    def test_create_and_full_info(self):
        destination = self.working_dir / "created"
        result = self._run_cli_command(["full", self.source_dir, destination, "create", "full_info"])

        assert result.returncode == 0, result.stderr
        assert "ERROR INFORMATION" in result.stdout
        assert "Everything is OK!" in result.stdout
        assert "BACK UP INFORMATION" in result.stdout
        assert "file_1.txt" in result.stdout

    def test_error_info_only(self):
        result = self._run_cli_command(["full", self.source_dir, self.backup_root, "error_info"])

        assert result.returncode == 0
        assert "ERROR INFORMATION" in result.stdout
        assert "BACK UP INFORMATION" not in result.stdout

    def test_process_flag(self):
        result = self._run_cli_command(["full", self.source_dir, self.backup_root, "process", "silent"])

        assert result.returncode == 0
        assert "PROCESS" in result.stdout
        assert "  -->  " in result.stdout
        assert "Backing up from" not in result.stdout

    def test_restore_command(self, capsys):
        assert self.run_backup(Mode.FULL, T1).ok

        exit_code = restore_main([str(self.backup_root / T1), str(self.restore_dir), "full_info"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert f"Restoring from {self.backup_root / T1} to {self.restore_dir}..." in out
        assert "RESTORE INFORMATION" in out
        assert "--> Restore operation completed!" in out
        assert relative_paths(self.restore_dir) == relative_paths(self.source_dir)

    def test_restore_into_non_empty_destination(self, capsys):
        assert self.run_backup(Mode.FULL, T1).ok
        (self.restore_dir / "keep.txt").write_text("keep")

        exit_code = restore_main([str(self.backup_root / T1), str(self.restore_dir)])

        assert exit_code == errno.ENOTEMPTY
        assert "is not empty" in capsys.readouterr().err
        assert os.listdir(self.restore_dir) == ["keep.txt"]

        assert restore_main([str(self.backup_root / T1), str(self.restore_dir), "override", "silent"]) == 0
        assert capsys.readouterr().out == ""
        assert not (self.restore_dir / "keep.txt").exists()

    def test_restore_help(self, capsys):
        assert restore_main(["help"]) == 0
        assert "override" in capsys.readouterr().out

    def test_restore_unknown_flag(self):
        with pytest.raises(SystemExit) as excinfo:
            restore_main([str(self.backup_root / T1), str(self.restore_dir), "incremental"])
        assert excinfo.value.code == errno.EINVAL
