import pytest
from pathlib import Path

from treebackup.config import BackupLayout
from treebackup.errors import CorruptBackupError
from treebackup.summary import BackupKind, SummaryRecord, parse_summary, read_summary, write_summary
from tests.conftest import T1, T2


LAYOUT = BackupLayout()


def test_full_summary_text(tmp_path):
    record = write_summary(tmp_path, LAYOUT, BackupKind.FULL, T1)
    assert (tmp_path / "type.nt").read_text() == f"full {T1}\n\n"
    assert record.deleted_paths == frozenset()


def test_incremental_summary_text(tmp_path):
    deleted = [f"/b/{T1}/data/z.txt", f"/b/{T1}/data/a.txt"]
    write_summary(tmp_path, LAYOUT, BackupKind.INCREMENTAL, T1, deleted)
    assert (tmp_path / "type.nt").read_text() == (
        f"incremental {T1}\n\n/b/{T1}/data/a.txt\n/b/{T1}/data/z.txt\n"
    )


def test_read_returns_what_was_written(tmp_path):
    written = write_summary(tmp_path, LAYOUT, BackupKind.INCREMENTAL, T1, [f"/b/{T1}/data/dir with space/f"])
    assert read_summary(tmp_path, LAYOUT) == written


def test_missing_summary_raises_file_not_found(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_summary(tmp_path, LAYOUT)


@pytest.mark.parametrize("text", [
    "",
    "\n\n",
    "full\n",
    f"full {T1} extra\n",
    f"differential {T1}\n",
    "full 2024-1-1\n",
])
def test_corrupt_summaries(text):
    with pytest.raises(CorruptBackupError) as excinfo:
        parse_summary(text, LAYOUT)
    assert excinfo.value.code == 22


def test_summary_that_is_not_text_is_corrupt(tmp_path):
    (tmp_path / "type.nt").write_bytes(b"\xff\xfe\x00garbage")
    with pytest.raises(CorruptBackupError) as excinfo:
        read_summary(tmp_path, LAYOUT)
    assert excinfo.value.code == 22


def test_summary_without_blank_line_is_accepted():
    record = parse_summary(f"incremental {T1}\n/b/{T1}/data/x\n", LAYOUT)
    assert record.kind is BackupKind.INCREMENTAL
    assert record.deleted_paths == {f"/b/{T1}/data/x"}


def test_deleted_paths_relative_to_full_data():
    record = SummaryRecord(BackupKind.INCREMENTAL, T1, frozenset({
        f"/old/root/{T1}/data/file.txt",
        f"/old/root/{T1}/data/dir/sub",
        f"/old/root/{T2}/data/other",
        f"/old/root/{T1}/data",
    }))
    assert record.deleted_relative_paths(LAYOUT) == {"file.txt", "dir/sub"}
