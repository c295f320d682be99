import os
import stat
import tempfile
import pytest
from pathlib import Path

from treebackup.config import Configuration, Mode
from treebackup.operations import BackupOperations


T1 = "2024-01-01_00-00-00"
T2 = "2024-01-02_00-00-00"
T3 = "2024-01-03_00-00-00"
T4 = "2024-01-04_00-00-00"


# ---- Individual fixtures for flexible test composition ----

@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir).resolve()


@pytest.fixture
def source_dir(temp_dir):
    """Create a source directory with test files."""
    source_dir = temp_dir / "source"
    os.makedirs(source_dir)
    create_test_files(source_dir)
    return source_dir


@pytest.fixture
def backup_root(temp_dir):
    """Create an empty folder to hold backups."""
    backup_root = temp_dir / "backups"
    os.makedirs(backup_root)
    return backup_root


# ---- Base test class for inheritance-based testing ----

class TestBase:
    """Base class for backup tool tests providing isolation and cleanup."""

    def setUp(self):
        """
        Set up the test environment.

        This method:
        1. Creates a temporary directory
        2. Sets up source, backup and restore directories
        3. Creates test files in the source directory
        """
        self.temp_dir = tempfile.TemporaryDirectory()
        self.working_dir = Path(self.temp_dir.name).resolve()

        self.source_dir = self.working_dir / "source"
        self.backup_root = self.working_dir / "backups"
        self.restore_dir = self.working_dir / "restore"
        os.makedirs(self.source_dir)
        os.makedirs(self.backup_root)
        os.makedirs(self.restore_dir)

        create_test_files(self.source_dir)

    def tearDown(self):
        """Clean up after the test, restoring write access where tests removed it."""
        for root, dirs, _ in os.walk(self.working_dir):
            for d in dirs:
                path = os.path.join(root, d)
                if not os.path.islink(path):
                    os.chmod(path, 0o755)
        try:
            self.temp_dir.cleanup()
        except (PermissionError, OSError) as e:
            print(f"Warning: Could not clean up temporary directory: {e}")

    @pytest.fixture(autouse=True)
    def _setup_teardown_fixture(self):
        """
        Pytest fixture to automatically call setUp and tearDown.

        This fixture is automatically used by all test methods in classes
        that inherit from TestBase.
        """
        self.setUp()
        yield
        self.tearDown()

    def run_backup(self, mode, timestamp, source=None, destination=None, **flags):
        """
        Run a backup of the test source into the test backup root.

        Returns:
            The BackupOperations result
        """
        config = Configuration.for_backup(
            mode,
            source or self.source_dir,
            destination or self.backup_root,
            **flags
        )
        return BackupOperations(config).backup(timestamp)

    def run_restore(self, backup_name, destination=None, **flags):
        """Restore a backup folder of the test backup root."""
        config = Configuration.for_restore(
            self.backup_root / backup_name,
            destination or self.restore_dir,
            **flags
        )
        return BackupOperations(config).restore()


# ---- Helper functions for both approaches ----

def create_test_files(directory, count=5):
    """Create test files, a nested directory and a symlink in the specified directory."""
    for i in range(1, count):
        with open(directory / f"file_{i}.txt", "w") as f:
            f.write(f"Content of file {i}")

    with open(directory / "binary.bin", "wb") as f:
        f.write(os.urandom(1024))  # 1KB of random data

    nested = directory / "nested" / "inner"
    os.makedirs(nested)
    with open(nested / "deep.txt", "w") as f:
        f.write("Deep content")

    os.symlink("file_1.txt", directory / "link_to_file_1")


def set_mtime(path, seconds):
    """Give a path a fixed modification time without following symlinks."""
    os.utime(path, ns=(seconds * 1_000_000_000, seconds * 1_000_000_000))


def tree_snapshot(root, with_times=True):
    """
    Describe every entry below root.

    Returns:
        Dict mapping relative paths to (kind, content or link target, mode, mtime)
    """
    root = Path(root)
    result = {}
    for current, dirs, files in os.walk(root):
        for name in dirs + files:
            path = Path(current) / name
            relative = path.relative_to(root).as_posix()
            st = os.lstat(path)
            if stat.S_ISLNK(st.st_mode):
                result[relative] = ("symlink", os.readlink(path), None, None)
                continue
            mtime = st.st_mtime_ns if with_times else None
            if stat.S_ISDIR(st.st_mode):
                result[relative] = ("dir", None, stat.S_IMODE(st.st_mode), mtime)
            else:
                result[relative] = ("file", path.read_bytes(), stat.S_IMODE(st.st_mode), mtime)
    return result


def relative_paths(root):
    """Set of relative paths below root."""
    return set(tree_snapshot(root, with_times=False))
