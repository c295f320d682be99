import logging
import os
from pathlib import Path
from typing import List, Tuple


# Get logger instance (configuration is handled in cli.py)
logger = logging.getLogger('treebackup')


def preserve_metadata(source: Path, destination: Path) -> List[Tuple[int, str]]:
    """
    Copy owner, group, permission bits and access/modification times.

    Every step is attempted even if an earlier one fails. Nothing is copied
    if the source can no longer be read.

    Args:
        source: Path the entry was copied from
        destination: Path it was copied to

    Returns:
        List[Tuple[int, str]]: (errno, operation name) for each failed step
    """
    try:
        st = os.stat(source)
    except OSError as e:
        logger.debug(f"Cannot stat '{source}', metadata not copied: {e}")
        return []

    failures = []
    steps = (
        ("chown", lambda: os.chown(destination, st.st_uid, st.st_gid)),
        ("chmod", lambda: os.chmod(destination, st.st_mode)),
        ("utime", lambda: os.utime(destination, ns=(st.st_atime_ns, st.st_mtime_ns))),
    )
    for name, step in steps:
        try:
            step()
        except OSError as e:
            logger.debug(f"{name} failed for '{destination}': {e}")
            failures.append((e.errno, name))
    return failures
