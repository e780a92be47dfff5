"""
Advisory operation lock — one fetch/verify/install at a time.

Uses ``fcntl.flock`` on a sidecar lock file. The lock is released when
the context exits or when the process dies, so a crashed run never
leaves a stale lock behind.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ffpkg.core.errors import LockError

logger = logging.getLogger(__name__)

LOCK_FILE = "ffpkg.lock"
_POLL_INTERVAL = 0.05


@contextmanager
def operation_lock(path: Path, timeout: float = 30.0) -> Iterator[Path]:
    """Hold an exclusive lock on ``path`` for the duration of the context.

    Args:
        path: Lock file path. Parent directories are created.
        timeout: Seconds to wait for a competing holder. ``0`` fails
            immediately when the lock is taken.

    Raises:
        LockError: If the lock cannot be acquired in time.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = path.open("a+", encoding="utf-8")
    except OSError as e:
        raise LockError(f"Cannot open lock file {path}: {e}") from e

    start = time.monotonic()
    try:
        while True:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() - start >= timeout:
                    raise LockError(
                        f"Another ffpkg run holds {path} (waited {timeout:.0f}s)"
                    ) from None
                time.sleep(_POLL_INTERVAL)

        fh.seek(0)
        fh.truncate()
        fh.write(f"pid={os.getpid()}\n")
        fh.flush()
        logger.debug("Acquired lock %s", path)

        try:
            yield path
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
            logger.debug("Released lock %s", path)
    finally:
        fh.close()
