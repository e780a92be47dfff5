"""
Durable file replacement.

Write to a temp file in the destination directory, flush and fsync it,
close it, rename it over the destination, then fsync the directory.
After a crash at any point the destination holds either its previous
complete content or the new complete content.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, content: bytes, mode: int = 0o644) -> None:
    """Replace ``path`` with ``content`` durably.

    Raises:
        OSError: On any failure. The temp file is removed and ``path``
            is left untouched.
    """
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as out:
            out.write(content)
            out.flush()
            os.fsync(out.fileno())
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise

    fsync_dir(path.parent)
    logger.debug("Wrote %s (%d bytes)", path, len(content))


def fsync_dir(directory: Path) -> None:
    """Flush a directory entry change (rename/create) to disk."""
    dir_fd = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)
