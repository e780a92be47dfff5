"""
State file persistence — the cached and system-wide install records.

``record_fetch_state`` writes the record into the user cache after a
verified fetch. ``promote_state`` copies that record into the system
state directory after install. Both writes are whole-record replacements
through ``atomic_write_bytes``, so a reader never sees a truncated file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from ffpkg.core.errors import StateError
from ffpkg.core.models.release import ReleaseArtifact
from ffpkg.core.models.state import InstallState, TrustRecord
from ffpkg.core.persistence.atomic import atomic_write_bytes

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = "state.json"
STATE_DIR_MODE = 0o755


def serialize_state(state: InstallState) -> bytes:
    """Render a state record as the on-disk JSON document."""
    data = state.model_dump(mode="json")
    return (json.dumps(data, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def load_state(path: Path) -> InstallState | None:
    """Load a state record.

    Returns:
        The record, or None if the file does not exist.

    Raises:
        StateError: If the file exists but is unreadable or invalid.
    """
    if not path.is_file():
        logger.debug("No state file at %s", path)
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise StateError(f"Cannot read state file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise StateError(f"Corrupt state file {path}: {e}") from e

    try:
        return InstallState.model_validate(data)
    except ValidationError as e:
        raise StateError(f"Invalid state file {path}: {e}") from e


def record_fetch_state(
    cache_dir: Path,
    release: ReleaseArtifact,
    trust: TrustRecord,
    installed_at: str,
    filename: str = DEFAULT_STATE_FILE,
) -> Path:
    """Write the cached state record for a verified release.

    Any previous record is replaced as a whole.
    """
    state = InstallState(
        name=release.name,
        version=release.version,
        installed_at=installed_at,
        verified=trust,
    )
    path = cache_dir / filename
    try:
        cache_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        atomic_write_bytes(path, serialize_state(state))
    except OSError as e:
        raise StateError(f"Cannot write cached state {path}: {e}") from e

    logger.info("Cached state: %s %s (key %s)", state.name, state.version, trust.key_fingerprint)
    return path


def promote_state(
    cache_dir: Path,
    state_dir: Path,
    filename: str = DEFAULT_STATE_FILE,
) -> Path:
    """Copy the cached state record into the system state directory.

    The cached file is validated first, then its bytes are written to the
    destination with the temp-file / fsync / rename / fsync-dir sequence.
    On failure the destination keeps its previous content.

    Returns:
        Path of the promoted state file.
    """
    src = cache_dir / filename
    dst = state_dir / filename

    if load_state(src) is None:
        raise StateError(f"No cached state at {src}; run fetch first")

    try:
        content = src.read_bytes()
    except OSError as e:
        raise StateError(f"Cannot read cached state {src}: {e}") from e

    try:
        state_dir.mkdir(mode=STATE_DIR_MODE, parents=True, exist_ok=True)
        atomic_write_bytes(dst, content)
    except OSError as e:
        raise StateError(f"Cannot write state {dst}: {e}") from e

    logger.info("State promoted to %s", dst)
    return dst
