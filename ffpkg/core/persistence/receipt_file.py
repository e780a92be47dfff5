"""
Verification receipts — the link between ``verify`` and ``install``.

A receipt records which artifact bytes were verified and by which key.
``require_receipt`` re-hashes the artifact and refuses anything whose
digest no longer matches, so install only ever consumes verified bytes.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path

from pydantic import ValidationError

from ffpkg.core.errors import StateError, VerificationError
from ffpkg.core.models.receipt import VerificationReceipt
from ffpkg.core.persistence.atomic import atomic_write_bytes

logger = logging.getLogger(__name__)

RECEIPT_FILE = "receipt.json"


def sha256_file(path: Path) -> str:
    """Hex SHA-256 of a file, read in chunks."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def write_receipt(cache_dir: Path, receipt: VerificationReceipt) -> Path:
    """Persist ``receipt`` as the current receipt for ``cache_dir``."""
    path = cache_dir / RECEIPT_FILE
    content = json.dumps(receipt.model_dump(mode="json"), indent=2) + "\n"
    try:
        cache_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        atomic_write_bytes(path, content.encode("utf-8"), mode=0o600)
    except OSError as e:
        raise StateError(f"Cannot write receipt {path}: {e}") from e
    logger.debug("Receipt written for %s", receipt.artifact_path)
    return path


def load_receipt(cache_dir: Path) -> VerificationReceipt | None:
    """Read the receipt in ``cache_dir``, or None if there is none."""
    path = cache_dir / RECEIPT_FILE
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return VerificationReceipt.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise StateError(f"Unreadable receipt {path}: {e}") from e


def require_receipt(cache_dir: Path) -> tuple[VerificationReceipt, Path]:
    """Return the receipt and the artifact it vouches for.

    Raises:
        VerificationError: If there is no receipt, the artifact is gone,
            or its bytes changed since verification.
    """
    receipt = load_receipt(cache_dir)
    if receipt is None:
        raise VerificationError(
            f"No verification receipt in {cache_dir}; run fetch or verify first"
        )

    artifact = Path(receipt.artifact_path)
    if not artifact.is_file():
        raise VerificationError(f"Verified artifact is missing: {artifact}")

    try:
        actual = sha256_file(artifact)
    except OSError as e:
        raise VerificationError(f"Cannot hash {artifact}: {e}") from e

    if actual != receipt.artifact_sha256:
        raise VerificationError(
            f"{artifact.name} changed since it was verified\n"
            f"Expected: {receipt.artifact_sha256}\n"
            f"Got:      {actual}"
        )
    return receipt, artifact
