"""
Verify use case — check an artifact/signature pair and record a receipt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from ffpkg.adapters.base import SignatureVerifier
from ffpkg.core.errors import FfpkgError
from ffpkg.core.models.receipt import VerificationReceipt
from ffpkg.core.models.settings import Settings
from ffpkg.core.persistence.lock import LOCK_FILE, operation_lock
from ffpkg.core.persistence.receipt_file import write_receipt
from ffpkg.core.services.fetcher import cache_dir_for, ensure_cache_dir
from ffpkg.core.services.verifier import default_verifier, verify_artifact

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    """Outcome of a verify run."""

    receipt: VerificationReceipt | None = None
    receipt_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error:
            return {"ok": False, "error": self.error}
        assert self.receipt is not None
        return {
            "ok": True,
            "artifact": self.receipt.artifact_path,
            "sha256": self.receipt.artifact_sha256,
            "method": self.receipt.method,
            "key_fingerprint": self.receipt.key_fingerprint,
            "receipt": str(self.receipt_path) if self.receipt_path else None,
        }


def run_verify(
    settings: Settings,
    tarball: Path,
    signature: Path,
    verifier: SignatureVerifier | None = None,
    env: Mapping[str, str] | None = None,
) -> VerifyResult:
    """Verify ``signature`` over ``tarball``.

    On success the receipt is stored in the cache dir, where ``install``
    will look for it.
    """
    result = VerifyResult()
    verifier = verifier or default_verifier(settings)

    try:
        cache_dir = ensure_cache_dir(cache_dir_for(settings, env))
        with operation_lock(cache_dir / LOCK_FILE, timeout=settings.lock_timeout):
            receipt = verify_artifact(
                tarball,
                signature,
                verifier,
                settings.trusted_fingerprints,
            )
            result.receipt = receipt
            result.receipt_path = write_receipt(cache_dir, receipt)
    except FfpkgError as e:
        result.error = str(e)
        result.receipt = None
        return result

    logger.info("Receipt for %s written to %s", tarball.name, result.receipt_path)
    return result
