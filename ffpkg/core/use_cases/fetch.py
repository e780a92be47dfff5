"""
Fetch use case — resolve, download, verify and cache the latest release.

Nothing is written to the cached state or receipt unless the signature
verifies: the cache files from an earlier successful run stay as they
were when any step fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from ffpkg.adapters.base import SignatureVerifier
from ffpkg.core.errors import FfpkgError
from ffpkg.core.models.receipt import VerificationReceipt
from ffpkg.core.models.release import ReleaseArtifact
from ffpkg.core.models.settings import Settings
from ffpkg.core.persistence.lock import LOCK_FILE, operation_lock
from ffpkg.core.persistence.receipt_file import write_receipt
from ffpkg.core.persistence.state_file import record_fetch_state
from ffpkg.core.services.fetcher import (
    cache_dir_for,
    ensure_cache_dir,
    fetch_artifact,
    fetch_signature,
)
from ffpkg.core.services.resolver import resolve_latest_release
from ffpkg.core.services.verifier import default_verifier, trust_record, verify_artifact

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of a fetch run."""

    cache_dir: Path | None = None
    release: ReleaseArtifact | None = None
    artifact: Path | None = None
    signature: Path | None = None
    receipt: VerificationReceipt | None = None
    state_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        if self.error:
            return {"ok": False, "error": self.error}
        return {
            "ok": True,
            "cache_dir": str(self.cache_dir) if self.cache_dir else None,
            "name": self.release.name if self.release else None,
            "version": self.release.version if self.release else None,
            "url": self.release.url if self.release else None,
            "artifact": str(self.artifact) if self.artifact else None,
            "signature": str(self.signature) if self.signature else None,
            "key_fingerprint": self.receipt.key_fingerprint if self.receipt else None,
            "state_path": str(self.state_path) if self.state_path else None,
        }


def run_fetch(
    settings: Settings,
    verifier: SignatureVerifier | None = None,
    env: Mapping[str, str] | None = None,
) -> FetchResult:
    """Fetch and verify the release the permalink currently points at.

    Args:
        settings: Runtime settings.
        verifier: Signature verifier (default: gpg from settings).
        env: Environment used to locate the cache dir.

    Returns:
        FetchResult; ``error`` is set on failure.
    """
    result = FetchResult()
    verifier = verifier or default_verifier(settings)

    try:
        cache_dir = ensure_cache_dir(cache_dir_for(settings, env))
        result.cache_dir = cache_dir

        with operation_lock(cache_dir / LOCK_FILE, timeout=settings.lock_timeout):
            release = resolve_latest_release(settings)
            result.release = release

            result.signature = fetch_signature(
                release, cache_dir, timeout=settings.http_timeout
            )
            result.artifact = fetch_artifact(
                release, cache_dir, timeout=settings.http_timeout
            )

            receipt = verify_artifact(
                result.artifact,
                result.signature,
                verifier,
                settings.trusted_fingerprints,
            )
            result.receipt = receipt

            result.state_path = record_fetch_state(
                cache_dir,
                release,
                trust_record(receipt),
                installed_at=settings.install_dir,
                filename=settings.state_file,
            )
            write_receipt(cache_dir, receipt)

    except FfpkgError as e:
        logger.debug("fetch failed", exc_info=True)
        result.error = str(e)
        return result

    logger.info("Fetched %s %s", release.name, release.version)
    return result
