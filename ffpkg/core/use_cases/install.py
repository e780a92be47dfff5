"""
Install use case — install a verified artifact and promote its state.

Install never trusts the caller's sequencing. It requires the receipt
written by ``fetch``/``verify``, re-hashes the artifact against it, and
cross-checks the cached state record before touching the install path.
The system state is promoted only after the swap succeeded.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path

from ffpkg.core.errors import FfpkgError, StateError, VerificationError
from ffpkg.core.models.settings import Settings
from ffpkg.core.models.state import InstallState
from ffpkg.core.persistence.lock import LOCK_FILE, operation_lock
from ffpkg.core.persistence.receipt_file import require_receipt
from ffpkg.core.persistence.state_file import load_state, promote_state
from ffpkg.core.services.installer import install_archive
from ffpkg.core.services.resolver import parse_url

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Outcome of an install run."""

    state: InstallState | None = None
    install_dir: Path | None = None
    state_path: Path | None = None
    entries: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error:
            return {"ok": False, "error": self.error}
        assert self.state is not None
        return {
            "ok": True,
            "name": self.state.name,
            "version": self.state.version,
            "install_dir": str(self.install_dir),
            "state_path": str(self.state_path),
            "entries": self.entries,
            "key_fingerprint": self.state.verified.key_fingerprint,
        }


def _check_consistent(state: InstallState, artifact: Path, fingerprint: str, install_dir: str) -> None:
    release = parse_url(artifact.as_uri())
    if (state.name, state.version) != (release.name, release.version):
        raise VerificationError(
            f"Cached state describes {state.name} {state.version} but the verified "
            f"artifact is {release.filename}; run fetch again"
        )
    if state.verified.key_fingerprint != fingerprint:
        raise VerificationError(
            f"Cached state was verified with {state.verified.key_fingerprint} "
            f"but the receipt names {fingerprint}; run fetch again"
        )
    if state.installed_at.rstrip("/") != install_dir:
        raise StateError(
            f"Cached state targets {state.installed_at} but install_dir is {install_dir}; "
            f"run fetch again"
        )


def run_install(settings: Settings, cache_dir: Path) -> InstallResult:
    """Install the verified artifact found in ``cache_dir``.

    Args:
        settings: Runtime settings (install and state locations).
        cache_dir: Cache directory holding the artifact, receipt and
            cached state written by ``fetch``.
    """
    result = InstallResult()
    install_dir = Path(settings.install_dir)
    state_dir = Path(settings.state_dir)

    try:
        if not cache_dir.is_dir():
            raise StateError(f"Cache directory {cache_dir} does not exist; run fetch first")

        with ExitStack() as locks:
            locks.enter_context(
                operation_lock(cache_dir / LOCK_FILE, timeout=settings.lock_timeout)
            )
            locks.enter_context(
                operation_lock(state_dir / LOCK_FILE, timeout=settings.lock_timeout)
            )

            receipt, artifact = require_receipt(cache_dir)
            cached = load_state(cache_dir / settings.state_file)
            if cached is None:
                raise StateError(f"No cached state in {cache_dir}; run fetch first")
            _check_consistent(cached, artifact, receipt.key_fingerprint, settings.install_dir)

            logger.info("Installing %s %s into %s", cached.name, cached.version, install_dir)
            txn = install_archive(artifact, install_dir)
            result.entries = txn.entries

            result.state_path = promote_state(cache_dir, state_dir, settings.state_file)
            result.state = cached
            result.install_dir = install_dir

    except FfpkgError as e:
        logger.debug("install failed", exc_info=True)
        result.error = str(e)
        return result

    return result
