"""
Verifier service — fail-closed signature verification.

Wraps a ``SignatureVerifier`` adapter. Anything short of a clean
success with a parsed fingerprint raises ``VerificationError``; there
is no path that yields a receipt or trust record without one.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ffpkg.adapters.base import SignatureVerifier
from ffpkg.adapters.gpg import GpgVerifier
from ffpkg.core.errors import VerificationError
from ffpkg.core.models.receipt import VerificationReceipt
from ffpkg.core.models.settings import Settings
from ffpkg.core.models.state import TrustRecord
from ffpkg.core.persistence.receipt_file import sha256_file

logger = logging.getLogger(__name__)


def default_verifier(settings: Settings) -> SignatureVerifier:
    """The gpg verifier configured from ``settings``."""
    return GpgVerifier(
        binary=settings.gpg_binary,
        homedir=settings.gpg_homedir,
        timeout=settings.verify_timeout,
    )


def _is_trusted(fingerprint: str, trusted: list[str]) -> bool:
    # gpg may report a long key ID instead of the full fingerprint
    return any(fp == fingerprint or fp.endswith(fingerprint) for fp in trusted)


def verify_artifact(
    artifact: Path,
    signature: Path,
    verifier: SignatureVerifier,
    trusted_fingerprints: list[str] | None = None,
) -> VerificationReceipt:
    """Verify ``signature`` over ``artifact``.

    The artifact digest is taken before the signature check, so the
    receipt can only describe bytes that existed when gpg looked at them.

    Args:
        artifact: The downloaded release archive.
        signature: Its detached ``.asc`` signature.
        verifier: The adapter doing the cryptographic check.
        trusted_fingerprints: If non-empty, the signing key or its
            primary key must be one of these.

    Raises:
        VerificationError: On any failure.
    """
    for label, path in (("artifact", artifact), ("signature", signature)):
        if not path.is_file():
            raise VerificationError(f"Cannot verify: {label} not found: {path}")

    if not verifier.is_available():
        raise VerificationError(f"Cannot verify: {verifier.name} is not installed or not runnable")

    try:
        digest = sha256_file(artifact)
    except OSError as e:
        raise VerificationError(f"Cannot read {artifact}: {e}") from e

    logger.info("Verifying %s with %s", artifact.name, signature.name)
    outcome = verifier.verify(signature, artifact)

    if not outcome.ok:
        if outcome.output:
            logger.debug("%s output:\n%s", verifier.name, outcome.output)
        raise VerificationError(f"Signature check failed for {artifact.name}: {outcome.error}")

    if not outcome.fingerprint:
        raise VerificationError(f"{verifier.name} reported success without a key fingerprint")

    fingerprint = outcome.fingerprint.upper()
    signing = (outcome.signing_fingerprint or fingerprint).upper()
    if trusted_fingerprints and not (
        _is_trusted(fingerprint, trusted_fingerprints)
        or _is_trusted(signing, trusted_fingerprints)
    ):
        signer = fingerprint if signing == fingerprint else f"{signing} (primary {fingerprint})"
        raise VerificationError(
            f"{artifact.name} is signed by {signer}, which is not a trusted key"
        )

    # The artifact must be unchanged across the signature check
    try:
        unchanged = sha256_file(artifact) == digest
    except OSError as e:
        raise VerificationError(f"Cannot re-read {artifact}: {e}") from e
    if not unchanged:
        raise VerificationError(f"{artifact.name} changed while it was being verified")

    logger.info("Good signature on %s from key %s", artifact.name, fingerprint)
    return VerificationReceipt(
        artifact_path=str(artifact.resolve()),
        artifact_sha256=digest,
        signature_path=str(signature.resolve()),
        method=outcome.method,
        key_fingerprint=fingerprint,
    )


def trust_record(receipt: VerificationReceipt) -> TrustRecord:
    """The state-file view of a receipt."""
    return TrustRecord(method=receipt.method, key_fingerprint=receipt.key_fingerprint)
