"""
VerificationReceipt — proof that specific artifact bytes were verified.

Written by ``fetch`` and ``verify`` after a successful signature check,
consumed by ``install``. The digest pins the receipt to the exact bytes
that were checked: if the cached artifact changes afterwards, the
receipt no longer applies and install refuses to run.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class VerificationReceipt(BaseModel):
    """Result of a successful signature verification."""

    artifact_path: str
    artifact_sha256: str
    signature_path: str
    method: str = "gpg"
    key_fingerprint: str
    verified_at: str = Field(default_factory=_now_iso)
