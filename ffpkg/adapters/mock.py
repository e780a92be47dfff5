"""
Mock verifier — test double for the signature verification seam.

Succeeds with a fixed fingerprint by default. Can be told to fail, and
records every (signature, artifact) pair it was asked about.
"""

from __future__ import annotations

from pathlib import Path

from ffpkg.adapters.base import SignatureVerifier, VerifyOutcome


class MockVerifier(SignatureVerifier):
    """Configurable verifier for tests."""

    def __init__(
        self,
        fingerprint: str = "0123456789ABCDEF0123456789ABCDEF01234567",
        available: bool = True,
        method: str = "gpg",
        signing_fingerprint: str | None = None,
    ):
        self._fingerprint = fingerprint
        self._signing_fingerprint = signing_fingerprint
        self._available = available
        self._method = method
        self._error: str | None = None
        self._call_log: list[tuple[Path, Path]] = []

    @property
    def name(self) -> str:
        return self._method

    @property
    def call_log(self) -> list[tuple[Path, Path]]:
        """All (signature, artifact) pairs this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def is_available(self) -> bool:
        return self._available

    def set_failure(self, error: str = "Mock failure") -> None:
        """Make every following call fail."""
        self._error = error

    def verify(self, signature: Path, artifact: Path) -> VerifyOutcome:
        self._call_log.append((signature, artifact))
        if self._error is not None:
            return VerifyOutcome.failure(self._method, self._error)
        return VerifyOutcome.success(
            self._method,
            self._fingerprint,
            output="[mock] verified",
            signing_fingerprint=self._signing_fingerprint,
        )

    def reset(self) -> None:
        """Clear call log and configured failure."""
        self._call_log.clear()
        self._error = None
