"""
Verifier adapter base — the seam between ffpkg and the trust tool.

The pipeline never talks to gpg directly. It hands a signature and an
artifact to a ``SignatureVerifier`` and gets back a ``VerifyOutcome``:
either a fingerprint or an error. Parsing the tool's output is the
adapter's concern alone, so it can be mocked in tests or replaced by a
structured verification library.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel


class VerifyOutcome(BaseModel):
    """Result of one verification attempt.

    Adapters NEVER raise — failures are captured here.
    """

    ok: bool
    method: str
    fingerprint: str | None = None          # primary key when known
    signing_fingerprint: str | None = None  # key that made the signature
    error: str | None = None
    output: str = ""

    @classmethod
    def success(
        cls,
        method: str,
        fingerprint: str,
        output: str = "",
        signing_fingerprint: str | None = None,
    ) -> VerifyOutcome:
        """Create a success outcome."""
        return cls(
            ok=True,
            method=method,
            fingerprint=fingerprint,
            signing_fingerprint=signing_fingerprint or fingerprint,
            output=output,
        )

    @classmethod
    def failure(cls, method: str, error: str, output: str = "") -> VerifyOutcome:
        """Create a failure outcome."""
        return cls(ok=False, method=method, error=error, output=output)


class SignatureVerifier(ABC):
    """Abstract base class for signature verifiers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The verification method recorded in state (e.g. 'gpg')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying tool can be run. Never raises."""

    @abstractmethod
    def verify(self, signature: Path, artifact: Path) -> VerifyOutcome:
        """Check ``signature`` against ``artifact``.

        MUST never raise. A success outcome always carries a fingerprint.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
