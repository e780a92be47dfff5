"""Adapters — bindings for the external signature verification tool.

Public re-exports for convenient access.
"""

from ffpkg.adapters.base import SignatureVerifier, VerifyOutcome
from ffpkg.adapters.gpg import GpgVerifier
from ffpkg.adapters.mock import MockVerifier

__all__ = [
    "GpgVerifier",
    "MockVerifier",
    "SignatureVerifier",
    "VerifyOutcome",
]
