"""
Error types — one exception per failure kind.

Every error raised by a service derives from ``FfpkgError`` so the
use-case layer can catch a single type and turn it into a result
with a human-readable message. Low-level ``OSError`` / ``URLError``
instances are always wrapped with context before they leave a service.
"""

from __future__ import annotations


class FfpkgError(Exception):
    """Base class for all ffpkg failures."""


class ConfigError(FfpkgError):
    """Raised when configuration is invalid or unreadable."""


class ResolveError(FfpkgError):
    """Raised when the release permalink cannot be resolved."""


class ParseError(FfpkgError):
    """Raised when a URL or filename does not look like a release artifact."""


class FetchError(FfpkgError):
    """Raised when downloading an artifact or signature fails."""


class VerificationError(FfpkgError):
    """Raised when a signature cannot be verified or trusted."""


class InstallError(FfpkgError):
    """Raised when extraction or the install swap fails."""


class StateError(FfpkgError):
    """Raised when a state record or receipt cannot be read or written."""


class LockError(FfpkgError):
    """Raised when the operation lock cannot be acquired."""
