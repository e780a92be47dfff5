"""
InstallState — the durable record of what is installed.

Serialized to ``state.json`` twice: once in the user cache after a
verified fetch, and once in the system state directory after install.
The JSON layout is fixed::

    {
      "name": "firefox",
      "version": "128.0",
      "installed_at": "/opt/firefox-developer-edition",
      "verified": {"method": "gpg", "key_fingerprint": "14F2..."}
    }
"""

from __future__ import annotations

from pydantic import BaseModel, field_validator


class TrustRecord(BaseModel):
    """How the installed artifact was authenticated."""

    method: str = "gpg"
    key_fingerprint: str

    @field_validator("key_fingerprint")
    @classmethod
    def _fingerprint_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("key fingerprint must not be empty")
        return value.upper()


class InstallState(BaseModel):
    """Root state model — one per managed install path."""

    name: str
    version: str
    installed_at: str
    verified: TrustRecord

    @field_validator("name", "version")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value
