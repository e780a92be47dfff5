"""
Release models — what a resolved download URL describes.

A permalink resolves to a concrete artifact URL such as
``https://host/pub/firefox-128.0.tar.xz``. The filename, product name
and version are all derived from that URL. A URL that does not match
produces a ``NoMatch`` rather than a release with blank fields.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, field_validator

SIGNATURE_SUFFIX = ".asc"


class ReleaseArtifact(BaseModel):
    """A concrete, versioned release artifact."""

    url: str
    filename: str       # e.g. firefox-128.0.tar.xz
    name: str           # e.g. firefox
    version: str        # e.g. 128.0

    @field_validator("url", "filename", "name", "version")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    @property
    def signature_url(self) -> str:
        """URL of the detached signature."""
        return self.url + SIGNATURE_SUFFIX

    @property
    def signature_filename(self) -> str:
        """Cache filename of the detached signature."""
        return self.filename + SIGNATURE_SUFFIX


@dataclass(frozen=True)
class NoMatch:
    """A URL that is not a recognisable release artifact."""

    url: str
    reason: str = "URL does not end in <name>-<version>.tar.xz"

    def __bool__(self) -> bool:
        return False
