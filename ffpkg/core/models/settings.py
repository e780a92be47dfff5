"""
Settings model — every path, URL and limit the pipeline uses.

Loaded from YAML by ``ffpkg.core.config.loader``. Each component gets
its values from here instead of module-level constants, so tests can
point the permalink, cache root and install root anywhere.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

DEFAULT_PERMALINK = (
    "https://download.mozilla.org/"
    "?product=firefox-devedition-latest&os=linux64&lang=en-US"
)


class Settings(BaseModel):
    """Runtime configuration."""

    # ── Sources ──────────────────────────────────────────────────
    permalink: str = DEFAULT_PERMALINK

    # ── Locations ────────────────────────────────────────────────
    install_dir: str = "/opt/firefox-developer-edition"
    state_dir: str = "/var/lib/ffpkg"
    cache_dir: str | None = None    # None = $XDG_CACHE_HOME/ffpkg
    state_file: str = "state.json"

    # ── Trust ────────────────────────────────────────────────────
    gpg_binary: str = "gpg"
    gpg_homedir: str | None = None
    trusted_fingerprints: list[str] = Field(default_factory=list)

    # ── Limits (seconds) ─────────────────────────────────────────
    http_timeout: float = 60.0
    verify_timeout: float = 120.0
    lock_timeout: float = 30.0

    @field_validator("trusted_fingerprints")
    @classmethod
    def _normalize_fingerprints(cls, value: list[str]) -> list[str]:
        return [fp.replace(" ", "").upper() for fp in value if fp.strip()]

    @field_validator("install_dir")
    @classmethod
    def _install_dir_not_root(cls, value: str) -> str:
        stripped = value.rstrip("/")
        if not stripped:
            raise ValueError("install_dir must not be the filesystem root")
        return stripped
