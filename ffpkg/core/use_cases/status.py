"""
Status use case — what is installed, and what is fetched and ready.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from ffpkg.core.errors import FfpkgError
from ffpkg.core.models.receipt import VerificationReceipt
from ffpkg.core.models.settings import Settings
from ffpkg.core.models.state import InstallState
from ffpkg.core.persistence.receipt_file import load_receipt
from ffpkg.core.persistence.state_file import load_state
from ffpkg.core.services.fetcher import cache_dir_for


@dataclass
class StatusResult:
    """Installed vs. cached state."""

    installed: InstallState | None = None
    cached: InstallState | None = None
    receipt: VerificationReceipt | None = None
    install_dir: Path | None = None
    cache_dir: Path | None = None
    install_present: bool = False
    error: str | None = None

    @property
    def update_pending(self) -> bool:
        """A verified fetch is newer than (or different from) the install."""
        if self.cached is None:
            return False
        if self.installed is None:
            return True
        return (self.cached.name, self.cached.version) != (
            self.installed.name,
            self.installed.version,
        )

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["install_dir"] = str(self.install_dir) if self.install_dir else None
        result["install_present"] = self.install_present
        result["installed"] = self.installed.model_dump(mode="json") if self.installed else None
        result["cached"] = self.cached.model_dump(mode="json") if self.cached else None
        result["receipt"] = self.receipt.model_dump(mode="json") if self.receipt else None
        result["update_pending"] = self.update_pending
        return result


def get_status(settings: Settings, env: Mapping[str, str] | None = None) -> StatusResult:
    """Read the system and cached state records. Read-only."""
    result = StatusResult()
    result.install_dir = Path(settings.install_dir)
    result.cache_dir = cache_dir_for(settings, env)
    result.install_present = result.install_dir.is_dir()

    try:
        result.installed = load_state(Path(settings.state_dir) / settings.state_file)
        result.cached = load_state(result.cache_dir / settings.state_file)
        result.receipt = load_receipt(result.cache_dir)
    except FfpkgError as e:
        result.error = str(e)

    return result
