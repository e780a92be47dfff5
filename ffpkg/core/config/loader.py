"""
Configuration loader — reads config.yml into a Settings model.

Lookup order for the file:
    explicit path  >  FFPKG_CONFIG  >  user config dir  >  /etc/ffpkg

No file at all is fine: built-in defaults apply. Afterwards a small set
of FFPKG_* environment variables override individual locations.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

import yaml

from ffpkg.core.errors import ConfigError
from ffpkg.core.models.settings import Settings

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.yml"
SYSTEM_CONFIG_DIR = Path("/etc/ffpkg")

# Environment variable → Settings field
_ENV_OVERRIDES = {
    "FFPKG_PERMALINK": "permalink",
    "FFPKG_INSTALL_DIR": "install_dir",
    "FFPKG_STATE_DIR": "state_dir",
    "FFPKG_CACHE_DIR": "cache_dir",
}

__all__ = ["ConfigError", "find_config_file", "load_settings"]


def find_config_file(env: Mapping[str, str] | None = None) -> Path | None:
    """Return the first existing config file, or None.

    Args:
        env: Environment mapping (default: ``os.environ``).
    """
    env = os.environ if env is None else env

    candidates: list[Path] = []
    if env.get("FFPKG_CONFIG"):
        candidates.append(Path(env["FFPKG_CONFIG"]))

    xdg = env.get("XDG_CONFIG_HOME")
    if xdg:
        candidates.append(Path(xdg) / "ffpkg" / CONFIG_FILE)
    else:
        candidates.append(Path.home() / ".config" / "ffpkg" / CONFIG_FILE)

    candidates.append(SYSTEM_CONFIG_DIR / CONFIG_FILE)

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit config path. Must exist when given.
        env: Environment mapping (default: ``os.environ``).

    Returns:
        Validated Settings model.

    Raises:
        ConfigError: If the file is unreadable or invalid.
    """
    env = os.environ if env is None else env

    if path is not None and not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    if path is None:
        path = find_config_file(env)

    data: dict = {}
    if path is not None:
        data = _read_yaml(path)
    else:
        logger.debug("No config file found, using defaults")

    for var, field_name in _ENV_OVERRIDES.items():
        if env.get(var):
            data[field_name] = env[var]

    try:
        settings = Settings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    logger.info("Settings loaded (install_dir=%s)", settings.install_dir)
    return settings


def _read_yaml(path: Path) -> dict:
    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under an "ffpkg" key or be flat
    if isinstance(data.get("ffpkg"), dict):
        return dict(data["ffpkg"])
    return dict(data)
