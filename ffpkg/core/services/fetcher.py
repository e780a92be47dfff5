"""
Fetcher — download the artifact and its detached signature into the cache.

Each download streams the response body into a ``.part`` sibling of the
destination and renames it into place once the body is complete, so a
failed or interrupted transfer never leaves a truncated file under the
cache name. Previously cached files of the same name are overwritten.
"""

from __future__ import annotations

import logging
import os
import shutil
import urllib.error
import urllib.request
from pathlib import Path
from typing import Mapping

from ffpkg.core.errors import FetchError
from ffpkg.core.models.release import ReleaseArtifact
from ffpkg.core.models.settings import Settings
from ffpkg.core.services.resolver import USER_AGENT

logger = logging.getLogger(__name__)

CACHE_SUBDIR = "ffpkg"
CACHE_DIR_MODE = 0o700
_CHUNK = 1024 * 1024


def user_cache_dir(env: Mapping[str, str] | None = None) -> Path:
    """``$XDG_CACHE_HOME/ffpkg``, falling back to ``~/.cache/ffpkg``."""
    env = os.environ if env is None else env
    xdg = env.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / CACHE_SUBDIR
    return Path.home() / ".cache" / CACHE_SUBDIR


def cache_dir_for(settings: Settings, env: Mapping[str, str] | None = None) -> Path:
    """Cache directory for ``settings`` (explicit setting wins)."""
    if settings.cache_dir:
        return Path(settings.cache_dir).expanduser()
    return user_cache_dir(env)


def ensure_cache_dir(path: Path) -> Path:
    """Create the cache directory with owner-only permissions."""
    try:
        path.mkdir(mode=CACHE_DIR_MODE, parents=True, exist_ok=True)
    except OSError as e:
        raise FetchError(f"Cannot create cache dir {path}: {e}") from e
    return path


def download_file(url: str, dest: Path, *, timeout: float = 60.0) -> int:
    """Stream ``url`` into ``dest``.

    Returns:
        Number of bytes written.

    Raises:
        FetchError: On any network or filesystem failure. ``dest`` is left
            as it was before the call.
    """
    part = dest.with_name(dest.name + ".part")
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})

    logger.debug("Downloading %s → %s", url, dest)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            with part.open("wb") as out:
                shutil.copyfileobj(resp, out, _CHUNK)
                out.flush()
                os.fsync(out.fileno())
                size = out.tell()
        os.replace(part, dest)
    except urllib.error.HTTPError as e:
        part.unlink(missing_ok=True)
        raise FetchError(f"Download of {url} failed: HTTP {e.code}") from e
    except (urllib.error.URLError, OSError) as e:
        part.unlink(missing_ok=True)
        raise FetchError(f"Download of {url} to {dest} failed: {e}") from e

    logger.info("Downloaded %s (%d bytes)", dest.name, size)
    return size


def fetch_artifact(release: ReleaseArtifact, cache_dir: Path, *, timeout: float = 60.0) -> Path:
    """Download the release tarball into ``cache_dir``."""
    ensure_cache_dir(cache_dir)
    dest = cache_dir / release.filename
    try:
        download_file(release.url, dest, timeout=timeout)
    except FetchError as e:
        raise FetchError(f"Getting artifact failed: {e}") from e
    return dest


def fetch_signature(release: ReleaseArtifact, cache_dir: Path, *, timeout: float = 60.0) -> Path:
    """Download the detached ``.asc`` signature next to the artifact."""
    ensure_cache_dir(cache_dir)
    dest = cache_dir / release.signature_filename
    try:
        download_file(release.signature_url, dest, timeout=timeout)
    except FetchError as e:
        raise FetchError(f"Getting signature failed: {e}") from e
    return dest
