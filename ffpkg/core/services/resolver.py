"""
Resolver — permalink → concrete release URL → (filename, name, version).

The vendor publishes a stable permalink that redirects to the current
artifact. Following the redirect chain gives a versioned URL whose
last path segment carries the product name and version.
"""

from __future__ import annotations

import logging
import posixpath
import re
import urllib.error
import urllib.parse
import urllib.request

from ffpkg.core.errors import ParseError, ResolveError
from ffpkg.core.models.release import NoMatch, ReleaseArtifact
from ffpkg.core.models.settings import Settings

logger = logging.getLogger(__name__)

USER_AGENT = "ffpkg/0.1"

# <name>-<version>.tar.xz, anchored at the end of the final path segment.
# Name segments start with a letter, the version starts with a digit:
#   firefox-128.0.tar.xz              → firefox, 128.0
#   firefox-developer-121.0a1.tar.xz  → firefox-developer, 121.0a1
_ARTIFACT_RE = re.compile(
    r"(?P<name>[A-Za-z][A-Za-z0-9_]*(?:-[A-Za-z][A-Za-z0-9_]*)*)"
    r"-(?P<version>[0-9][0-9A-Za-z.\-]*)"
    r"\.tar\.xz$"
)


def resolve_latest_url(permalink: str, *, timeout: float = 60.0) -> str:
    """Follow all redirects from ``permalink`` and return the final URL.

    Raises:
        ResolveError: If the permalink is unreachable or answers with an
            HTTP error.
    """
    req = urllib.request.Request(
        permalink,
        headers={"User-Agent": USER_AGENT},
    )
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            final_url = resp.geturl()
    except urllib.error.HTTPError as e:
        raise ResolveError(f"Permalink {permalink} answered HTTP {e.code}") from e
    except (urllib.error.URLError, OSError) as e:
        raise ResolveError(f"Cannot resolve {permalink}: {e}") from e

    logger.info("Resolved %s → %s", permalink, final_url)
    return final_url


def match_artifact(url: str) -> ReleaseArtifact | NoMatch:
    """Match a URL against the release filename pattern.

    Only the final path segment is considered; query string and fragment
    are ignored.
    """
    path = urllib.parse.unquote(urllib.parse.urlsplit(url).path)
    basename = posixpath.basename(path)

    m = _ARTIFACT_RE.fullmatch(basename)
    if not m:
        return NoMatch(url=url)

    return ReleaseArtifact(
        url=url,
        filename=basename,
        name=m.group("name"),
        version=m.group("version"),
    )


def parse_url(url: str) -> ReleaseArtifact:
    """Like ``match_artifact`` but raises on no match.

    Raises:
        ParseError: If the URL is not a release artifact.
    """
    result = match_artifact(url)
    if isinstance(result, NoMatch):
        raise ParseError(f"{result.reason}: {url}")
    return result


def resolve_latest_release(settings: Settings) -> ReleaseArtifact:
    """Resolve the configured permalink and parse the release it points at."""
    url = resolve_latest_url(settings.permalink, timeout=settings.http_timeout)
    release = parse_url(url)
    logger.info("Latest release: %s %s", release.name, release.version)
    return release
