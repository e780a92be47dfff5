"""
Shared test fixtures and configuration.

The release server is a real HTTP server on 127.0.0.1 with a redirecting
permalink, and gpg is replaced by a small executable that "signs" by
embedding the artifact's SHA-256 in the .asc file.
"""

from __future__ import annotations

import hashlib
import io
import sys
import tarfile
import tempfile
import textwrap
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from ffpkg.core.models.settings import Settings

FINGERPRINT = "14F26682D0916CDD81E37B6D61B7B526D98F0353"   # primary key
SUBKEY = "09BEED63F3CB12C5E5FE8F4B0E3C4DD2D4A10256"        # signing subkey


# ── Release archives ────────────────────────────────────────────


@dataclass
class Entry:
    """One archive member for ``build_tar_xz``."""

    name: str
    kind: str = "file"          # file, dir, symlink, fifo, chr
    data: bytes = b""
    mode: int = 0o644
    target: str = ""            # symlink target


def build_tar_xz(path: Path, entries: list[Entry]) -> Path:
    """Write a .tar.xz containing ``entries``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:xz") as tar:
        for entry in entries:
            info = tarfile.TarInfo(entry.name)
            info.mode = entry.mode
            if entry.kind == "dir":
                info.type = tarfile.DIRTYPE
                tar.addfile(info)
            elif entry.kind == "symlink":
                info.type = tarfile.SYMTYPE
                info.linkname = entry.target
                tar.addfile(info)
            elif entry.kind == "fifo":
                info.type = tarfile.FIFOTYPE
                tar.addfile(info)
            elif entry.kind == "chr":
                info.type = tarfile.CHRTYPE
                info.devmajor, info.devminor = 1, 3
                tar.addfile(info)
            else:
                info.size = len(entry.data)
                tar.addfile(info, io.BytesIO(entry.data))
    return path


def default_entries(version: str = "128.0") -> list[Entry]:
    """A small firefox-like tree."""
    return [
        Entry("firefox", kind="dir", mode=0o755),
        Entry("firefox/firefox", data=b"#!/bin/sh\necho " + version.encode() + b"\n", mode=0o755),
        Entry("firefox/application.ini", data=f"Version={version}\n".encode()),
        Entry("firefox/browser", kind="dir", mode=0o755),
        Entry("firefox/browser/omni.ja", data=b"\x00" * 4096, mode=0o600),
        Entry("firefox/firefox-bin", kind="symlink", target="firefox"),
    ]


@pytest.fixture
def tar_builder():
    """Return the ``build_tar_xz`` helper."""
    return build_tar_xz


# ── Fake gpg ────────────────────────────────────────────────────


def sign(content: bytes, style: str = "SIGNED") -> bytes:
    """Produce a detached "signature" the fake gpg accepts.

    Styles: SIGNED (status-fd line), LEGACY (human line only),
    NOKEY (success but no fingerprint anywhere).
    """
    return f"{style} {hashlib.sha256(content).hexdigest()}\n".encode()


_FAKE_GPG = """\
#!{python}
import hashlib
import sys

FPR = "{fingerprint}"
SUB = "{subkey}"

args = sys.argv[1:]
i = args.index("--verify")
sig_path, artifact_path = args[i + 1], args[i + 2]

with open(sig_path) as f:
    style, expected = f.read().split()
with open(artifact_path, "rb") as f:
    actual = hashlib.sha256(f.read()).hexdigest()

print("gpg: Signature made Tue 09 Jul 2024 12:00:00 UTC", file=sys.stderr)
if actual != expected:
    print("[GNUPG:] BADSIG 61B7B526D98F0353 Mozilla Software Releases")
    print('gpg: BAD signature from "Mozilla Software Releases"', file=sys.stderr)
    sys.exit(1)

if style == "SIGNED":
    print("[GNUPG:] GOODSIG 61B7B526D98F0353 Mozilla Software Releases")
    print("[GNUPG:] VALIDSIG " + SUB + " 2024-07-09 1720526400 0 4 0 1 10 00 " + FPR)
if style in ("SIGNED", "LEGACY"):
    print("gpg:                using RSA key " + SUB, file=sys.stderr)
print('gpg: Good signature from "Mozilla Software Releases"', file=sys.stderr)
"""


@pytest.fixture
def fake_gpg(tmp_path: Path) -> Path:
    """An executable standing in for gpg."""
    path = tmp_path / "bin" / "gpg"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_FAKE_GPG.format(python=sys.executable, fingerprint=FINGERPRINT, subkey=SUBKEY))
    path.chmod(0o755)
    return path


# ── Release server ──────────────────────────────────────────────


@dataclass
class ReleaseServer:
    """Routes served by the local HTTP server."""

    base_url: str = ""
    files: dict[str, bytes] = field(default_factory=dict)
    redirects: dict[str, str] = field(default_factory=dict)
    requests: list[str] = field(default_factory=list)

    def url(self, path: str) -> str:
        return self.base_url + path

    def publish(self, path: str, content: bytes) -> str:
        self.files[path] = content
        return self.url(path)

    def redirect(self, path: str, location: str) -> str:
        self.redirects[path] = location
        return self.url(path)

    def publish_release(self, version: str = "128.0", name: str = "firefox", signed: bytes | None = None) -> bytes:
        """Serve a release tarball, its signature and a /latest permalink.

        Returns the tarball bytes.
        """
        with tempfile.TemporaryDirectory() as tmp:
            archive = build_tar_xz(Path(tmp) / "a.tar.xz", default_entries(version))
            content = archive.read_bytes()

        filename = f"{name}-{version}.tar.xz"
        self.publish(f"/pub/{version}/{filename}", content)
        self.publish(f"/pub/{version}/{filename}.asc", signed if signed is not None else sign(content))
        self.redirect("/latest", f"/pub/{version}/{filename}")
        return content


def _make_handler(server_state: ReleaseServer):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            path = self.path.split("?", 1)[0]
            server_state.requests.append(path)
            if path in server_state.redirects:
                self.send_response(302)
                self.send_header("Location", server_state.redirects[path])
                self.send_header("Content-Length", "0")
                self.end_headers()
                return
            if path in server_state.files:
                body = server_state.files[path]
                self.send_response(200)
                self.send_header("Content-Type", "application/octet-stream")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)
                return
            self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()

        def log_message(self, format: str, *args) -> None:  # noqa: A002
            pass

    return Handler


@pytest.fixture
def release_server():
    """A local HTTP server with configurable files and redirects."""
    state = ReleaseServer()
    httpd = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(state))
    state.base_url = f"http://127.0.0.1:{httpd.server_address[1]}"
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield state
    finally:
        httpd.shutdown()
        httpd.server_close()


# ── Settings ────────────────────────────────────────────────────


@pytest.fixture
def settings(tmp_path: Path, release_server: ReleaseServer, fake_gpg: Path) -> Settings:
    """Settings with every location under tmp_path."""
    return Settings(
        permalink=release_server.url("/latest"),
        install_dir=str(tmp_path / "opt" / "firefox-developer-edition"),
        state_dir=str(tmp_path / "var" / "lib" / "ffpkg"),
        cache_dir=str(tmp_path / "cache" / "ffpkg"),
        gpg_binary=str(fake_gpg),
        http_timeout=10,
        verify_timeout=30,
        lock_timeout=0.5,
    )


@pytest.fixture
def config_file(tmp_path: Path, settings: Settings) -> Path:
    """A config.yml equivalent to the ``settings`` fixture."""
    path = tmp_path / "config.yml"
    path.write_text(textwrap.dedent(f"""\
        ffpkg:
          permalink: "{settings.permalink}"
          install_dir: "{settings.install_dir}"
          state_dir: "{settings.state_dir}"
          cache_dir: "{settings.cache_dir}"
          gpg_binary: "{settings.gpg_binary}"
          http_timeout: 10
          lock_timeout: 0.5
    """))
    return path


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path) -> None:
    """Keep the developer's FFPKG_* variables and config out of tests."""
    for var in ("FFPKG_CONFIG", "FFPKG_PERMALINK", "FFPKG_INSTALL_DIR",
                "FFPKG_STATE_DIR", "FFPKG_CACHE_DIR", "FFPKG_LOG_LEVEL",
                "FFPKG_LOG_FILE", "FFPKG_LOG_FILE_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
