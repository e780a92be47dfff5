"""
GnuPG verifier — runs ``gpg --verify`` and extracts the signing key.

gpg is invoked with ``--status-fd 1`` so a machine-readable
``[GNUPG:] VALIDSIG <fingerprint>`` line is preferred. Older or wrapped
binaries that only print the human line ``using RSA key <HEX>`` are
still understood. Output with neither line is treated as untrusted.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import time
from pathlib import Path

from ffpkg.adapters.base import SignatureVerifier, VerifyOutcome

logger = logging.getLogger(__name__)

_VALIDSIG_RE = re.compile(r"^\[GNUPG:\] VALIDSIG (.+)$", re.MULTILINE)
_USING_KEY_RE = re.compile(r"using [A-Z0-9]+ key ([0-9A-Fa-f]+)")
_HEX_RE = re.compile(r"[0-9A-Fa-f]+")

# VALIDSIG <signing fpr> <date> <ts> <expire> <ver> <reserved> <pk algo>
#          <hash algo> <sig class> [<primary fpr>]
_PRIMARY_FIELD = 9


def parse_fingerprints(output: str) -> tuple[str | None, str | None]:
    """Extract ``(signing key, primary key)`` fingerprints from gpg output.

    Releases are usually signed by a subkey, so the two differ. The
    primary fingerprint is only known from a ``VALIDSIG`` status line.
    """
    m = _VALIDSIG_RE.search(output)
    if m:
        fields = m.group(1).split()
        signing = fields[0].upper()
        primary = None
        if len(fields) > _PRIMARY_FIELD and _HEX_RE.fullmatch(fields[_PRIMARY_FIELD]):
            primary = fields[_PRIMARY_FIELD].upper()
        return signing, primary
    m = _USING_KEY_RE.search(output)
    if m:
        return m.group(1).upper(), None
    return None, None


def parse_fingerprint(output: str) -> str | None:
    """The fingerprint to record: the primary key when gpg names one."""
    signing, primary = parse_fingerprints(output)
    return primary or signing


class GpgVerifier(SignatureVerifier):
    """Verify detached signatures with the gpg binary.

    Args:
        binary: gpg executable name or path.
        homedir: Optional ``--homedir`` holding the trusted keyring.
        timeout: Seconds before the gpg process is abandoned.
    """

    def __init__(
        self,
        binary: str = "gpg",
        homedir: str | None = None,
        timeout: float = 120.0,
    ):
        self._binary = binary
        self._homedir = homedir
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "gpg"

    def is_available(self) -> bool:
        return shutil.which(self._binary) is not None

    def command(self, signature: Path, artifact: Path) -> list[str]:
        """Build the gpg command line."""
        cmd = [self._binary]
        if self._homedir:
            cmd += ["--homedir", self._homedir]
        cmd += ["--batch", "--status-fd", "1", "--verify", str(signature), str(artifact)]
        return cmd

    def verify(self, signature: Path, artifact: Path) -> VerifyOutcome:
        cmd = self.command(signature, artifact)
        logger.debug("Executing: %s", " ".join(cmd))
        start = time.monotonic()

        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=self._timeout,
            )
        except FileNotFoundError:
            return VerifyOutcome.failure(self.name, f"{self._binary} not found")
        except subprocess.TimeoutExpired:
            return VerifyOutcome.failure(
                self.name, f"{self._binary} timed out after {self._timeout}s"
            )
        except OSError as e:
            return VerifyOutcome.failure(self.name, f"Cannot run {self._binary}: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout or ""

        if result.returncode != 0:
            logger.debug("gpg exited %d after %dms", result.returncode, elapsed_ms)
            return VerifyOutcome.failure(
                self.name,
                f"signature check failed (exit {result.returncode})",
                output=output,
            )

        signing, primary = parse_fingerprints(output)
        fingerprint = primary or signing
        if not fingerprint:
            return VerifyOutcome.failure(
                self.name,
                "cannot parse key fingerprint from gpg output",
                output=output,
            )

        logger.debug("gpg verified with key %s in %dms", fingerprint, elapsed_ms)
        return VerifyOutcome.success(
            self.name, fingerprint, output=output, signing_fingerprint=signing
        )
