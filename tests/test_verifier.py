"""
Tests for signature verification — gpg adapter, mock adapter, service.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FINGERPRINT, SUBKEY, sign
from ffpkg.adapters.gpg import GpgVerifier, parse_fingerprint, parse_fingerprints
from ffpkg.adapters.mock import MockVerifier
from ffpkg.core.errors import VerificationError
from ffpkg.core.persistence.receipt_file import sha256_file
from ffpkg.core.services.verifier import verify_artifact


@pytest.fixture
def signed_pair(tmp_path: Path) -> tuple[Path, Path]:
    artifact = tmp_path / "firefox-128.0.tar.xz"
    artifact.write_bytes(b"release bytes")
    signature = tmp_path / "firefox-128.0.tar.xz.asc"
    signature.write_bytes(sign(artifact.read_bytes()))
    return artifact, signature


# ── Fingerprint parsing ──────────────────────────────────────────────


class TestParseFingerprint:
    def test_validsig_preferred(self):
        output = (
            "gpg:                using RSA key 61B7B526D98F0353\n"
            f"[GNUPG:] VALIDSIG {FINGERPRINT} 2024-07-09 1720526400 0 4 0 1 10 00 {FINGERPRINT}\n"
        )
        assert parse_fingerprint(output) == FINGERPRINT

    def test_using_key_line(self):
        output = f"gpg:                using RSA key {FINGERPRINT}\ngpg: Good signature"
        assert parse_fingerprint(output) == FINGERPRINT

    def test_eddsa_key_line(self):
        assert parse_fingerprint("using EDDSA key abcdef0123") == "ABCDEF0123"

    def test_nothing_to_parse(self):
        assert parse_fingerprint('gpg: Good signature from "someone"') is None

    def test_subkey_signature_names_both_keys(self):
        output = (
            "[GNUPG:] NEWSIG\n"
            "[GNUPG:] GOODSIG 0E3C4DD2D4A10256 Mozilla Software Releases <release@mozilla.com>\n"
            f"[GNUPG:] VALIDSIG {SUBKEY} 2024-07-09 1720526400 0 4 0 1 10 00 {FINGERPRINT}\n"
            "[GNUPG:] TRUST_UNDEFINED 0 pgp\n"
        )
        assert parse_fingerprints(output) == (SUBKEY, FINGERPRINT)
        assert parse_fingerprint(output) == FINGERPRINT

    def test_validsig_without_primary_field(self):
        output = f"[GNUPG:] VALIDSIG {SUBKEY} 2024-07-09 1720526400 0 4 0 1 10 00\n"
        assert parse_fingerprints(output) == (SUBKEY, None)
        assert parse_fingerprint(output) == SUBKEY


# ── GpgVerifier ──────────────────────────────────────────────────────


class TestGpgVerifier:
    def test_command_line(self):
        v = GpgVerifier(binary="gpg2", homedir="/etc/ffpkg/gnupg")
        cmd = v.command(Path("a.asc"), Path("a.tar.xz"))
        assert cmd[0] == "gpg2"
        assert cmd[1:3] == ["--homedir", "/etc/ffpkg/gnupg"]
        assert cmd[-3:] == ["--verify", "a.asc", "a.tar.xz"]

    def test_good_signature(self, fake_gpg: Path, signed_pair):
        artifact, signature = signed_pair
        outcome = GpgVerifier(binary=str(fake_gpg)).verify(signature, artifact)
        assert outcome.ok
        assert outcome.signing_fingerprint == SUBKEY
        assert outcome.fingerprint == FINGERPRINT
        assert outcome.method == "gpg"
        assert "Good signature" in outcome.output

    def test_human_output_only(self, fake_gpg: Path, tmp_path: Path):
        artifact = tmp_path / "a.tar.xz"
        artifact.write_bytes(b"bytes")
        signature = tmp_path / "a.tar.xz.asc"
        signature.write_bytes(sign(b"bytes", style="LEGACY"))
        outcome = GpgVerifier(binary=str(fake_gpg)).verify(signature, artifact)
        assert outcome.ok
        assert outcome.fingerprint == SUBKEY

    def test_tampered_artifact(self, fake_gpg: Path, signed_pair):
        artifact, signature = signed_pair
        artifact.write_bytes(b"release bytes, altered")
        outcome = GpgVerifier(binary=str(fake_gpg)).verify(signature, artifact)
        assert not outcome.ok
        assert outcome.fingerprint is None
        assert "exit 1" in outcome.error

    def test_unparseable_success_is_failure(self, fake_gpg: Path, tmp_path: Path):
        artifact = tmp_path / "a.tar.xz"
        artifact.write_bytes(b"bytes")
        signature = tmp_path / "a.tar.xz.asc"
        signature.write_bytes(sign(b"bytes", style="NOKEY"))
        outcome = GpgVerifier(binary=str(fake_gpg)).verify(signature, artifact)
        assert not outcome.ok
        assert outcome.fingerprint is None
        assert "cannot parse key fingerprint" in outcome.error

    def test_missing_binary(self, tmp_path: Path, signed_pair):
        artifact, signature = signed_pair
        v = GpgVerifier(binary=str(tmp_path / "no-such-gpg"))
        assert not v.is_available()
        outcome = v.verify(signature, artifact)
        assert not outcome.ok
        assert "not found" in outcome.error

    def test_available(self, fake_gpg: Path):
        assert GpgVerifier(binary=str(fake_gpg)).is_available()


# ── Mock adapter ─────────────────────────────────────────────────────


class TestMockVerifier:
    def test_default_success(self, signed_pair):
        artifact, signature = signed_pair
        mock = MockVerifier(fingerprint="ABCD")
        outcome = mock.verify(signature, artifact)
        assert outcome.ok
        assert outcome.fingerprint == "ABCD"
        assert mock.call_log == [(signature, artifact)]

    def test_set_failure_and_reset(self, signed_pair):
        artifact, signature = signed_pair
        mock = MockVerifier()
        mock.set_failure("nope")
        assert mock.verify(signature, artifact).error == "nope"
        mock.reset()
        assert mock.call_count == 0
        assert mock.verify(signature, artifact).ok


# ── verify_artifact service ──────────────────────────────────────────


class TestVerifyArtifact:
    def test_receipt_pins_digest(self, fake_gpg: Path, signed_pair):
        artifact, signature = signed_pair
        receipt = verify_artifact(artifact, signature, GpgVerifier(binary=str(fake_gpg)))
        assert receipt.key_fingerprint == FINGERPRINT
        assert receipt.method == "gpg"
        assert receipt.artifact_sha256 == sha256_file(artifact)
        assert receipt.artifact_path == str(artifact.resolve())

    def test_tampered_artifact_raises(self, fake_gpg: Path, signed_pair):
        artifact, signature = signed_pair
        artifact.write_bytes(b"evil")
        with pytest.raises(VerificationError, match="Signature check failed"):
            verify_artifact(artifact, signature, GpgVerifier(binary=str(fake_gpg)))

    def test_missing_signature_file(self, signed_pair, tmp_path: Path):
        artifact, _ = signed_pair
        mock = MockVerifier()
        with pytest.raises(VerificationError, match="signature not found"):
            verify_artifact(artifact, tmp_path / "missing.asc", mock)
        assert mock.call_count == 0

    def test_trusted_fingerprint_accepted(self, signed_pair):
        artifact, signature = signed_pair
        receipt = verify_artifact(
            artifact, signature, MockVerifier(fingerprint=FINGERPRINT), [FINGERPRINT]
        )
        assert receipt.key_fingerprint == FINGERPRINT

    def test_long_key_id_matches_trusted_fingerprint(self, signed_pair):
        artifact, signature = signed_pair
        receipt = verify_artifact(
            artifact, signature, MockVerifier(fingerprint="61b7b526d98f0353"), [FINGERPRINT]
        )
        assert receipt.key_fingerprint == "61B7B526D98F0353"

    def test_untrusted_fingerprint_rejected(self, signed_pair):
        artifact, signature = signed_pair
        with pytest.raises(VerificationError, match="not a trusted key"):
            verify_artifact(
                artifact, signature, MockVerifier(fingerprint="DEADBEEF"), [FINGERPRINT]
            )

    def test_adapter_failure_raises(self, signed_pair):
        artifact, signature = signed_pair
        mock = MockVerifier()
        mock.set_failure("gpg exploded")
        with pytest.raises(VerificationError, match="gpg exploded"):
            verify_artifact(artifact, signature, mock)

    def test_primary_pin_accepts_subkey_signature(self, fake_gpg: Path, signed_pair):
        artifact, signature = signed_pair
        receipt = verify_artifact(
            artifact, signature, GpgVerifier(binary=str(fake_gpg)), [FINGERPRINT]
        )
        assert receipt.key_fingerprint == FINGERPRINT

    def test_subkey_pin_accepted_and_primary_recorded(self, signed_pair):
        artifact, signature = signed_pair
        mock = MockVerifier(fingerprint=FINGERPRINT, signing_fingerprint=SUBKEY)
        receipt = verify_artifact(artifact, signature, mock, [SUBKEY])
        assert receipt.key_fingerprint == FINGERPRINT

    def test_neither_key_pinned(self, signed_pair):
        artifact, signature = signed_pair
        mock = MockVerifier(fingerprint=FINGERPRINT, signing_fingerprint=SUBKEY)
        with pytest.raises(VerificationError, match=f"{SUBKEY} \\(primary {FINGERPRINT}\\)"):
            verify_artifact(artifact, signature, mock, ["AAAA" * 10])

    def test_unavailable_verifier_not_called(self, signed_pair):
        artifact, signature = signed_pair
        mock = MockVerifier(available=False)
        with pytest.raises(VerificationError, match="not installed"):
            verify_artifact(artifact, signature, mock)
        assert mock.call_count == 0

    def test_missing_gpg_binary(self, signed_pair, tmp_path: Path):
        artifact, signature = signed_pair
        verifier = GpgVerifier(binary=str(tmp_path / "no-such-gpg"))
        with pytest.raises(VerificationError, match="gpg is not installed"):
            verify_artifact(artifact, signature, verifier)
