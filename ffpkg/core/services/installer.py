"""
Installer — extract a .tar.xz into staging and swap it into place.

Phases::

    EMPTY ──stage()──▶ STAGED ──commit()──▶ INSTALLED
      │                  │
      └──────────────────┴──▶ FAILED   (prior install untouched)

The staging directory is a sibling of the install path, so both live on
the same filesystem and the final ``rename`` is a single directory-entry
operation: observers see the complete old tree or the complete new tree.

Caveat: the old tree and the new tree cannot share one name, so the old
tree is first renamed aside. Between that rename and the activation
rename the install path does not exist. A crash inside that window
leaves the path absent (never half-populated); running install again
recovers, and stale siblings from the interrupted run are removed.
"""

from __future__ import annotations

import logging
import lzma
import os
import posixpath
import shutil
import stat
import tarfile
import tempfile
import time
from enum import StrEnum
from pathlib import Path

from ffpkg.core.errors import InstallError
from ffpkg.core.persistence.atomic import fsync_dir

logger = logging.getLogger(__name__)

PARENT_DIR_MODE = 0o755
INSTALL_ROOT_MODE = 0o755
_CHUNK = 1024 * 1024


class InstallPhase(StrEnum):
    """Where an install transaction currently stands."""

    EMPTY = "empty"
    STAGED = "staged"
    INSTALLED = "installed"
    FAILED = "failed"


# ── Extraction ──────────────────────────────────────────────────


def _member_target(dest: Path, dest_real: str, name: str) -> Path | None:
    """Map an archive member name into ``dest``; None for the root entry."""
    if name.startswith("/") or posixpath.isabs(name):
        raise InstallError(f"Archive member has an absolute path: {name}")

    rel = posixpath.normpath(name)
    if rel == ".":
        return None
    if rel == ".." or rel.startswith("../"):
        raise InstallError(f"Archive member escapes the install root: {name}")

    target = dest / rel
    parent_real = os.path.realpath(target.parent)
    if parent_real != dest_real and not parent_real.startswith(dest_real + os.sep):
        raise InstallError(f"Archive member resolves outside the install root: {name}")
    return target


def _write_regular(tar: tarfile.TarFile, member: tarfile.TarInfo, target: Path) -> None:
    target.parent.mkdir(mode=PARENT_DIR_MODE, parents=True, exist_ok=True)
    mode = stat.S_IMODE(member.mode)

    src = tar.extractfile(member)
    if src is None:
        raise InstallError(f"Cannot read archive member {member.name}")

    fd = os.open(target, os.O_CREAT | os.O_TRUNC | os.O_WRONLY | os.O_NOFOLLOW, mode)
    with os.fdopen(fd, "wb") as out:
        shutil.copyfileobj(src, out, _CHUNK)
        os.fchmod(out.fileno(), mode)


def extract_tar_xz(archive: Path, dest: Path) -> int:
    """Stream-extract ``archive`` into the existing directory ``dest``.

    Directories, regular files and symlinks are created with the
    archive's mode bits. Devices, FIFOs and hard links are skipped.

    Returns:
        Number of entries written.

    Raises:
        InstallError: On a corrupt archive, an unsafe member path, or a
            filesystem error.
    """
    dest_real = os.path.realpath(dest)
    dir_modes: list[tuple[Path, int]] = []
    written = 0

    try:
        with tarfile.open(archive, mode="r|xz") as tar:
            for member in tar:
                target = _member_target(dest, dest_real, member.name)
                if target is None:
                    continue

                if member.isdir():
                    if target.is_symlink():
                        raise InstallError(
                            f"Archive directory {member.name} would replace a symlink"
                        )
                    target.mkdir(mode=PARENT_DIR_MODE, parents=True, exist_ok=True)
                    dir_modes.append((target, stat.S_IMODE(member.mode)))
                elif member.isreg():
                    _write_regular(tar, member, target)
                elif member.issym():
                    target.parent.mkdir(mode=PARENT_DIR_MODE, parents=True, exist_ok=True)
                    try:
                        os.symlink(member.linkname, target)
                    except FileExistsError:
                        pass
                else:
                    logger.debug("Skipping %s (type %r)", member.name, member.type)
                    continue
                written += 1
    except InstallError:
        raise
    except (tarfile.TarError, lzma.LZMAError, EOFError) as e:
        raise InstallError(f"Corrupt archive {archive}: {e}") from e
    except OSError as e:
        raise InstallError(f"Extraction of {archive} failed: {e}") from e

    # Deepest first, after contents exist, so read-only dirs don't block writes
    for path, mode in sorted(dir_modes, key=lambda item: len(item[0].parts), reverse=True):
        try:
            if not stat.S_ISDIR(os.lstat(path).st_mode):
                raise InstallError(f"{path} is no longer a directory inside the install root")
            os.chmod(path, mode)
        except OSError as e:
            raise InstallError(f"Cannot set mode on {path}: {e}") from e

    logger.debug("Extracted %d entries from %s", written, archive.name)
    return written


# ── Swap ────────────────────────────────────────────────────────


def _staging_prefix(final_dir: Path) -> str:
    return f".{final_dir.name}.ffpkg-stage-"


def _retired_prefix(final_dir: Path) -> str:
    return f".{final_dir.name}.ffpkg-old-"


def remove_stale_siblings(final_dir: Path) -> list[Path]:
    """Delete staging/retired directories left by an interrupted run."""
    parent = final_dir.parent
    if not parent.is_dir():
        return []

    prefixes = (_staging_prefix(final_dir), _retired_prefix(final_dir))
    removed: list[Path] = []
    for entry in parent.iterdir():
        if entry.name.startswith(prefixes):
            logger.info("Removing leftover %s", entry)
            try:
                shutil.rmtree(entry)
            except OSError as e:
                raise InstallError(f"Cannot remove leftover {entry}: {e}") from e
            removed.append(entry)
    return removed


def _retire_previous(final_dir: Path) -> Path | None:
    """Rename the current install aside. Returns its new path, if any."""
    if not (final_dir.exists() or final_dir.is_symlink()):
        return None
    retired = final_dir.with_name(f"{_retired_prefix(final_dir)}{time.time_ns()}")
    os.rename(final_dir, retired)
    return retired


def _activate(staging: Path, final_dir: Path) -> None:
    os.rename(staging, final_dir)


class AtomicInstall:
    """One staged install of ``archive`` into ``final_dir``.

    Usage::

        txn = AtomicInstall(archive, final_dir)
        try:
            txn.stage()
            txn.commit()
        finally:
            txn.cleanup()
    """

    def __init__(self, archive: Path, final_dir: Path):
        self.archive = archive
        self.final_dir = final_dir
        self.phase = InstallPhase.EMPTY
        self.staging: Path | None = None
        self.entries = 0

    def stage(self) -> Path:
        """Extract the archive into a fresh sibling staging directory."""
        if self.phase is not InstallPhase.EMPTY:
            raise InstallError(f"Cannot stage from phase {self.phase.value}")

        parent = self.final_dir.parent
        try:
            parent.mkdir(mode=PARENT_DIR_MODE, parents=True, exist_ok=True)
            remove_stale_siblings(self.final_dir)
            self.staging = Path(
                tempfile.mkdtemp(dir=parent, prefix=_staging_prefix(self.final_dir))
            )
        except OSError as e:
            self.phase = InstallPhase.FAILED
            raise InstallError(f"Cannot create staging directory in {parent}: {e}") from e
        except InstallError:
            self.phase = InstallPhase.FAILED
            raise

        logger.debug("Staging %s in %s", self.archive.name, self.staging)
        try:
            self.entries = extract_tar_xz(self.archive, self.staging)
            os.chmod(self.staging, INSTALL_ROOT_MODE)
        except OSError as e:
            self.phase = InstallPhase.FAILED
            raise InstallError(f"Cannot prepare staging directory: {e}") from e
        except InstallError:
            self.phase = InstallPhase.FAILED
            raise

        self.phase = InstallPhase.STAGED
        return self.staging

    def commit(self) -> Path:
        """Swap the staged tree into the install path."""
        if self.phase is not InstallPhase.STAGED or self.staging is None:
            raise InstallError(f"Cannot commit from phase {self.phase.value}")

        try:
            retired = _retire_previous(self.final_dir)
        except OSError as e:
            self.phase = InstallPhase.FAILED
            raise InstallError(f"Cannot move previous install aside: {e}") from e

        try:
            _activate(self.staging, self.final_dir)
        except OSError as e:
            self.phase = InstallPhase.FAILED
            if retired is not None:
                try:
                    os.rename(retired, self.final_dir)
                except OSError as restore_err:
                    raise InstallError(
                        f"atomic rename failed ({e}) and the previous install "
                        f"could not be restored from {retired}: {restore_err}"
                    ) from e
            raise InstallError(f"atomic rename failed: {e}") from e

        self.staging = None
        self.phase = InstallPhase.INSTALLED
        try:
            fsync_dir(self.final_dir.parent)
        except OSError as e:
            logger.warning("Could not flush %s: %s", self.final_dir.parent, e)

        if retired is not None:
            try:
                shutil.rmtree(retired)
            except OSError as e:
                # Install already succeeded; the next run removes it
                logger.warning("Could not remove previous install %s: %s", retired, e)

        logger.info("Installed %s → %s", self.archive.name, self.final_dir)
        return self.final_dir

    def cleanup(self) -> None:
        """Remove the staging directory if it was never committed."""
        if self.staging is not None and self.staging.exists():
            shutil.rmtree(self.staging, ignore_errors=True)
            logger.debug("Removed staging directory %s", self.staging)
        self.staging = None
        if self.phase is not InstallPhase.INSTALLED:
            self.phase = InstallPhase.FAILED


def install_archive(archive: Path, final_dir: Path) -> AtomicInstall:
    """Stage and commit ``archive`` into ``final_dir``.

    Raises:
        InstallError: If anything fails before the swap completes. The
            install path is then exactly as it was before the call.
    """
    if not archive.is_file():
        raise InstallError(f"Archive not found: {archive}")

    txn = AtomicInstall(archive, final_dir)
    try:
        txn.stage()
        txn.commit()
    finally:
        txn.cleanup()
    return txn
