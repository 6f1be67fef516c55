"""
Per-application installers for vendor downloads.

Each installer fetches an archive into a caller-owned scratch directory,
unpacks it (mount a disk image, extract a zip, or run a package
installer) and copies the expected ``.app`` bundle into the
applications directory.

Installers raise ``InstallError`` with a kind that tells a failed
download apart from a missing bundle or a failed installer step. The
adapter converts those into receipts.

Resource rules:
    - Everything is written below ``workdir``; the adapter removes it.
    - A mounted image is always detached before ``run`` returns,
      so the scratch directory never holds a live mount at cleanup.
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from macsetup.adapters.shell.command import Runner

logger = logging.getLogger(__name__)


class InstallError(Exception):
    """A direct-download installation step failed."""

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


def copy_bundle(bundle: Path, target_dir: Path) -> Path:
    """Copy an ``.app`` bundle into ``target_dir``, replacing any old copy."""
    destination = target_dir / bundle.name
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        if destination.exists():
            shutil.rmtree(destination)
        shutil.copytree(bundle, destination, symlinks=True)
    except OSError as e:
        raise InstallError("installer_failed", f"Could not copy {bundle.name} to {target_dir}: {e}") from e
    return destination


class AppInstaller(ABC):
    """Strategy for installing one named application."""

    kind: str = ""

    def __init__(self, app_name: str, url: str = "", bundle: str = ""):
        self.app_name = app_name
        self.url = url
        self.bundle = bundle or f"{app_name}.app"

    @property
    def manual(self) -> bool:
        return False

    @abstractmethod
    def describe(self, target_dir: Path) -> str:
        """One line saying what ``run`` would do."""

    @abstractmethod
    def run(self, workdir: Path, target_dir: Path, runner: Runner) -> str:
        """Install into ``target_dir`` using ``workdir`` as scratch space.

        Returns a short success message. Raises ``InstallError``.
        """

    def _download(self, workdir: Path, suffix: str, runner: Runner) -> Path:
        archive = workdir / f"{self.app_name}{suffix}"
        logger.info("Downloading %s from %s", self.app_name, self.url)
        result = runner(["curl", "-fL", "--silent", "--show-error", "-o", str(archive), self.url])
        if not result.ok or not archive.is_file():
            raise InstallError("download_failed", f"Download of {self.url} failed: {result.error_text}")
        return archive

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} app={self.app_name!r}>"


class DmgInstaller(AppInstaller):
    """Mount a disk image, copy the bundle out, detach."""

    kind = "dmg"

    def describe(self, target_dir: Path) -> str:
        return f"download {self.url} (dmg) and copy {self.bundle} to {target_dir}"

    def run(self, workdir: Path, target_dir: Path, runner: Runner) -> str:
        image = self._download(workdir, ".dmg", runner)
        mount_point = workdir / "mount"
        mount_point.mkdir()

        logger.info("Mounting %s", image.name)
        attach = runner(
            ["hdiutil", "attach", "-nobrowse", "-quiet", "-mountpoint", str(mount_point), str(image)]
        )
        if not attach.ok:
            raise InstallError("installer_failed", f"Could not mount {image.name}: {attach.error_text}")

        try:
            bundle = mount_point / self.bundle
            if not bundle.is_dir():
                raise InstallError("bundle_not_found", f"Could not find {self.bundle} in {image.name}")
            copy_bundle(bundle, target_dir)
        finally:
            self._detach(mount_point, runner)

        return f"Installed {self.bundle} from disk image"

    @staticmethod
    def _detach(mount_point: Path, runner: Runner) -> None:
        detach = runner(["hdiutil", "detach", str(mount_point), "-quiet"])
        if detach.ok:
            return
        logger.warning("hdiutil detach failed (%s), forcing", detach.error_text)
        forced = runner(["hdiutil", "detach", str(mount_point), "-force", "-quiet"])
        if not forced.ok:
            logger.error("Could not detach %s: %s", mount_point, forced.error_text)


class ZipInstaller(AppInstaller):
    """Extract a zip archive and copy the bundle found inside."""

    kind = "zip"

    def describe(self, target_dir: Path) -> str:
        return f"download {self.url} (zip) and copy {self.bundle} to {target_dir}"

    def run(self, workdir: Path, target_dir: Path, runner: Runner) -> str:
        archive = self._download(workdir, ".zip", runner)
        extract_dir = workdir / "extracted"
        extract_dir.mkdir()

        logger.info("Extracting %s", archive.name)
        result = runner(["unzip", "-q", str(archive), "-d", str(extract_dir)])
        if not result.ok:
            raise InstallError("installer_failed", f"Could not extract {archive.name}: {result.error_text}")

        bundle = next(
            (p for p in sorted(extract_dir.rglob(self.bundle)) if p.is_dir()),
            None,
        )
        if bundle is None:
            raise InstallError("bundle_not_found", f"Could not find {self.bundle} in {archive.name}")

        copy_bundle(bundle, target_dir)
        return f"Installed {self.bundle} from zip archive"


class PkgInstaller(AppInstaller):
    """Run the system package installer on a downloaded .pkg."""

    kind = "pkg"

    def describe(self, target_dir: Path) -> str:
        return f"download {self.url} (pkg) and run installer for {self.app_name}"

    def run(self, workdir: Path, target_dir: Path, runner: Runner) -> str:
        package = self._download(workdir, ".pkg", runner)
        logger.info("Running installer for %s", package.name)
        result = runner(["sudo", "installer", "-pkg", str(package), "-target", "/"])
        if not result.ok:
            raise InstallError("installer_failed", f"installer failed for {package.name}: {result.error_text}")
        return f"Installed {self.app_name} from package"


class ManualInstaller(AppInstaller):
    """No automatic path; the operator installs it by hand."""

    kind = "manual"

    def __init__(self, app_name: str, url: str = "", note: str = ""):
        super().__init__(app_name, url=url)
        self.note = note

    @property
    def manual(self) -> bool:
        return True

    def describe(self, target_dir: Path) -> str:
        return self.reason()

    def reason(self) -> str:
        if self.note:
            return self.note
        if self.url:
            return f"Download and install manually from {self.url}"
        return "No installer available; download and install manually from the vendor's website"

    def run(self, workdir: Path, target_dir: Path, runner: Runner) -> str:
        raise InstallError("installer_failed", self.reason())
