"""
Direct-download adapter — apps installed from vendor archives.

Presence is the set of ``.app`` bundle names in the applications
directory. Each install gets its own temporary directory, removed on
every exit path once the installer returns or raises.

Listing and manual entries need no external tool, so the category is
always ready; a missing ``curl`` fails only the archive installers.
"""

from __future__ import annotations

import logging
import tempfile
import time
from pathlib import Path

from macsetup.adapters.base import PackageSource
from macsetup.adapters.downloads.catalog import InstallerCatalog
from macsetup.adapters.downloads.installers import InstallError
from macsetup.adapters.shell.command import Runner, run_command
from macsetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

DEFAULT_APPLICATIONS_DIR = Path("/Applications")
TEMP_PREFIX = "macsetup-"


class DirectDownloads(PackageSource):
    """Apps installed from DMG, PKG or ZIP downloads."""

    tool = "curl"
    category = "direct_downloads"

    def __init__(
        self,
        catalog: InstallerCatalog | None = None,
        applications_dir: Path = DEFAULT_APPLICATIONS_DIR,
        runner: Runner = run_command,
        temp_root: Path | None = None,
    ):
        self.catalog = catalog or InstallerCatalog()
        self.applications_dir = applications_dir
        self._runner = runner
        self._temp_root = temp_root

    @property
    def name(self) -> str:
        return "direct-download"

    def ensure_ready(self) -> None:
        if not self.is_available():
            logger.warning("%s is not installed; downloads will fail, listing still works", self.tool)

    def list_installed(self) -> set[str]:
        if not self.applications_dir.is_dir():
            logger.warning("Applications directory %s not found", self.applications_dir)
            return set()
        return {
            entry.stem
            for entry in self.applications_dir.iterdir()
            if entry.suffix == ".app" and entry.is_dir()
        }

    def snapshot_labels(self) -> dict[str, str]:
        # Catalog apps only; casks and store apps have their own categories.
        known = set(self.catalog.names())
        return {name: name for name in sorted(self.list_installed() & known)}

    def describe_install(self, identifiers: list[str]) -> dict[str, str]:
        return {
            identifier: self.catalog.get(identifier).describe(self.applications_dir)
            for identifier in identifiers
        }

    def install(self, identifiers: list[str]) -> list[Receipt]:
        return [self._install_one(identifier) for identifier in identifiers]

    def _install_one(self, identifier: str) -> Receipt:
        installer = self.catalog.get(identifier)
        if installer.manual:
            return Receipt.manual(
                adapter=self.name,
                identifier=identifier,
                reason=installer.describe(self.applications_dir),
            )

        if not self.is_available():
            return Receipt.failure(
                adapter=self.name,
                identifier=identifier,
                error=f"{self.tool} is not installed",
                error_kind="tool_missing",
                metadata={"installer": installer.kind, "url": installer.url},
            )

        start = time.monotonic()
        try:
            with tempfile.TemporaryDirectory(
                prefix=TEMP_PREFIX,
                dir=str(self._temp_root) if self._temp_root else None,
            ) as workdir:
                message = installer.run(Path(workdir), self.applications_dir, self._runner)
        except InstallError as e:
            return Receipt.failure(
                adapter=self.name,
                identifier=identifier,
                error=str(e),
                error_kind=e.kind,
                metadata={"installer": installer.kind, "url": installer.url},
            )
        except Exception as e:
            logger.exception("Installer for %s raised", identifier)
            return Receipt.failure(
                adapter=self.name,
                identifier=identifier,
                error=f"Unexpected error: {e}",
                error_kind="unexpected",
            )

        return Receipt.success(
            adapter=self.name,
            identifier=identifier,
            output=message,
            duration_ms=int((time.monotonic() - start) * 1000),
            metadata={"installer": installer.kind, "url": installer.url},
        )
