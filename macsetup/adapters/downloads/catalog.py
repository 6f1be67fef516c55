"""
Installer catalog — application name → installer strategy.

Names are matched verbatim against ``direct_downloads[].name``. Any
name not in the catalog resolves to a ``ManualInstaller``.
"""

from __future__ import annotations

from macsetup.adapters.downloads.installers import (
    AppInstaller,
    DmgInstaller,
    ManualInstaller,
    PkgInstaller,
    ZipInstaller,
)


def default_installers() -> list[AppInstaller]:
    """Vendor download locations known to serve the latest build."""
    return [
        DmgInstaller("Tailscale", "https://pkgs.tailscale.com/stable/Tailscale-latest.dmg"),
        DmgInstaller("Raycast", "https://releases.raycast.com/releases/latest/download"),
        DmgInstaller(
            "Discord",
            "https://discord.com/api/downloads/distributions/app/installers/latest"
            "?channel=stable&platform=osx&arch=x64",
        ),
        DmgInstaller("Notion", "https://www.notion.so/desktop/mac/download"),
        ZipInstaller("Figma", "https://desktop.figma.com/mac/Figma.zip"),
        ZipInstaller("Cursor", "https://downloader.cursor.sh/darwin/arm64"),
        DmgInstaller("Arc", "https://releases.arc.net/release/Arc-latest.dmg"),
        DmgInstaller("Linear", "https://desktop.linear.app/mac/dmg"),
        ZipInstaller("Postman", "https://dl.pstmn.io/download/latest/osx_64"),
        # UGREEN rotates its download links.
        ManualInstaller(
            "UGREEN NAS",
            url="https://www.ugreen.com/pages/download",
            note="UGREEN NAS requires a manual download from https://www.ugreen.com/pages/download",
        ),
    ]


class InstallerCatalog:
    """Lookup table of per-application installers."""

    def __init__(self, installers: list[AppInstaller] | None = None):
        self._installers: dict[str, AppInstaller] = {}
        for installer in installers if installers is not None else default_installers():
            self.register(installer)

    def register(self, installer: AppInstaller) -> None:
        self._installers[installer.app_name] = installer

    def get(self, app_name: str) -> AppInstaller:
        """Installer for ``app_name``; unmapped names get a manual installer."""
        installer = self._installers.get(app_name)
        if installer is None:
            return ManualInstaller(app_name)
        return installer

    def names(self) -> list[str]:
        return sorted(self._installers)

    def __contains__(self, app_name: object) -> bool:
        return app_name in self._installers

    def __len__(self) -> int:
        return len(self._installers)
