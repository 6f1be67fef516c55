"""
Mac App Store adapter — drives the ``mas`` CLI.

Both listing and installing require a signed-in App Store session;
without one they raise ``NotAuthenticatedError`` and the reconciler
skips the category. ``mas`` itself is installed from Homebrew when
missing.
"""

from __future__ import annotations

import logging
import re

from macsetup.adapters.base import AdapterError, NotAuthenticatedError, PackageSource, ToolMissingError
from macsetup.adapters.shell.command import Runner, run_command
from macsetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

# "409183694  Keynote  (13.1)": id, name, optional version.
_MAS_LIST_LINE = re.compile(r"^\s*(\d+)\s+(.*?)(?:\s+\(([^()]*)\))?\s*$")


def parse_mas_list(output: str) -> dict[str, str]:
    """Parse ``mas list`` output into ``{id: name}``."""
    apps: dict[str, str] = {}
    for line in output.splitlines():
        match = _MAS_LIST_LINE.match(line)
        if match:
            apps[match.group(1)] = match.group(2).strip()
    return apps


class AppStoreApps(PackageSource):
    """App Store applications keyed by numeric store id."""

    tool = "mas"
    category = "store_apps"

    def __init__(self, runner: Runner = run_command):
        self._runner = runner

    @property
    def name(self) -> str:
        return "mas"

    def ensure_ready(self) -> None:
        super().ensure_ready()
        result = self._runner(["mas", "account"])
        if not result.ok:
            raise NotAuthenticatedError(
                "Not signed into the Mac App Store; sign in and run again"
            )

    def bootstrap(self) -> None:
        logger.info("Installing mas (Mac App Store CLI)...")
        result = self._runner(["brew", "install", "mas"])
        if not result.ok:
            raise ToolMissingError(f"Could not install mas: {result.error_text}")

    def list_labels(self) -> dict[str, str]:
        self.ensure_ready()
        result = self._runner(["mas", "list"])
        if not result.ok:
            raise AdapterError(f"mas list failed: {result.error_text}")
        return parse_mas_list(result.stdout)

    def list_installed(self) -> set[str]:
        return set(self.list_labels())

    def describe_install(self, identifiers: list[str]) -> dict[str, str]:
        return {identifier: f"mas install {identifier}" for identifier in identifiers}

    def install(self, identifiers: list[str]) -> list[Receipt]:
        self.ensure_ready()
        receipts = []
        for identifier in identifiers:
            result = self._runner(["mas", "install", identifier])
            if result.ok:
                receipts.append(
                    Receipt.success(
                        adapter=self.name,
                        identifier=identifier,
                        output=f"Installed App Store app {identifier}",
                        duration_ms=result.elapsed_ms,
                    )
                )
            else:
                receipts.append(
                    Receipt.failure(
                        adapter=self.name,
                        identifier=identifier,
                        error=result.error_text,
                        error_kind="command_failed",
                    )
                )
        return receipts
