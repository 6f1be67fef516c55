"""
Adapter registry — category → adapter lookup.

The registry is the single point of adapter management. The reconciler
and prober never construct adapters themselves; they ask the registry
for the adapter serving a category. The registry also carries the
housekeeping commands run around a reconciliation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from macsetup.adapters.base import Adapter, IdentitySource, PackageSource
from macsetup.adapters.shell.command import Runner, run_command

logger = logging.getLogger(__name__)


@dataclass
class HousekeepingStep:
    """A best-effort command run before or after reconciliation."""

    description: str
    command: list[str] = field(default_factory=list)
    tool: str = ""


class AdapterRegistry:
    """Central registry for adapters, keyed by category."""

    def __init__(self, runner: Runner = run_command):
        self._adapters: dict[str, Adapter] = {}
        self.runner = runner
        self.before: list[HousekeepingStep] = []
        self.after: list[HousekeepingStep] = []

    def register(self, adapter: Adapter) -> None:
        """Register an adapter for its category."""
        category = adapter.category
        if not category:
            raise ValueError(f"{adapter!r} does not declare a category")
        if category in self._adapters:
            logger.warning("Overwriting existing adapter for %s", category)
        self._adapters[category] = adapter
        logger.debug("Registered adapter %s for %s", adapter.name, category)

    def unregister(self, category: str) -> None:
        self._adapters.pop(category, None)

    def get(self, category: str) -> Adapter | None:
        return self._adapters.get(category)

    def package_source(self, category: str) -> PackageSource | None:
        adapter = self._adapters.get(category)
        return adapter if isinstance(adapter, PackageSource) else None

    def identity_source(self, category: str) -> IdentitySource | None:
        adapter = self._adapters.get(category)
        return adapter if isinstance(adapter, IdentitySource) else None

    def list_categories(self) -> list[str]:
        return list(self._adapters.keys())

    def add_housekeeping(self, phase: str, steps: Iterable[HousekeepingStep]) -> None:
        if phase == "before":
            self.before.extend(steps)
        elif phase == "after":
            self.after.extend(steps)
        else:
            raise ValueError(f"Unknown housekeeping phase: {phase}")

    def adapter_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered adapter."""
        status = {}
        for category, adapter in self._adapters.items():
            try:
                available = adapter.is_available()
            except Exception:
                available = False
            status[category] = {
                "name": adapter.name,
                "available": available,
                "tool": adapter.tool,
                "type": adapter.__class__.__name__,
            }
        return status


def default_registry(
    runner: Runner = run_command,
    applications_dir: Path | None = None,
) -> AdapterRegistry:
    """Registry wired to the real macOS backends."""
    from macsetup.adapters.app_store import AppStoreApps
    from macsetup.adapters.downloads.adapter import DEFAULT_APPLICATIONS_DIR, DirectDownloads
    from macsetup.adapters.git_identity import GitIdentity
    from macsetup.adapters.homebrew import (
        HOUSEKEEPING_AFTER,
        HOUSEKEEPING_BEFORE,
        HomebrewPackages,
        HomebrewTaps,
    )

    registry = AdapterRegistry(runner=runner)
    registry.register(HomebrewTaps(runner=runner))
    registry.register(HomebrewPackages("formula", runner=runner))
    registry.register(HomebrewPackages("cask", runner=runner))
    registry.register(AppStoreApps(runner=runner))
    registry.register(
        DirectDownloads(
            applications_dir=applications_dir or DEFAULT_APPLICATIONS_DIR,
            runner=runner,
        )
    )
    registry.register(GitIdentity(runner=runner))

    registry.add_housekeeping(
        "before",
        (HousekeepingStep(desc, cmd, tool="brew") for desc, cmd in HOUSEKEEPING_BEFORE),
    )
    registry.add_housekeeping(
        "after",
        (HousekeepingStep(desc, cmd, tool="brew") for desc, cmd in HOUSEKEEPING_AFTER),
    )
    return registry
