"""
Installed-state prober — what is on the host right now.

Probing is read-only and uncached: every call asks the backend again.
A backend that is missing, signed out or failing yields an empty set
and a warning instead of an exception.
"""

from __future__ import annotations

import logging
import platform
import socket
from dataclasses import dataclass, field

from macsetup.adapters.base import AdapterError
from macsetup.adapters.registry import AdapterRegistry
from macsetup.core.models.config import (
    CATEGORY_ORDER,
    IDENTITY_FIELDS,
    DirectDownload,
    GitIdentity,
    InstalledSnapshot,
    SnapshotMetadata,
    StoreApp,
)

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """Installed identifiers for one category."""

    category: str
    installed: set[str] = field(default_factory=set)
    labels: dict[str, str] = field(default_factory=dict)
    warning: str | None = None
    error: AdapterError | None = None

    @property
    def ok(self) -> bool:
        return self.warning is None


def probe_category(
    registry: AdapterRegistry,
    category: str,
    for_snapshot: bool = False,
) -> ProbeResult:
    """Probe one package category. Never raises for backend problems.

    With ``for_snapshot`` the adapter may narrow the result to what it
    can reinstall (direct downloads report catalog apps only).
    """
    adapter = registry.package_source(category)
    if adapter is None:
        return ProbeResult(category=category, warning=f"No adapter registered for {category}")

    try:
        labels = adapter.snapshot_labels() if for_snapshot else adapter.list_labels()
    except AdapterError as e:
        logger.warning("⚠️  Could not probe %s: %s", category, e)
        return ProbeResult(category=category, warning=str(e), error=e)

    return ProbeResult(category=category, installed=set(labels), labels=labels)


def probe_identity(registry: AdapterRegistry) -> tuple[GitIdentity, str | None]:
    adapter = registry.identity_source("git_identity")
    if adapter is None:
        return GitIdentity(), "No adapter registered for git_identity"
    if not adapter.is_available():
        return GitIdentity(), f"{adapter.tool} is not installed"
    values = {f: adapter.get(f) for f in IDENTITY_FIELDS}
    return GitIdentity(**values), None


def _host_metadata() -> SnapshotMetadata:
    return SnapshotMetadata(
        hostname=socket.gethostname(),
        os_version=platform.mac_ver()[0] or platform.platform(),
    )


def take_snapshot(registry: AdapterRegistry) -> tuple[InstalledSnapshot, list[str]]:
    """Probe every category into an InstalledSnapshot.

    Returns:
        (snapshot, warnings). Categories that could not be probed are empty.
    """
    warnings: list[str] = []
    results: dict[str, ProbeResult] = {}

    for category in CATEGORY_ORDER:
        if category == "git_identity":
            continue
        result = probe_category(registry, category, for_snapshot=True)
        results[category] = result
        if result.warning:
            warnings.append(f"{category}: {result.warning}")

    identity, identity_warning = probe_identity(registry)
    if identity_warning:
        warnings.append(f"git_identity: {identity_warning}")

    snapshot = InstalledSnapshot(
        metadata=_host_metadata(),
        taps=sorted(results["taps"].installed),
        formulae=sorted(results["formulae"].installed),
        casks=sorted(results["casks"].installed),
        store_apps=[
            StoreApp(id=app_id, name=name)
            for app_id, name in sorted(results["store_apps"].labels.items())
        ],
        direct_downloads=[
            DirectDownload(name=name) for name in sorted(results["direct_downloads"].installed)
        ],
        git_identity=identity,
    )
    logger.info(
        "Snapshot: %d taps, %d formulae, %d casks, %d store apps, %d direct downloads",
        len(snapshot.taps),
        len(snapshot.formulae),
        len(snapshot.casks),
        len(snapshot.store_apps),
        len(snapshot.direct_downloads),
    )
    return snapshot, warnings
