"""
Snapshot use case — probe the host and write the base configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from macsetup.adapters.registry import AdapterRegistry, default_registry
from macsetup.core.config.loader import default_base_path
from macsetup.core.engine.prober import take_snapshot
from macsetup.core.models.config import InstalledSnapshot
from macsetup.core.persistence.snapshot_file import save_snapshot

logger = logging.getLogger(__name__)


@dataclass
class SnapshotResult:
    snapshot: InstalledSnapshot | None = None
    path: Path | None = None
    backup: Path | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"path": str(self.path) if self.path else None}
        if self.error:
            result["error"] = self.error
        if self.snapshot:
            result["snapshot"] = self.snapshot.model_dump(mode="json")
        result["warnings"] = self.warnings
        return result


def run_snapshot(
    base_path: Path | None = None,
    registry: AdapterRegistry | None = None,
) -> SnapshotResult:
    """Probe every category and save the result as the base file."""
    path = base_path or default_base_path()
    result = SnapshotResult(path=path)

    snapshot, warnings = take_snapshot(registry or default_registry())
    result.snapshot = snapshot
    result.warnings = warnings

    try:
        result.backup = save_snapshot(snapshot, path, backup=True)
    except OSError as e:
        result.error = f"Could not write {path}: {e}"

    return result
