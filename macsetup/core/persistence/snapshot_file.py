"""
Snapshot file persistence — atomic write of the base configuration.

The base file (mac-config-base.json) records what the host had at the
last probe. Writes are atomic (write to temp file, then rename); the
previous file is kept as ``<name>.backup-<timestamp>``.
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from macsetup.core.models.config import InstalledSnapshot

logger = logging.getLogger(__name__)


def backup_path(path: Path, timestamp: str | None = None) -> Path:
    stamp = timestamp or datetime.now(UTC).strftime("%Y-%m-%dT%H-%M-%SZ")
    return path.with_name(f"{path.name}.backup-{stamp}")


def save_snapshot(
    snapshot: InstalledSnapshot,
    path: Path,
    backup: bool = True,
) -> Path | None:
    """Save a snapshot to a JSON file (atomic write).

    Args:
        snapshot: The snapshot to save.
        path: Target path for the base file.
        backup: Copy an existing file aside before replacing it.

    Returns:
        Path of the backup, if one was made.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    saved_backup: Path | None = None
    if backup and path.is_file():
        saved_backup = backup_path(path)
        shutil.copy2(path, saved_backup)
        logger.info("Backed up previous base config to %s", saved_backup)

    data = snapshot.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    # Atomic write: temp file in same directory, then rename
    try:
        _fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".snapshot_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with open(_fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(path)
            logger.debug("Snapshot saved to %s", path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except Exception as e:
        logger.error("Failed to save snapshot to %s: %s", path, e)
        raise

    return saved_backup
