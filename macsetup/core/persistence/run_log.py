"""
Run log — one append-only NDJSON file per install run.

Each run writes its actions, one JSON line each, followed by a summary
line. The file is named after the run's start time and created in
exclusive mode: an existing log is never overwritten.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from macsetup.core.models.report import RunReport

logger = logging.getLogger(__name__)

DEFAULT_LOG_DIR = "logs"
LOG_PREFIX = "install"


def run_log_stem(started_at: str) -> str:
    """``install-2026-10-19T08-15-02Z`` from an ISO timestamp."""
    moment = datetime.fromisoformat(started_at)
    return f"{LOG_PREFIX}-{moment.strftime('%Y-%m-%dT%H-%M-%SZ')}"


def run_log_path(log_dir: Path, started_at: str, suffix: str = ".ndjson") -> Path:
    """First unused log path for a run started at ``started_at``."""
    stem = run_log_stem(started_at)
    candidate = log_dir / f"{stem}{suffix}"
    counter = 1
    while candidate.exists():
        candidate = log_dir / f"{stem}-{counter}{suffix}"
        counter += 1
    return candidate


class RunLog:
    """Writer and reader for a single run's NDJSON log."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write_report(self, report: RunReport) -> None:
        """Write every action plus a summary line.

        Raises:
            FileExistsError: If the log already exists.
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)

        lines = [
            json.dumps({"type": "action", **a.model_dump(mode="json")}, ensure_ascii=False)
            for a in report.actions
        ]
        lines.append(json.dumps({"type": "summary", **report.summary()}, ensure_ascii=False))

        with self._path.open("x", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        logger.debug("Run log written: %s (%d actions)", self._path, report.total)

    def read_all(self) -> list[dict[str, Any]]:
        """All entries, in write order. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        with self._path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warning("Skipping corrupt run log entry at line %d: %s", line_num, e)
        return entries
