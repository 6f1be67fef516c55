"""
Run report — the ordered record of one reconciliation run.

Actions are appended in processing order. Once ``close()`` is called
the report is frozen: further appends raise ``RuntimeError``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from macsetup.core.models.action import Action

logger = logging.getLogger(__name__)

OUTCOME_MARKERS = {
    "succeeded": "✓",
    "failed": "✗",
    "skipped": "⊘",
    "pending": "…",
    "manual_required": "✋",
}


def generate_operation_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


@dataclass
class RunWarning:
    category: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"category": self.category, "message": self.message}


@dataclass
class RunReport:
    """Actions and warnings collected during a run."""

    operation_id: str = field(default_factory=generate_operation_id)
    dry_run: bool = False
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    ended_at: str | None = None
    actions: list[Action] = field(default_factory=list)
    warnings: list[RunWarning] = field(default_factory=list)

    @property
    def closed(self) -> bool:
        return self.ended_at is not None

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError(f"Run report {self.operation_id} is closed")

    def add(self, action: Action) -> Action:
        """Append an action and log it."""
        self._check_open()
        self.actions.append(action)

        marker = OUTCOME_MARKERS.get(action.outcome, "?")
        if action.outcome == "failed":
            logger.error(
                "%s %s:%s → failed [%s] %s",
                marker,
                action.category,
                action.identifier,
                action.error_kind or "unknown",
                action.detail,
            )
        elif action.outcome == "manual_required":
            logger.warning(
                "%s %s:%s → manual installation required (%s)",
                marker,
                action.category,
                action.identifier,
                action.detail,
            )
        else:
            logger.info(
                "%s %s:%s → %s",
                marker,
                action.category,
                action.identifier,
                action.outcome,
            )
        return action

    def warn(self, category: str, message: str) -> None:
        self._check_open()
        self.warnings.append(RunWarning(category=category, message=message))
        logger.warning("⚠️  %s: %s", category, message)

    def close(self) -> None:
        """Freeze the report. Idempotent."""
        if not self.closed:
            self.ended_at = datetime.now(UTC).isoformat()

    # ── Queries ─────────────────────────────────────────────────

    def for_category(self, category: str) -> list[Action]:
        return [a for a in self.actions if a.category == category]

    def counts(self) -> dict[str, int]:
        """Number of actions per outcome (all outcomes present)."""
        counts = {outcome: 0 for outcome in OUTCOME_MARKERS}
        for action in self.actions:
            counts[action.outcome] += 1
        return counts

    @property
    def total(self) -> int:
        return len(self.actions)

    @property
    def succeeded(self) -> int:
        return self.counts()["succeeded"]

    @property
    def failed(self) -> int:
        return self.counts()["failed"]

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    def summary(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "dry_run": self.dry_run,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "status": self.status,
            "total": self.total,
            "counts": self.counts(),
            "warnings": [w.to_dict() for w in self.warnings],
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.summary()
        data["actions"] = [a.model_dump(mode="json") for a in self.actions]
        return data
