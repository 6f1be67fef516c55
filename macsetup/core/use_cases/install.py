"""
Install use case — reconcile the host against the desired state.

This is the top-level orchestrator: it locates (or seeds) the desired
document, loads it, runs Homebrew housekeeping, reconciles every
category, persists the run log and, after a real run, refreshes the
base snapshot. The full vertical slice from operator intent to an
audited run.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from macsetup.adapters.registry import AdapterRegistry, HousekeepingStep, default_registry
from macsetup.core.config.loader import (
    ConfigError,
    create_desired_from_base,
    default_base_path,
    default_desired_path,
    load_desired,
)
from macsetup.core.engine.prober import take_snapshot
from macsetup.core.engine.reconciler import BootstrapError, Reconciler
from macsetup.core.models.report import RunReport
from macsetup.core.observability.logging_config import run_log
from macsetup.core.persistence.run_log import DEFAULT_LOG_DIR, RunLog, run_log_path
from macsetup.core.persistence.snapshot_file import save_snapshot

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of an install run."""

    report: RunReport | None = None
    desired_path: Path | None = None
    base_path: Path | None = None
    log_path: Path | None = None
    text_log_path: Path | None = None
    base_refreshed: bool = False
    base_backup: Path | None = None
    # Refresh failures do not fail the run.
    base_error: str | None = None
    created_desired: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.error:
            result["error"] = self.error
        result["desired_path"] = str(self.desired_path) if self.desired_path else None
        result["created_desired"] = self.created_desired
        if self.log_path:
            result["log_path"] = str(self.log_path)
        if self.report:
            result["report"] = self.report.to_dict()
        result["base_refreshed"] = self.base_refreshed
        if self.base_error:
            result["base_error"] = self.base_error
        return result


def _run_housekeeping(
    steps: list[HousekeepingStep],
    registry: AdapterRegistry,
    report: RunReport,
) -> None:
    """Best-effort maintenance commands. Failures are warnings."""
    for step in steps:
        if report.dry_run:
            logger.info("[dry-run] Would run %s: %s", step.description, " ".join(step.command))
            continue
        if step.tool and shutil.which(step.tool) is None:
            logger.debug("Skipping %s: %s not installed", step.description, step.tool)
            continue
        logger.info("%s...", step.description)
        result = registry.runner(step.command)
        if not result.ok:
            report.warn("housekeeping", f"{step.description} failed: {result.error_text}")


def run_install(
    config_path: Path | None = None,
    base_path: Path | None = None,
    dry_run: bool = False,
    registry: AdapterRegistry | None = None,
    log_dir: Path | None = None,
    refresh_base: bool = True,
) -> InstallResult:
    """Reconcile the host against the desired-state document.

    Args:
        config_path: Desired document (default: ./mac-config-desired.json).
        base_path: Base snapshot (default: ./mac-config-base.json).
        dry_run: Plan only; no adapter install is invoked.
        registry: Optional pre-configured adapter registry.
        log_dir: Where run logs go (default: ./logs).
        refresh_base: After a real run, re-probe and rewrite the base file.

    Returns:
        InstallResult. ``error`` is set only for setup failures; failed
        actions are reported in ``report`` and do not set it.
    """
    desired_path = config_path or default_desired_path()
    base_path = base_path or default_base_path(desired_path.parent)
    result = InstallResult(desired_path=desired_path, base_path=base_path)

    # ── Locate / seed the desired document ───────────────────────
    if not desired_path.is_file():
        if create_desired_from_base(desired_path, base_path):
            result.created_desired = True
            return result
        result.error = (
            f"No configuration found: neither {desired_path.name} nor {base_path.name} exists. "
            "Run 'macsetup snapshot' first to generate a base configuration."
        )
        return result

    # ── Load before any side effect ──────────────────────────────
    try:
        desired = load_desired(desired_path)
    except ConfigError as e:
        result.error = str(e)
        return result

    if registry is None:
        registry = default_registry()

    report = RunReport(dry_run=dry_run)
    result.report = report

    log_dir = log_dir or desired_path.parent / DEFAULT_LOG_DIR
    log_path = run_log_path(log_dir, report.started_at)
    result.log_path = log_path
    result.text_log_path = log_path.with_suffix(".log")

    with run_log(result.text_log_path):
        logger.info("Starting %s%s from %s", report.operation_id, " (dry-run)" if dry_run else "", desired_path)

        # ── Reconcile ────────────────────────────────────────────
        try:
            _run_housekeeping(registry.before, registry, report)
            Reconciler(registry, report, dry_run=dry_run).run(desired)
            _run_housekeeping(registry.after, registry, report)
        except BootstrapError as e:
            result.error = str(e)
            logger.error("❌ %s", e)

        report.close()
        RunLog(log_path).write_report(report)
        logger.info("Run log saved to %s", log_path)

        # ── Refresh base snapshot ────────────────────────────────
        if not dry_run and refresh_base and result.error is None:
            snapshot, warnings = take_snapshot(registry)
            for warning in warnings:
                logger.warning("⚠️  Snapshot: %s", warning)
            try:
                result.base_backup = save_snapshot(snapshot, base_path, backup=True)
            except OSError as e:
                result.base_error = f"Could not update {base_path}: {e}"
                logger.warning("⚠️  %s", result.base_error)
            else:
                result.base_refreshed = True
                logger.info("Base configuration updated: %s", base_path)

    return result
