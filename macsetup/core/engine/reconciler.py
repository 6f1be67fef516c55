"""
Reconciler — bring the host in line with the desired-state document.

For every category, in a fixed order:

    ensure backend ready → probe installed → desired − installed
        → skip present identifiers → install (or plan, in dry-run)

Nothing is ever removed. A failure inside one category is recorded as
failed actions for that category and the next category still runs.
The only exception that escapes is ``BootstrapError``: the primary
package manager could not be installed, so nothing downstream can work.
"""

from __future__ import annotations

import logging

from macsetup.adapters.base import (
    AdapterError,
    IdentitySource,
    NotAuthenticatedError,
    PackageSource,
    ToolMissingError,
)
from macsetup.adapters.registry import AdapterRegistry
from macsetup.core.engine.prober import probe_category
from macsetup.core.models.action import Action, ErrorKind
from macsetup.core.models.config import CATEGORY_ORDER, IDENTITY_FIELDS, DesiredState, GitIdentity
from macsetup.core.models.report import RunReport

logger = logging.getLogger(__name__)


class BootstrapError(Exception):
    """A critical backend tool is missing and could not be installed."""


class Reconciler:
    """Diff desired against installed state and apply the difference.

    Args:
        registry: Adapters by category.
        report: Report that receives every action and warning.
        dry_run: Record what would happen without touching the host.
    """

    def __init__(self, registry: AdapterRegistry, report: RunReport, dry_run: bool = False):
        self.registry = registry
        self.report = report
        self.dry_run = dry_run
        # tool → whether its one-time bootstrap succeeded
        self._bootstrapped: dict[str, bool] = {}

    def run(self, desired: DesiredState) -> RunReport:
        """Reconcile every category in order and return the report."""
        for category in CATEGORY_ORDER:
            identifiers = desired.identifiers(category)
            if not identifiers:
                logger.info("No %s declared", category)
                continue

            logger.info("Reconciling %s (%d declared)", category, len(identifiers))
            try:
                if category == "git_identity":
                    self._reconcile_identity(desired.git_identity)
                else:
                    self._reconcile_packages(category, identifiers)
            except BootstrapError:
                raise
            except NotAuthenticatedError as e:
                self.report.warn(category, f"{e}; skipping {category}")
            except ToolMissingError as e:
                self._fail_remaining(category, identifiers, str(e), "tool_missing")
            except AdapterError as e:
                self._fail_remaining(category, identifiers, str(e), "command_failed")
            except Exception as e:
                logger.exception("Unexpected error while reconciling %s", category)
                self._fail_remaining(category, identifiers, f"Unexpected error: {e}", "unexpected")

        return self.report

    # ── Packages ────────────────────────────────────────────────

    def _reconcile_packages(self, category: str, identifiers: list[str]) -> None:
        adapter = self.registry.package_source(category)
        if adapter is None:
            raise ToolMissingError(f"No adapter registered for {category}")

        bootstrap_note = self._ensure_ready(category, adapter)
        if bootstrap_note:
            installed: set[str] = set()
        else:
            probe = probe_category(self.registry, category)
            if probe.error is not None:
                raise probe.error
            installed = probe.installed

        to_install: list[str] = []
        for identifier in identifiers:
            if identifier in installed:
                self.report.add(
                    Action(
                        category=category,
                        identifier=identifier,
                        outcome="skipped",
                        detail="already installed",
                    )
                )
            else:
                to_install.append(identifier)

        if not to_install:
            logger.info("All %s already installed", category)
            return

        if self.dry_run:
            plan = adapter.describe_install(to_install)
            for identifier in to_install:
                detail = plan.get(identifier, "")
                if bootstrap_note:
                    detail = f"{detail} ({bootstrap_note})"
                self.report.add(
                    Action(
                        category=category,
                        identifier=identifier,
                        outcome="pending",
                        detail=f"[dry-run] would run: {detail}",
                    )
                )
            return

        batches = [to_install] if adapter.supports_batch else [[i] for i in to_install]
        for batch in batches:
            for receipt in adapter.install(batch):
                self.report.add(Action.from_receipt(category, receipt))

    # ── Identity ────────────────────────────────────────────────

    def _reconcile_identity(self, identity: GitIdentity) -> None:
        category = "git_identity"
        adapter = self.registry.identity_source(category)
        if adapter is None:
            raise ToolMissingError(f"No adapter registered for {category}")

        bootstrap_note = self._ensure_ready(category, adapter)

        for field in IDENTITY_FIELDS:
            desired = identity.get(field)
            if desired is None:
                continue
            identifier = f"user.{field}"
            current = None if bootstrap_note else adapter.get(field)

            if current == desired:
                self.report.add(
                    Action(
                        category=category,
                        identifier=identifier,
                        outcome="skipped",
                        detail=f"already set to {desired}",
                    )
                )
            elif self.dry_run:
                self.report.add(
                    Action(
                        category=category,
                        identifier=identifier,
                        outcome="pending",
                        detail=f"[dry-run] would run: {adapter.describe_set(field, desired)}"
                        + (f" (current: {current})" if current else "")
                        + (f" ({bootstrap_note})" if bootstrap_note else ""),
                    )
                )
            else:
                receipt = adapter.set(field, desired)
                self.report.add(Action.from_receipt(category, receipt))

    # ── Readiness / bootstrap ───────────────────────────────────

    def _ensure_ready(self, category: str, adapter: PackageSource | IdentitySource) -> str | None:
        """Make sure the backend is usable, bootstrapping its tool once.

        Returns a note for dry-run plans when the tool would first be
        installed, otherwise ``None``.
        """
        try:
            adapter.ensure_ready()
            return None
        except ToolMissingError as e:
            if self.dry_run:
                self.report.warn(category, f"{e}; would install {adapter.tool} first")
                return f"after installing {adapter.tool}"
            self._bootstrap(category, adapter, e)

        adapter.ensure_ready()
        return None

    def _bootstrap(
        self,
        category: str,
        adapter: PackageSource | IdentitySource,
        cause: ToolMissingError,
    ) -> None:
        tool = adapter.tool
        if tool in self._bootstrapped:
            if not self._bootstrapped[tool]:
                raise ToolMissingError(f"{cause}; installing {tool} already failed this run")
            return

        logger.info("🔧 %s needs %s, installing it first", category, tool)
        try:
            adapter.bootstrap()
        except AdapterError as e:
            self._bootstrapped[tool] = False
            if adapter.critical:
                raise BootstrapError(f"Could not install {tool}: {e}") from e
            raise ToolMissingError(f"Could not install {tool}: {e}") from e

        self._bootstrapped[tool] = True
        logger.info("Installed %s", tool)

    # ── Failure bookkeeping ─────────────────────────────────────

    def _fail_remaining(
        self,
        category: str,
        identifiers: list[str],
        error: str,
        kind: ErrorKind,
    ) -> None:
        """Record a failure for every identifier without an action yet."""
        done = {a.identifier for a in self.report.for_category(category)}
        for identifier in identifiers:
            if identifier in done:
                continue
            self.report.add(
                Action(
                    category=category,
                    identifier=identifier,
                    outcome="failed",
                    detail=error,
                    error_kind=kind,
                )
            )
