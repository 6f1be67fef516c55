"""
Action and Receipt models — the reconciliation contract.

Receipts are what adapters return for one identifier. Actions are what
the reconciler records in the run report: one per identifier per
category, with a terminal outcome. Adapters never raise for a failed
install; the failure is captured in the Receipt.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


Outcome = Literal["pending", "skipped", "succeeded", "failed", "manual_required"]

ErrorKind = Literal[
    "download_failed",    # network error or non-2xx from the vendor URL
    "bundle_not_found",   # archive fetched but the expected .app is missing
    "installer_failed",   # mount / extract / installer / copy step failed
    "command_failed",     # package manager exited non-zero
    "tool_missing",       # backend tool absent and could not be bootstrapped
    "unexpected",         # anything else raised inside a category
]


class Receipt(BaseModel):
    """Result of one adapter install call for a single identifier."""

    adapter: str
    identifier: str
    status: Literal["ok", "failed", "manual"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    error_kind: ErrorKind | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        identifier: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            identifier=identifier,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        identifier: str,
        error: str,
        error_kind: ErrorKind = "command_failed",
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            identifier=identifier,
            status="failed",
            error=error,
            error_kind=error_kind,
            **kwargs,
        )

    @classmethod
    def manual(
        cls,
        adapter: str,
        identifier: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a receipt for an identifier that needs a human."""
        return cls(
            adapter=adapter,
            identifier=identifier,
            status="manual",
            output=reason,
            **kwargs,
        )


class Action(BaseModel):
    """One reconciliation step recorded in the run report."""

    category: str
    identifier: str
    operation: Literal["install"] = "install"
    outcome: Outcome = "pending"
    detail: str = ""
    error_kind: ErrorKind | None = None
    recorded_at: str = Field(default_factory=_now_iso)

    @classmethod
    def from_receipt(cls, category: str, receipt: Receipt) -> Action:
        """Translate an adapter receipt into a terminal action."""
        if receipt.ok:
            return cls(
                category=category,
                identifier=receipt.identifier,
                outcome="succeeded",
                detail=receipt.output,
            )
        if receipt.status == "manual":
            return cls(
                category=category,
                identifier=receipt.identifier,
                outcome="manual_required",
                detail=receipt.output,
            )
        return cls(
            category=category,
            identifier=receipt.identifier,
            outcome="failed",
            detail=receipt.error or "",
            error_kind=receipt.error_kind,
        )
