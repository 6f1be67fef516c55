"""
Mock adapters — test doubles for package and identity backends.

They keep an in-memory installed set that successful installs add to,
so a second reconciliation sees the first one's work. Availability,
authentication and per-identifier failures are configurable.
"""

from __future__ import annotations

from macsetup.adapters.base import (
    AdapterError,
    IdentitySource,
    NotAuthenticatedError,
    PackageSource,
    ToolMissingError,
)
from macsetup.core.models.action import Receipt


class MockPackageSource(PackageSource):
    """In-memory package backend.

    By default every install succeeds. ``set_failure`` makes one
    identifier fail, ``set_manual`` makes one require manual action.
    """

    def __init__(
        self,
        category: str,
        installed: set[str] | None = None,
        available: bool = True,
        authenticated: bool = True,
        batch: bool = False,
        bootstrap_ok: bool = True,
        critical: bool = False,
        tool: str = "mock",
    ):
        self.category = category
        self.installed = set(installed or ())
        self.available = available
        self.authenticated = authenticated
        self.supports_batch = batch
        self.bootstrap_ok = bootstrap_ok
        self.critical = critical
        self.tool = tool
        self._failures: dict[str, str] = {}
        self._manual: dict[str, str] = {}
        self._list_error: Exception | None = None
        self.install_calls: list[list[str]] = []
        self.list_calls = 0
        self.bootstrap_calls = 0

    @property
    def name(self) -> str:
        return f"mock-{self.category}"

    def is_available(self) -> bool:
        return self.available

    def ensure_ready(self) -> None:
        if not self.available:
            raise ToolMissingError(f"{self.tool} is not installed")
        if not self.authenticated:
            raise NotAuthenticatedError(f"{self.tool} is not signed in")

    def bootstrap(self) -> None:
        self.bootstrap_calls += 1
        if not self.bootstrap_ok:
            raise ToolMissingError(f"Could not install {self.tool}")
        self.available = True

    def set_failure(self, identifier: str, error: str = "Mock failure") -> None:
        self._failures[identifier] = error

    def set_manual(self, identifier: str, reason: str = "Install manually") -> None:
        self._manual[identifier] = reason

    def fail_listing(self, error: Exception | None = None) -> None:
        """Make ``list_installed`` raise (default: ``AdapterError``)."""
        self._list_error = error or AdapterError("mock listing failure")

    def list_installed(self) -> set[str]:
        self.list_calls += 1
        self.ensure_ready()
        if self._list_error is not None:
            raise self._list_error
        return set(self.installed)

    def describe_install(self, identifiers: list[str]) -> dict[str, str]:
        return {identifier: f"mock install {identifier}" for identifier in identifiers}

    def install(self, identifiers: list[str]) -> list[Receipt]:
        self.ensure_ready()
        self.install_calls.append(list(identifiers))
        receipts = []
        for identifier in identifiers:
            if identifier in self._failures:
                receipts.append(
                    Receipt.failure(
                        adapter=self.name,
                        identifier=identifier,
                        error=self._failures[identifier],
                    )
                )
            elif identifier in self._manual:
                receipts.append(
                    Receipt.manual(
                        adapter=self.name,
                        identifier=identifier,
                        reason=self._manual[identifier],
                    )
                )
            else:
                self.installed.add(identifier)
                receipts.append(
                    Receipt.success(
                        adapter=self.name,
                        identifier=identifier,
                        output=f"[mock] installed {identifier}",
                    )
                )
        return receipts

    @property
    def call_count(self) -> int:
        return len(self.install_calls)

    @property
    def installed_via_calls(self) -> list[str]:
        return [identifier for call in self.install_calls for identifier in call]


class MockIdentitySource(IdentitySource):
    """In-memory identity backend."""

    category = "git_identity"
    tool = "git"

    def __init__(self, values: dict[str, str] | None = None, available: bool = True):
        self.values = dict(values or {})
        self.available = available
        self.set_calls: list[tuple[str, str]] = []
        self._failures: set[str] = set()

    @property
    def name(self) -> str:
        return "mock-identity"

    def is_available(self) -> bool:
        return self.available

    def set_failure(self, field: str) -> None:
        self._failures.add(field)

    def get(self, field: str) -> str | None:
        return self.values.get(field)

    def describe_set(self, field: str, value: str) -> str:
        return f"mock set user.{field} {value}"

    def set(self, field: str, value: str) -> Receipt:
        self.set_calls.append((field, value))
        if field in self._failures:
            return Receipt.failure(
                adapter=self.name,
                identifier=f"user.{field}",
                error="Mock failure",
            )
        self.values[field] = value
        return Receipt.success(
            adapter=self.name,
            identifier=f"user.{field}",
            output=f"Set user.{field} to {value}",
        )
