"""
Adapter base — the protocol contract between the reconciler and backends.

The reconciler only talks to installation backends through these
interfaces, never directly to ``brew``, ``mas``, ``curl`` or ``git``.

Two shapes exist:
    PackageSource   — a category of identifiers that can be listed and
                      installed (taps, formulae, casks, store apps,
                      direct downloads).
    IdentitySource  — a handful of key/value settings compared one by
                      one (git user name and email).

``install`` never raises for a failed identifier; failures come back
as Receipts. Precondition problems (tool missing, not signed in) are
raised as ``AdapterError`` subclasses so the reconciler can decide
whether to bootstrap, skip the category, or give up.
"""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod

from macsetup.core.models.action import Receipt


class AdapterError(Exception):
    """A backend cannot be used right now."""


class ToolMissingError(AdapterError):
    """The backend's command-line tool is not installed."""


class NotAuthenticatedError(AdapterError):
    """The backend needs a signed-in session and has none."""


class Adapter(ABC):
    """Common surface for every backend.

    To create a new adapter:
        1. Subclass PackageSource or IdentitySource
        2. Set ``tool`` and ``category`` and implement the abstract methods
        3. Register it in the AdapterRegistry
    """

    #: Executable the adapter depends on ("" = none).
    tool: str = ""
    #: Category of the desired-state document this adapter serves.
    category: str = ""
    #: A failed bootstrap of this tool aborts the whole run.
    critical: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'homebrew-formula', 'mas')."""

    def is_available(self) -> bool:
        """Check if the underlying tool is on PATH. Never raises."""
        if not self.tool:
            return True
        return shutil.which(self.tool) is not None

    def ensure_ready(self) -> None:
        """Raise an ``AdapterError`` if the backend cannot be used."""
        if not self.is_available():
            raise ToolMissingError(f"{self.tool} is not installed")

    def bootstrap(self) -> None:
        """Install the missing tool. Raises ``AdapterError`` on failure."""
        raise ToolMissingError(f"No automatic installation available for {self.tool or self.name}")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} category={self.category!r}>"


class PackageSource(Adapter):
    """A backend that lists and installs identifiers."""

    #: Whether one ``install`` call may carry several identifiers.
    supports_batch: bool = False

    @abstractmethod
    def list_installed(self) -> set[str]:
        """Identifiers currently present. Read-only."""

    def list_labels(self) -> dict[str, str]:
        """Installed identifiers mapped to a display label."""
        return {identifier: identifier for identifier in sorted(self.list_installed())}

    def snapshot_labels(self) -> dict[str, str]:
        """What a snapshot records for this category (default: everything)."""
        return self.list_labels()

    @abstractmethod
    def install(self, identifiers: list[str]) -> list[Receipt]:
        """Install identifiers, returning one receipt per identifier."""

    @abstractmethod
    def describe_install(self, identifiers: list[str]) -> dict[str, str]:
        """What ``install`` would do, per identifier, without doing it."""


class IdentitySource(Adapter):
    """A backend holding single-valued settings."""

    @abstractmethod
    def get(self, field: str) -> str | None:
        """Current value of a field, ``None`` when unset."""

    @abstractmethod
    def set(self, field: str, value: str) -> Receipt:
        """Set a field. Never raises for a failed write."""

    @abstractmethod
    def describe_set(self, field: str, value: str) -> str:
        """What ``set`` would do, without doing it."""
