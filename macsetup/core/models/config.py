"""
Configuration documents — desired state and installed snapshots.

Both share one shape: per-category identifier lists plus the git
identity. The desired document is human-edited; the snapshot is
produced by probing the host and carries a small metadata header.

The loader accepts either the flat shape of these models or the nested
shape written by the audit script (``homebrew.formulae``,
``mac_app_store``, ``git_config.user_name``...).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Fixed processing order. Later categories may need tools that earlier
# ones install (mas comes from a formula).
CATEGORY_ORDER: tuple[str, ...] = (
    "taps",
    "formulae",
    "casks",
    "store_apps",
    "direct_downloads",
    "git_identity",
)

IDENTITY_FIELDS: tuple[str, ...] = ("name", "email")


def _duplicates(values: list[str]) -> list[str]:
    seen: set[str] = set()
    dupes: list[str] = []
    for value in values:
        if value in seen and value not in dupes:
            dupes.append(value)
        seen.add(value)
    return dupes


class StoreApp(BaseModel):
    """A Mac App Store application. ``id`` is the lookup key."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class DirectDownload(BaseModel):
    """An application installed from a vendor download, keyed by name."""

    model_config = ConfigDict(extra="ignore")

    name: str


class GitIdentity(BaseModel):
    """Global git user identity. ``None`` means "leave it alone"."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    email: str | None = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def _blank_is_absent(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str) and value.strip() in ("", "null"):
            return None
        return value

    def get(self, field: str) -> str | None:
        return getattr(self, field)


def _from_audit_shape(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten the nested document written by the audit script."""
    homebrew = data.get("homebrew") or {}
    git_config = data.get("git_config") or {}
    flat: dict[str, Any] = {
        "taps": homebrew.get("taps") or [],
        "formulae": homebrew.get("formulae") or [],
        "casks": homebrew.get("casks") or [],
        "store_apps": data.get("mac_app_store") or [],
        "direct_downloads": data.get("direct_downloads") or [],
        "git_identity": {
            "name": git_config.get("user_name"),
            "email": git_config.get("user_email"),
        },
    }
    if "metadata" in data:
        flat["metadata"] = data["metadata"]
    return flat


class ConfigDocument(BaseModel):
    """Category → identifiers mapping shared by desired and installed state."""

    model_config = ConfigDict(extra="ignore")

    taps: list[str] = Field(default_factory=list)
    formulae: list[str] = Field(default_factory=list)
    casks: list[str] = Field(default_factory=list)
    store_apps: list[StoreApp] = Field(default_factory=list)
    direct_downloads: list[DirectDownload] = Field(default_factory=list)
    git_identity: GitIdentity = Field(default_factory=GitIdentity)

    @model_validator(mode="before")
    @classmethod
    def _accept_audit_shape(cls, data: Any) -> Any:
        if isinstance(data, dict) and any(
            key in data for key in ("homebrew", "mac_app_store", "git_config")
        ):
            return _from_audit_shape(data)
        return data

    @field_validator("taps", "formulae", "casks")
    @classmethod
    def _unique_names(cls, values: list[str]) -> list[str]:
        dupes = _duplicates(values)
        if dupes:
            raise ValueError(f"duplicate identifiers: {', '.join(dupes)}")
        return values

    @model_validator(mode="after")
    def _unique_entries(self) -> ConfigDocument:
        for category in ("store_apps", "direct_downloads"):
            dupes = _duplicates(self.identifiers(category))
            if dupes:
                raise ValueError(f"duplicate {category} identifiers: {', '.join(dupes)}")
        return self

    def identifiers(self, category: str) -> list[str]:
        """Identifiers for a category, in document order."""
        if category in ("taps", "formulae", "casks"):
            return list(getattr(self, category))
        if category == "store_apps":
            return [app.id for app in self.store_apps]
        if category == "direct_downloads":
            return [app.name for app in self.direct_downloads]
        if category == "git_identity":
            return [
                f"user.{field}"
                for field in IDENTITY_FIELDS
                if self.git_identity.get(field) is not None
            ]
        raise KeyError(f"Unknown category: {category}")

    def label(self, category: str, identifier: str) -> str:
        """Display label for an identifier (store apps show their name)."""
        if category == "store_apps":
            for app in self.store_apps:
                if app.id == identifier and app.name:
                    return f"{app.name} ({app.id})"
        return identifier


class DesiredState(ConfigDocument):
    """The declarative input, loaded from mac-config-desired.json."""


class SnapshotMetadata(BaseModel):
    generated_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    hostname: str = ""
    os_version: str = ""


class InstalledSnapshot(ConfigDocument):
    """Probed record of what the host has at one point in time."""

    metadata: SnapshotMetadata = Field(default_factory=SnapshotMetadata)
