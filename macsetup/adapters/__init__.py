"""Adapters — bindings to the installation backends.

Public re-exports for convenient access.
"""

from macsetup.adapters.base import (
    Adapter,
    AdapterError,
    IdentitySource,
    NotAuthenticatedError,
    PackageSource,
    ToolMissingError,
)
from macsetup.adapters.mock import MockIdentitySource, MockPackageSource
from macsetup.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterError",
    "AdapterRegistry",
    "IdentitySource",
    "MockIdentitySource",
    "MockPackageSource",
    "NotAuthenticatedError",
    "PackageSource",
    "ToolMissingError",
    "default_registry",
]
