"""
Domain models — Pydantic types for macsetup.

All models are re-exported here for convenient access:

    from macsetup.core.models import DesiredState, Action, Receipt, RunReport
"""

from macsetup.core.models.action import Action, Receipt
from macsetup.core.models.config import (
    CATEGORY_ORDER,
    ConfigDocument,
    DesiredState,
    DirectDownload,
    GitIdentity,
    InstalledSnapshot,
    SnapshotMetadata,
    StoreApp,
)
from macsetup.core.models.report import RunReport, RunWarning

__all__ = [
    "CATEGORY_ORDER",
    # action.py
    "Action",
    # config.py
    "ConfigDocument",
    "DesiredState",
    "DirectDownload",
    "GitIdentity",
    "InstalledSnapshot",
    "Receipt",
    # report.py
    "RunReport",
    "RunWarning",
    "SnapshotMetadata",
    "StoreApp",
]
