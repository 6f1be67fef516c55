"""
Git identity adapter — global ``user.name`` / ``user.email``.

Uses the git CLI. Reads treat an unset key as ``None``.
"""

from __future__ import annotations

import logging

from macsetup.adapters.base import IdentitySource
from macsetup.adapters.shell.command import Runner, run_command
from macsetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

GIT_KEYS = {"name": "user.name", "email": "user.email"}


class GitIdentity(IdentitySource):
    tool = "git"
    category = "git_identity"

    def __init__(self, runner: Runner = run_command):
        self._runner = runner

    @property
    def name(self) -> str:
        return "git"

    def _key(self, field: str) -> str:
        try:
            return GIT_KEYS[field]
        except KeyError:
            raise ValueError(f"Unknown git identity field: {field}") from None

    def get(self, field: str) -> str | None:
        result = self._runner(["git", "config", "--global", self._key(field)])
        value = result.stdout.strip()
        # git exits 1 when the key is unset
        if not result.ok or not value:
            return None
        return value

    def describe_set(self, field: str, value: str) -> str:
        return f"git config --global {self._key(field)} {value!r}"

    def set(self, field: str, value: str) -> Receipt:
        key = self._key(field)
        result = self._runner(["git", "config", "--global", key, value])
        if result.ok:
            return Receipt.success(
                adapter=self.name,
                identifier=key,
                output=f"Set {key} to {value}",
            )
        return Receipt.failure(
            adapter=self.name,
            identifier=key,
            error=result.error_text,
            error_kind="command_failed",
        )
