"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from macsetup.adapters.mock import MockIdentitySource, MockPackageSource
from macsetup.adapters.registry import AdapterRegistry
from macsetup.adapters.shell.command import CommandResult


class FakeRunner:
    """Scripted stand-in for ``run_command``.

    Responses are matched by command prefix; the longest matching prefix
    wins. Unmatched commands succeed with empty output. A response may
    be a callable taking the args, so tests can create files the way
    the real tool would.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self._responses: dict[tuple[str, ...], CommandResult | Callable[[list[str]], CommandResult]] = {}

    def on(self, prefix: list[str], returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self._responses[tuple(prefix)] = CommandResult(
            args=list(prefix), returncode=returncode, stdout=stdout, stderr=stderr
        )

    def on_call(self, prefix: list[str], handler: Callable[[list[str]], CommandResult]) -> None:
        self._responses[tuple(prefix)] = handler

    def __call__(self, args, **kwargs) -> CommandResult:
        args = list(args)
        self.calls.append(args)
        best: tuple[str, ...] | None = None
        for prefix in self._responses:
            if tuple(args[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            return CommandResult(args=args, returncode=0)
        response = self._responses[best]
        if callable(response):
            return response(args)
        return CommandResult(
            args=args,
            returncode=response.returncode,
            stdout=response.stdout,
            stderr=response.stderr,
        )

    def commands(self, program: str) -> list[list[str]]:
        return [call for call in self.calls if call and call[0] == program]


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def mock_registry() -> AdapterRegistry:
    """Registry with an in-memory adapter for every category."""
    registry = AdapterRegistry()
    for category in ("taps", "formulae", "casks", "store_apps", "direct_downloads"):
        registry.register(MockPackageSource(category))
    registry.register(MockIdentitySource())
    return registry


@pytest.fixture
def write_desired(tmp_path: Path) -> Callable[..., Path]:
    """Write a desired-state document into ``tmp_path``."""

    def _write(data: dict | None = None, name: str = "mac-config-desired.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data or {}, indent=2))
        return path

    return _write
