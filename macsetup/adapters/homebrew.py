"""
Homebrew adapters — taps, formulae and casks.

Listing uses ``brew list -1`` / ``brew tap``; formulae and casks are
installed in one batched ``brew install`` call, taps one at a time.
Homebrew itself is bootstrapped with the official install script when
missing; it is the one tool whose bootstrap failure aborts a run.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from macsetup.adapters.base import AdapterError, PackageSource, ToolMissingError
from macsetup.adapters.shell.command import CommandResult, Runner, run_command
from macsetup.core.models.action import Receipt

logger = logging.getLogger(__name__)

INSTALL_SCRIPT_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"

# Apple Silicon first, then Intel.
BREW_PREFIXES = (Path("/opt/homebrew"), Path("/usr/local"))

# Run before and after reconciliation in execute mode.
HOUSEKEEPING_BEFORE: tuple[tuple[str, list[str]], ...] = (
    ("Update Homebrew", ["brew", "update"]),
)
HOUSEKEEPING_AFTER: tuple[tuple[str, list[str]], ...] = (
    ("Clean up Homebrew cache", ["brew", "cleanup"]),
    ("Run Homebrew diagnostics", ["brew", "doctor"]),
)


def _add_to_path(bin_dir: Path) -> None:
    path = os.environ.get("PATH", "")
    if str(bin_dir) not in path.split(os.pathsep):
        os.environ["PATH"] = f"{bin_dir}{os.pathsep}{path}" if path else str(bin_dir)


def _persist_shellenv(brew: Path, profile: Path) -> None:
    line = f'eval "$({brew} shellenv)"'
    existing = profile.read_text(encoding="utf-8") if profile.is_file() else ""
    if line in existing:
        return
    with profile.open("a", encoding="utf-8") as f:
        f.write(f"\n{line}\n")
    logger.info("Added Homebrew shellenv to %s", profile)


def bootstrap_homebrew(runner: Runner = run_command, profile: Path | None = None) -> None:
    """Install Homebrew and put it on PATH for this process.

    Raises:
        ToolMissingError: if the installer fails or brew cannot be found afterwards.
    """
    logger.info("Installing Homebrew...")
    result = runner(
        ["/bin/bash", "-c", f'NONINTERACTIVE=1 /bin/bash -c "$(curl -fsSL {INSTALL_SCRIPT_URL})"'],
    )
    if not result.ok:
        raise ToolMissingError(f"Homebrew installation failed: {result.error_text}")

    for prefix in BREW_PREFIXES:
        brew = prefix / "bin" / "brew"
        if brew.is_file():
            _add_to_path(brew.parent)
            _persist_shellenv(brew, profile or Path.home() / ".zprofile")
            logger.info("Homebrew installed at %s", brew)
            return

    raise ToolMissingError("Homebrew installer finished but brew was not found")


class _HomebrewSource(PackageSource):
    tool = "brew"
    critical = True

    def __init__(self, runner: Runner = run_command):
        self._runner = runner

    def bootstrap(self) -> None:
        bootstrap_homebrew(self._runner)

    def _list(self, args: list[str]) -> set[str]:
        self.ensure_ready()
        result = self._runner(["brew", *args])
        if not result.ok:
            raise AdapterError(f"brew {' '.join(args)} failed: {result.error_text}")
        return set(result.lines())


class HomebrewPackages(_HomebrewSource):
    """Formulae or casks, installed in a single batched call.

    Args:
        kind: ``"formula"`` or ``"cask"``.
    """

    supports_batch = True

    def __init__(self, kind: str = "formula", runner: Runner = run_command):
        if kind not in ("formula", "cask"):
            raise ValueError(f"Unknown Homebrew package kind: {kind}")
        super().__init__(runner)
        self.kind = kind
        self.category = "formulae" if kind == "formula" else "casks"

    @property
    def name(self) -> str:
        return f"homebrew-{self.kind}"

    def list_installed(self) -> set[str]:
        return self._list(["list", f"--{self.kind}", "-1"])

    def _install_args(self, identifiers: list[str]) -> list[str]:
        args = ["brew", "install"]
        if self.kind == "cask":
            args.append("--cask")
        return args + list(identifiers)

    def describe_install(self, identifiers: list[str]) -> dict[str, str]:
        command = " ".join(self._install_args(identifiers))
        return {identifier: command for identifier in identifiers}

    def install(self, identifiers: list[str]) -> list[Receipt]:
        if not identifiers:
            return []
        self.ensure_ready()
        result = self._runner(self._install_args(identifiers))
        if result.ok:
            return [
                Receipt.success(
                    adapter=self.name,
                    identifier=identifier,
                    output=f"Installed {self.kind} {identifier}",
                    duration_ms=result.elapsed_ms,
                )
                for identifier in identifiers
            ]
        return self._attribute_batch_failure(identifiers, result)

    def _attribute_batch_failure(
        self, identifiers: list[str], result: CommandResult
    ) -> list[Receipt]:
        """A batch exited non-zero: find out which identifiers made it."""
        try:
            present = self.list_installed()
        except AdapterError as e:
            logger.warning("Could not re-list %s after failed install: %s", self.category, e)
            present = set()

        receipts = []
        for identifier in identifiers:
            if identifier in present:
                receipts.append(
                    Receipt.success(
                        adapter=self.name,
                        identifier=identifier,
                        output=f"Installed {self.kind} {identifier} (batch partially failed)",
                    )
                )
            else:
                receipts.append(
                    Receipt.failure(
                        adapter=self.name,
                        identifier=identifier,
                        error=result.error_text,
                        error_kind="command_failed",
                        metadata={"command": " ".join(result.args)},
                    )
                )
        return receipts


class HomebrewTaps(_HomebrewSource):
    """Third-party Homebrew repositories, tapped one at a time."""

    category = "taps"

    @property
    def name(self) -> str:
        return "homebrew-tap"

    def list_installed(self) -> set[str]:
        return self._list(["tap"])

    def describe_install(self, identifiers: list[str]) -> dict[str, str]:
        return {identifier: f"brew tap {identifier}" for identifier in identifiers}

    def install(self, identifiers: list[str]) -> list[Receipt]:
        self.ensure_ready()
        receipts = []
        for identifier in identifiers:
            result = self._runner(["brew", "tap", identifier])
            if result.ok:
                receipts.append(
                    Receipt.success(
                        adapter=self.name,
                        identifier=identifier,
                        output=f"Tapped {identifier}",
                        duration_ms=result.elapsed_ms,
                    )
                )
            else:
                receipts.append(
                    Receipt.failure(
                        adapter=self.name,
                        identifier=identifier,
                        error=result.error_text,
                        error_kind="command_failed",
                    )
                )
        return receipts
