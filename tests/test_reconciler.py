"""
Tests for the reconciler — diffing, dry-run, bootstrap and isolation.
"""

from pathlib import Path

import pytest

from macsetup.adapters.downloads.adapter import DirectDownloads
from macsetup.adapters.downloads.catalog import InstallerCatalog
from macsetup.adapters.downloads.installers import DmgInstaller
from macsetup.adapters.mock import MockIdentitySource, MockPackageSource
from macsetup.adapters.registry import AdapterRegistry
from macsetup.core.engine.reconciler import BootstrapError, Reconciler
from macsetup.core.models.config import DesiredState, GitIdentity, StoreApp
from macsetup.core.models.report import RunReport


def _reconcile(registry: AdapterRegistry, desired: DesiredState, dry_run: bool = False) -> RunReport:
    report = RunReport(dry_run=dry_run)
    Reconciler(registry, report, dry_run=dry_run).run(desired)
    report.close()
    return report


def _outcomes(report: RunReport, category: str) -> dict[str, str]:
    return {a.identifier: a.outcome for a in report.for_category(category)}


# ── Worked scenarios ────────────────────────────────────────────────


class TestScenarios:
    def test_missing_formula_installed_present_one_skipped(self, mock_registry):
        formulae = mock_registry.get("formulae")
        formulae.installed = {"git"}

        report = _reconcile(mock_registry, DesiredState(formulae=["git", "jq"]))

        assert _outcomes(report, "formulae") == {"git": "skipped", "jq": "succeeded"}
        assert formulae.installed_via_calls == ["jq"]

    def test_store_signed_out_skips_category_with_warning(self, mock_registry):
        mock_registry.register(MockPackageSource("store_apps", authenticated=False))
        desired = DesiredState(
            formulae=["jq"],
            store_apps=[StoreApp(id="409183694", name="Keynote")],
        )

        report = _reconcile(mock_registry, desired)

        assert report.for_category("store_apps") == []
        assert [w.category for w in report.warnings] == ["store_apps"]
        assert _outcomes(report, "formulae") == {"jq": "succeeded"}
        assert report.status == "ok"

    def test_unmapped_download_needs_manual_install(self, mock_registry, tmp_path: Path, monkeypatch):
        monkeypatch.setattr("shutil.which", lambda tool: f"/usr/bin/{tool}")
        apps = tmp_path / "Applications"
        apps.mkdir()
        mock_registry.register(
            DirectDownloads(catalog=InstallerCatalog([]), applications_dir=apps)
        )
        desired = DesiredState.model_validate(
            {"direct_downloads": [{"name": "WidgetApp"}], "git_identity": {"name": "Alice"}}
        )

        report = _reconcile(mock_registry, desired)

        assert _outcomes(report, "direct_downloads") == {"WidgetApp": "manual_required"}
        assert _outcomes(report, "git_identity") == {"user.name": "succeeded"}

    def test_downloads_without_curl(self, mock_registry, tmp_path: Path, monkeypatch):
        monkeypatch.setattr("shutil.which", lambda tool: None)
        apps = tmp_path / "Applications"
        (apps / "Tailscale.app").mkdir(parents=True)
        catalog = InstallerCatalog(
            [
                DmgInstaller("Tailscale", "https://example.com/Tailscale.dmg"),
                DmgInstaller("Raycast", "https://example.com/Raycast.dmg"),
            ]
        )
        mock_registry.register(DirectDownloads(catalog=catalog, applications_dir=apps))
        desired = DesiredState.model_validate(
            {"direct_downloads": [{"name": "Tailscale"}, {"name": "WidgetApp"}, {"name": "Raycast"}]}
        )

        report = _reconcile(mock_registry, desired)

        assert _outcomes(report, "direct_downloads") == {
            "Tailscale": "skipped",
            "WidgetApp": "manual_required",
            "Raycast": "failed",
        }
        raycast = report.for_category("direct_downloads")[-1]
        assert raycast.error_kind == "tool_missing"
        assert "curl" in raycast.detail

    def test_identity_set_then_skipped(self, mock_registry):
        identity = MockIdentitySource({"name": "Bob"})
        mock_registry.register(identity)
        desired = DesiredState(git_identity=GitIdentity(name="Alice"))

        first = _reconcile(mock_registry, desired)
        assert _outcomes(first, "git_identity") == {"user.name": "succeeded"}
        assert identity.set_calls == [("name", "Alice")]

        second = _reconcile(mock_registry, desired)
        assert _outcomes(second, "git_identity") == {"user.name": "skipped"}
        assert identity.set_calls == [("name", "Alice")]


# ── Properties ──────────────────────────────────────────────────────


class TestIdempotence:
    def test_second_run_installs_nothing(self, mock_registry):
        desired = DesiredState(
            taps=["hashicorp/tap"],
            formulae=["git", "jq"],
            casks=["firefox"],
            store_apps=[StoreApp(id="1")],
            git_identity=GitIdentity(name="Alice", email="alice@example.com"),
        )
        _reconcile(mock_registry, desired)
        calls_after_first = {
            c: mock_registry.get(c).call_count for c in ("taps", "formulae", "casks", "store_apps")
        }

        second = _reconcile(mock_registry, desired)

        assert all(a.outcome == "skipped" for a in second.actions)
        assert second.total == 7
        for category, count in calls_after_first.items():
            assert mock_registry.get(category).call_count == count


class TestSetDifference:
    def test_only_missing_identifiers_reach_the_adapter(self, mock_registry):
        casks = mock_registry.get("casks")
        casks.installed = {"firefox", "iterm2", "slack"}

        report = _reconcile(mock_registry, DesiredState(casks=["slack", "zoom", "firefox", "arc"]))

        assert casks.installed_via_calls == ["zoom", "arc"]
        assert [a.identifier for a in report.actions] == ["slack", "firefox", "zoom", "arc"]

    def test_extra_installed_items_are_left_alone(self, mock_registry):
        formulae = mock_registry.get("formulae")
        formulae.installed = {"git", "wget"}
        report = _reconcile(mock_registry, DesiredState(formulae=["git"]))
        assert formulae.installed == {"git", "wget"}
        assert report.total == 1

    def test_comparison_is_verbatim(self, mock_registry):
        mock_registry.get("casks").installed = {"Firefox"}
        report = _reconcile(mock_registry, DesiredState(casks=["firefox"]))
        assert _outcomes(report, "casks") == {"firefox": "succeeded"}


class TestBatching:
    def test_batch_adapter_gets_one_call(self, mock_registry):
        formulae = MockPackageSource("formulae", batch=True)
        mock_registry.register(formulae)
        _reconcile(mock_registry, DesiredState(formulae=["a", "b", "c"]))
        assert formulae.install_calls == [["a", "b", "c"]]

    def test_unbatched_adapter_gets_one_call_each(self, mock_registry):
        _reconcile(mock_registry, DesiredState(taps=["a/b", "c/d"]))
        assert mock_registry.get("taps").install_calls == [["a/b"], ["c/d"]]


class TestCategoryIsolation:
    def test_failed_install_does_not_stop_the_run(self, mock_registry):
        mock_registry.get("formulae").set_failure("jq", "Error: jq is broken")
        report = _reconcile(mock_registry, DesiredState(formulae=["jq", "yq"], casks=["firefox"]))

        failed = report.for_category("formulae")[0]
        assert failed.outcome == "failed"
        assert failed.error_kind == "command_failed"
        assert failed.detail == "Error: jq is broken"
        assert _outcomes(report, "formulae")["yq"] == "succeeded"
        assert _outcomes(report, "casks") == {"firefox": "succeeded"}
        assert report.status == "partial"

    def test_probe_failure_fails_category_only(self, mock_registry):
        mock_registry.get("formulae").fail_listing()
        report = _reconcile(mock_registry, DesiredState(formulae=["git", "jq"], casks=["firefox"]))

        assert _outcomes(report, "formulae") == {"git": "failed", "jq": "failed"}
        assert {a.error_kind for a in report.for_category("formulae")} == {"command_failed"}
        assert _outcomes(report, "casks") == {"firefox": "succeeded"}

    def test_unexpected_exception_fails_category_only(self, mock_registry):
        mock_registry.get("casks").fail_listing(RuntimeError("disk on fire"))
        report = _reconcile(mock_registry, DesiredState(casks=["firefox"], formulae=["git"]))

        [action] = report.for_category("casks")
        assert action.outcome == "failed"
        assert action.error_kind == "unexpected"
        assert "disk on fire" in action.detail
        assert _outcomes(report, "formulae") == {"git": "succeeded"}

    def test_missing_adapter(self):
        registry = AdapterRegistry()
        registry.register(MockPackageSource("formulae"))
        report = _reconcile(registry, DesiredState(casks=["firefox"], formulae=["git"]))
        assert report.for_category("casks")[0].error_kind == "tool_missing"
        assert _outcomes(report, "formulae") == {"git": "succeeded"}

    def test_categories_processed_in_fixed_order(self, mock_registry):
        desired = DesiredState.model_validate(
            {
                "git_identity": {"email": "a@example.com"},
                "store_apps": [{"id": "1"}],
                "casks": ["c"],
                "formulae": ["f"],
                "taps": ["t/t"],
                "direct_downloads": [{"name": "D"}],
            }
        )
        report = _reconcile(mock_registry, desired)
        assert [a.category for a in report.actions] == [
            "taps",
            "formulae",
            "casks",
            "store_apps",
            "direct_downloads",
            "git_identity",
        ]

    def test_empty_categories_are_not_probed(self, mock_registry):
        _reconcile(mock_registry, DesiredState(formulae=["git"]))
        assert mock_registry.get("casks").list_calls == 0


class TestDryRun:
    def test_nothing_is_installed(self, mock_registry):
        mock_registry.get("formulae").installed = {"git"}
        identity = MockIdentitySource({"name": "Bob"})
        mock_registry.register(identity)
        desired = DesiredState(formulae=["git", "jq"], git_identity=GitIdentity(name="Alice"))

        report = _reconcile(mock_registry, desired, dry_run=True)

        assert mock_registry.get("formulae").install_calls == []
        assert identity.set_calls == []
        assert identity.values == {"name": "Bob"}
        assert _outcomes(report, "formulae") == {"git": "skipped", "jq": "pending"}
        jq = report.for_category("formulae")[1]
        assert jq.detail == "[dry-run] would run: mock install jq"
        identity_action = report.for_category("git_identity")[0]
        assert identity_action.outcome == "pending"
        assert "current: Bob" in identity_action.detail

    def test_missing_tool_is_not_bootstrapped(self, mock_registry):
        casks = MockPackageSource("casks", available=False, tool="brew")
        mock_registry.register(casks)

        report = _reconcile(mock_registry, DesiredState(casks=["firefox"]), dry_run=True)

        assert casks.bootstrap_calls == 0
        assert casks.list_calls == 0
        [action] = report.for_category("casks")
        assert action.outcome == "pending"
        assert "after installing brew" in action.detail
        assert report.warnings[0].category == "casks"

    def test_missing_git_noted_on_identity(self, mock_registry):
        identity = MockIdentitySource(available=False)
        mock_registry.register(identity)

        report = _reconcile(mock_registry, DesiredState(git_identity=GitIdentity(name="Alice")), dry_run=True)

        [action] = report.for_category("git_identity")
        assert action.outcome == "pending"
        assert action.detail.endswith("(after installing git)")
        assert identity.set_calls == []

    def test_store_signed_out_in_dry_run(self, mock_registry):
        mock_registry.register(MockPackageSource("store_apps", authenticated=False))
        report = _reconcile(mock_registry, DesiredState(store_apps=[StoreApp(id="1")]), dry_run=True)
        assert report.actions == []
        assert len(report.warnings) == 1


class TestBootstrap:
    def test_missing_tool_bootstrapped_once(self, mock_registry):
        formulae = MockPackageSource("formulae", available=False, tool="brew")
        mock_registry.register(formulae)

        report = _reconcile(mock_registry, DesiredState(formulae=["git"]))

        assert formulae.bootstrap_calls == 1
        assert _outcomes(report, "formulae") == {"git": "succeeded"}

    def test_critical_bootstrap_failure_aborts(self, mock_registry):
        mock_registry.register(
            MockPackageSource("taps", available=False, bootstrap_ok=False, critical=True, tool="brew")
        )
        report = RunReport()
        with pytest.raises(BootstrapError, match="brew"):
            Reconciler(mock_registry, report).run(DesiredState(taps=["a/b"], casks=["firefox"]))
        assert report.for_category("casks") == []

    def test_secondary_bootstrap_failure_fails_category(self, mock_registry):
        store = MockPackageSource("store_apps", available=False, bootstrap_ok=False, tool="mas")
        mock_registry.register(store)
        identity = MockIdentitySource()
        mock_registry.register(identity)
        desired = DesiredState(
            store_apps=[StoreApp(id="1"), StoreApp(id="2")],
            git_identity=GitIdentity(name="Alice"),
        )

        report = _reconcile(mock_registry, desired)

        assert _outcomes(report, "store_apps") == {"1": "failed", "2": "failed"}
        assert {a.error_kind for a in report.for_category("store_apps")} == {"tool_missing"}
        assert _outcomes(report, "git_identity") == {"user.name": "succeeded"}

    def test_failed_bootstrap_not_retried_for_same_tool(self, mock_registry):
        formulae = MockPackageSource("formulae", available=False, bootstrap_ok=False, tool="brew")
        casks = MockPackageSource("casks", available=False, bootstrap_ok=False, tool="brew")
        mock_registry.register(formulae)
        mock_registry.register(casks)

        report = _reconcile(mock_registry, DesiredState(formulae=["git"], casks=["firefox"]))

        assert formulae.bootstrap_calls == 1
        assert casks.bootstrap_calls == 0
        assert "already failed" in report.for_category("casks")[0].detail


class TestIdentity:
    def test_absent_fields_produce_no_action(self, mock_registry):
        identity = MockIdentitySource({"name": "Bob", "email": "bob@example.com"})
        mock_registry.register(identity)
        report = _reconcile(mock_registry, DesiredState(git_identity=GitIdentity(email="bob@example.com")))
        assert _outcomes(report, "git_identity") == {"user.email": "skipped"}

    def test_failed_set(self, mock_registry):
        identity = MockIdentitySource()
        identity.set_failure("email")
        mock_registry.register(identity)
        report = _reconcile(
            mock_registry,
            DesiredState(git_identity=GitIdentity(name="Alice", email="alice@example.com")),
        )
        assert _outcomes(report, "git_identity") == {"user.name": "succeeded", "user.email": "failed"}
