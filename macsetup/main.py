"""
macsetup — CLI entrypoint.

Usage:
    macsetup --help
    macsetup install --dry-run
    macsetup install
    macsetup snapshot
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from macsetup import __version__
from macsetup.core.observability.logging_config import setup_logging

_OUTCOME_STYLE = {
    "succeeded": ("✓", "green"),
    "failed": ("✗", "red"),
    "skipped": ("⊘", "white"),
    "pending": ("…", "cyan"),
    "manual_required": ("✋", "yellow"),
}

_CATEGORY_TITLES = {
    "taps": "🚰 Homebrew taps",
    "formulae": "📦 Homebrew formulae",
    "casks": "📱 Homebrew casks",
    "store_apps": "🏪 Mac App Store",
    "direct_downloads": "📥 Direct downloads",
    "git_identity": "🌐 Git identity",
    "housekeeping": "🔧 Housekeeping",
}


@click.group()
@click.version_option(version=__version__, prog_name="macsetup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Desired-state document (default: ./mac-config-desired.json).",
)
@click.option(
    "--base",
    "base_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Base snapshot file (default: mac-config-base.json beside the config).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    base_path: str | None,
) -> None:
    """macsetup — install and configure a Mac from a desired-state file."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["base_path"] = Path(base_path) if base_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("MACSETUP_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("MACSETUP_LOG_FILE"),
        log_file_level=os.environ.get("MACSETUP_LOG_FILE_LEVEL"),
    )


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show what would be installed without changing anything.")
@click.pass_context
def install(ctx: click.Context, dry_run: bool) -> None:
    """Install everything in the desired state that is missing.

    Examples:

        macsetup install --dry-run

        macsetup install
    """
    from macsetup.core.use_cases.install import run_install

    result = run_install(
        config_path=ctx.obj.get("config_path"),
        base_path=ctx.obj.get("base_path"),
        dry_run=dry_run,
        registry=ctx.obj.get("registry"),
        log_dir=ctx.obj.get("log_dir"),
    )

    if result.created_desired:
        click.secho(f"✅ Created {result.desired_path} from {result.base_path}", fg="green")
        click.echo("   Edit it to describe the Mac you want, then run 'macsetup install' again.")
        return

    if result.report is None:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    quiet = ctx.obj.get("quiet", False)
    mode_label = "[dry-run] " if dry_run else ""
    click.secho(f"\n🚀 {mode_label}macsetup install — {result.desired_path}", fg="cyan", bold=True)

    current_category = None
    for action in report.actions:
        if quiet and action.outcome == "skipped":
            continue
        if action.category != current_category:
            current_category = action.category
            click.echo()
            click.secho(f"   {_CATEGORY_TITLES.get(current_category, current_category)}", bold=True)
        marker, color = _OUTCOME_STYLE[action.outcome]
        click.secho(f"     {marker} {action.identifier}", fg=color, nl=False)
        if action.outcome == "skipped":
            click.echo()
        else:
            kind = f" [{action.error_kind}]" if action.error_kind else ""
            click.echo(f"{kind}  {action.detail}")

    if report.warnings:
        click.echo()
        click.secho("   ⚠️  Warnings:", fg="yellow")
        for warning in report.warnings:
            title = _CATEGORY_TITLES.get(warning.category, warning.category)
            click.echo(f"     • {title}: {warning.message}")

    counts = report.counts()
    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(report.status, "white")
    click.secho(
        "   Result: "
        f"{counts['succeeded']} installed, {counts['skipped']} already present, "
        f"{counts['pending']} pending, {counts['manual_required']} manual, "
        f"{counts['failed']} failed",
        fg=status_color,
        bold=True,
    )
    if result.log_path:
        click.echo(f"   📄 Run log: {result.log_path}")
    if result.base_refreshed:
        click.echo(f"   📝 Base configuration updated: {result.base_path}")
    if result.base_error:
        click.secho(f"   ⚠️  {result.base_error}", fg="yellow")
    if dry_run:
        click.echo("   🧪 This was a dry-run. To actually install, run: macsetup install")

    if result.error:
        click.echo()
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Also print the snapshot as JSON.")
@click.pass_context
def snapshot(ctx: click.Context, as_json: bool) -> None:
    """Probe what is installed and write the base configuration."""
    from macsetup.core.config.loader import default_base_path
    from macsetup.core.use_cases.snapshot import run_snapshot

    base_path = ctx.obj.get("base_path")
    if base_path is None and ctx.obj.get("config_path") is not None:
        base_path = default_base_path(ctx.obj["config_path"].parent)

    result = run_snapshot(base_path=base_path, registry=ctx.obj.get("registry"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    snap = result.snapshot
    if snap is None:
        click.secho("❌ No snapshot was produced", fg="red")
        sys.exit(1)
    if not as_json:
        click.secho(f"\n🔍 Snapshot written to {result.path}", fg="cyan", bold=True)
        click.echo(f"   Taps: {len(snap.taps)}")
        click.echo(f"   Formulae: {len(snap.formulae)}")
        click.echo(f"   Casks: {len(snap.casks)}")
        click.echo(f"   App Store apps: {len(snap.store_apps)}")
        click.echo(f"   Applications: {len(snap.direct_downloads)}")
        if result.backup:
            click.echo(f"   Previous base kept at {result.backup}")
        for warning in result.warnings:
            click.secho(f"   ⚠️  {warning}", fg="yellow")
        click.echo()
        click.echo("   Next: copy it to mac-config-desired.json and edit it to taste.")
        click.echo()


if __name__ == "__main__":
    cli()
