"""release-pr command - open or refresh the pending release pull request."""

from __future__ import annotations

from pathlib import Path

import typer

from rpl.cli import context as cli_context
from rpl.cli.commands._helpers import (
    changelog_options,
    exit_on_error,
    last_package_version,
    strategy_for,
)
from rpl.output.console import Style
from rpl.release.reconciler import PendingReleaseReconciler, ReconcileOptions

COMMAND = "release-pr"


def release_pr(
    repo_url: str | None = typer.Option(None, "--repo-url", help="Repository (owner/repo or URL)"),
    package_name: str | None = typer.Option(
        None, "--package-name", help="Component name for monorepo releases", show_default=False
    ),
    release_type: str | None = typer.Option(
        None, "--release-type", help="Release strategy: node, python, simple [default: node]"
    ),
    path: str | None = typer.Option(
        None, "--path", help="Release path within the repository", show_default=False
    ),
    default_branch: str | None = typer.Option(
        None, "--default-branch", help="Base branch [default: repository default]"
    ),
    label: str | None = typer.Option(
        None, "--label", help="Pending label [default: autorelease: pending]"
    ),
    release_as: str | None = typer.Option(
        None, "--release-as", help="Release this exact version", show_default=False
    ),
    bump_minor_pre_major: bool | None = typer.Option(
        None,
        "--bump-minor-pre-major/--no-bump-minor-pre-major",
        help="Breaking changes before 1.0.0 bump minor",
    ),
    changelog_sections: str | None = typer.Option(
        None,
        "--changelog-sections",
        help='JSON list, e.g. [{"type":"feat","section":"Features"}]',
        show_default=False,
    ),
    changelog_path: str | None = typer.Option(
        None, "--changelog-path", help="Changelog file [default: CHANGELOG.md]"
    ),
    version_file: str | None = typer.Option(
        None, "--version-file", help="Version file for the simple strategy", show_default=False
    ),
    last_version: str | None = typer.Option(
        None,
        "--last-package-version",
        help="Current version when no release tag exists yet",
        show_default=False,
    ),
    monorepo_tags: bool | None = typer.Option(
        None, "--monorepo-tags/--no-monorepo-tags", help="Prefix tags and titles with the package name"
    ),
    fork: bool | None = typer.Option(
        None, "--fork/--no-fork", help="Push the release branch to your fork of the repository"
    ),
    dry_run: bool | None = typer.Option(
        None, "--dry-run/--no-dry-run", help="Print the plan without writing"
    ),
    config: Path | None = typer.Option(
        None, "--config", help="TOML or JSON config file", dir_okay=False, show_default=False
    ),
    token: str | None = typer.Option(
        None, "--token", help="GitHub token, or a file containing it", show_default=False
    ),
    api_url: str | None = typer.Option(
        None, "--api-url", help="GitHub API URL, or a file containing it", show_default=False
    ),
    debug: bool | None = typer.Option(None, "--debug/--no-debug", help="Show remote error details"),
) -> None:
    """Open or update the pending release pull request."""
    ctx = cli_context.build_context(
        config_path=config.expanduser() if config is not None else None,
        overrides={
            "repo_url": repo_url,
            "package_name": package_name,
            "release_type": release_type,
            "path": path,
            "default_branch": default_branch,
            "label": label,
            "release_as": release_as,
            "bump_minor_pre_major": bump_minor_pre_major,
            "changelog_sections": changelog_sections,
            "changelog_path": changelog_path,
            "version_file": version_file,
            "last_package_version": last_version,
            "monorepo_tags": monorepo_tags,
            "fork": fork,
            "dry_run": dry_run,
            "token": token,
            "api_url": api_url,
            "debug": debug,
        },
    )
    cfg = ctx.config
    console = ctx.console

    strategy = exit_on_error(strategy_for(cfg), command=COMMAND, console=console)
    last = exit_on_error(last_package_version(cfg), command=COMMAND, console=console)
    platform = exit_on_error(cli_context.make_platform(cfg), command=COMMAND, console=console)
    changelog = exit_on_error(
        changelog_options(cfg, repo=platform.repo), command=COMMAND, console=console
    )

    console.print(f"{platform.repo} ({strategy.release_type})", Style.DIM)
    reconciler = PendingReleaseReconciler(
        platform=platform,
        strategy=strategy,
        console=console,
        options=ReconcileOptions(
            changelog=changelog,
            base_branch=cfg.default_branch,
            path=cfg.path,
            component=cfg.component,
            pending_label=cfg.label,
            changelog_path=cfg.changelog_path,
            release_as=cfg.release_as,
            bump_minor_pre_major=cfg.bump_minor_pre_major,
            last_package_version=last,
            dry_run=cfg.dry_run,
        ),
    )
    outcome = exit_on_error(reconciler.run(), command=COMMAND, console=console)
    console.print(f"outcome: {outcome.action}", Style.DIM)
