"""github-release command - tag and publish a merged release pull request."""

from __future__ import annotations

from pathlib import Path

import typer

from rpl.cli import context as cli_context
from rpl.cli.commands._helpers import exit_on_error, strategy_for
from rpl.output.console import Style
from rpl.release.publisher import PublishOptions, ReleasePublisher

COMMAND = "github-release"


def github_release(
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
    pr: int | None = typer.Option(
        None, "--pr", help="Merged release pull request [default: latest merged]"
    ),
    label: str | None = typer.Option(
        None, "--label", help="Pending label [default: autorelease: pending]"
    ),
    tagged_label: str | None = typer.Option(
        None, "--tagged-label", help="Label set after publishing [default: autorelease: tagged]"
    ),
    changelog_path: str | None = typer.Option(
        None, "--changelog-path", help="Changelog file [default: CHANGELOG.md]"
    ),
    version_file: str | None = typer.Option(
        None, "--version-file", help="Version file for the simple strategy", show_default=False
    ),
    monorepo_tags: bool | None = typer.Option(
        None, "--monorepo-tags/--no-monorepo-tags", help="Prefix tags and titles with the package name"
    ),
    dry_run: bool | None = typer.Option(
        None, "--dry-run/--no-dry-run", help="Print the release without creating it"
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
    """Tag and publish a merged release pull request."""
    ctx = cli_context.build_context(
        config_path=config.expanduser() if config is not None else None,
        overrides={
            "repo_url": repo_url,
            "package_name": package_name,
            "release_type": release_type,
            "path": path,
            "default_branch": default_branch,
            "pr": pr,
            "label": label,
            "tagged_label": tagged_label,
            "changelog_path": changelog_path,
            "version_file": version_file,
            "monorepo_tags": monorepo_tags,
            "dry_run": dry_run,
            "token": token,
            "api_url": api_url,
            "debug": debug,
        },
    )
    cfg = ctx.config
    console = ctx.console

    strategy = exit_on_error(strategy_for(cfg), command=COMMAND, console=console)
    platform = exit_on_error(cli_context.make_platform(cfg), command=COMMAND, console=console)

    console.print(f"{platform.repo} ({strategy.release_type})", Style.DIM)
    publisher = ReleasePublisher(
        platform=platform,
        strategy=strategy,
        console=console,
        options=PublishOptions(
            base_branch=cfg.default_branch,
            path=cfg.path,
            component=cfg.component,
            pending_label=cfg.label,
            tagged_label=cfg.tagged_label,
            changelog_path=cfg.changelog_path,
            dry_run=cfg.dry_run,
        ),
    )
    outcome = exit_on_error(publisher.run(cfg.pr), command=COMMAND, console=console)
    console.print(f"outcome: {outcome.action}", Style.DIM)
