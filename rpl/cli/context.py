from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import typer

from rpl.core.config import (
    ReleaseConfig,
    api_hostname,
    build_config,
    coerce_option,
    load_config_file,
    parse_repo_slug,
)
from rpl.core.errors import ErrorCode
from rpl.core.result import Err, Ok, Result
from rpl.core.structured import StrDict
from rpl.output.console import ConsoleProtocol, RichConsole
from rpl.release.errors import ReleaseError
from rpl.release.github import GhApi, GitHubPlatform, ensure_gh_auth, ensure_gh_available
from rpl.release.platform import ReleasePlatform


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: ReleaseConfig
    console: ConsoleProtocol


def build_context(*, config_path: Path | None, overrides: Mapping[str, object | None]) -> CLIContext:
    file_values: StrDict = {}
    if config_path is not None:
        loaded = load_config_file(config_path)
        if isinstance(loaded, Err):
            typer.echo(f"error: {loaded.error.message}", err=True)
            code = ErrorCode.IO_ERROR if loaded.error.kind == "io" else ErrorCode.USER_ERROR
            raise typer.Exit(code=int(code))
        file_values = loaded.value

    config = build_config(file_values, overrides)
    if isinstance(config, Err):
        typer.echo(f"error: {config.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    cfg = config.value
    return CLIContext(config=cfg, console=RichConsole(verbose=cfg.debug))


def make_platform(config: ReleaseConfig) -> Result[ReleasePlatform, ReleaseError]:
    """GitHub platform for ``config.repo_url`` authenticated through ``gh``."""
    if not config.repo_url:
        return Err(
            ReleaseError(kind="validation", message="missing --repo-url", hint="e.g. owner/repo")
        )
    slug = parse_repo_slug(config.repo_url)
    if isinstance(slug, Err):
        return Err(ReleaseError(kind="validation", message=slug.error.message))

    ok = ensure_gh_available()
    if isinstance(ok, Err):
        return ok

    cwd = Path.cwd()
    token = coerce_option(config.token)
    hostname = api_hostname(coerce_option(config.api_url))
    ok = ensure_gh_auth(cwd=cwd, hostname=hostname, token=token)
    if isinstance(ok, Err):
        return ok

    api = GhApi(cwd=cwd, hostname=hostname, token=token)
    return Ok(GitHubPlatform(repo=slug.value, api=api, fork=config.fork))
