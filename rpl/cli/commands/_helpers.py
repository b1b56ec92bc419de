"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import NoReturn, TypeVar

import typer

from rpl.core.config import ReleaseConfig, api_hostname, coerce_option
from rpl.core.errors import ErrorCode
from rpl.core.result import Err, Ok, Result
from rpl.output.console import ConsoleProtocol, Style
from rpl.release.changelog import ChangelogOptions, DEFAULT_SECTIONS, parse_section_rules
from rpl.release.errors import ReleaseError, ReleaseErrorKind
from rpl.release.semver import SemVer, parse_version
from rpl.release.strategies import ReleaseStrategy, get_strategy

T = TypeVar("T")


def release_error_code(kind: ReleaseErrorKind) -> ErrorCode:
    match kind:
        case "validation" | "invalid_input":
            return ErrorCode.USER_ERROR
        case "gh_missing" | "gh_auth_required":
            return ErrorCode.ENV_ERROR
        case "conflict":
            return ErrorCode.CONFLICT
        case "transient" | "remote_failed" | "not_found":
            return ErrorCode.NETWORK_ERROR


def fail_command(command: str, error: ReleaseError, console: ConsoleProtocol) -> NoReturn:
    """Report a fatal release error and exit with its classified code.

    The remote payload (``hint``) is only printed in debug mode.
    """
    status = f" with status {error.status}" if error.status is not None else ""
    console.error(f"command {command} failed{status}")
    console.print(error.message, Style.DIM)
    if error.hint:
        console.debug(error.hint)
    raise typer.Exit(code=int(release_error_code(error.kind)))


def exit_on_error(result: Result[T, ReleaseError], *, command: str, console: ConsoleProtocol) -> T:
    if isinstance(result, Err):
        fail_command(command, result.error, console)
    return result.value


def strategy_for(config: ReleaseConfig) -> Result[ReleaseStrategy, ReleaseError]:
    return get_strategy(config.release_type, version_file=config.version_file)


def changelog_options(config: ReleaseConfig, *, repo: str) -> Result[ChangelogOptions, ReleaseError]:
    sections = DEFAULT_SECTIONS
    if config.changelog_sections is not None:
        parsed = parse_section_rules(config.changelog_sections)
        if isinstance(parsed, Err):
            return parsed
        sections = parsed.value
    unknown = "misc" if config.changelog_unknown_types == "misc" else "hide"
    web_host = api_hostname(coerce_option(config.api_url)) or "github.com"
    return Ok(
        ChangelogOptions(
            repo_slug=repo, sections=sections, unknown_types=unknown, web_host=web_host
        )
    )


def last_package_version(config: ReleaseConfig) -> Result[SemVer | None, ReleaseError]:
    if config.last_package_version is None:
        return Ok(None)
    version = parse_version(config.last_package_version)
    if version is None:
        return Err(
            ReleaseError(
                kind="validation",
                message=f"invalid --last-package-version: {config.last_package_version}",
                hint="Expected MAJOR.MINOR.PATCH",
            )
        )
    return Ok(version)
