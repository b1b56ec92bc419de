"""Release configuration.

Options come from the command line and, optionally, a ``--config`` file
(``.toml`` or ``.json``) whose keys mirror the long option names in kebab
or snake case::

    repo-url = "owner/repo"
    release-type = "python"
    bump-minor-pre-major = true

    [[changelog-sections]]
    type = "feat"
    section = "Features"

Command-line values override file values.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict

__all__ = [
    "ConfigError",
    "ReleaseConfig",
    "build_config",
    "coerce_option",
    "load_config_file",
    "parse_repo_slug",
    "api_hostname",
]

_SLUG_RE = re.compile(r"^[\w.-]+/[\w.-]+$")
_SSH_RE = re.compile(r"^git@[^:]+:(?P<slug>[\w.-]+/[\w.-]+?)(?:\.git)?$")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when options or the config file cannot be loaded or parsed."""

    message: str
    path: Path | None = None
    kind: Literal["invalid", "io"] = "invalid"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    repo_url: str | None = None
    package_name: str | None = None
    release_type: str = "node"
    path: str | None = None
    default_branch: str | None = None
    label: str = "autorelease: pending"
    tagged_label: str = "autorelease: tagged"
    release_as: str | None = None
    bump_minor_pre_major: bool = False
    changelog_sections: object | None = None
    changelog_unknown_types: str = "hide"
    changelog_path: str = "CHANGELOG.md"
    version_file: str | None = None
    last_package_version: str | None = None
    monorepo_tags: bool = False
    fork: bool = False
    pr: int | None = None
    dry_run: bool = False
    token: str | None = None
    api_url: str | None = None
    debug: bool = False

    @property
    def component(self) -> str | None:
        """Tag/title component; only set for monorepo releases."""
        if self.monorepo_tags and self.package_name:
            return self.package_name
        return None


_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "bump_minor_pre_major": (bool,),
    "monorepo_tags": (bool,),
    "fork": (bool,),
    "dry_run": (bool,),
    "debug": (bool,),
    "pr": (int,),
    "changelog_sections": (list, str),
}


def _normalize_key(key: str) -> str:
    return key.strip().replace("-", "_")


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path, kind="io"))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path, kind="io"))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def _parse_json(path: Path) -> Result[StrDict, ConfigError]:
    try:
        data_obj: object = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path, kind="io"))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path, kind="io"))
    except json.JSONDecodeError as e:
        return Err(ConfigError(f"Invalid JSON: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a JSON object", path=path))
    return Ok(data)


def load_config_file(path: Path) -> Result[StrDict, ConfigError]:
    """Load a config file into a mapping keyed by ``ReleaseConfig`` field names.

    Unknown keys are rejected so typos do not silently fall back to defaults.
    """
    parsed = _parse_json(path) if path.suffix.lower() == ".json" else _parse_toml(path)
    if isinstance(parsed, Err):
        return parsed

    known = {f.name for f in fields(ReleaseConfig)}
    out: StrDict = {}
    for key, value in parsed.value.items():
        name = _normalize_key(key)
        if name not in known:
            return Err(ConfigError(f"Unknown config key: {key}", path=path))
        out[name] = value
    return Ok(out)


def build_config(
    file_values: Mapping[str, object], overrides: Mapping[str, object | None]
) -> Result[ReleaseConfig, ConfigError]:
    """Merge file values and command-line overrides into a ``ReleaseConfig``.

    ``None`` overrides mean "not given on the command line".
    """
    merged: dict[str, object] = dict(file_values)
    for key, value in overrides.items():
        if value is not None:
            merged[key] = value

    defaults = ReleaseConfig()
    kwargs: dict[str, object] = {}
    for f in fields(ReleaseConfig):
        if f.name not in merged:
            continue
        value = merged[f.name]
        expected = _FIELD_TYPES.get(f.name, (str,))
        if isinstance(value, bool) and bool not in expected:
            return Err(ConfigError(f"Invalid value for {f.name}: {value!r}"))
        if not isinstance(value, expected):
            return Err(ConfigError(f"Invalid value for {f.name}: {value!r}"))
        if isinstance(value, str) and str in expected and f.name != "changelog_sections":
            value = value.strip()
            if not value:
                value = getattr(defaults, f.name)
        kwargs[f.name] = value

    if isinstance(kwargs.get("changelog_sections"), str):
        raw = str(kwargs["changelog_sections"])
        try:
            kwargs["changelog_sections"] = json.loads(raw)
        except json.JSONDecodeError as e:
            return Err(ConfigError(f"Invalid JSON for changelog_sections: {e}"))

    unknown_types = kwargs.get("changelog_unknown_types", defaults.changelog_unknown_types)
    if unknown_types not in ("hide", "misc"):
        return Err(
            ConfigError(f"changelog_unknown_types must be 'hide' or 'misc', got {unknown_types!r}")
        )

    return Ok(ReleaseConfig(**kwargs))  # pyright: ignore[reportArgumentType]


def coerce_option(value: str | None) -> str | None:
    """Return ``value``, or the stripped contents of the file it names."""
    if value is None:
        return None
    candidate = Path(value).expanduser()
    try:
        if candidate.is_file():
            return candidate.read_text(encoding="utf-8").strip()
    except OSError:
        return value
    return value


def parse_repo_slug(repo_url: str) -> Result[str, ConfigError]:
    """Accept ``owner/repo``, an https URL or an ssh remote."""
    text = repo_url.strip()
    if _SLUG_RE.match(text):
        return Ok(text.removesuffix(".git"))

    m = _SSH_RE.match(text)
    if m is not None:
        return Ok(m.group("slug"))

    parsed = urlparse(text)
    parts = [p for p in parsed.path.split("/") if p]
    if parsed.scheme in ("http", "https") and len(parts) >= 2:
        return Ok(f"{parts[0]}/{parts[1].removesuffix('.git')}")

    return Err(ConfigError(f"Invalid repository: {repo_url}", path=None))


def api_hostname(api_url: str | None) -> str | None:
    """``gh --hostname`` value for a GitHub Enterprise API URL."""
    if not api_url:
        return None
    host = urlparse(api_url if "://" in api_url else f"https://{api_url}").hostname
    if host is None or host in ("github.com", "api.github.com"):
        return None
    return host
