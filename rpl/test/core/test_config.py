"""Tests for rpl.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from rpl.core.config import (
    ReleaseConfig,
    api_hostname,
    build_config,
    coerce_option,
    load_config_file,
    parse_repo_slug,
)
from rpl.core.result import Err, Ok


class TestReleaseConfig:
    def test_defaults(self) -> None:
        config = ReleaseConfig()
        assert config.release_type == "node"
        assert config.label == "autorelease: pending"
        assert config.tagged_label == "autorelease: tagged"
        assert config.changelog_path == "CHANGELOG.md"
        assert config.bump_minor_pre_major is False

    def test_frozen(self) -> None:
        config = ReleaseConfig()
        with pytest.raises(AttributeError):
            config.label = "x"  # type: ignore[misc]

    def test_component_requires_monorepo_tags(self) -> None:
        assert ReleaseConfig(package_name="api").component is None
        assert ReleaseConfig(package_name="api", monorepo_tags=True).component == "api"


class TestLoadConfigFile:
    def test_toml_kebab_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "release.toml"
        path.write_text(
            'repo-url = "octo/widgets"\n'
            "bump-minor-pre-major = true\n"
            "\n"
            "[[changelog-sections]]\n"
            'type = "feat"\n'
            'section = "Features"\n',
            encoding="utf-8",
        )

        result = load_config_file(path)

        assert isinstance(result, Ok)
        assert result.value["repo_url"] == "octo/widgets"
        assert result.value["bump_minor_pre_major"] is True
        assert result.value["changelog_sections"] == [{"type": "feat", "section": "Features"}]

    def test_json_snake_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "release.json"
        path.write_text('{"release_type": "python", "path": "pkg"}', encoding="utf-8")

        result = load_config_file(path)

        assert result == Ok({"release_type": "python", "path": "pkg"})

    def test_unknown_key(self, tmp_path: Path) -> None:
        path = tmp_path / "release.toml"
        path.write_text('relase-type = "node"\n', encoding="utf-8")

        result = load_config_file(path)

        assert isinstance(result, Err)
        assert "relase-type" in result.error.message

    def test_missing_file_is_io_error(self, tmp_path: Path) -> None:
        result = load_config_file(tmp_path / "nope.toml")
        assert isinstance(result, Err)
        assert result.error.kind == "io"

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "release.toml"
        path.write_text("not = [valid\n", encoding="utf-8")

        result = load_config_file(path)

        assert isinstance(result, Err)
        assert result.error.kind == "invalid"
        assert "Invalid TOML" in result.error.message


class TestBuildConfig:
    def test_cli_overrides_file(self) -> None:
        result = build_config(
            {"release_type": "python", "label": "release: pending", "dry_run": True},
            {"release_type": "simple", "label": None, "dry_run": False},
        )
        assert isinstance(result, Ok)
        assert result.value.release_type == "simple"
        assert result.value.label == "release: pending"
        assert result.value.dry_run is False

    def test_changelog_sections_json_string(self) -> None:
        result = build_config({}, {"changelog_sections": '[{"type": "fix", "section": "Fixes"}]'})
        assert isinstance(result, Ok)
        assert result.value.changelog_sections == [{"type": "fix", "section": "Fixes"}]

    def test_fork_from_file(self) -> None:
        result = build_config({"fork": True}, {"fork": None})
        assert isinstance(result, Ok)
        assert result.value.fork is True

    def test_bad_json_sections(self) -> None:
        assert isinstance(build_config({}, {"changelog_sections": "[{"}), Err)

    @pytest.mark.parametrize(
        "values",
        [
            {"bump_minor_pre_major": "yes"},
            {"fork": "true"},
            {"pr": True},
            {"label": 3},
            {"changelog_unknown_types": "drop"},
        ],
    )
    def test_type_errors(self, values: dict[str, object]) -> None:
        assert isinstance(build_config(values, {}), Err)


def test_coerce_option_reads_file(tmp_path: Path) -> None:
    token_file = tmp_path / "token"
    token_file.write_text("ghp_secret\n", encoding="utf-8")
    assert coerce_option(str(token_file)) == "ghp_secret"
    assert coerce_option("ghp_inline") == "ghp_inline"
    assert coerce_option(None) is None


@pytest.mark.parametrize(
    "url",
    [
        "octo/widgets",
        "https://github.com/octo/widgets",
        "https://github.com/octo/widgets.git",
        "git@github.com:octo/widgets.git",
    ],
)
def test_parse_repo_slug(url: str) -> None:
    assert parse_repo_slug(url) == Ok("octo/widgets")


def test_parse_repo_slug_rejects_garbage() -> None:
    assert isinstance(parse_repo_slug("widgets"), Err)


def test_api_hostname() -> None:
    assert api_hostname(None) is None
    assert api_hostname("https://api.github.com") is None
    assert api_hostname("https://github.example.com/api/v3") == "github.example.com"
