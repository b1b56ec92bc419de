from __future__ import annotations

from rpl.release.bump import compute_bump
from rpl.release.commits import cancel_reverts, parse_commit_message, parse_commits
from rpl.release.model import RawCommit, VersionBump
from rpl.release.semver import SemVer

SHA = "1f9663c" + "0" * 33


def _one(message: str):
    records = parse_commit_message(sha=SHA, message=message)
    assert len(records) == 1
    return records[0]


def test_header_with_scope() -> None:
    r = _one("fix(deps): update dependency X")
    assert r.type == "fix"
    assert r.scope == "deps"
    assert r.summary == "update dependency X"
    assert r.breaking is False


def test_type_is_lowercased() -> None:
    assert _one("Feat: shout").type == "feat"


def test_bang_marks_breaking_with_summary_as_note() -> None:
    r = _one("feat(api)!: drop v1 endpoints")
    assert r.breaking is True
    assert r.notes == ("drop v1 endpoints",)


def test_multiple_breaking_footers_are_collected() -> None:
    r = _one(
        "feat: new config format\n"
        "\n"
        "Body text.\n"
        "\n"
        "BREAKING CHANGE: the ini format is gone\n"
        "use toml instead\n"
        "BREAKING-CHANGE: --legacy flag removed\n"
        "Refs: #12\n"
    )
    assert r.breaking is True
    assert r.notes == ("the ini format is gone use toml instead", "--legacy flag removed")


def test_unparsable_message_is_unknown() -> None:
    r = _one("Update README.md")
    assert r.type == "unknown"
    assert r.summary == "Update README.md"
    assert r.breaking is False


def test_bot_dependency_update_is_unknown() -> None:
    assert _one("Bump lodash from 4.17.20 to 4.17.21").type == "unknown"


def test_empty_message_does_not_raise() -> None:
    assert _one("").type == "unknown"


def test_release_as_footer() -> None:
    r = _one("chore: prepare\n\nRelease-As: 2.0.0")
    assert r.release_as == "2.0.0"


def test_nested_commits_share_outer_sha() -> None:
    records = parse_commit_message(
        sha=SHA,
        message=(
            "chore: squash of several changes\n"
            "\n"
            "BEGIN_NESTED_COMMIT\n"
            "fix(parser): handle tabs\n"
            "END_NESTED_COMMIT\n"
            "BEGIN_NESTED_COMMIT\n"
            "feat: add yaml output\n"
            "END_NESTED_COMMIT\n"
        ),
    )
    assert [r.type for r in records] == ["chore", "fix", "feat"]
    assert {r.sha for r in records} == {SHA}


def test_conventional_revert_cancels_target() -> None:
    target = "abcdef1" + "2" * 33
    records = parse_commits(
        [
            RawCommit(sha="c" * 40, message=f"revert: feat: add thing\n\nThis reverts commit {target[:12]}."),
            RawCommit(sha=target, message="feat: add thing"),
            RawCommit(sha="d" * 40, message="fix: keep me"),
        ]
    )
    assert [r.summary for r in records] == ["keep me"]


def test_git_revert_header_is_recognised() -> None:
    target = "abcdef1" + "2" * 33
    r = _one(f'Revert "fix: broken login"\n\nThis reverts commit {target}.')
    assert r.type == "revert"
    assert r.reverts_sha == target
    assert r.summary == "fix: broken login"


def test_revert_outside_window_is_kept() -> None:
    records = parse_commits(
        [RawCommit(sha="c" * 40, message=f"revert: old change\n\nThis reverts commit {'9' * 40}.")]
    )
    assert len(records) == 1
    assert records[0].type == "revert"


def test_revert_of_a_later_commit_does_not_cancel() -> None:
    parsed = parse_commit_message(sha="c" * 40, message=f"revert: x\n\nThis reverts commit {'e' * 40}.")
    later = parse_commit_message(sha="e" * 40, message="fix: y")
    # Newest first: the fix landed after the revert.
    kept = cancel_reverts([*later, *parsed])
    assert [r.type for r in kept] == ["fix", "revert"]


FEAT_SHA = "b" * 40
REVERT_SHA = "a" * 40
REAPPLY_SHA = "c" * 40


def _revert_chain() -> list[RawCommit]:
    # Newest first: the feature, its revert, then a revert of the revert.
    return [
        RawCommit(
            sha=REAPPLY_SHA,
            message=f'Revert "Revert "feat: new feature""\n\nThis reverts commit {REVERT_SHA}.',
        ),
        RawCommit(
            sha=REVERT_SHA,
            message=f'Revert "feat: new feature"\n\nThis reverts commit {FEAT_SHA}.',
        ),
        RawCommit(sha=FEAT_SHA, message="feat: new feature"),
    ]


def test_reverting_a_revert_restores_the_change() -> None:
    records = parse_commits(_revert_chain())

    assert [(r.sha, r.type, r.summary) for r in records] == [(FEAT_SHA, "feat", "new feature")]
    assert compute_bump(records, current=SemVer(1, 0, 0), bump_minor_pre_major=False) is VersionBump.MINOR


def test_third_revert_removes_the_change_again() -> None:
    records = parse_commits(
        [
            RawCommit(sha="d" * 40, message=f"revert: drop it again\n\nThis reverts commit {REAPPLY_SHA}."),
            *_revert_chain(),
        ]
    )

    assert records == ()
