"""Error types for the release engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "validation",
    "not_found",
    "transient",
    "conflict",
    "invalid_input",
    "remote_failed",
    "gh_missing",
    "gh_auth_required",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error payload.

    ``status`` carries the HTTP status when the error came from the remote
    API. ``hint`` may hold raw transport output and is only shown in
    debug mode.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None
    status: int | None = None
