"""Result type for explicit error handling.

Every fallible operation in release-pilot (remote calls, parsing, version
validation) returns ``Ok(value)`` or ``Err(error)`` instead of raising.
Callers branch on the variant and decide whether an error is fatal,
recoverable, or a domain signal (for example a missing changelog file).

Usage:
    def parse_version(text: str) -> Result[SemVer, ReleaseError]:
        ...

    result = parse_version("1.0.1")
    if isinstance(result, Err):
        return result
    version = result.value

    # Or with pattern matching
    match fetch_tags(repo):
        case Ok(tags):
            ...
        case Err(error) if error.kind == "not_found":
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successful result carrying ``value``."""

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """A failed result carrying ``error``."""

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Union[Ok[T], Err[E]]
