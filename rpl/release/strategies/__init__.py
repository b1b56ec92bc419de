"""Release strategy registry.

Strategies are looked up by release type:

    from rpl.release.strategies import get_strategy, strategy_names

    result = get_strategy("node")
    if isinstance(result, Ok):
        files = result.value.locate_version_files("packages/api")
"""

from __future__ import annotations

from collections.abc import Callable

from rpl.core.result import Err, Ok, Result
from rpl.release.errors import ReleaseError
from rpl.release.strategies.base import ReleaseStrategy
from rpl.release.strategies.node import NodeStrategy
from rpl.release.strategies.python import PythonStrategy
from rpl.release.strategies.simple import SimpleStrategy

__all__ = [
    "NodeStrategy",
    "PythonStrategy",
    "ReleaseStrategy",
    "SimpleStrategy",
    "get_strategy",
    "strategy_names",
]

DEFAULT_RELEASE_TYPE = "node"

_FACTORIES: dict[str, Callable[[str | None], ReleaseStrategy]] = {
    "node": lambda _version_file: NodeStrategy(),
    "python": lambda _version_file: PythonStrategy(),
    "simple": lambda version_file: SimpleStrategy(version_file),
}


def strategy_names() -> list[str]:
    """Registered release types, sorted."""
    return sorted(_FACTORIES)


def get_strategy(
    release_type: str, *, version_file: str | None = None
) -> Result[ReleaseStrategy, ReleaseError]:
    """Build the strategy registered under ``release_type``.

    Args:
        release_type: Registry key (e.g. "node", "python", "simple")
        version_file: Override for strategies with a single version file

    Returns:
        Ok with the strategy, or Err(validation) for unknown types
    """
    factory = _FACTORIES.get(release_type.strip().lower())
    if factory is None:
        return Err(
            ReleaseError(
                kind="validation",
                message=f"unknown release type: {release_type}",
                hint=f"choose one of: {', '.join(strategy_names())}",
            )
        )
    return Ok(factory(version_file))
