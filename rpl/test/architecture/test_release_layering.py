from __future__ import annotations

from ._gate import require_arch_checks_enabled
from ._utils import iter_python_files, matches_prefix, parse_imports, rpl_root

# The engine reports through ConsoleProtocol and never touches the CLI layer.
_FORBIDDEN = ("rpl.cli", "typer", "rich")


def test_release_engine_does_not_depend_on_cli() -> None:
    require_arch_checks_enabled()

    root = rpl_root()
    offenders: list[str] = []
    for file_path in iter_python_files(root / "release"):
        rel = file_path.relative_to(root)
        for item in parse_imports(file_path):
            if any(matches_prefix(item.module, prefix) for prefix in _FORBIDDEN):
                offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")

    assert not offenders, "Release layering violations:\n" + "\n".join(offenders)
