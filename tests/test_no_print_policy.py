from __future__ import annotations

import ast
from pathlib import Path


def _iter_target_files(repo_root: Path) -> list[Path]:
    base = repo_root / "quotesync"
    return sorted(path for path in base.rglob("*.py") if "__pycache__" not in path.parts)


def _find_print_calls(path: Path) -> list[int]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    return sorted(
        node.lineno
        for node in ast.walk(tree)
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id == "print"
    )


def test_no_print_policy() -> None:
    repo_root = Path(__file__).resolve().parents[1]

    violations = [
        f"{path.relative_to(repo_root).as_posix()}:{lineno}"
        for path in _iter_target_files(repo_root)
        for lineno in _find_print_calls(path)
    ]

    assert not violations, "print() is not allowed; write to sys.stdout or log instead:\n" + "\n".join(violations)
