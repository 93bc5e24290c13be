"""Fails when an integration test module contains tests not marked as integration tests."""

import ast
import sys
from pathlib import Path

PACKAGE_ROOT = Path("src/blobzip")


def _is_integration_mark(node: ast.expr) -> bool:
    func = node.func if isinstance(node, ast.Call) else node
    if not isinstance(func, ast.Attribute) or func.attr != "integration":
        return False
    owner = func.value
    return (isinstance(owner, ast.Name) and owner.id == "mark") or (
        isinstance(owner, ast.Attribute) and owner.attr == "mark"
    )


def _has_module_mark(tree: ast.Module) -> bool:
    for node in tree.body:
        if not isinstance(node, ast.Assign):
            continue
        targets = [target.id for target in node.targets if isinstance(target, ast.Name)]
        if "pytestmark" in targets:
            return True
    return False


def _unmarked_tests(file: Path) -> list[str]:
    tree = ast.parse(file.read_text(), filename=str(file))
    if _has_module_mark(tree):
        return []

    return [
        f"{file}:{node.lineno} {node.name}"
        for node in tree.body
        if isinstance(node, ast.FunctionDef | ast.AsyncFunctionDef)
        and node.name.startswith("test")
        and not any(_is_integration_mark(decorator) for decorator in node.decorator_list)
    ]


def main() -> int:
    missing_marks = [
        line for file in sorted(PACKAGE_ROOT.rglob("*__it.py")) for line in _unmarked_tests(file)
    ]
    if not missing_marks:
        return 0

    print("Missing @pytest.mark.integration or pytestmark:")  # noqa: T201
    for line in missing_marks:
        print("  -", line)  # noqa: T201
    return 1


if __name__ == "__main__":
    sys.exit(main())
