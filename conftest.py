"""Root conftest.py for the hwtest-owon repository.

Puts every package ``src`` directory on the import path, registers the
custom markers and automatically marks tests that use mocking.
"""

from __future__ import annotations

import ast
import inspect
import sys
import textwrap
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


PROJECT_ROOT = Path(__file__).parent
for pkg_dir in PROJECT_ROOT.glob("hwtest-*/src"):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "uses_mock: Test uses mocking (auto-detected or manually marked)")
    config.addinivalue_line("markers", "integration: Integration test requiring a real power supply")
    config.addinivalue_line("markers", "slow: Slow-running test")


class MockDetector(ast.NodeVisitor):
    """AST visitor that spots unittest.mock usage in a test function."""

    MOCK_NAMES = frozenset({"MagicMock", "Mock", "patch", "create_autospec", "PropertyMock", "AsyncMock"})

    def __init__(self) -> None:
        self.uses_mock = False

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
        if name in self.MOCK_NAMES:
            self.uses_mock = True
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        if any("mock" in arg.arg.lower() for arg in node.args.args):
            self.uses_mock = True
        self.generic_visit(node)

    visit_AsyncFunctionDef = visit_FunctionDef  # type: ignore[assignment]


def _uses_mock(item: Item) -> bool:
    obj = getattr(item, "obj", None)
    if obj is None:
        return False
    try:
        tree = ast.parse(textwrap.dedent(inspect.getsource(obj)))
    except (OSError, TypeError, SyntaxError):
        return False
    detector = MockDetector()
    detector.visit(tree)
    return detector.uses_mock


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Mark tests that use mocking with ``uses_mock``."""
    for item in items:
        if not item.get_closest_marker("uses_mock") and _uses_mock(item):
            item.add_marker(pytest.mark.uses_mock)


def pytest_report_header(config: Config) -> list[str]:
    """Add a header line to the pytest report."""
    return ["hwtest-owon test suite"]
