"""Root conftest.py for the siggen monorepo.

Puts every package ``src`` directory on ``sys.path`` so the test suites run
from a plain checkout, registers the shared markers, and marks tests that
replace instrument I/O with mocks, fakes or the in-process emulators.
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
for pkg_dir in sorted(PROJECT_ROOT.glob("siggen-*/src")):
    if str(pkg_dir) not in sys.path:
        sys.path.insert(0, str(pkg_dir))


def pytest_configure(config: Config) -> None:
    """Register custom markers.

    Args:
        config: pytest configuration object.
    """
    config.addinivalue_line(
        "markers",
        "uses_mock: Test replaces instrument I/O (auto-detected or manually marked)",
    )
    config.addinivalue_line(
        "markers",
        "integration: Integration test requiring a real signal generator",
    )
    config.addinivalue_line("markers", "slow: Slow-running test")


class MockDetector(ast.NodeVisitor):
    """AST visitor that finds stand-ins for instrument I/O in a test body."""

    MOCK_NAMES = frozenset({
        "MagicMock",
        "Mock",
        "patch",
        "create_autospec",
        "PropertyMock",
        "mocker",
    })

    # Substrings of helper and fixture names that stand in for a transport
    MOCK_HINTS = ("mock", "fake", "stub", "emulator", "transport")

    def __init__(self) -> None:
        self.uses_mock = False

    def _check(self, name: str) -> None:
        lower = name.lower()
        if name in self.MOCK_NAMES or any(hint in lower for hint in self.MOCK_HINTS):
            self.uses_mock = True

    def visit_Name(self, node: ast.Name) -> None:
        self._check(node.id)
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        self._check(node.attr)
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        for arg in node.args.args:
            self._check(arg.arg)
        self.generic_visit(node)


def _check_test_uses_mock(item: Item) -> bool:
    """Return True if *item* runs against a mocked or emulated instrument."""
    if item.get_closest_marker("uses_mock"):
        return True

    obj = getattr(item, "obj", None)
    if obj is None:
        return False
    try:
        source = inspect.getsource(obj)
    except (OSError, TypeError):
        return False
    try:
        tree = ast.parse(textwrap.dedent(source))
    except SyntaxError:
        return False
    detector = MockDetector()
    detector.visit(tree)
    return detector.uses_mock


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Auto-mark tests that use mocks, fakes or emulators.

    Args:
        config: pytest configuration object.
        items: List of collected test items.
    """
    for item in items:
        if not item.get_closest_marker("uses_mock") and _check_test_uses_mock(item):
            item.add_marker(pytest.mark.uses_mock)


def pytest_report_header(config: Config) -> list[str]:
    """Add the suite name to the pytest header.

    Args:
        config: pytest configuration object.

    Returns:
        List of header lines.
    """
    lines = ["siggen monorepo test suite"]
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled with mock detection")
    return lines
