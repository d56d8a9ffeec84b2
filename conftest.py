"""Root conftest.py for tekcap.

This provides shared pytest configuration. It also automatically detects and
marks tests that use mocking, so coverage from mocked tests can be told apart
from coverage exercised against the emulator or real hardware.
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


# Make the src layout importable without an editable install
PROJECT_ROOT = Path(__file__).parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


class MockDetector(ast.NodeVisitor):
    """AST visitor to detect mock usage in test functions."""

    MOCK_PATTERNS = frozenset({
        "MagicMock",
        "Mock",
        "patch",
        "create_autospec",
        "PropertyMock",
    })

    def __init__(self) -> None:
        self.uses_mock = False

    def visit_Call(self, node: ast.Call) -> None:
        """Flag calls such as ``MagicMock()`` or ``patch.dict(...)``."""
        func = node.func
        if isinstance(func, ast.Name) and func.id in self.MOCK_PATTERNS:
            self.uses_mock = True
        elif isinstance(func, ast.Attribute) and func.attr in self.MOCK_PATTERNS:
            self.uses_mock = True
        elif (
            isinstance(func, ast.Attribute)
            and isinstance(func.value, ast.Name)
            and func.value.id in self.MOCK_PATTERNS
        ):
            self.uses_mock = True
        self.generic_visit(node)


def _check_test_uses_mock(item: Item) -> bool:
    """Check if a test function uses mocking.

    Args:
        item: pytest test item.

    Returns:
        True if test uses mocking.
    """
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
    """Auto-detect and mark tests that use mocking.

    Args:
        config: pytest configuration object.
        items: List of collected test items.
    """
    uses_mock_marker = pytest.mark.uses_mock
    for item in items:
        if item.get_closest_marker("uses_mock"):
            continue
        if _check_test_uses_mock(item):
            item.add_marker(uses_mock_marker)


def pytest_report_header(config: Config) -> list[str]:
    """Add coverage mode info to pytest header.

    Args:
        config: pytest configuration object.

    Returns:
        List of header lines.
    """
    lines = ["tekcap test suite"]
    if getattr(config.option, "cov_source", None):
        lines.append("Coverage: enabled with mock detection")
    return lines
