"""Root conftest.py for hwscale.

Provides shared pytest configuration: the ``src`` layout is put on the import
path, custom markers are registered, and tests that use mocking are marked
automatically.
"""

from __future__ import annotations

import ast
import inspect
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from _pytest.config import Config
    from _pytest.nodes import Item


PROJECT_ROOT = Path(__file__).parent
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


def pytest_configure(config: Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "uses_mock: Test uses mocking (auto-detected or manually marked)",
    )
    config.addinivalue_line(
        "markers",
        "integration: Integration test requiring a real scale",
    )
    config.addinivalue_line(
        "markers",
        "slow: Slow-running test (real-time polling or settle delays)",
    )


_MOCK_NAMES = frozenset({"MagicMock", "Mock", "patch", "create_autospec", "MockTransport"})


def _source_uses_mock(source: str) -> bool:
    try:
        tree = ast.parse(source)
    except SyntaxError:
        return False
    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and node.id in _MOCK_NAMES:
            return True
        if isinstance(node, ast.Attribute) and node.attr in _MOCK_NAMES:
            return True
    return False


def _check_test_uses_mock(item: Item) -> bool:
    """Return True if a test function uses mocking."""
    if "mock" in item.name.lower():
        return True
    obj = getattr(item, "obj", None)
    if obj is None:
        return False
    try:
        source = inspect.getsource(obj)
    except (OSError, TypeError):
        return False
    return _source_uses_mock(source)


def pytest_collection_modifyitems(config: Config, items: list[Item]) -> None:
    """Auto-detect and mark tests that use mocking."""
    for item in items:
        if item.get_closest_marker("uses_mock"):
            continue
        if _check_test_uses_mock(item):
            item.add_marker(pytest.mark.uses_mock)


def pytest_report_header(config: Config) -> list[str]:
    """Add a project line to the pytest header."""
    return ["hwscale test suite"]
