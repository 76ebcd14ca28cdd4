"""Pytest marker auto-assignment by folder."""

from __future__ import annotations

from pathlib import Path

import pytest

from formbuilder import logger


def _mark_tests_by_directory(
    config: pytest.Config,
    items: list[pytest.Item],
    marker: str,
) -> None:
    """Mark collected tests located under tests/<marker>/."""
    target_dir = (Path(config.rootpath) / "tests" / marker).resolve()

    for item in items:
        try:
            path = Path(str(item.path)).resolve()
        except OSError:
            logger.warning("Could not resolve test path", extra={"item": item.name, "marker": marker})
            continue

        if path == target_dir or target_dir in path.parents:
            item.add_marker(getattr(pytest.mark, marker))


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: list[pytest.Item],
) -> None:
    """Apply directory-based markers to test items."""
    for marker in ("unit", "integration", "end2end"):
        _mark_tests_by_directory(config, items, marker)
