"""Pytest configuration and shared fixtures."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from perm_watch.policy import MappingTable
from perm_watch.watches import DirectoryWatcher
from tests.helpers import make_mapping


@pytest.fixture
def app_root(tmp_path: Path) -> Path:
    """Empty directory standing in for a configured root such as /srv/app."""
    root = tmp_path / "app"
    root.mkdir()
    return root


@pytest.fixture
def mappings(app_root: Path) -> MappingTable:
    """Single rule covering ``app_root``."""
    return MappingTable([make_mapping(app_root)])


@pytest.fixture
def watcher() -> Iterator[DirectoryWatcher]:
    with DirectoryWatcher() as w:
        yield w


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Undo handler and level changes made to the root logger."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers = handlers
    root_logger.setLevel(level)
