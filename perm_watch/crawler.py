"""Recursive directory crawler for Perm Watcher.

Walks a directory tree below an already watched root, registering a
watch for every subdirectory and enforcing the root's policy on every
entry. Traversal uses an explicit work list, so deep trees do not hit
the interpreter's recursion limit.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from perm_watch.errors import CrawlError
from perm_watch.policy import PermMapping, enforce
from perm_watch.watches import DirectoryWatcher

logger = logging.getLogger(__name__)

Enforcer = Callable[[Path, PermMapping, bool], None]


@dataclass
class CrawlResult:
    """Counts of entries handled by one crawl."""
    directories: int = 0
    files: int = 0

    @property
    def enforced(self) -> int:
        return self.directories + self.files


def crawl(
    root: Path,
    mapping: PermMapping,
    watcher: DirectoryWatcher,
    enforcer: Enforcer = enforce,
) -> CrawlResult:
    """
    Watch and enforce *mapping* on everything below *root*.

    *root* itself is neither watched nor enforced; the caller has done
    that already. The same *mapping* applies to the whole subtree.
    Symbolic links are treated as files and never descended into.

    Raises :class:`CrawlError` if a directory cannot be listed.
    """
    result = CrawlResult()
    pending = [root]
    while pending:
        directory = pending.pop()
        logger.info("Crawling %s", directory)
        try:
            with os.scandir(directory) as it:
                entries = [(Path(e.path), e.is_dir(follow_symlinks=False)) for e in it]
        except OSError as exc:
            raise CrawlError(directory, exc) from exc

        for path, is_dir in entries:
            if is_dir:
                watcher.watch(path)
                enforcer(path, mapping, True)
                result.directories += 1
                pending.append(path)
            else:
                enforcer(path, mapping, False)
                result.files += 1

    logger.debug(
        "Crawled %s: %d directories, %d files",
        root,
        result.directories,
        result.files,
    )
    return result
