"""
Event dispatcher for Perm Watcher.

Sets up the configured roots, then reads inotify events in batches and
routes each one: new entries get the policy of their mapping applied
(new directories are also watched and crawled), directories moved away
lose their watches and invalidated watches are dropped from the watch
table. The loop ends when no watches remain or a stop is requested.
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileSystemEventHandler,
)

from perm_watch.crawler import Enforcer, crawl
from perm_watch.errors import SetupPathError
from perm_watch.events import EventKind, WatchEvent, classify
from perm_watch.policy import MappingTable, PermMapping, enforce
from perm_watch.watches import DirectoryWatcher

logger = logging.getLogger(__name__)


class StopReason(enum.Enum):
    NO_WATCHES = "no watches left"
    STOPPED = "stop requested"


def setup_root(
    root: Path,
    mappings: MappingTable,
    watcher: DirectoryWatcher,
    enforcer: Enforcer = enforce,
) -> PermMapping | None:
    """
    Watch, enforce and crawl one configured root directory.

    Returns the mapping applied, or None when no rule covers *root*.
    Raises :class:`SetupPathError` if *root* is missing or not a
    directory.
    """
    if not root.exists():
        raise SetupPathError(root, "no such file or directory")
    if not root.is_dir():
        raise SetupPathError(root, "not a directory")

    mapping = mappings.resolve(root)
    if mapping is None:
        logger.warning("No mapping found for %s", root)
        return None
    watcher.watch(root)
    enforcer(root, mapping, True)
    crawl(root, mapping, watcher, enforcer)
    return mapping


def setup_roots(
    mappings: MappingTable,
    watcher: DirectoryWatcher,
    enforcer: Enforcer = enforce,
) -> None:
    """Set up every configured root in declaration order."""
    for mapping in mappings:
        setup_root(mapping.path, mappings, watcher, enforcer)


class PermissionEnforcer(FileSystemEventHandler):
    """
    Applies permission mappings to entries reported by inotify.

    Created and deleted events are routed through watchdog's
    :meth:`dispatch` to :meth:`on_created` and :meth:`on_deleted`;
    moves away, invalidated watches and queue overflows are handled
    directly.

    Usage:
        with DirectoryWatcher() as watcher:
            setup_roots(mappings, watcher)
            reason = PermissionEnforcer(mappings, watcher).run()
    """

    def __init__(
        self,
        mappings: MappingTable,
        watcher: DirectoryWatcher,
        enforcer: Enforcer = enforce,
        poll_interval: float | None = None,
    ):
        super().__init__()
        self._mappings = mappings
        self._watcher = watcher
        self._enforcer = enforcer
        self._poll_interval = poll_interval
        self._stop_requested = False

    # ---- lifecycle ----

    def stop(self) -> None:
        """Ask :meth:`run` to return after the current batch."""
        self._stop_requested = True

    def run(self) -> StopReason:
        """
        Process events until the watch table is empty or :meth:`stop`
        is called.
        """
        while True:
            if not len(self._watcher):
                logger.warning("No watches left, exiting")
                return StopReason.NO_WATCHES
            if self._stop_requested:
                logger.info("Stop requested, exiting")
                return StopReason.STOPPED
            self.process_batch(self._poll_interval)

    def process_batch(self, timeout: float | None = None) -> int:
        """Read one batch of events, handle it and return its size."""
        events = self._watcher.read(timeout)
        for raw in events:
            self.handle(classify(raw, self._watcher.table))
        return len(events)

    # ---- routing ----

    def handle(self, event: WatchEvent) -> None:
        """Route one classified event to its handler."""
        match event.kind:
            case EventKind.CREATED | EventKind.DELETED:
                # routed to on_created / on_deleted by FileSystemEventHandler
                self.dispatch(event.to_filesystem_event())
            case EventKind.MOVED_AWAY:
                self.on_moved_away(event)
            case EventKind.INVALIDATED:
                self.on_invalidated(event)
            case EventKind.OVERFLOW:
                self.on_overflow()
            case _:
                logger.debug("Ignoring event for watch %d: %s", event.wd, event.path)

    def on_created(self, event: DirCreatedEvent | FileCreatedEvent) -> None:  # type: ignore[override]
        """Apply the mapping to a created or moved-in entry."""
        path = Path(event.src_path)
        mapping = self._mappings.resolve(path)
        if mapping is None:
            logger.warning("No mapping found for %s", path)
            return

        if event.is_directory:
            logger.info("Directory created: %s", path)
            self._watcher.watch(path)
            self._enforcer(path, mapping, True)
            crawl(path, mapping, self._watcher, self._enforcer)
        else:
            logger.info("File created: %s", path)
            self._enforcer(path, mapping, False)

    def on_deleted(self, event: DirDeletedEvent | FileDeletedEvent) -> None:  # type: ignore[override]
        """Log a deletion; the watch of a deleted directory is dropped on invalidation."""
        if event.is_directory:
            logger.info("Directory deleted: %s", event.src_path)
        else:
            logger.info("File deleted: %s", event.src_path)

    def on_moved_away(self, event: WatchEvent) -> None:
        """
        Drop the watches of a directory renamed away and of everything
        crawled below it.

        Inotify watches follow the inode, so without this the table would
        keep pointing at the old paths. If the directory was moved to
        another watched place, the following moved-in event watches it
        again under its new name.
        """
        if not event.is_directory:
            logger.info("File moved away: %s", event.path)
            return
        logger.info("Directory moved away: %s", event.path)
        for wd in self._watcher.under(event.path):
            self._watcher.unwatch(wd)

    def on_invalidated(self, event: WatchEvent) -> None:
        """Drop a watch the kernel has removed."""
        self._watcher.table.remove(event.wd)

    def on_overflow(self) -> None:
        """Re-apply every configured root after the kernel dropped events."""
        logger.warning("Inotify event queue overflowed, rescanning configured roots")
        # Invalidation events may be among the lost ones.
        for wd, path in self._watcher.table.items():
            if not path.is_dir():
                self._watcher.unwatch(wd)
                self._watcher.table.remove(wd)
        for mapping in self._mappings:
            if mapping.path.is_dir():
                setup_root(mapping.path, self._mappings, self._watcher, self._enforcer)
