"""
Watch bookkeeping for Perm Watcher.

Every watched directory has its own non-recursive inotify watch. The
:class:`WatchTable` maps each watch descriptor to the directory it was
registered for; an entry lives from successful registration until the
kernel reports the watch as ignored.
"""

from __future__ import annotations

import errno
import logging
import os
from pathlib import Path

from inotify_simple import INotify, flags

from perm_watch.errors import WatchError

logger = logging.getLogger(__name__)

# Creation, deletion and moves in or out of entries inside the watched
# directory. IN_IGNORED and IN_Q_OVERFLOW are always delivered by the kernel.
WATCH_MASK = flags.CREATE | flags.DELETE | flags.MOVED_FROM | flags.MOVED_TO


class WatchTable:
    """Mapping of watch descriptor to watched directory."""

    def __init__(self) -> None:
        self._paths: dict[int, Path] = {}

    def __len__(self) -> int:
        return len(self._paths)

    def __contains__(self, wd: object) -> bool:
        return wd in self._paths

    def items(self) -> list[tuple[int, Path]]:
        return list(self._paths.items())

    def get(self, wd: int) -> Path | None:
        """Return the directory for *wd*, or None if it is not watched."""
        return self._paths.get(wd)

    def add(self, wd: int, path: Path) -> None:
        """Record that *path* is watched by *wd*."""
        previous = self._paths.get(wd)
        if previous is None:
            logger.info("Adding watch %d for: %s", wd, path)
        elif previous != path:
            logger.info("Updating watch %d from %s to: %s", wd, previous, path)
        self._paths[wd] = path

    def remove(self, wd: int) -> Path | None:
        """Forget *wd* and return the directory it watched."""
        path = self._paths.pop(wd, None)
        if path is not None:
            logger.info("Removing watch %d for: %s", wd, path)
        return path


class DirectoryWatcher:
    """
    Owns the inotify instance and the :class:`WatchTable` it feeds.

    Parameters
    ----------
    inotify : INotify, optional
        An existing inotify instance; a new one is created if omitted.
    """

    def __init__(self, inotify: INotify | None = None):
        self._inotify = inotify if inotify is not None else INotify()
        self.table = WatchTable()

    # ---- lifecycle ----

    def close(self) -> None:
        """Close the inotify file descriptor, dropping all watches."""
        self._inotify.close()

    def __enter__(self) -> DirectoryWatcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ---- watches ----

    def watch(self, path: Path) -> int:
        """
        Start watching the directory *path* and return its descriptor.

        Watching a directory that is already watched returns the same
        descriptor; the table entry is updated to *path*.

        Raises :class:`WatchError` if the kernel refuses the watch, for
        example when ``fs.inotify.max_user_watches`` is exhausted.
        """
        try:
            wd = self._inotify.add_watch(os.fspath(path), WATCH_MASK)
        except OSError as exc:
            raise WatchError(path, exc) from exc
        self.table.add(wd, path)
        return wd

    def unwatch(self, wd: int) -> None:
        """
        Ask the kernel to drop watch *wd*.

        The table entry stays until the matching IN_IGNORED event is
        handled. A descriptor the kernel no longer knows is ignored.
        """
        try:
            self._inotify.rm_watch(wd)
        except OSError as exc:
            if exc.errno != errno.EINVAL:
                raise
            logger.debug("Watch %d is already gone", wd)

    def under(self, path: Path) -> list[int]:
        """Return the descriptors watching *path* or anything below it."""
        return [wd for wd, watched in self.table.items() if watched.is_relative_to(path)]

    def read(self, timeout: float | None = None) -> list:
        """
        Block until events are available and return the next batch.

        *timeout* is in seconds; None waits forever. An empty list means
        the timeout elapsed without events.
        """
        timeout_ms = None if timeout is None else int(timeout * 1000)
        return self._inotify.read(timeout=timeout_ms)

    def __len__(self) -> int:
        return len(self.table)
