"""
Inotify event classification for Perm Watcher.

Raw inotify events carry a bit mask. :func:`classify` turns each one
into a :class:`WatchEvent` with a single :class:`EventKind`, so the
dispatcher never has to test mask bits itself. Created and deleted
events convert to the matching ``watchdog`` event objects.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from pathlib import Path

from inotify_simple import Event, flags
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileSystemEvent,
)

from perm_watch.watches import WatchTable


class EventKind(enum.Enum):
    CREATED = "created"  # created or moved in
    DELETED = "deleted"
    MOVED_AWAY = "moved away"
    INVALIDATED = "invalidated"  # watch removed by the kernel
    OVERFLOW = "overflow"  # kernel queue overflowed, events were lost
    OTHER = "other"


_FS_EVENTS: dict[tuple[EventKind, bool], type[FileSystemEvent]] = {
    (EventKind.CREATED, True): DirCreatedEvent,
    (EventKind.CREATED, False): FileCreatedEvent,
    (EventKind.DELETED, True): DirDeletedEvent,
    (EventKind.DELETED, False): FileDeletedEvent,
}


@dataclass(frozen=True)
class WatchEvent:
    """A classified inotify event."""
    kind: EventKind
    wd: int
    path: Path | None
    is_directory: bool = False

    def to_filesystem_event(self) -> FileSystemEvent:
        """Return the ``watchdog`` event for a created or deleted event."""
        try:
            cls = _FS_EVENTS[(self.kind, self.is_directory)]
        except KeyError:
            raise ValueError(f"no filesystem event for {self.kind.value} events") from None
        return cls(os.fspath(self.path))


def kind_of(mask: int) -> EventKind:
    """Return the :class:`EventKind` for an inotify event *mask*."""
    if mask & flags.Q_OVERFLOW:
        return EventKind.OVERFLOW
    if mask & (flags.CREATE | flags.MOVED_TO):
        return EventKind.CREATED
    if mask & flags.DELETE:
        return EventKind.DELETED
    if mask & flags.MOVED_FROM:
        return EventKind.MOVED_AWAY
    if mask & flags.IGNORED:
        return EventKind.INVALIDATED
    return EventKind.OTHER


def classify(raw: Event, table: WatchTable) -> WatchEvent:
    """
    Classify *raw* and resolve the path it refers to.

    The path is the watched directory joined with the event's name, or
    the directory itself when the event has no name. Events for
    descriptors missing from *table* are classified as OTHER with no
    path.
    """
    kind = kind_of(raw.mask)
    is_directory = bool(raw.mask & flags.ISDIR)
    if kind is EventKind.OVERFLOW:
        return WatchEvent(kind, raw.wd, None)

    directory = table.get(raw.wd)
    if directory is None:
        return WatchEvent(EventKind.OTHER, raw.wd, None, is_directory)

    name = raw.name
    if isinstance(name, bytes):
        name = os.fsdecode(name)
    path = directory / name if name else directory
    return WatchEvent(kind, raw.wd, path, is_directory)
