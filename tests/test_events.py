"""Classification of raw inotify events."""

from pathlib import Path

import pytest
from inotify_simple import Event, flags
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
)

from perm_watch.events import EventKind, WatchEvent, classify, kind_of
from perm_watch.watches import WatchTable


@pytest.fixture
def table() -> WatchTable:
    table = WatchTable()
    table.add(1, Path("/srv/app"))
    return table


@pytest.mark.parametrize(
    ("mask", "kind"),
    [
        (flags.CREATE, EventKind.CREATED),
        (flags.CREATE | flags.ISDIR, EventKind.CREATED),
        (flags.MOVED_TO, EventKind.CREATED),
        (flags.DELETE, EventKind.DELETED),
        (flags.DELETE | flags.ISDIR, EventKind.DELETED),
        (flags.MOVED_FROM | flags.ISDIR, EventKind.MOVED_AWAY),
        (flags.IGNORED, EventKind.INVALIDATED),
        (flags.Q_OVERFLOW, EventKind.OVERFLOW),
        (flags.UNMOUNT, EventKind.OTHER),
        (flags.MODIFY, EventKind.OTHER),
    ],
)
def test_kind_of(mask: int, kind: EventKind) -> None:
    assert kind_of(mask) is kind


def test_classify_joins_name_with_watched_directory(table: WatchTable) -> None:
    event = classify(Event(wd=1, mask=flags.CREATE | flags.ISDIR, cookie=0, name="sub"), table)

    assert event == WatchEvent(EventKind.CREATED, 1, Path("/srv/app/sub"), True)


def test_classify_without_name_refers_to_directory(table: WatchTable) -> None:
    event = classify(Event(wd=1, mask=flags.IGNORED, cookie=0, name=""), table)

    assert event.kind is EventKind.INVALIDATED
    assert event.path == Path("/srv/app")


def test_classify_unknown_descriptor_is_other(table: WatchTable) -> None:
    event = classify(Event(wd=7, mask=flags.CREATE, cookie=0, name="x"), table)

    assert event.kind is EventKind.OTHER
    assert event.path is None


def test_classify_overflow(table: WatchTable) -> None:
    event = classify(Event(wd=-1, mask=flags.Q_OVERFLOW, cookie=0, name=""), table)

    assert event.kind is EventKind.OVERFLOW


@pytest.mark.parametrize(
    ("kind", "is_directory", "cls"),
    [
        (EventKind.CREATED, True, DirCreatedEvent),
        (EventKind.CREATED, False, FileCreatedEvent),
        (EventKind.DELETED, True, DirDeletedEvent),
        (EventKind.DELETED, False, FileDeletedEvent),
    ],
)
def test_to_filesystem_event(kind: EventKind, is_directory: bool, cls: type) -> None:
    fs_event = WatchEvent(kind, 1, Path("/srv/app/x"), is_directory).to_filesystem_event()

    assert type(fs_event) is cls
    assert fs_event.src_path == "/srv/app/x"
    assert fs_event.is_directory is is_directory


def test_invalidated_has_no_filesystem_event() -> None:
    with pytest.raises(ValueError):
        WatchEvent(EventKind.INVALIDATED, 1, Path("/srv/app")).to_filesystem_event()
