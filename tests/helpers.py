"""Helpers shared by the test modules."""

import os
import stat
from collections.abc import Callable
from pathlib import Path

from perm_watch.dispatcher import PermissionEnforcer
from perm_watch.policy import PermMapping

FILE_MODE = 0o640
DIR_MODE = 0o750


def make_mapping(path: Path, fmode: int = FILE_MODE, dmode: int = DIR_MODE) -> PermMapping:
    """Mapping that the current (unprivileged) user is allowed to apply."""
    return PermMapping(path=path, uid=os.getuid(), gid=os.getgid(), fmode=fmode, dmode=dmode)


def mode_of(path: Path) -> int:
    return stat.S_IMODE(os.lstat(path).st_mode)


def drain(
    dispatcher: PermissionEnforcer,
    until: Callable[[], bool],
    batches: int = 20,
) -> bool:
    """Process event batches until *until* holds or nothing more arrives."""
    for _ in range(batches):
        if until():
            return True
        dispatcher.process_batch(0.5)
    return until()
