"""
Permission policy for Perm Watcher.

A policy is an ordered list of path-prefix rules. Each rule declares
the owner, group, file mode and directory mode for everything below its
prefix. When prefixes overlap the first declared rule wins.
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from perm_watch.errors import EnforcementError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermMapping:
    """Ownership and permission policy for one path prefix."""
    path: Path
    uid: int
    gid: int
    fmode: int
    dmode: int

    def mode_for(self, is_directory: bool) -> int:
        """Return the directory or file mode depending on *is_directory*."""
        return self.dmode if is_directory else self.fmode

    def covers(self, path: Path) -> bool:
        """Return True when this rule's prefix contains *path*.

        Matching is done on whole path components, so ``/srv/app``
        covers ``/srv/app/x`` but not ``/srv/application``.
        """
        return path.is_relative_to(self.path)


class MappingTable(Sequence):
    """Immutable, ordered collection of :class:`PermMapping` rules."""

    def __init__(self, mappings: Iterable[PermMapping]):
        self._mappings: tuple[PermMapping, ...] = tuple(mappings)

    def __getitem__(self, index):
        return self._mappings[index]

    def __len__(self) -> int:
        return len(self._mappings)

    def __iter__(self) -> Iterator[PermMapping]:
        return iter(self._mappings)

    def __repr__(self) -> str:
        return f"MappingTable({list(self._mappings)!r})"

    def resolve(self, path: str | os.PathLike[str]) -> PermMapping | None:
        """Return the first rule whose prefix covers *path*, or None."""
        target = Path(path)
        for mapping in self._mappings:
            if mapping.covers(target):
                return mapping
        return None


def enforce(path: Path, mapping: PermMapping, is_directory: bool) -> None:
    """
    Apply *mapping*'s owner, group and mode to *path*.

    The owner is changed first: chown clears the setuid/setgid bits, so
    the mode has to be written afterwards to stick. Symbolic links are
    never followed; a link gets its own owner changed and keeps its
    mode, since Linux has no permission bits for links.

    Raises :class:`EnforcementError` if either step fails.
    """
    mode = mapping.mode_for(is_directory)
    logger.info(
        "Changing owner of %s to %d:%d and permissions to %o",
        path,
        mapping.uid,
        mapping.gid,
        mode,
    )

    try:
        os.chown(path, mapping.uid, mapping.gid, follow_symlinks=False)
    except OSError as exc:
        raise EnforcementError(path, "owner", exc) from exc

    try:
        if stat.S_ISLNK(os.lstat(path).st_mode):
            logger.debug("Not changing mode of symbolic link %s", path)
            return
        os.chmod(path, mode)
    except OSError as exc:
        raise EnforcementError(path, "permissions", exc) from exc
