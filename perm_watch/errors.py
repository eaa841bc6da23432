"""Exception types raised by Perm Watcher.

Every failure the daemon treats as fatal derives from
:class:`PermWatchError` so the entry point can map it to an exit code.
"""

from __future__ import annotations

from pathlib import Path


class PermWatchError(Exception):
    """Base class for all Perm Watcher errors."""


class ConfigError(PermWatchError):
    """The configuration file is unreadable or invalid."""


class PrivilegeError(PermWatchError):
    """The daemon is not running with root privileges."""


class SetupPathError(PermWatchError):
    """A configured root is missing or is not a directory."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Failed to add watch for: {path}: {reason}")
        self.path = path
        self.reason = reason


class WatchError(PermWatchError):
    """Registering an inotify watch failed."""

    def __init__(self, path: Path, error: OSError):
        super().__init__(f"Failed to add watch for {path}: {error.strerror or error}")
        self.path = path
        self.error = error


class CrawlError(PermWatchError):
    """A directory could not be listed."""

    def __init__(self, path: Path, error: OSError):
        super().__init__(f"Failed to read directory {path}: {error.strerror or error}")
        self.path = path
        self.error = error


class EnforcementError(PermWatchError):
    """Changing the owner or mode of a path failed."""

    def __init__(self, path: Path, step: str, error: OSError):
        super().__init__(
            f"Failed to change {step} of {path}: {error.strerror or error}"
        )
        self.path = path
        self.step = step
        self.error = error
