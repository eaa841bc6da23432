"""Configuration management for Perm Watcher.

Reads the permission mappings and daemon settings from a TOML file
(or JSON when the file name ends in ``.json``). Example::

    log_level = "INFO"
    log_file = "/var/log/perm-watcher.log"

    [[perm_mapping]]
    path = "/srv/app"
    uid = 1000
    gid = 1000
    fmode = 0o644
    dmode = 0o755
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from perm_watch.errors import ConfigError
from perm_watch.policy import MappingTable, PermMapping

logger = logging.getLogger(__name__)

MAPPING_KEY = "perm_mapping"
MAX_MODE = 0o7777
MAX_ID = 0xFFFFFFFE  # (uid_t)-1 tells chown to leave the id unchanged

DEFAULT_CONFIG: dict[str, Any] = {
    "log_level": "INFO",
    "log_file": "",  # Empty = log to stderr only
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
    "poll_interval_seconds": 1.0,  # how often the stop flag is checked
}


def parse_mode(value: Any) -> int:
    """
    Return permission bits from an integer or an octal string.

    ``0o644`` (an integer), ``"0644"``, ``"644"`` and ``"0o644"`` all
    give the same result.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid mode {value!r}")
    if isinstance(value, int):
        mode = value
    elif isinstance(value, str):
        text = value.strip().lower().removeprefix("0o")
        try:
            mode = int(text, 8)
        except ValueError:
            raise ValueError(f"invalid octal mode {value!r}") from None
    else:
        raise ValueError(f"invalid mode {value!r}")
    if not 0 <= mode <= MAX_MODE:
        raise ValueError(f"mode {mode:o} is out of range")
    return mode


def _parse_id(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_ID:
        raise ValueError(f"{key} must be an integer from 0 to {MAX_ID}, got {value!r}")
    return value


def parse_mapping(raw: Any) -> PermMapping:
    """Build a :class:`PermMapping` from one ``perm_mapping`` table."""
    if not isinstance(raw, dict):
        raise ValueError("expected a table")
    missing = [k for k in ("path", "uid", "gid", "fmode", "dmode") if k not in raw]
    if missing:
        raise ValueError(f"missing key(s): {', '.join(missing)}")

    path = raw["path"]
    if not isinstance(path, str) or not os.path.isabs(path):
        raise ValueError(f"path must be an absolute path, got {path!r}")

    return PermMapping(
        path=Path(os.path.normpath(path)),
        uid=_parse_id(raw["uid"], "uid"),
        gid=_parse_id(raw["gid"], "gid"),
        fmode=parse_mode(raw["fmode"]),
        dmode=parse_mode(raw["dmode"]),
    )


class Config:
    """Read-only daemon configuration loaded from a file."""

    def __init__(self, path: str | os.PathLike[str]):
        """Load and validate the configuration at *path*."""
        self._path = Path(path)
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self._mappings = MappingTable(())
        self.load()

    @property
    def path(self) -> Path:
        """Return the path the configuration was read from."""
        return self._path

    # ---- loading ----

    def _read(self) -> dict[str, Any]:
        try:
            if self._path.suffix.lower() == ".json":
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
            else:
                with open(self._path, "rb") as fh:
                    stored = tomllib.load(fh)
        except OSError as exc:
            raise ConfigError(
                f"Failed to read config file {self._path}: {exc.strerror or exc}"
            ) from exc
        except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Failed to parse config file {self._path}: {exc}") from exc
        if not isinstance(stored, dict):
            raise ConfigError(f"{self._path}: top level must be a table")
        return stored

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing settings."""
        stored = self._read()

        raw_mappings = stored.pop(MAPPING_KEY, None)
        if not isinstance(raw_mappings, list) or not raw_mappings:
            raise ConfigError(
                f"{self._path}: at least one [[{MAPPING_KEY}]] entry is required"
            )

        mappings = []
        for index, raw in enumerate(raw_mappings):
            try:
                mappings.append(parse_mapping(raw))
            except ValueError as exc:
                raise ConfigError(
                    f"{self._path}: {MAPPING_KEY}[{index}]: {exc}"
                ) from exc

        unknown = sorted(set(stored) - set(DEFAULT_CONFIG))
        if unknown:
            logger.warning("Ignoring unknown config key(s): %s", ", ".join(unknown))
            for key in unknown:
                del stored[key]

        # Merge stored values over defaults so missing keys get defaults
        self._data = {**DEFAULT_CONFIG, **stored}
        self._mappings = MappingTable(mappings)
        self._validate_settings()
        logger.debug("Configuration loaded from %s", self._path)

    def _validate_settings(self) -> None:
        try:
            self._data["log_level"] = str(self._data["log_level"]).upper()
            self._data["log_file"] = str(self._data["log_file"])
            self._data["max_log_size_mb"] = max(1, int(self._data["max_log_size_mb"]))
            self._data["log_backup_count"] = max(0, int(self._data["log_backup_count"]))
            self._data["poll_interval_seconds"] = max(
                0.1, float(self._data["poll_interval_seconds"])
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{self._path}: {exc}") from exc
        if not isinstance(logging.getLevelName(self._data["log_level"]), int):
            raise ConfigError(
                f"{self._path}: unknown log_level {self._data['log_level']!r}"
            )

    # ---- accessors ----

    @property
    def mappings(self) -> MappingTable:
        """Return the ordered permission mappings."""
        return self._mappings

    @property
    def log_level(self) -> str:
        """Return the logging level name."""
        return self._data["log_level"]

    @property
    def log_file(self) -> Path | None:
        """Return the log file path, or None to log to stderr only."""
        value = self._data["log_file"]
        return Path(value) if value else None

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return self._data["max_log_size_mb"]

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return self._data["log_backup_count"]

    @property
    def poll_interval(self) -> float:
        """Return the seconds to wait for events before checking for a stop request."""
        return self._data["poll_interval_seconds"]
