"""Perm Watcher: ownership and permission enforcement for directory trees.

Watches configured directory trees with inotify and applies the owner,
group and mode declared for each path prefix to every existing and
newly created file or directory.
"""

__version__ = "1.0.0"
__app_name__ = "Perm Watcher"
