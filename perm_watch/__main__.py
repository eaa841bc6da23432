"""Entry point for Perm Watcher.

Usage:
    python -m perm_watch CONFIG [--log-level LEVEL]
"""

import sys

from perm_watch.daemon import main

if __name__ == "__main__":
    sys.exit(main())
