"""
Store access check.

On macOS, reading ~/Library/Messages/chat.db requires Full Disk Access for
the calling process (terminal, IDE or Python itself). Without it the file
exists but opening it fails with "authorization denied" or "unable to open
database file". The probe opens the store read-only and runs a trivial
query; it never tries to obtain access itself.
"""

import logging
import os
import sqlite3
import sys
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class PermissionProbe:
    """Checks whether the current process can read chat.db."""

    def __init__(self, db_path: Optional[Path]):
        self.db_path = Path(db_path) if db_path else None
        self._error: Optional[str] = None

    def is_granted(self) -> bool:
        """
        True if the store can be opened and queried.

        The last failure reason is kept for status().
        """
        self._error = None

        if self.db_path is None:
            self._error = "database path not configured"
            return False
        if not self.db_path.is_file():
            self._error = f"database not found: {self.db_path}"
            return False

        try:
            with closing(sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True)) as conn:
                conn.execute("SELECT 1 FROM sqlite_master LIMIT 1;").fetchall()
        except sqlite3.Error as e:
            self._error = str(e)
            logger.warning(f"No read access to {self.db_path}: {e}")
            return False

        return True

    def status(self) -> Dict[str, Any]:
        """Describe the probe result for logs and the /permissions endpoint."""
        readable = self.is_granted()
        return {
            "path": str(self.db_path) if self.db_path else None,
            "readable": readable,
            "error": self._error,
            "process": Path(sys.argv[0]).name if sys.argv and sys.argv[0] else sys.executable,
            "pid": os.getpid(),
        }
