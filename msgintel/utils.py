"""
Utility functions and classes for msgintel.
"""

import getpass
import logging
import os
import uuid

logger = logging.getLogger(__name__)


class Colors:
    """ANSI color codes for terminal output."""

    HEADER = "\033[95m"
    OKBLUE = "\033[94m"
    OKGREEN = "\033[92m"
    WARNING = "\033[93m"
    FAIL = "\033[91m"
    ENDC = "\033[0m"
    BOLD = "\033[1m"


def current_username() -> str:
    """
    Name of the user running the extraction.

    Falls back to $USER, then "unknown", when the password database has no
    entry for the current uid (common in containers).
    """
    try:
        return getpass.getuser()
    except (KeyError, OSError) as e:
        logger.debug(f"getpass.getuser() failed: {e}")
        return os.environ.get("USER") or "unknown"


def new_job_id() -> str:
    """Identifier for one extraction run, e.g. JOB-1F0C...."""
    return f"JOB-{str(uuid.uuid4()).upper()}"
