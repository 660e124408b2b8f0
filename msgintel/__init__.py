"""
msgintel - extraction and normalization of the macOS Messages store.

This package provides functionality to:
- Read chat.db (read-only) and the Messages Drafts directory
- Normalize messages, attachments, contacts, threads, hidden messages and drafts
- Render the results as JSON or one of several tabular formats
"""

__version__ = "0.1.0"

from msgintel.config import get_config, Config
from msgintel.database import SQLiteQueryExecutor

__all__ = [
    "get_config",
    "Config",
    "SQLiteQueryExecutor",
]
