"""
Read-only query execution against chat.db.

SQLiteQueryExecutor is the only component that touches the store. Every
fetch returns rows as plain dictionaries keyed by column name; a failing
query is logged and yields no rows so one bad section never aborts a run.
"""

import logging
import sqlite3
from contextlib import closing
from typing import Any, Dict, List, Optional, Protocol, Sequence

from msgintel.config import Config

logger = logging.getLogger(__name__)


class QueryExecutor(Protocol):
    """Anything that can run a query and hand back dictionary rows."""

    def fetch(
        self, query: str, params: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]: ...


class SQLiteQueryExecutor:
    """
    Read-only connection manager for chat.db.

    Opens the database through a ``mode=ro`` URI. With ``use_memory`` the
    file is copied into an in-memory database first (SQLite backup API) so
    the live store is only held open for the copy.
    """

    def __init__(self, config: Config, *, use_memory: bool = False):
        """
        Args:
            config: Configuration object with database path.
            use_memory: Copy the database into RAM before querying.

        Raises:
            ValueError: If database path is not configured or not readable.
        """
        if not config.validate():
            raise ValueError(f"Database file not found or not readable: {config.db_path_str}")

        self.config = config
        self.use_memory = use_memory
        self._connection: Optional[sqlite3.Connection] = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def source_db(self) -> Optional[str]:
        return self.config.db_path_str

    def connect(self) -> sqlite3.Connection:
        """
        Establish read-only connection to database.

        Raises:
            sqlite3.Error: If connection fails.
        """
        if self._connection is not None:
            return self._connection

        db_path = self.config.db_path_str
        uri = f"file:{db_path}?mode=ro"

        try:
            if not self.use_memory:
                self._connection = sqlite3.connect(uri, uri=True)
                logger.info(f"Connected to database: {db_path}")
            else:
                with closing(sqlite3.connect(uri, uri=True)) as disk_conn:
                    mem_conn = sqlite3.connect(":memory:")
                    disk_conn.backup(mem_conn)
                    self._connection = mem_conn
                logger.info(f"Loaded database into memory from: {db_path}")
        except sqlite3.Error as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

        self._connection.row_factory = sqlite3.Row
        return self._connection

    def close(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    @property
    def connection(self) -> sqlite3.Connection:
        """
        Raises:
            RuntimeError: If connection not established.
        """
        if self._connection is None:
            raise RuntimeError("Database connection not established. Call connect() first.")
        return self._connection

    def fetch(
        self, query: str, params: Optional[Sequence[Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Run a query and return every row as a dictionary.

        Args:
            query: SQL query string.
            params: Optional positional parameters.

        Returns:
            Result rows, or an empty list if the query fails.
        """
        try:
            with closing(self.connection.cursor()) as cursor:
                cursor.execute(query, tuple(params or ()))
                return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.warning(f"Query failed, returning no rows: {e}")
            return []

    def get_table_names(self) -> List[str]:
        """List the tables present in the store."""
        rows = self.fetch("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;")
        return [row["name"] for row in rows]
