"""
Base database connection and initialization.

This module handles database connection management and schema initialization
for the document store. Every collection lives in one `documents` table; the
document body is a JSON column queried with SQLite's JSON1 functions.

Optimized for SQLite concurrency with WAL mode and busy_timeout.

IMPORTANT: Database instantiation should be done through the DI layer.
Use telehealth_svc.core.dependencies.get_database() instead of instantiating directly.
"""
import logging
import sqlite3
from pathlib import Path
from typing import Optional

from telehealth_svc.core.config import DATABASE_BUSY_TIMEOUT, DATABASE_PATH

logger = logging.getLogger(__name__)


class Database:
    """
    SQLite document store connection manager with concurrency optimizations.

    Features:
    - WAL mode for better concurrent read/write performance
    - Busy timeout to handle lock contention gracefully
    - Row factory returning sqlite3.Row for named column access

    Usage:
        # Via dependency injection (recommended):
        from telehealth_svc.core.dependencies import get_database
        db = get_database()

        # Direct instantiation (for testing):
        db = Database(db_path="/tmp/test.db")
    """

    def __init__(self, db_path: Optional[str] = None, busy_timeout: Optional[int] = None):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file. Defaults to config DATABASE_PATH.
            busy_timeout: SQLite busy timeout in milliseconds. Defaults to config value.
        """
        self.db_path = db_path or DATABASE_PATH
        self.busy_timeout = busy_timeout if busy_timeout is not None else DATABASE_BUSY_TIMEOUT

        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _configure_connection(self, conn: sqlite3.Connection) -> None:
        # Wait for locks instead of failing immediately
        conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout}")
        conn.row_factory = sqlite3.Row

    def _init_db(self) -> None:
        """Initialize the documents schema and enable WAL mode if not already enabled."""
        conn = sqlite3.connect(self.db_path)
        self._configure_connection(conn)
        cursor = conn.cursor()

        # WAL mode persists in the database file, so this only needs to run once
        cursor.execute("PRAGMA journal_mode = WAL")
        result = cursor.fetchone()
        if result and result[0].lower() == 'wal':
            logger.info(f"SQLite WAL mode enabled for {self.db_path}")
        else:
            logger.warning(f"Failed to enable WAL mode, current mode: {result}")

        # seq breaks ties between documents stamped in the same microsecond
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL,
                collection TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (collection, id)
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_documents_collection_created
            ON documents (collection, created_at)
        """)

        conn.commit()
        conn.close()

        logger.info(
            f"Database initialized: {self.db_path} "
            f"(busy_timeout={self.busy_timeout}ms)"
        )

    def get_connection(self) -> sqlite3.Connection:
        """
        Get a new database connection with concurrency settings.

        Returns:
            sqlite3.Connection: A new connection with busy timeout and Row factory set.
        """
        conn = sqlite3.connect(self.db_path)
        self._configure_connection(conn)
        return conn

    def ping(self) -> bool:
        """Readiness probe: True when a trivial query succeeds."""
        try:
            conn = self.get_connection()
            try:
                conn.execute("SELECT 1").fetchone()
            finally:
                conn.close()
            return True
        except sqlite3.Error as e:
            logger.warning("Database ping failed", extra={"error": str(e)})
            return False
