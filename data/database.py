"""
Database Module for the Bluesky Digest

This module handles the SQL Server connection used by the persistent cache
backend. It provides a connection manager for executing queries and a
KeyValueStore implementation that keeps digests in a cache table.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any, Callable

from config import settings
from utils.exceptions import QueryError
from utils.helpers import utc_now
from utils.logger import get_logger

logger = get_logger(__name__)


class DatabaseConnection:
    """Database connection manager for the digest cache."""

    def __init__(self, connection_string: Optional[str] = None):
        """
        Initialize the database connection.

        Args:
            connection_string: ODBC connection string; defaults to settings.DB_CONNECTION_STRING.
        """
        self.connection_string = connection_string or settings.DB_CONNECTION_STRING
        self.conn = None

    def connect(self) -> bool:
        """
        Establish a connection to the database.

        Returns:
            bool: True if connection was successful, False otherwise.
        """
        # Imported here so the in-memory cache works without the ODBC driver manager
        import pyodbc
        pyodbc.pooling = False

        try:
            self.conn = pyodbc.connect(self.connection_string)
            self.conn.setdecoding(pyodbc.SQL_CHAR, encoding='utf-8')
            logger.info("Successfully connected to database")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to database: {e}")
            self.conn = None
            return False

    def close(self) -> None:
        """Close the database connection."""
        try:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.info("Database connection closed")
        except Exception as e:
            logger.error(f"Error closing database connection: {e}")

    def execute_query(self, query: str, params: Optional[tuple] = None) -> Optional[List[Dict]]:
        """
        Execute a SQL query and return the results.

        Args:
            query: The SQL query to execute.
            params: Query parameters (optional).

        Returns:
            Optional[List[Dict]]: Query results as a list of dictionaries, or None if an error occurred.
        """
        if not self.conn and not self.connect():
            return None

        try:
            cursor = self.conn.cursor()
            if params:
                cursor.execute(query, params)
            else:
                cursor.execute(query)

            # Check if this is a SELECT query with results
            if cursor.description:
                columns = [column[0] for column in cursor.description]
                results = [dict(zip(columns, row)) for row in cursor.fetchall()]
                return results
            else:
                self.conn.commit()
                return []

        except Exception as e:
            logger.error(f"Error executing query: {e}")
            try:
                self.conn.rollback()
            except Exception:
                pass
            return None


class SqlStore:
    """KeyValueStore backed by a SQL Server table.

    Values are stored as JSON text next to a UTC expiry timestamp. Expired
    rows are ignored on read and overwritten on the next write for the key.
    """

    def __init__(self, db: Optional[DatabaseConnection] = None, table: Optional[str] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db or DatabaseConnection()
        self.table = table or settings.CACHE_TABLE
        self._clock = clock or utc_now
        self._table_ready = False

    def _now(self) -> datetime:
        # pyodbc binds naive datetimes; the column holds UTC
        return self._clock().astimezone(timezone.utc).replace(tzinfo=None)

    def _run(self, query: str, params: Optional[tuple] = None) -> List[Dict]:
        results = self.db.execute_query(query, params)
        if results is None:
            raise QueryError(f"Query against {self.table} failed")
        return results

    def ensure_table(self) -> None:
        """Create the cache table if it does not exist yet."""
        if self._table_ready:
            return
        self._run(f"""
        IF OBJECT_ID(N'[dbo].[{self.table}]', N'U') IS NULL
        CREATE TABLE [dbo].[{self.table}] (
            [Cache_Key] NVARCHAR(200) NOT NULL PRIMARY KEY,
            [Cache_Value] NVARCHAR(MAX) NOT NULL,
            [Expires_At] DATETIME2 NOT NULL
        )
        """)
        self._table_ready = True

    def get(self, key: str) -> Optional[Any]:
        self.ensure_table()
        rows = self._run(
            f"SELECT [Cache_Value] FROM [dbo].[{self.table}] WHERE [Cache_Key] = ? AND [Expires_At] > ?",
            (key, self._now())
        )
        if not rows:
            return None
        return json.loads(rows[0]['Cache_Value'])

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self.ensure_table()
        expires_at = self._now() + timedelta(seconds=ttl_seconds)
        payload = json.dumps(value)
        self._run(f"""
        MERGE [dbo].[{self.table}] AS target
        USING (SELECT ? AS [Cache_Key]) AS source
        ON target.[Cache_Key] = source.[Cache_Key]
        WHEN MATCHED THEN
            UPDATE SET [Cache_Value] = ?, [Expires_At] = ?
        WHEN NOT MATCHED THEN
            INSERT ([Cache_Key], [Cache_Value], [Expires_At]) VALUES (?, ?, ?);
        """, (key, payload, expires_at, key, payload, expires_at))
        logger.debug(f"Stored cache key {key} (expires {expires_at.isoformat()}Z)")

    def delete(self, key: str) -> None:
        self.ensure_table()
        self._run(f"DELETE FROM [dbo].[{self.table}] WHERE [Cache_Key] = ?", (key,))
