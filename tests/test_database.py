"""
Tests for the Database Module

Tests for the SQL Server connection manager (connection handling, query
execution) and the SqlStore cache backend built on it.
"""

import json
import pytest
from unittest.mock import MagicMock, patch
from datetime import datetime, timedelta, timezone
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from data.database import DatabaseConnection, SqlStore
from utils.exceptions import CacheError, QueryError
from conftest import FakeClock


@pytest.fixture
def mock_pyodbc():
    """
    Replace the pyodbc module for the duration of a test.

    Yields:
        tuple: (pyodbc module mock, connection mock, cursor mock)
    """
    module = MagicMock()
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value = cursor
    module.connect.return_value = conn
    with patch.dict(sys.modules, {"pyodbc": module}):
        yield module, conn, cursor


@pytest.fixture
def connected_db():
    """A DatabaseConnection with an injected connection."""
    db = DatabaseConnection(connection_string="DRIVER={Test};")
    db.conn = MagicMock()
    cursor = MagicMock()
    db.conn.cursor.return_value = cursor
    return db, cursor


# =============================================================================
# Connection Management Tests
# =============================================================================

class TestConnectionManagement:
    """Tests for database connection management."""

    def test_connect_success(self, mock_pyodbc):
        """connect() returns True and keeps the connection."""
        module, conn, _ = mock_pyodbc

        db = DatabaseConnection(connection_string="DRIVER={Test};")
        assert db.connect() is True
        assert db.conn is conn
        module.connect.assert_called_once_with("DRIVER={Test};")

    def test_connect_failure(self, mock_pyodbc):
        """connect() returns False and leaves conn unset when pyodbc fails."""
        module, _, _ = mock_pyodbc
        module.connect.side_effect = Exception("Login failed")

        db = DatabaseConnection(connection_string="DRIVER={Test};")
        assert db.connect() is False
        assert db.conn is None

    def test_query_error_is_only_database_error(self):
        """Connection failures are reported by connect(), not by an exception type."""
        from utils import exceptions
        from utils.exceptions import DatabaseError

        assert DatabaseError.__subclasses__() == [QueryError]
        assert "ConnectionError" not in vars(exceptions)

    def test_pooling_disabled(self, mock_pyodbc):
        module, _, _ = mock_pyodbc
        DatabaseConnection(connection_string="x").connect()
        assert module.pooling is False

    def test_connection_encoding_set(self, mock_pyodbc):
        module, conn, _ = mock_pyodbc
        DatabaseConnection(connection_string="x").connect()
        conn.setdecoding.assert_called_once_with(module.SQL_CHAR, encoding='utf-8')

    def test_default_connection_string(self):
        with patch('data.database.settings') as mock_settings:
            mock_settings.DB_CONNECTION_STRING = "DRIVER={From Settings};"
            assert DatabaseConnection().connection_string == "DRIVER={From Settings};"

    def test_close(self, connected_db):
        db, _ = connected_db
        conn = db.conn
        db.close()

        conn.close.assert_called_once()
        assert db.conn is None

    def test_close_when_not_connected(self):
        DatabaseConnection(connection_string="x").close()

    def test_close_handles_exception(self, connected_db):
        db, _ = connected_db
        db.conn.close.side_effect = Exception("already closed")
        db.close()


# =============================================================================
# Query Execution Tests
# =============================================================================

class TestQueryExecution:
    """Tests for execute_query."""

    def test_select_returns_dicts(self, connected_db):
        db, cursor = connected_db
        cursor.description = [("Cache_Key",), ("Cache_Value",)]
        cursor.fetchall.return_value = [("k1", "v1"), ("k2", "v2")]

        results = db.execute_query("SELECT ...", ("p",))

        assert results == [{"Cache_Key": "k1", "Cache_Value": "v1"},
                           {"Cache_Key": "k2", "Cache_Value": "v2"}]
        cursor.execute.assert_called_once_with("SELECT ...", ("p",))

    def test_non_select_commits(self, connected_db):
        db, cursor = connected_db
        cursor.description = None

        assert db.execute_query("DELETE ...") == []
        cursor.execute.assert_called_once_with("DELETE ...")
        db.conn.commit.assert_called_once()

    def test_failure_rolls_back(self, connected_db):
        db, cursor = connected_db
        cursor.execute.side_effect = Exception("deadlock")

        assert db.execute_query("UPDATE ...") is None
        db.conn.rollback.assert_called_once()

    def test_rollback_failure(self, connected_db):
        db, cursor = connected_db
        cursor.execute.side_effect = Exception("deadlock")
        db.conn.rollback.side_effect = Exception("connection lost")

        assert db.execute_query("UPDATE ...") is None

    def test_auto_connects(self, mock_pyodbc):
        module, conn, cursor = mock_pyodbc
        cursor.description = None

        db = DatabaseConnection(connection_string="x")
        assert db.execute_query("SELECT 1") == []
        module.connect.assert_called_once()

    def test_not_connected(self, mock_pyodbc):
        module, _, _ = mock_pyodbc
        module.connect.side_effect = Exception("unreachable")

        assert DatabaseConnection(connection_string="x").execute_query("SELECT 1") is None


# =============================================================================
# SqlStore Tests
# =============================================================================

@pytest.fixture
def sql_store():
    """A SqlStore over a mocked DatabaseConnection, at 2024-01-15 12:00 UTC."""
    db = MagicMock()
    db.execute_query.return_value = []
    clock = FakeClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))
    return SqlStore(db=db, table="tbl_Test_Cache", clock=clock), db


class TestSqlStore:
    """Tests for the SQL-backed KeyValueStore."""

    def test_table_created_once(self, sql_store):
        store, db = sql_store
        store.get("a")
        store.get("b")

        create_calls = [c for c in db.execute_query.call_args_list if "CREATE TABLE" in c[0][0]]
        assert len(create_calls) == 1
        assert "tbl_Test_Cache" in create_calls[0][0][0]

    def test_get_miss(self, sql_store):
        store, _ = sql_store
        assert store.get("digest:general:2024-01-15") is None

    def test_get_hit_decodes_json(self, sql_store):
        store, db = sql_store
        db.execute_query.side_effect = [[], [{"Cache_Value": json.dumps({"overview": "x"})}]]

        assert store.get("digest:general:2024-01-15") == {"overview": "x"}

    def test_get_filters_expired_rows(self, sql_store):
        """Reads compare Expires_At with the current naive UTC time."""
        store, db = sql_store
        store.get("k")

        query, params = db.execute_query.call_args[0]
        assert "[Expires_At] > ?" in query
        assert params == ("k", datetime(2024, 1, 15, 12, 0))

    def test_set_upserts_with_expiry(self, sql_store):
        store, db = sql_store
        store.set("k", {"a": 1}, ttl_seconds=86400)

        query, params = db.execute_query.call_args[0]
        assert "MERGE [dbo].[tbl_Test_Cache]" in query
        expires_at = datetime(2024, 1, 16, 12, 0)
        assert params == ("k", '{"a": 1}', expires_at, "k", '{"a": 1}', expires_at)

    def test_delete(self, sql_store):
        store, db = sql_store
        store.delete("k")

        query, params = db.execute_query.call_args[0]
        assert query.startswith("DELETE FROM [dbo].[tbl_Test_Cache]")
        assert params == ("k",)

    def test_failed_query_raises(self, sql_store):
        """A query failure surfaces as QueryError, a CacheError."""
        store, db = sql_store
        db.execute_query.return_value = None

        with pytest.raises(QueryError):
            store.get("k")
        with pytest.raises(CacheError):
            store.set("k", {}, ttl_seconds=10)

    def test_table_retried_after_failure(self, sql_store):
        store, db = sql_store
        db.execute_query.side_effect = [None, [], []]

        with pytest.raises(QueryError):
            store.get("k")
        assert store.get("k") is None
