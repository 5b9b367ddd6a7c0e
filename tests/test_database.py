"""
Tests for the database wrapper.
"""

import sqlite3
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from sqlstores.runtime.database import (
    Database,
    Dialect,
    ExecuteResult,
    database_url_from_env,
)

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def mock_connection() -> MagicMock:
    """Create a DB-API connection double returning one row."""
    connection = MagicMock()
    cursor = connection.cursor.return_value
    cursor.description = [("a",), ("b",)]
    cursor.fetchall.return_value = [(1, 2)]
    return connection


# =============================================================================
# Dialect Tests
# =============================================================================


class TestDialect:
    """Tests for dialect properties."""

    def test_quote_chars(self):
        assert Dialect.MYSQL.quote_char == "`"
        assert Dialect.SQLITE.quote_char == '"'
        assert Dialect.POSTGRES.quote_char == '"'

    def test_placeholders(self):
        assert Dialect.SQLITE.placeholder == "?"
        assert Dialect.MYSQL.placeholder == "%s"
        assert Dialect.POSTGRES.placeholder == "%s"

    def test_capabilities(self):
        assert Dialect.MYSQL.supports_update_order_by
        assert not Dialect.SQLITE.supports_update_order_by
        assert Dialect.POSTGRES.needs_returning
        assert not Dialect.MYSQL.needs_returning


# =============================================================================
# Execution Tests
# =============================================================================


class TestExecute:
    """Tests for statement execution."""

    def test_rows_as_dicts(self, db):
        db.execute_modify("INSERT INTO items (name, pos) VALUES (?, ?)", ["a", 1])
        rows = db.execute("SELECT name, pos FROM items")
        assert rows == [{"name": "a", "pos": 1}]

    def test_statement_without_rows(self, db):
        assert db.execute("UPDATE items SET pos = 2") == []

    def test_execute_modify_result(self, db):
        result = db.execute_modify("INSERT INTO items (name) VALUES (?)", ["a"])
        assert isinstance(result, ExecuteResult)
        assert result.rowcount == 1
        assert result.lastrowid == 1

    def test_placeholder_rewrite(self, mock_connection):
        """Test ? placeholders are rewritten for format-style drivers."""
        db = Database(mock_connection, Dialect.MYSQL)
        rows = db.execute("SELECT a, b FROM t WHERE a = ?", [1])

        cursor = mock_connection.cursor.return_value
        cursor.execute.assert_called_once_with("SELECT a, b FROM t WHERE a = %s", [1])
        assert rows == [{"a": 1, "b": 2}]

    def test_no_rewrite_without_params(self, mock_connection):
        """Test statements without params are sent verbatim."""
        db = Database(mock_connection, "mysql")
        db.execute("SET foreign_key_checks = 0")
        mock_connection.cursor.return_value.execute.assert_called_once_with(
            "SET foreign_key_checks = 0"
        )

    def test_mapping_rows(self, mock_connection):
        mock_connection.cursor.return_value.fetchall.return_value = [{"a": 1, "b": 2}]
        db = Database(mock_connection, Dialect.POSTGRES)
        assert db.execute("SELECT a, b FROM t") == [{"a": 1, "b": 2}]

    def test_returning_row(self, mock_connection):
        """Test the generated id is read from a RETURNING row."""
        cursor = mock_connection.cursor.return_value
        cursor.description = [("id",)]
        cursor.fetchone.return_value = (42,)
        cursor.rowcount = 1
        db = Database(mock_connection, Dialect.POSTGRES)

        result = db.execute_modify('INSERT INTO "t" ("a") VALUES (?) RETURNING "id"', [1])
        assert result.lastrowid == 42
        mock_connection.commit.assert_called_once()

    def test_read_ends_driver_transaction(self, mock_connection):
        """Test a read outside transaction() does not leave a transaction open."""
        db = Database(mock_connection, Dialect.MYSQL)
        assert db.execute("SELECT a FROM t WHERE a = ?", [1]) == [{"a": 1, "b": 2}]
        mock_connection.commit.assert_called_once()

    def test_read_inside_transaction_waits_for_outer_commit(self, mock_connection):
        db = Database(mock_connection, Dialect.MYSQL)
        with db.transaction():
            db.execute("SELECT a FROM t")
            mock_connection.commit.assert_not_called()
        mock_connection.commit.assert_called_once()

    def test_backend_errors_propagate(self, db):
        with pytest.raises(sqlite3.OperationalError):
            db.execute("SELECT * FROM missing_table")


class TestTransaction:
    """Tests for transaction handling."""

    def test_commit_on_success(self, tmp_path: Path):
        path = tmp_path / "test.db"
        db = Database.sqlite(str(path))
        db.execute("CREATE TABLE t (a INTEGER)")
        with db.transaction():
            db.execute_modify("INSERT INTO t (a) VALUES (?)", [1])
            db.execute_modify("INSERT INTO t (a) VALUES (?)", [2])

        other = Database.sqlite(str(path))
        assert len(other.execute("SELECT a FROM t")) == 2
        other.close()
        db.close()

    def test_rollback_on_error(self, db):
        with pytest.raises(RuntimeError):
            with db.transaction():
                db.execute_modify("INSERT INTO items (name) VALUES (?)", ["a"])
                raise RuntimeError("boom")
        assert db.execute("SELECT * FROM items") == []
        assert not db.in_transaction

    def test_nested_joins_outer(self, mock_connection):
        """Test only the outermost block commits."""
        mock_connection.cursor.return_value.description = None
        db = Database(mock_connection)
        with db.transaction():
            with db.transaction():
                db.execute_modify("UPDATE t SET a = ?", [1])
            assert db.in_transaction
            mock_connection.commit.assert_not_called()
        mock_connection.commit.assert_called_once()

    def test_statement_commits_outside_transaction(self, mock_connection):
        mock_connection.cursor.return_value.description = None
        db = Database(mock_connection)
        db.execute_modify("UPDATE t SET a = ?", [1])
        mock_connection.commit.assert_called_once()


# =============================================================================
# Construction Tests
# =============================================================================


class TestConstruction:
    """Tests for building databases from URLs."""

    def test_sqlite_memory_url(self):
        db = Database.from_url("sqlite://:memory:")
        assert db.dialect is Dialect.SQLITE
        db.close()

    def test_sqlite_file_url(self, tmp_path: Path):
        db = Database.from_url(f"sqlite:///{tmp_path / 'app.db'}")
        db.execute("CREATE TABLE t (a INTEGER)")
        db.close()
        assert (tmp_path / "app.db").exists()

    def test_unsupported_url(self):
        with pytest.raises(ValueError, match="Unsupported"):
            Database.from_url("oracle://db")

    def test_url_from_env(self, monkeypatch):
        monkeypatch.delenv("SQLSTORES_DATABASE_URL", raising=False)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        assert database_url_from_env() is None

        monkeypatch.setenv("DATABASE_URL", "sqlite://:memory:")
        assert database_url_from_env() == "sqlite://:memory:"

        monkeypatch.setenv("SQLSTORES_DATABASE_URL", "sqlite:///app.db")
        assert database_url_from_env() == "sqlite:///app.db"
