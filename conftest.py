from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from cough.config.models import DatabaseConfig, DatabaseType
from cough.db.adapters.mssql import MSSQLAdapter
from cough.db.adapters.mysql import MySQLAdapter
from cough.db.adapters.sqlite import SQLiteAdapter


class FakeCursor:
    """Minimal stand-in for a SQLAlchemy CursorResult."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]]) -> None:
        self._rows = rows
        self.returns_rows = rows is not None

    def keys(self) -> List[str]:
        return list(self._rows[0].keys()) if self._rows else []

    def mappings(self) -> List[Dict[str, Any]]:
        return list(self._rows or [])

    def close(self) -> None:
        pass


class RecordingConnection:
    """Records every statement an adapter sends to its connection.

    ``rows`` maps SQL text to the rows it returns; ``failures`` maps SQL text
    to the ``(errno, message)`` the driver raises for it.
    """

    def __init__(self) -> None:
        self.statements: List[str] = []
        self.prepared: List[Tuple[str, Dict[str, Any]]] = []
        self.rows: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[str, Tuple[int, str]] = {}
        self.closed = False

    def execution_options(self, **options: Any) -> "RecordingConnection":
        return self

    def _respond(self, sql: str) -> FakeCursor:
        if sql in self.failures:
            raise OperationalError(sql, {}, Exception(*self.failures[sql]))
        return FakeCursor(self.rows.get(sql))

    def exec_driver_sql(self, sql: str, parameters: Any = None, execution_options: Any = None) -> FakeCursor:
        self.statements.append(sql)
        return self._respond(sql)

    def execute(self, statement: Any) -> FakeCursor:
        sql = str(statement)
        self.prepared.append((sql, statement.compile().params))
        return self._respond(sql)

    def close(self) -> None:
        self.closed = True


def build_recorded_adapter(adapter_class, config: DatabaseConfig, connection: RecordingConnection):
    with patch("cough.db.base.create_engine") as create_engine:
        create_engine.return_value.connect.return_value = connection
        return adapter_class(config)


@pytest.fixture
def recording_connection() -> RecordingConnection:
    return RecordingConnection()


@pytest.fixture
def mysql_config() -> DatabaseConfig:
    return DatabaseConfig(
        type=DatabaseType.MYSQL,
        host="db.example.com",
        user="app",
        password="secret",
        db_name="shop",
    )


@pytest.fixture
def mssql_config() -> DatabaseConfig:
    return DatabaseConfig(
        type=DatabaseType.MSSQL,
        host="sql.example.com",
        user="sa",
        password="secret",
    )


@pytest.fixture
def mysql_adapter(mysql_config: DatabaseConfig, recording_connection: RecordingConnection) -> MySQLAdapter:
    return build_recorded_adapter(MySQLAdapter, mysql_config, recording_connection)


@pytest.fixture
def mssql_adapter(mssql_config: DatabaseConfig, recording_connection: RecordingConnection) -> MSSQLAdapter:
    return build_recorded_adapter(MSSQLAdapter, mssql_config, recording_connection)


@pytest.fixture
def sqlite_adapter(tmp_path: Path) -> SQLiteAdapter:
    config = DatabaseConfig(type=DatabaseType.SQLITE, path=str(tmp_path / "cough_test.db"))
    adapter = SQLiteAdapter(config)
    adapter.execute(
        'CREATE TABLE "widget" ('
        '"id" INTEGER PRIMARY KEY AUTOINCREMENT, '
        '"name" TEXT NOT NULL, '
        '"price" REAL, '
        '"category" TEXT)'
    )
    try:
        yield adapter
    finally:
        adapter.disconnect()
