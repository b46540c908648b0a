"""Database adapters for the supported backends."""

from cough.db.adapters.mysql import MySQLAdapter
from cough.db.adapters.mssql import MSSQLAdapter
from cough.db.adapters.sqlite import SQLiteAdapter

__all__ = [
    "MySQLAdapter",
    "MSSQLAdapter",
    "SQLiteAdapter",
]
