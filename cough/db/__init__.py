"""Database connectivity and statement execution."""

from cough.db.base import BaseAdapter, Result, SqlFunction
from cough.db.connection import (
    ConnectionManager,
    AdapterFactory,
    get_connection_manager,
    set_connection_manager,
)
from cough.db.adapters import (
    MySQLAdapter,
    MSSQLAdapter,
    SQLiteAdapter,
)

__all__ = [
    # Base classes
    "BaseAdapter",
    "Result",
    "SqlFunction",
    # Connection management
    "ConnectionManager",
    "AdapterFactory",
    "get_connection_manager",
    "set_connection_manager",
    # Database adapters
    "MySQLAdapter",
    "MSSQLAdapter",
    "SQLiteAdapter",
]
