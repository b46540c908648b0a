"""Cough: a lightweight object-relational persistence runtime.

Cough provides:
- One adapter contract over MySQL, SQL Server and SQLite connections
- Value and identifier quoting per backend
- Nested transaction counting
- Keyed collections of persisted objects with bulk load and bulk save
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Core exports
from cough.exceptions import (
    CoughError,
    ConfigurationError,
    DatabaseError,
    DatabaseConnectionError,
    QueryError,
    UnsupportedOperation,
    CollectionError,
)
from cough.db.base import BaseAdapter, Result, SqlFunction
from cough.collection import Collection, SortOrder, SortType
from cough.iterators import CollectionIterator, KeyValueIterator
from cough.objects import ObjectDescriptor, PersistedObject

__all__ = [
    "__version__",
    "CoughError",
    "ConfigurationError",
    "DatabaseError",
    "DatabaseConnectionError",
    "QueryError",
    "UnsupportedOperation",
    "CollectionError",
    "BaseAdapter",
    "Result",
    "SqlFunction",
    "Collection",
    "SortOrder",
    "SortType",
    "CollectionIterator",
    "KeyValueIterator",
    "ObjectDescriptor",
    "PersistedObject",
]
