"""Core exceptions for Cough."""

from typing import Any, Dict, Optional


class CoughError(Exception):
    """Base exception for all Cough errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(CoughError):
    """Raised when configuration is missing, invalid or ambiguous."""
    pass


class DatabaseError(CoughError):
    """Raised when a database session cannot proceed."""

    def __init__(
        self,
        message: str,
        database_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.database_type = database_type


class DatabaseConnectionError(DatabaseError):
    """Raised when the driver fails to open a connection."""

    def __init__(
        self,
        backend: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        message = f"Unable to connect to {backend} server {host}:{port} as user '{user}'"
        if reason:
            message += f": {reason}"
        super().__init__(message, database_type=backend)
        self.backend = backend
        self.host = host
        self.port = port
        self.user = user
        self.reason = reason


class UnsupportedOperation(DatabaseError):
    """Raised when the active backend does not implement a capability."""
    pass


class QueryError(DatabaseError):
    """A failed statement, recorded on the adapter rather than raised."""

    def __init__(
        self,
        message: str,
        sql: Optional[str] = None,
        database_type: Optional[str] = None,
    ):
        super().__init__(message, database_type=database_type)
        self.sql = sql


class CollectionError(CoughError):
    """Raised when a collection is asked for an impossible ordering."""
    pass
