"""Database connection management and adapter factory."""

import logging
from typing import Any, Dict, Optional, Type

from cough.config.models import CoughConfig, DatabaseConfig, DatabaseType
from cough.db.base import BaseAdapter
from cough.db.adapters.mysql import MySQLAdapter
from cough.db.adapters.mssql import MSSQLAdapter
from cough.db.adapters.sqlite import SQLiteAdapter
from cough.exceptions import DatabaseError

logger = logging.getLogger(__name__)


class AdapterFactory:
    """Factory for creating database adapters."""

    _adapters: Dict[DatabaseType, Type[BaseAdapter]] = {
        DatabaseType.MYSQL: MySQLAdapter,
        DatabaseType.MSSQL: MSSQLAdapter,
        DatabaseType.SQLITE: SQLiteAdapter,
    }

    @classmethod
    def create_adapter(cls, config: DatabaseConfig) -> BaseAdapter:
        """Create (and connect) a database adapter based on configuration.

        Args:
            config: Database configuration.

        Returns:
            Connected database adapter instance.

        Raises:
            DatabaseError: If database type is not supported.
            DatabaseConnectionError: If the adapter cannot connect.
        """
        adapter_class = cls._adapters.get(config.type)
        if not adapter_class:
            supported_types = list(cls._adapters.keys())
            raise DatabaseError(
                f"Unsupported database type: {config.type}. "
                f"Supported types: {supported_types}"
            )

        return adapter_class(config)

    @classmethod
    def register_adapter(cls, db_type: DatabaseType, adapter_class: Type[BaseAdapter]) -> None:
        """Register a custom database adapter.

        Args:
            db_type: Database type.
            adapter_class: Adapter class to register.
        """
        cls._adapters[db_type] = adapter_class

    @classmethod
    def get_supported_types(cls) -> list[DatabaseType]:
        """Get list of supported database types."""
        return list(cls._adapters.keys())


class ConnectionManager:
    """Hands out one adapter per configured database name."""

    def __init__(self, config: CoughConfig) -> None:
        """Initialize connection manager.

        Args:
            config: Cough configuration.
        """
        self.config = config
        self._adapters: Dict[str, BaseAdapter] = {}
        self._factory = AdapterFactory()

    def get_adapter(self, db_name: Optional[str] = None) -> BaseAdapter:
        """Get database adapter by name, connecting on first use.

        Args:
            db_name: Database connection name. If None, uses default database.

        Raises:
            DatabaseError: If the name is not configured.
            DatabaseConnectionError: If connecting fails.
        """
        if db_name is None:
            db_name = self.config.default_database

        if not db_name:
            raise DatabaseError("No database specified and no default database configured")

        if db_name not in self.config.databases:
            available_dbs = list(self.config.databases.keys())
            raise DatabaseError(
                f"Database '{db_name}' not found in configuration. "
                f"Available databases: {available_dbs}"
            )

        if db_name in self._adapters:
            return self._adapters[db_name]

        adapter = self._factory.create_adapter(self.config.databases[db_name])
        self._adapters[db_name] = adapter
        logger.debug(f"Created {adapter.backend_name} adapter for database '{db_name}'")

        return adapter

    def set_adapter(self, db_name: str, adapter: BaseAdapter) -> None:
        """Use an already connected adapter for ``db_name``."""
        self._adapters[db_name] = adapter

    def close_all_connections(self) -> None:
        """Disconnect every adapter handed out so far."""
        for db_name in list(self._adapters):
            self.close_connection(db_name)

    def close_connection(self, db_name: str) -> None:
        """Disconnect and forget the adapter for ``db_name``."""
        adapter = self._adapters.pop(db_name, None)
        if adapter is not None:
            adapter.disconnect()

    def get_connection_status(self) -> Dict[str, Any]:
        """Get status of all database connections."""
        status: Dict[str, Any] = {
            'total_configured': len(self.config.databases),
            'total_active': len(self._adapters),
            'default_database': self.config.default_database,
            'connections': {},
        }

        for db_name, db_config in self.config.databases.items():
            adapter = self._adapters.get(db_name)
            status['connections'][db_name] = {
                'active': adapter is not None and adapter.is_connected,
                'type': db_config.type.value,
                'in_transaction': adapter is not None and adapter.in_transaction(),
            }

        return status


# Global connection manager instance
_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager(config: Optional[CoughConfig] = None) -> ConnectionManager:
    """Get the global connection manager instance.

    Args:
        config: Cough configuration. If None, loads the global configuration.

    Raises:
        DatabaseError: If no configuration is available.
    """
    global _connection_manager

    if _connection_manager is None:
        if config is None:
            try:
                from cough.config import get_config
                config = get_config()
            except Exception as e:
                raise DatabaseError("No configuration available for connection manager") from e

        _connection_manager = ConnectionManager(config)

    return _connection_manager


def set_connection_manager(manager: Optional[ConnectionManager]) -> None:
    """Set (or clear, with None) the global connection manager instance."""
    global _connection_manager
    _connection_manager = manager
