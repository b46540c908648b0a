"""SQLite database adapter."""

from pathlib import Path
from typing import Any, Dict

from cough.db.base import BaseAdapter


class SQLiteAdapter(BaseAdapter):
    """SQLite adapter on the standard library driver.

    A SQLite file holds a single schema, so only ``main`` can be selected.
    """

    backend_name = "sqlite"
    error_label = "sqlite"
    identifier_quotes = ('"', '"')
    last_insert_id_query = "SELECT last_insert_rowid()"
    affected_rows_query = "SELECT changes()"

    MAIN_DATABASE = "main"

    def get_driver_name(self) -> str:
        """Get the driver name for SQLite."""
        return "sqlite"

    def build_connection_string(self) -> str:
        """Build SQLite connection string.

        Relative paths resolve against the working directory; ``:memory:``
        opens a private in-memory database.
        """
        if not self.config.path or self.config.path == ':memory:':
            return "sqlite://"

        db_path = Path(self.config.path)
        if not db_path.is_absolute():
            db_path = Path.cwd() / db_path

        return f"sqlite:///{db_path}"

    def _get_engine_options(self) -> Dict[str, Any]:
        """Get SQLite-specific engine options."""
        return {
            'connect_args': {
                'timeout': self.config.options.get('timeout', 30),
            }
        }

    def _describe_target(self) -> str:
        return self.config.path or ':memory:'

    def _select_database(self, name: str) -> bool:
        if name == self.MAIN_DATABASE:
            return True
        return self._record_failure(f"USE {name}", f"unknown database {name}")

    def can_execute_prepared(self) -> bool:
        return True
