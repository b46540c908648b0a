"""Microsoft SQL Server database adapter."""

from typing import Any, Dict
from urllib.parse import quote_plus

from cough.db.base import BaseAdapter


class MSSQLAdapter(BaseAdapter):
    """SQL Server adapter on the pymssql driver.

    No prepared statements and no found-row count on this backend.
    """

    backend_name = "mssql"
    error_label = "MSSQL"
    default_port = 1433
    identifier_quotes = ('[', ']')
    begin_statement = "BEGIN TRANSACTION"
    # SCOPE_IDENTITY is limited to the current scope; IDENT_CURRENT would
    # cross sessions.
    last_insert_id_query = "SELECT SCOPE_IDENTITY()"
    affected_rows_query = "SELECT @@ROWCOUNT"

    def get_driver_name(self) -> str:
        """Get the driver name for SQL Server."""
        return "pymssql"

    def build_connection_string(self) -> str:
        """Build SQL Server connection string."""
        password_encoded = quote_plus(self.config.password or '')
        user_encoded = quote_plus(self.config.username or '')

        return (
            f"mssql+pymssql://{user_encoded}:{password_encoded}@"
            f"{self.config.host}:{self.port}"
        )

    def _quote_bytes(self, value: bytes) -> str:
        return f"0x{value.hex()}"

    def _get_engine_options(self) -> Dict[str, Any]:
        """Get SQL Server-specific engine options."""
        connect_args = dict(self.config.options)
        connect_args.setdefault('login_timeout', 10)
        return {'connect_args': connect_args}
