"""MySQL family database adapter."""

from typing import Any, Dict
from urllib.parse import quote_plus

from pymysql.converters import escape_string

from cough.db.base import BaseAdapter


class MySQLAdapter(BaseAdapter):
    """MySQL/MariaDB adapter on the PyMySQL driver.

    Strings are double-quoted and escaped by the driver, identifiers use
    backticks. Supports prepared statements and ``SQL_CALC_FOUND_ROWS``.
    """

    backend_name = "mysql"
    error_label = "mysql"
    default_port = 3306
    identifier_quotes = ('`', '`')
    begin_statement = "START TRANSACTION"
    last_insert_id_query = "SELECT LAST_INSERT_ID()"
    affected_rows_query = "SELECT ROW_COUNT()"

    def get_driver_name(self) -> str:
        """Get the driver name for MySQL."""
        return "pymysql"

    def build_connection_string(self) -> str:
        """Build MySQL connection string.

        The default database is selected after connecting rather than
        through the URL, so ``db_name`` tracks the selection.
        """
        password_encoded = quote_plus(self.config.password or '')
        user_encoded = quote_plus(self.config.username or '')

        connection_string = (
            f"mysql+pymysql://{user_encoded}:{password_encoded}@"
            f"{self.config.host}:{self.port}/"
        )

        charset = self.config.options.get('charset', 'utf8mb4')
        return f"{connection_string}?charset={charset}"

    def _get_engine_options(self) -> Dict[str, Any]:
        """Get MySQL-specific engine options."""
        connect_args: Dict[str, Any] = {
            key: value for key, value in self.config.options.items() if key != 'charset'
        }
        connect_args.setdefault('connect_timeout', 10)
        if self.config.client_flags:
            connect_args['client_flag'] = self.config.client_flags
        if self.config.socket:
            connect_args['unix_socket'] = self.config.socket
        return {'connect_args': connect_args}

    def _quote_string(self, value: str) -> str:
        return '"' + escape_string(value) + '"'

    def can_execute_prepared(self) -> bool:
        return True

    def get_found_row_count(self) -> int:
        """Number of rows found by the last SELECT, ignoring LIMIT.

        The SELECT must carry ``SQL_CALC_FOUND_ROWS`` right after the
        ``SELECT`` keyword.
        """
        value = self.query_scalar("SELECT FOUND_ROWS()")
        return int(value) if value is not None else 0
