"""Base database adapter and result wrapper."""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd
from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.types import Float, Integer, LargeBinary, String, TypeEngine

from cough.config.models import DatabaseConfig
from cough.exceptions import (
    DatabaseConnectionError,
    DatabaseError,
    QueryError,
    UnsupportedOperation,
)

logger = logging.getLogger(__name__)


# Bind types for prepared statement type hint characters.
PARAMETER_TYPES: Dict[str, Tuple[TypeEngine, Any]] = {
    's': (String(), str),
    'i': (Integer(), int),
    'd': (Float(), float),
    'b': (LargeBinary(), bytes),
}


class SqlFunction:
    """A raw SQL expression that ``quote()`` passes through unescaped.

    Example:
        ``adapter.quote(SqlFunction("NOW()"))`` returns ``NOW()``.
    """

    def __init__(self, sql: str) -> None:
        self.sql = sql

    def __str__(self) -> str:
        return self.sql

    def __repr__(self) -> str:
        return f"SqlFunction({self.sql!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SqlFunction) and other.sql == self.sql

    def __hash__(self) -> int:
        return hash(self.sql)


class Result:
    """Forward-only cursor over the rows returned by one statement."""

    def __init__(self, rows: List[Dict[str, Any]], columns: Optional[List[str]] = None) -> None:
        """Initialize result.

        Args:
            rows: Fetched rows as column name to value mappings.
            columns: Column names in select order.
        """
        self._rows = rows
        self._position = 0
        self.columns = columns or (list(rows[0].keys()) if rows else [])

    @classmethod
    def from_cursor(cls, cursor: CursorResult) -> "Result":
        """Buffer every row of a SQLAlchemy cursor result."""
        columns = list(cursor.keys())
        rows = [dict(row) for row in cursor.mappings()]
        return cls(rows, columns)

    def row_count(self) -> int:
        """Get the total number of rows in the result."""
        return len(self._rows)

    def next_row(self) -> Optional[Dict[str, Any]]:
        """Get the next row, or None once the result is exhausted."""
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        while True:
            row = self.next_row()
            if row is None:
                return
            yield row

    def to_frame(self) -> pd.DataFrame:
        """Drain the remaining rows into a DataFrame."""
        return pd.DataFrame(list(self), columns=self.columns)

    def __repr__(self) -> str:
        return f"<Result rows={self.row_count()} position={self._position}>"


ExecuteOutcome = Union[Result, bool]


class BaseAdapter(ABC):
    """Base class for database adapters.

    An adapter owns exactly one connection, opened during construction.
    Statement failures never raise: ``execute`` returns False and the driver
    message is kept for ``get_last_error()``. Failures that end the session
    (connect errors, missing capabilities, use after disconnect) raise.
    """

    backend_name: str = "generic"
    error_label: str = "database"
    default_port: Optional[int] = None
    identifier_quotes: Tuple[str, str] = ('"', '"')
    begin_statement: str = "BEGIN"
    commit_statement: str = "COMMIT"
    rollback_statement: str = "ROLLBACK"
    last_insert_id_query: str = ""
    affected_rows_query: str = ""

    def __init__(self, config: DatabaseConfig) -> None:
        """Initialize the adapter and connect.

        Args:
            config: Database configuration.

        Raises:
            DatabaseConnectionError: If the connection cannot be opened.
        """
        self.config = config
        self.port: Optional[int] = config.port if config.port is not None else self.default_port

        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None
        self.db_name: Optional[str] = None
        self.transaction_depth = 0
        self._last_error = ""
        self.last_query_error: Optional[QueryError] = None

        self.connect()

    @abstractmethod
    def build_connection_string(self) -> str:
        """Build the SQLAlchemy connection URL.

        Returns:
            Database connection string.
        """
        pass

    @abstractmethod
    def get_driver_name(self) -> str:
        """Get the DBAPI driver name for this adapter."""
        pass

    def _get_engine_options(self) -> Dict[str, Any]:
        """Get backend-specific ``create_engine`` keyword arguments."""
        return {}

    # Connection lifecycle

    def connect(self) -> None:
        """Open the connection and select the configured default database.

        Raises:
            DatabaseConnectionError: If the driver fails to connect.
        """
        try:
            self._engine = create_engine(
                self.build_connection_string(),
                poolclass=NullPool,
                **self._get_engine_options(),
            )
            connection = self._engine.connect()
            # The adapter issues BEGIN/COMMIT itself.
            connection.execution_options(isolation_level="AUTOCOMMIT")
            self._connection = connection
        except SQLAlchemyError as e:
            self._dispose_engine()
            raise DatabaseConnectionError(
                self.backend_name,
                self.config.host,
                self.port,
                self.config.username,
                reason=self._error_text(e),
            ) from e

        logger.info(f"Connected to {self.backend_name} at {self._describe_target()}")

        if self.config.db_name:
            self.select_database(self.config.db_name)
        else:
            self.db_name = None

    def disconnect(self) -> None:
        """Release the connection. Safe to call more than once."""
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._connection = None
            self._dispose_engine()
            self.transaction_depth = 0
            logger.info(f"Disconnected from {self.backend_name} at {self._describe_target()}")

    close = disconnect

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def _dispose_engine(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def _describe_target(self) -> str:
        return f"{self.config.host}:{self.port}"

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise DatabaseError(
                f"{self.backend_name} adapter is disconnected",
                database_type=self.backend_name,
            )
        return self._connection

    def __enter__(self) -> "BaseAdapter":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.disconnect()

    # Database selection

    def select_database(self, name: str) -> bool:
        """Switch the active database.

        Returns:
            True if the database is now selected, False otherwise.
        """
        if name == self.db_name:
            return True
        if not self._select_database(name):
            return False
        self.db_name = name
        logger.debug(f"Selected database '{name}' on {self.backend_name}")
        return True

    def _select_database(self, name: str) -> bool:
        return self.execute(f"USE {self.quote_identifier(name)}") is not False

    # Quoting

    def quote(self, value: Any) -> str:
        """Quote a value for inclusion in a SQL statement.

        None, booleans and SqlFunction markers map to SQL literals, binary
        values to hex literals; everything else becomes an escaped string
        literal.
        """
        if value is None:
            return 'NULL'
        elif value is False:
            return '0'
        elif value is True:
            return '1'
        elif isinstance(value, SqlFunction):
            return str(value)
        elif isinstance(value, (bytes, bytearray, memoryview)):
            return self._quote_bytes(bytes(value))
        return self._quote_string(str(value))

    def _quote_string(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def _quote_bytes(self, value: bytes) -> str:
        return f"X'{value.hex()}'"

    def quote_identifier(self, name: str) -> str:
        """Wrap an identifier in the backend's delimiters.

        Embedded delimiter characters are stripped, not escaped.
        """
        opening, closing = self.identifier_quotes
        for delimiter in {opening, closing}:
            name = name.replace(delimiter, '')
        return f"{opening}{name}{closing}"

    backtick = quote_identifier

    def quote_column(self, name: str) -> str:
        """Quote a possibly table-qualified column name (``table.column``)."""
        return '.'.join(self.quote_identifier(part) for part in name.split('.'))

    def build_where_sql(self, fields: Mapping[str, Any]) -> str:
        """Build an AND-conjunction of equality tests from a field/value mapping."""
        clauses = []
        for field, value in fields.items():
            column = self.quote_column(field)
            if value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = {self.quote(value)}")
        return ' AND '.join(clauses)

    # Statement execution

    def execute(self, sql: str) -> ExecuteOutcome:
        """Run a statement.

        Returns:
            A Result for statements producing rows, True for other successful
            statements, False on failure (see ``get_last_error()``).
        """
        connection = self._require_connection()
        logger.debug(f"{self.backend_name}: {sql}")

        try:
            cursor = connection.exec_driver_sql(
                sql, execution_options={"no_parameters": True}
            )
            outcome = self._wrap_cursor(cursor)
        except SQLAlchemyError as e:
            return self._record_failure(sql, self._error_text(e))

        self._clear_error()
        return outcome

    query = execute

    def can_execute_prepared(self) -> bool:
        """Whether this backend supports ``execute_prepared``."""
        return False

    def execute_prepared(
        self,
        sql: str,
        parameters: Sequence[Any],
        type_hints: str = '',
    ) -> ExecuteOutcome:
        """Prepare ``sql``, bind ``parameters`` positionally and execute.

        Args:
            sql: Statement with ``?`` placeholders.
            parameters: Values bound in placeholder order.
            type_hints: One character per parameter (``s``, ``i``, ``d``, ``b``);
                empty binds every parameter as a string.

        Returns:
            Same as ``execute``.

        Raises:
            UnsupportedOperation: If the backend has no prepared statements.
        """
        if not self.can_execute_prepared():
            raise UnsupportedOperation(
                f"Prepared statements are not supported by {self.backend_name}",
                database_type=self.backend_name,
            )

        connection = self._require_connection()
        logger.debug(f"{self.backend_name} prepared: {sql} {list(parameters)!r}")

        try:
            statement = self._prepare(sql, list(parameters), type_hints)
        except (ValueError, TypeError) as e:
            return self._record_failure(sql, str(e))

        try:
            cursor = connection.execute(statement)
            outcome = self._wrap_cursor(cursor)
        except SQLAlchemyError as e:
            return self._record_failure(sql, self._error_text(e))

        self._clear_error()
        return outcome

    def _prepare(self, sql: str, parameters: List[Any], type_hints: str) -> TextClause:
        """Turn ``?`` placeholders into typed bind parameters.

        Raises:
            ValueError: When placeholders, parameters and type hints disagree.
        """
        statement_sql, placeholder_count = convert_placeholders(sql)
        if placeholder_count != len(parameters):
            raise ValueError(
                "Number of variables doesn't match number of parameters in prepared statement"
            )

        if not type_hints:
            type_hints = 's' * len(parameters)
        if len(type_hints) != len(parameters):
            raise ValueError("Number of elements in type definition string doesn't match number of bind variables")

        binds = []
        for position, (hint, value) in enumerate(zip(type_hints, parameters)):
            if hint not in PARAMETER_TYPES:
                raise ValueError(f"Undefined fieldtype {hint} (parameter {position + 1})")
            type_, coerce = PARAMETER_TYPES[hint]
            if value is not None and not isinstance(value, coerce):
                value = value.encode('utf-8') if coerce is bytes and isinstance(value, str) else coerce(value)
            binds.append(bindparam(f"p{position}", value=value, type_=type_))

        return text(statement_sql).bindparams(*binds)

    def _wrap_cursor(self, cursor: CursorResult) -> ExecuteOutcome:
        if cursor.returns_rows:
            return Result.from_cursor(cursor)
        cursor.close()
        return True

    def query_scalar(self, sql: str) -> Any:
        """Get the first column of the first row, or None."""
        result = self.execute(sql)
        if isinstance(result, bool):
            return None
        row = result.next_row()
        if not row:
            return None
        return next(iter(row.values()))

    get_result = query_scalar

    def get_last_insert_id(self) -> Optional[int]:
        """Get the identity generated by the last insert on this session."""
        value = self.query_scalar(self.last_insert_id_query)
        return int(value) if value is not None else None

    def get_affected_row_count(self) -> Optional[int]:
        """Get the number of rows touched by the last data modification."""
        value = self.query_scalar(self.affected_rows_query)
        return int(value) if value is not None else None

    def get_found_row_count(self) -> int:
        """Get the rows the last SELECT would have matched without LIMIT.

        Raises:
            UnsupportedOperation: On backends without found-row support.
        """
        raise UnsupportedOperation(
            f"Found row count is not implemented for {self.backend_name}",
            database_type=self.backend_name,
        )

    # Error state

    def _record_failure(self, sql: str, message: str) -> bool:
        self._last_error = message
        self.last_query_error = QueryError(message, sql=sql, database_type=self.backend_name)
        logger.warning(f"{self.backend_name} statement failed: {message}")
        return False

    def _clear_error(self) -> None:
        self._last_error = ''
        self.last_query_error = None

    @staticmethod
    def _error_text(error: Exception) -> str:
        """Extract the driver's own message from a wrapped exception."""
        original = getattr(error, 'orig', None)
        if original is None:
            return str(error)
        args = getattr(original, 'args', ())
        if len(args) == 2 and isinstance(args[0], int):
            message = args[1]
            if isinstance(message, bytes):
                message = message.decode('utf-8', errors='replace')
            return str(message)
        return str(original)

    def get_last_error(self) -> str:
        """Get the error text captured from the last failed statement."""
        if self.in_transaction():
            return f"Transaction Failed with {self.error_label} error: {self._last_error}"
        return self._last_error

    # Transactions

    def in_transaction(self) -> bool:
        return self.transaction_depth > 0

    def start_transaction(self) -> None:
        """Begin a transaction, or nest one level deeper in the open one."""
        if self.transaction_depth == 0:
            self.execute(self.begin_statement)
        self.transaction_depth += 1
        logger.debug(f"Transaction depth {self.transaction_depth} on {self.backend_name}")

    def commit(self) -> None:
        """Close one nesting level; COMMIT when the outermost level closes.

        Calling commit at depth 0 issues COMMIT again.
        """
        if self.transaction_depth > 0:
            self.transaction_depth -= 1
        if self.transaction_depth == 0:
            self.execute(self.commit_statement)

    def rollback(self) -> None:
        """ROLLBACK and unwind every nesting level."""
        self.execute(self.rollback_statement)
        self.transaction_depth = 0

    @contextmanager
    def transaction(self) -> Generator["BaseAdapter", None, None]:
        """Run a block inside a (possibly nested) transaction.

        Commits on normal exit. Any exception rolls back the whole nesting
        and is re-raised.
        """
        self.start_transaction()
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        self.commit()

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self._describe_target()} "
            f"db={self.db_name!r} depth={self.transaction_depth}>"
        )


def convert_placeholders(sql: str) -> Tuple[str, int]:
    """Rewrite ``?`` placeholders outside quoted text as ``:p0``, ``:p1``...

    Literal colons are escaped so ``text()`` does not treat them as binds.

    Returns:
        The rewritten SQL and the number of placeholders found.
    """
    parts: List[str] = []
    count = 0
    quote_char: Optional[str] = None
    index = 0

    while index < len(sql):
        char = sql[index]
        if quote_char:
            parts.append('\\:' if char == ':' else char)
            if char == '\\' and index + 1 < len(sql):
                index += 1
                parts.append('\\:' if sql[index] == ':' else sql[index])
            elif char == quote_char:
                quote_char = None
        elif char in ("'", '"', '`'):
            quote_char = char
            parts.append(char)
        elif char == '?':
            parts.append(f":p{count}")
            count += 1
        elif char == ':':
            parts.append('\\:')
        else:
            parts.append(char)
        index += 1

    return ''.join(parts), count
