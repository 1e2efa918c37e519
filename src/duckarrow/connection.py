"""
Engine connection handling.

This module provides the primary interfaces for connecting to DuckDB:
1. The `connect()` function for creating new connections
2. The `ConnectionWrapper` class that wraps DuckDB connections

The wrapper is the shared reference statement handles hold: handles never
close it, and it is not synchronized internally. Whoever owns the wrapper
(a session or a pool) makes sure only one statement uses it at a time.
"""
import logging
from typing import Any, Self

import duckdb
from duckarrow.options import DatabaseOptions, load_options
from duckarrow.statement import StatementHandle
from duckarrow.strategy import EngineStrategy, get_strategy
from duckarrow.utils import quote_literal

logger = logging.getLogger(__name__)


class ConnectionWrapper:
    """Wraps a DuckDB connection object to track calls and execution time

    This class provides a thin wrapper around DuckDB connection objects that:
    1. Tracks statement execution counts and timing
    2. Creates prepared statement handles bound to this connection
    3. Supports context manager protocol for explicit resource management
    4. Provides access to the underlying connection via dbapi_connection
    5. Delegates attribute access to the DuckDB connection object
    """

    def __init__(self, connection: duckdb.DuckDBPyConnection,
                 options: DatabaseOptions | None = None) -> None:
        """Initialize a connection wrapper

        Args:
            connection: DuckDB connection object to wrap
            options: The DatabaseOptions used to create this connection
        """
        self.dbapi_connection = connection
        self.options = options or DatabaseOptions()
        self.dialect = self.options.drivername
        self.calls = 0
        self.time = 0
        self._closed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Close the connection when exiting the context manager
        """
        try:
            self.close()
            logger.debug('Closed connection via context manager')
        except duckdb.Error as e:
            logger.debug(f'Error closing connection in __exit__: {e}')

    def __getattr__(self, name: str) -> Any:
        """Delegate attribute access to the DuckDB connection.
        """
        return getattr(self.dbapi_connection, name)

    @property
    def strategy(self) -> EngineStrategy:
        return get_strategy(self.dialect)

    @property
    def closed(self) -> bool:
        return self._closed

    def statement(self, sql: str) -> StatementHandle:
        """Prepare a statement on this connection.

        Raises
            PrepareError: The engine rejected the statement
        """
        return StatementHandle.create(self, sql, self.strategy)

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics

        Args:
            elapsed: Time in seconds that the statement took to execute
        """
        self.time += elapsed
        self.calls += 1

    def interrupt(self) -> None:
        """Cancel the statement currently running on this connection.

        The interrupted execute or fetch raises ExecutionError or FetchError
        with `cancelled` set.
        """
        logger.debug('Interrupting running statement')
        self.strategy.interrupt(self.dbapi_connection)

    def time_zone(self) -> str | None:
        """Current session time zone."""
        return self.strategy.time_zone(self.dbapi_connection)

    def close(self) -> None:
        """Close the DuckDB connection and log statistics."""
        if self._closed:
            return
        self.dbapi_connection.close()
        self._closed = True
        logger.debug(f'Connection closed: {self.calls} statements in {self.time:.2f}s '
                     f'(avg: {self.time/max(1,self.calls):.3f}s per statement)')


def configure_connection(connection: duckdb.DuckDBPyConnection,
                         options: DatabaseOptions) -> None:
    """Apply session settings from the options to a new connection.
    """
    if options.time_zone:
        connection.execute(f'SET TimeZone = {quote_literal(options.time_zone)}')
        logger.debug(f'Session time zone set to {options.time_zone}')


@load_options(cls=DatabaseOptions)
def connect(options: DatabaseOptions | dict[str, Any] | str | None = None,
            config: Any | None = None, **kw: Any) -> ConnectionWrapper:
    """Connect to a DuckDB database

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dotted name of an option set in `config`
                - Dictionary of options
                - None, with options specified as keyword arguments
        config: Configuration object (for loading named option sets)
        **kw: Additional keyword arguments to override options

    Returns
        ConnectionWrapper object for the database
    """
    connection = duckdb.connect(database=options.database, read_only=options.read_only,
                                config=options.engine_config or {})
    configure_connection(connection, options)
    logger.debug(f'Connected to {options.database}')

    return ConnectionWrapper(connection, options)
