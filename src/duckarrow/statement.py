"""
Prepared statement handles.

A StatementHandle owns one engine prepared statement and its current result
cursor. It shares (and never closes) the connection it was created on. A
handle is single-writer: execute, fetch and close must not be called
concurrently from multiple call sites.

    with StatementHandle.create(cn, 'SELECT * FROM t WHERE id > ?') as stmt:
        schema = stmt.get_schema()
        stmt.execute(10)
        while (batch := stmt.fetch_result()) is not NO_DATA:
            consume(batch)
"""
import enum
import logging
import time
import weakref
from collections.abc import Iterator, Mapping
from functools import wraps
from typing import Any, Self

import pyarrow as pa
from duckarrow.adapters.column_info import ClientProperties, to_arrow_schema
from duckarrow.adapters.type_conversion import TypeConverter
from duckarrow.exceptions import ExecutionError, FetchError, PrepareError
from duckarrow.exceptions import ProgrammingError, SchemaExportError
from duckarrow.exceptions import StatementClosedError, is_cancellation
from duckarrow.result import NO_DATA, ResultBatch, ResultStreamer, _NoData
from duckarrow.result import affected_row_count
from duckarrow.strategy import EngineStrategy, PreparedStatement, get_db_strategy
from duckarrow.strategy.base import Params
from duckarrow.utils import get_raw_connection

logger = logging.getLogger(__name__)

# One engine vector; the engine materializes result chunks of this size
DEFAULT_ROWS_PER_BATCH = 2048


class StatementState(enum.Enum):
    CREATED = 'created'
    EXECUTED = 'executed'
    EXHAUSTED = 'exhausted'
    CLOSED = 'closed'


def dumpsql(func):
    """Decorator for logging statement executions and their parameters."""
    @wraps(func)
    def wrapper(self, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{self.sql}\nargs: {args}')
        try:
            return func(self, *args, **kwargs)
        except Exception:
            logger.error(f'Error with statement:\nSQL:\n{self.sql}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            if hasattr(self.connection, 'addcall'):
                self.connection.addcall(elapsed)
            logger.debug(f'Statement time: {elapsed:.4f}s')
    return wrapper


def _release(strategy: EngineStrategy, raw_connection: Any,
             prepared: PreparedStatement) -> None:
    """Deallocate an engine prepared statement; runs at most once per handle."""
    try:
        strategy.deallocate(raw_connection, prepared)
    except strategy.error_types as exc:
        logger.debug(f'Could not deallocate {prepared.name}: {exc}')


def _normalize_params(params: tuple[Any, ...]) -> Params:
    """Positional arguments, one sequence, or one mapping -> engine params.

    A single list or tuple argument is taken as the whole parameter sequence,
    so `execute([1, 2])` binds two parameters. To bind one LIST parameter,
    wrap it: `execute([[1, 2]])` or `execute(([1, 2],))`.
    """
    if not params:
        return None
    if len(params) == 1 and isinstance(params[0], Mapping):
        return TypeConverter.convert_params(params[0])
    if len(params) == 1 and isinstance(params[0], (list, tuple)):
        return TypeConverter.convert_params(params[0])
    return TypeConverter.convert_params(params)


class StatementHandle:
    """One prepared statement against one shared connection.

    States: CREATED -> EXECUTED -> EXHAUSTED, with CLOSED reachable from any
    state. A failed execute leaves the handle usable; the schema stays
    queryable and the statement may be executed again.
    """

    def __init__(self, connection: Any, prepared: PreparedStatement,
                 strategy: EngineStrategy) -> None:
        """Wrap an already prepared statement; use `create` instead.

        Args:
            connection: ConnectionWrapper or raw engine connection (shared)
            prepared: Engine prepared statement (owned)
            strategy: Engine strategy that produced the statement
        """
        self.connection = connection
        self.strategy = strategy
        self.state = StatementState.CREATED
        self._raw = get_raw_connection(connection)
        self._prepared = prepared
        self._params: Params = None
        self._streamer: ResultStreamer | None = None
        self._finalizer = weakref.finalize(self, _release, strategy, self._raw, prepared)

    @classmethod
    def create(cls, connection: Any, sql: str,
               strategy: EngineStrategy | None = None) -> Self:
        """Prepare SQL text on a connection.

        Args:
            connection: ConnectionWrapper or raw engine connection
            sql: UTF-8 SQL text of a single statement
            strategy: Engine strategy, resolved from the connection if omitted

        Returns
            StatementHandle in the CREATED state

        Raises
            PrepareError: The engine rejected the statement; no handle exists
        """
        strategy = strategy or get_db_strategy(connection)
        try:
            prepared = strategy.prepare(get_raw_connection(connection), sql)
        except strategy.error_types as exc:
            logger.debug(f'Prepare failed for: {sql}')
            raise PrepareError(sql, str(exc)) from exc
        return cls(connection, prepared, strategy)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __iter__(self) -> Iterator[ResultBatch]:
        return self.iter_batches()

    def __repr__(self) -> str:
        return f'StatementHandle({self.sql!r}, state={self.state.value})'

    @property
    def sql(self) -> str:
        return self._prepared.sql

    @property
    def engine_statement(self) -> PreparedStatement:
        """The engine prepared statement owned by this handle."""
        return self._prepared

    @property
    def closed(self) -> bool:
        return self.state is StatementState.CLOSED

    @property
    def rows_per_batch(self) -> int:
        options = getattr(self.connection, 'options', None)
        return getattr(options, 'rows_per_batch', DEFAULT_ROWS_PER_BATCH)

    def _check_open(self) -> None:
        if self.state is StatementState.CLOSED:
            raise StatementClosedError(f'Statement is closed: {self.sql}')

    def _close_stream(self) -> None:
        if self._streamer is not None:
            streamer, self._streamer = self._streamer, None
            streamer.close()

    def bind(self, *params: Any) -> Self:
        """Stage parameters for the next `execute()` called without arguments.

        Accepts positional values, one sequence of values, or one mapping of
        named values. A lone list is the parameter sequence, not a LIST value;
        pass `[[1, 2]]` to bind the list `[1, 2]` as a single parameter.
        """
        self._check_open()
        self._params = _normalize_params(params)
        return self

    @dumpsql
    def execute(self, *params: Any) -> Self:
        """Bind parameters and run the statement.

        Parameters given here replace any staged by `bind`; either way they
        apply to this execution only. Any previous result is discarded.

        Raises
            ExecutionError: The engine reported a runtime fault
        """
        self._check_open()
        if params:
            self.bind(*params)
        bound, self._params = self._params, None

        self._close_stream()
        self.state = StatementState.CREATED
        try:
            result = self.strategy.execute(self._raw, self._prepared, bound, self.rows_per_batch)
        except self.strategy.error_types as exc:
            raise ExecutionError(self.sql, str(exc), cancelled=is_cancellation(exc)) from exc

        self._streamer = ResultStreamer(result, self.strategy.error_types)
        self.state = StatementState.EXECUTED
        return self

    def fetch_result(self) -> ResultBatch | _NoData:
        """Pull the next result chunk.

        Returns
            ResultBatch, or NO_DATA once the result is exhausted (repeatable)

        Raises
            FetchError: The engine faulted while producing the chunk
            ProgrammingError: No successful execute precedes this call
        """
        self._check_open()
        if self._streamer is None:
            raise ProgrammingError('fetch_result() requires a successful execute()')

        try:
            batch = self._streamer.fetch()
        except FetchError:
            self.state = StatementState.EXHAUSTED
            raise

        if batch is NO_DATA:
            self.state = StatementState.EXHAUSTED
        return batch

    def iter_batches(self) -> Iterator[ResultBatch]:
        """Yield batches until the result is exhausted."""
        while (batch := self.fetch_result()) is not NO_DATA:
            yield batch

    def execute_update(self, *params: Any) -> int:
        """Run a non-query statement and return its affected-row count.

        Executes, then fetches exactly one batch: no batch counts as 0 rows,
        the engine's single BIGINT cell is taken as the count, and any other
        batch shape reports its row count.
        """
        self.execute(*params)
        rowcount = affected_row_count(self.fetch_result())
        logger.debug(f'Statement affected {rowcount} rows')
        return rowcount

    def get_schema(self) -> pa.Schema:
        """Schema of the statement's result, available before execution.

        Column names and types come from the prepared statement; time zone
        metadata reflects the connection's current session setting. A new
        schema object is built on every call.

        Raises
            SchemaExportError: The statement could not be described
        """
        self._check_open()
        try:
            if self._prepared.columns is None:
                self._prepared.columns = self.strategy.describe(self._raw, self._prepared)
            time_zone = self.strategy.time_zone(self._raw)
        except self.strategy.error_types as exc:
            raise SchemaExportError(f'Could not describe statement: {exc}') from exc
        return to_arrow_schema(self._prepared.columns, ClientProperties(time_zone=time_zone))

    def result_schema(self) -> pa.Schema:
        """Schema of the batches produced by the current execution."""
        self._check_open()
        if self._streamer is None:
            raise ProgrammingError('result_schema() requires a successful execute()')
        return self._streamer.schema

    def close(self) -> None:
        """Release the prepared statement and any pending result; idempotent.

        The shared connection is left open.
        """
        if self.state is StatementState.CLOSED:
            return
        self._close_stream()
        self._finalizer()
        self._params = None
        self.state = StatementState.CLOSED
        logger.debug(f'Closed statement: {self.sql[:60]}')
