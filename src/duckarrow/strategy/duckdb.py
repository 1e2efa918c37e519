"""
DuckDB strategy implementation.

DuckDB's Python API has no prepared-statement object, so a handle owns the
parsed `Statement` from `extract_statements` and every execution runs that
object. Resolution happens at prepare time: statements DuckDB accepts under a
SQL-level `PREPARE` are prepared there and deallocated again; DDL and CALL
are planned under `EXPLAIN` with NULL placeholders. Either way binder errors
(unknown tables, columns, functions) surface before the first execution.
Session statements (SET, PRAGMA, transaction control) are bound when they run.

Describe is engine-derived. SELECT is wrapped in `LIMIT 0`; INSERT, UPDATE and
DELETE without RETURNING report the engine's single BIGINT "Count" column;
other statements whose effects a rollback undoes are run once inside a
transaction that is always rolled back. Results are streamed through the
engine's Arrow record batch reader, which takes ownership of the query result
so later statements on the same connection do not invalidate it.
"""
import itertools
import logging
from typing import Any

import duckdb
import pyarrow as pa
from duckarrow.adapters.column_info import ClientProperties, Column
from duckarrow.adapters.column_info import columns_from_description
from duckarrow.adapters.type_mapping import LogicalType, LogicalTypeId
from duckarrow.exceptions import PrepareError, SchemaExportError
from duckarrow.strategy.base import EngineResult, EngineStrategy, Params
from duckarrow.strategy.base import PreparedStatement, register_strategy

logger = logging.getLogger(__name__)

# Statement kinds whose result is a single BIGINT "Count" column unless they
# carry a RETURNING clause
CHANGED_ROWS_STATEMENTS = frozenset({'INSERT', 'UPDATE', 'DELETE', 'MERGE_INTO'})

# Statement kinds a rolled-back transaction undoes completely; only these are
# run to learn their result columns
TRANSACTIONAL_STATEMENTS = frozenset({
    'SELECT', 'INSERT', 'UPDATE', 'DELETE', 'MERGE_INTO', 'CREATE', 'CREATE_FUNC',
    'DROP', 'ALTER', 'EXPLAIN', 'CALL',
    })

# Statement kinds planned under EXPLAIN when PREPARE does not accept them
PLANNED_STATEMENTS = TRANSACTIONAL_STATEMENTS - {'EXPLAIN'}

_COUNT_COLUMN = Column('Count', LogicalType(LogicalTypeId.BIGINT))

_statement_ids = itertools.count(1)


def _statement_body(sql: str) -> str:
    """SQL text without the trailing terminator."""
    return sql.strip().rstrip(';').rstrip()


def _parameter_names(statement: Any) -> tuple[str, ...]:
    """Parameter identifiers of a parsed statement, positional ones first."""
    names = getattr(statement, 'named_parameters', None) or ()
    return tuple(sorted(names, key=lambda n: (not n.isdigit(), int(n) if n.isdigit() else 0, n)))


def _placeholder_params(prepared: PreparedStatement) -> Params:
    """NULL for every parameter, used to resolve and describe parametric statements."""
    if not prepared.parameter_names:
        return None
    if prepared.has_named_parameters:
        return dict.fromkeys(prepared.parameter_names)
    return [None] * prepared.parameter_count


def _parses(connection: duckdb.DuckDBPyConnection, sql: str) -> bool:
    """True when the text is exactly one statement the parser accepts."""
    try:
        return len(connection.extract_statements(sql)) == 1
    except duckdb.Error:
        return False


def _has_returning(sql: str) -> bool:
    """True when RETURNING appears as a keyword token (not in a string or comment)."""
    tokens = duckdb.tokenize(sql)
    ends = [start for start, _ in tokens[1:]] + [len(sql)]
    for (start, kind), end in zip(tokens, ends):
        if kind == duckdb.token_type.keyword and sql[start:end].strip().upper() == 'RETURNING':
            return True
    return False


def _result_time_zone(schema: pa.Schema) -> str | None:
    """Time zone the engine stamped on its timezone-aware columns."""
    for arrow_field in schema:
        if pa.types.is_timestamp(arrow_field.type) and arrow_field.type.tz:
            return arrow_field.type.tz
    return None


class DuckDBResult(EngineResult):
    """Result cursor backed by a pyarrow RecordBatchReader.
    """

    def __init__(self, reader: pa.RecordBatchReader | None, columns: list[Column],
                 properties: ClientProperties) -> None:
        super().__init__(columns, properties)
        self._reader = reader

    def fetch_chunk(self) -> pa.RecordBatch | None:
        if self._reader is None:
            return None
        try:
            return self._reader.read_next_batch()
        except StopIteration:
            self.close()
            return None

    def close(self) -> None:
        if self._reader is not None:
            reader, self._reader = self._reader, None
            reader.close()


@register_strategy('duckdb')
class DuckDBStrategy(EngineStrategy):
    """DuckDB-specific statement operations.
    """

    error_types = (duckdb.Error, pa.ArrowException)

    def prepare(self, connection: duckdb.DuckDBPyConnection, sql: str) -> PreparedStatement:
        statements = connection.extract_statements(sql)
        if len(statements) != 1:
            raise PrepareError(sql, f'Expected exactly one statement, found {len(statements)}')

        statement = statements[0]
        prepared = PreparedStatement(
            sql=sql,
            statement_type=statement.type.name,
            name=f'duckarrow_stmt_{next(_statement_ids)}',
            parameter_names=_parameter_names(statement),
            native=statement,
        )
        self._resolve(connection, prepared)

        logger.debug(f'Prepared {prepared.statement_type} statement '
                     f'({prepared.parameter_count} parameters) as {prepared.name}')
        return prepared

    def _resolve(self, connection: duckdb.DuckDBPyConnection,
                 prepared: PreparedStatement) -> None:
        """Bind and plan the statement without running it."""
        body = _statement_body(prepared.sql)

        prepare_sql = f'PREPARE {prepared.name} AS {body}'
        if _parses(connection, prepare_sql):
            connection.execute(prepare_sql)
            connection.execute(f'DEALLOCATE {prepared.name}')
            return

        explain_sql = f'EXPLAIN {body}'
        if prepared.statement_type in PLANNED_STATEMENTS and _parses(connection, explain_sql):
            connection.execute(explain_sql, _placeholder_params(prepared))
            return

        logger.debug(f'{prepared.statement_type} statement is bound when it runs')

    def describe(self, connection: duckdb.DuckDBPyConnection,
                 prepared: PreparedStatement) -> list[Column]:
        kind = prepared.statement_type
        if kind in CHANGED_ROWS_STATEMENTS and not _has_returning(prepared.sql):
            return [_COUNT_COLUMN]

        params = _placeholder_params(prepared)
        if kind == 'SELECT':
            # newlines keep a trailing line comment from swallowing the closing paren
            sql = f'SELECT * FROM (\n{_statement_body(prepared.sql)}\n) AS described LIMIT 0'
            if _parses(connection, sql):
                connection.execute(sql, params)
                return columns_from_description(connection.description)

        if kind not in TRANSACTIONAL_STATEMENTS:
            raise SchemaExportError(f'{kind} statements cannot be described before they run')
        return self._describe_rolled_back(connection, prepared, params)

    def _describe_rolled_back(self, connection: duckdb.DuckDBPyConnection,
                              prepared: PreparedStatement, params: Params) -> list[Column]:
        """Run the statement inside a transaction that is always rolled back.

        Raises the engine's TransactionException when the connection is
        already inside an explicit transaction.
        """
        connection.begin()
        try:
            connection.execute(prepared.native, params)
            return columns_from_description(connection.description)
        finally:
            connection.rollback()

    def execute(self, connection: duckdb.DuckDBPyConnection, prepared: PreparedStatement,
                params: Params, rows_per_batch: int) -> DuckDBResult:
        connection.execute(prepared.native, params)
        if connection.description is None:
            return DuckDBResult(None, [], ClientProperties())

        columns = columns_from_description(connection.description)
        reader = connection.to_arrow_reader(rows_per_batch)
        properties = ClientProperties(time_zone=_result_time_zone(reader.schema))
        return DuckDBResult(reader, columns, properties)

    def deallocate(self, connection: duckdb.DuckDBPyConnection,
                   prepared: PreparedStatement) -> None:
        prepared.native = None
        logger.debug(f'Released {prepared.name}')

    def time_zone(self, connection: duckdb.DuckDBPyConnection) -> str | None:
        row = connection.execute("SELECT current_setting('TimeZone')").fetchone()
        return row[0] if row else None

    def interrupt(self, connection: duckdb.DuckDBPyConnection) -> None:
        connection.interrupt()
