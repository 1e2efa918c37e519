"""
Query operations over prepared statements.

Each function prepares one statement, runs it, and releases it before
returning. They are the verbs a protocol layer maps its own
prepare/execute/fetch requests onto when it does not manage handles itself.
"""
import logging
from collections.abc import Iterator
from typing import Any

import pyarrow as pa
from duckarrow.connection import ConnectionWrapper
from duckarrow.exceptions import ProgrammingError
from duckarrow.options import use_iterdict_data_loader
from duckarrow.result import ResultBatch
from duckarrow.statement import StatementHandle

logger = logging.getLogger(__name__)


def execute(cn: ConnectionWrapper, sql: str, *args: Any) -> int:
    """Execute a statement with the given parameters and return affected row count.
    """
    with StatementHandle.create(cn, sql) as stmt:
        return stmt.execute_update(*args)


def describe(cn: ConnectionWrapper, sql: str) -> pa.Schema:
    """Result schema of a statement without committing any of its effects.
    """
    with StatementHandle.create(cn, sql) as stmt:
        return stmt.get_schema()


def iter_batches(cn: ConnectionWrapper, sql: str, *args: Any) -> Iterator[ResultBatch]:
    """Execute a query and yield its result batches as they are fetched.

    The statement is released when the generator is exhausted or closed.
    """
    with StatementHandle.create(cn, sql) as stmt:
        stmt.execute(*args)
        yield from stmt.iter_batches()


def select_arrow(cn: ConnectionWrapper, sql: str, *args: Any) -> pa.Table:
    """Execute a query and collect every batch into an Arrow table.
    """
    with StatementHandle.create(cn, sql) as stmt:
        stmt.execute(*args)
        batches = [batch.record_batch for batch in stmt.iter_batches()]
        table = pa.Table.from_batches(batches, schema=stmt.result_schema())
    logger.debug(f'Select query returned {table.num_rows} rows in {len(batches)} batches')
    return table


def select(cn: ConnectionWrapper, sql: str, *args: Any, **kwargs: Any) -> Any:
    """Execute a query and load the result with the connection's data loader.
    """
    table = select_arrow(cn, sql, *args)
    return cn.options.data_loader(table, **kwargs)


@use_iterdict_data_loader
def select_row(cn: ConnectionWrapper, sql: str, *args: Any) -> dict[str, Any]:
    """Execute a query and return a single row as a dictionary.

    Raises
        ProgrammingError: If the query returns zero or multiple rows
    """
    data = select(cn, sql, *args)
    if len(data) != 1:
        raise ProgrammingError(f'Expected one row, got {len(data)}')
    return data[0]


def select_scalar(cn: ConnectionWrapper, sql: str, *args: Any) -> Any:
    """Execute a query and return a single scalar value.

    Raises
        ProgrammingError: If the query returns zero or multiple rows
    """
    row = select_row(cn, sql, *args)
    result = next(iter(row.values()), None)
    logger.debug(f'Scalar query returned value of type {type(result).__name__}')
    return result
