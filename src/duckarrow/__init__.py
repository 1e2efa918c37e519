"""
Arrow interchange for DuckDB prepared statements.

Statements can be driven through handles:

    stmt = cn.statement(sql)        # prepare, PrepareError on failure
    stmt.get_schema()               # Arrow schema before execution
    stmt.execute(*args)             # bind and run, ExecutionError on failure
    stmt.fetch_result()             # ResultBatch per chunk, then NO_DATA
    stmt.execute_update(*args)      # affected-row count

or through the module functions, which prepare and release a statement per
call: db.execute(cn, sql, *args), db.select(cn, sql, *args), ...
"""
__version__ = '0.1.0'


from duckarrow.adapters import ClientProperties, Column, LogicalType
from duckarrow.adapters import LogicalTypeId, map_type, parse_logical_type
from duckarrow.adapters import smallest_decimal
from duckarrow.connection import ConnectionWrapper, connect
from duckarrow.exceptions import DuckArrowError, EngineFault, ExecutionError
from duckarrow.exceptions import FetchError, PrepareError, ProgrammingError
from duckarrow.exceptions import SchemaExportError, StatementClosedError
from duckarrow.exceptions import is_cancellation
from duckarrow.options import DatabaseOptions
from duckarrow.query import describe, execute, iter_batches, select
from duckarrow.query import select_arrow
from duckarrow.query import select_row, select_scalar
from duckarrow.result import NO_DATA, ResultBatch, affected_row_count
from duckarrow.statement import StatementHandle, StatementState


delete = execute
insert = execute
update = execute


def prepare(cn: ConnectionWrapper, sql: str) -> StatementHandle:
    """Prepare a statement handle on a connection.
    """
    return StatementHandle.create(cn, sql)


__all__ = [
    'connect',
    'ConnectionWrapper',
    'DatabaseOptions',
    'prepare',
    'execute',
    'delete',
    'insert',
    'update',
    'describe',
    'iter_batches',
    'select',
    'select_arrow',
    'select_row',
    'select_scalar',
    'StatementHandle',
    'StatementState',
    'ResultBatch',
    'NO_DATA',
    'affected_row_count',
    'ClientProperties',
    'Column',
    'LogicalType',
    'LogicalTypeId',
    'map_type',
    'parse_logical_type',
    'smallest_decimal',
    'DuckArrowError',
    'PrepareError',
    'ExecutionError',
    'FetchError',
    'SchemaExportError',
    'ProgrammingError',
    'StatementClosedError',
    'EngineFault',
    'is_cancellation',
]
