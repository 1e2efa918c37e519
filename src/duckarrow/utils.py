"""Low-level connection utilities with no internal dependencies.

These utilities work with a ConnectionWrapper or a raw engine connection and
have no imports from other duckarrow modules, making them safe to import
without circular dependency concerns.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)


def get_dialect_name(obj: Any) -> str:
    """Get engine name for a connection wrapper or raw connection.
    """
    if hasattr(obj, 'dialect'):
        dialect = obj.dialect
        if isinstance(dialect, str):
            return dialect.lower()
        return str(dialect.name).lower()

    if hasattr(obj, 'dbapi_connection'):
        return get_dialect_name(obj.dbapi_connection)

    type_name = f'{type(obj).__module__}.{type(obj).__name__}'
    if 'duckdb' in type_name.lower():
        return 'duckdb'

    raise AttributeError(f'Cannot determine engine for {type(obj)}')


def get_raw_connection(connection: Any) -> Any:
    """Extract the raw engine connection from a wrapper."""
    return getattr(connection, 'dbapi_connection', connection)


def quote_literal(value: str) -> str:
    """Quote a string as a SQL literal.

    >>> quote_literal("it's")
    "'it''s'"
    """
    return "'" + str(value).replace("'", "''") + "'"
