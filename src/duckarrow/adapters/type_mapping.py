"""
Type resolution from DuckDB logical types to Arrow interchange types.

This module provides:

1. LogicalTypeId: the closed set of engine type tags
2. LogicalType: a tag plus its parameters (decimal width/scale)
3. parse_logical_type: read a LogicalType from DuckDB's type text
4. map_type: total mapping LogicalType -> pyarrow.DataType

Types with no Arrow counterpart (nested, enum, uuid, ...) map to the Arrow
null type, so one opaque column never prevents exporting the rest of a
schema. Documented assumptions that are kept as-is:

- TIME and TIMESTAMP_MS both map to a millisecond timestamp
- INTERVAL values are assumed to be microsecond durations
- UBIGINT maps to int64 with no range check
"""
import enum
import logging
import re
from dataclasses import dataclass
from typing import Any, Self

import pyarrow as pa

logger = logging.getLogger(__name__)


class LogicalTypeId(enum.Enum):
    """Engine-side type tags."""

    BOOLEAN = 'BOOLEAN'
    TINYINT = 'TINYINT'
    SMALLINT = 'SMALLINT'
    INTEGER = 'INTEGER'
    BIGINT = 'BIGINT'
    HUGEINT = 'HUGEINT'
    UTINYINT = 'UTINYINT'
    USMALLINT = 'USMALLINT'
    UINTEGER = 'UINTEGER'
    UBIGINT = 'UBIGINT'
    UHUGEINT = 'UHUGEINT'
    FLOAT = 'FLOAT'
    DOUBLE = 'DOUBLE'
    DECIMAL = 'DECIMAL'
    CHAR = 'CHAR'
    VARCHAR = 'VARCHAR'
    BLOB = 'BLOB'
    DATE = 'DATE'
    TIME = 'TIME'
    TIME_TZ = 'TIME WITH TIME ZONE'
    TIMESTAMP_SEC = 'TIMESTAMP_S'
    TIMESTAMP_MS = 'TIMESTAMP_MS'
    TIMESTAMP = 'TIMESTAMP'
    TIMESTAMP_NS = 'TIMESTAMP_NS'
    TIMESTAMP_TZ = 'TIMESTAMP WITH TIME ZONE'
    INTERVAL = 'INTERVAL'
    UUID = 'UUID'
    BIT = 'BIT'
    VARINT = 'VARINT'
    ENUM = 'ENUM'
    LIST = 'LIST'
    ARRAY = 'ARRAY'
    STRUCT = 'STRUCT'
    MAP = 'MAP'
    UNION = 'UNION'
    POINTER = 'POINTER'
    VALIDITY = 'VALIDITY'
    USER = 'USER'
    SQLNULL = 'NULL'
    ANY = 'ANY'
    UNKNOWN = 'UNKNOWN'
    INVALID = 'INVALID'


_ALIASES: dict[str, LogicalTypeId] = {
    'BOOL': LogicalTypeId.BOOLEAN,
    'LOGICAL': LogicalTypeId.BOOLEAN,
    'INT1': LogicalTypeId.TINYINT,
    'INT2': LogicalTypeId.SMALLINT,
    'SHORT': LogicalTypeId.SMALLINT,
    'INT': LogicalTypeId.INTEGER,
    'INT4': LogicalTypeId.INTEGER,
    'SIGNED': LogicalTypeId.INTEGER,
    'INT8': LogicalTypeId.BIGINT,
    'LONG': LogicalTypeId.BIGINT,
    'INT128': LogicalTypeId.HUGEINT,
    'UINT8': LogicalTypeId.UTINYINT,
    'UINT16': LogicalTypeId.USMALLINT,
    'UINT32': LogicalTypeId.UINTEGER,
    'UINT64': LogicalTypeId.UBIGINT,
    'UINT128': LogicalTypeId.UHUGEINT,
    'FLOAT4': LogicalTypeId.FLOAT,
    'REAL': LogicalTypeId.FLOAT,
    'FLOAT8': LogicalTypeId.DOUBLE,
    'NUMERIC': LogicalTypeId.DECIMAL,
    'BPCHAR': LogicalTypeId.CHAR,
    'TEXT': LogicalTypeId.VARCHAR,
    'STRING': LogicalTypeId.VARCHAR,
    'NVARCHAR': LogicalTypeId.VARCHAR,
    'BYTEA': LogicalTypeId.BLOB,
    'BINARY': LogicalTypeId.BLOB,
    'VARBINARY': LogicalTypeId.BLOB,
    'TIMETZ': LogicalTypeId.TIME_TZ,
    'DATETIME': LogicalTypeId.TIMESTAMP,
    'TIMESTAMP_US': LogicalTypeId.TIMESTAMP,
    'TIMESTAMPTZ': LogicalTypeId.TIMESTAMP_TZ,
    'BITSTRING': LogicalTypeId.BIT,
    'JSON': LogicalTypeId.USER,
}

# DuckDB's default DECIMAL without arguments
DEFAULT_DECIMAL_WIDTH = 18
DEFAULT_DECIMAL_SCALE = 3

_DECIMAL_ARGS = re.compile(r'^\s*(\d+)\s*(?:,\s*(\d+)\s*)?$')


@dataclass(frozen=True)
class LogicalType:
    """A DuckDB logical type: tag plus the parameters the mapping needs.
    """
    id: LogicalTypeId
    width: int | None = None
    scale: int | None = None

    @classmethod
    def decimal(cls, width: int, scale: int) -> Self:
        return cls(LogicalTypeId.DECIMAL, width, scale)

    @classmethod
    def from_engine(cls, dtype: Any) -> Self:
        """Create a LogicalType from a DuckDBPyType or its text form."""
        if isinstance(dtype, cls):
            return dtype
        return parse_logical_type(str(dtype))

    def __str__(self) -> str:
        if self.id is LogicalTypeId.DECIMAL:
            return f'DECIMAL({self.width},{self.scale})'
        return self.id.value


def _split_head(text: str) -> tuple[str, str | None]:
    """Split `NAME(args)` into name and argument text."""
    if '(' not in text or not text.endswith(')'):
        return text, None
    head, _, rest = text.partition('(')
    return head.strip(), rest[:-1]


def parse_logical_type(text: str) -> LogicalType:
    """Parse DuckDB's textual type name into a LogicalType.

    Never raises; text that names no known type parses as UNKNOWN.

    >>> parse_logical_type('DECIMAL(10,2)')
    LogicalType(id=<LogicalTypeId.DECIMAL: 'DECIMAL'>, width=10, scale=2)
    >>> parse_logical_type('INTEGER[]').id
    <LogicalTypeId.LIST: 'LIST'>
    """
    normalized = ' '.join(str(text).strip().split()).upper()
    if not normalized:
        return LogicalType(LogicalTypeId.UNKNOWN)

    if normalized.endswith(']'):
        base, _, size = normalized[:-1].rpartition('[')
        if base:
            return LogicalType(LogicalTypeId.ARRAY if size.strip() else LogicalTypeId.LIST)

    normalized = normalized.split(' COLLATE ')[0].strip('"')
    head, args = _split_head(normalized)

    if head in {'DECIMAL', 'NUMERIC'}:
        if args is None:
            return LogicalType.decimal(DEFAULT_DECIMAL_WIDTH, DEFAULT_DECIMAL_SCALE)
        match = _DECIMAL_ARGS.match(args)
        if not match:
            logger.debug(f'Unparseable decimal arguments: {text}')
            return LogicalType(LogicalTypeId.UNKNOWN)
        return LogicalType.decimal(int(match.group(1)), int(match.group(2) or 0))

    try:
        return LogicalType(LogicalTypeId(head))
    except ValueError:
        pass

    if head in _ALIASES:
        return LogicalType(_ALIASES[head])

    logger.debug(f'Unknown engine type: {text}')
    return LogicalType(LogicalTypeId.UNKNOWN)


# Smallest-first ladder of Arrow decimal types by maximum precision
DECIMAL_TYPES = (
    (38, pa.decimal128),
    (76, pa.decimal256),
    )


def smallest_decimal(width: int | None, scale: int | None) -> pa.DataType | None:
    """Return the smallest Arrow decimal type holding (width, scale).

    Returns None when no Arrow decimal can represent the parameters.

    >>> smallest_decimal(10, 2)
    Decimal128Type(decimal128(10, 2))
    """
    if width is None or scale is None or width < 1 or not 0 <= scale <= width:
        return None
    for max_precision, factory in DECIMAL_TYPES:
        if width <= max_precision:
            return factory(width, scale)
    return None


_FIXED_TYPES: dict[LogicalTypeId, pa.DataType] = {
    LogicalTypeId.BOOLEAN: pa.bool_(),
    LogicalTypeId.TINYINT: pa.int8(),
    LogicalTypeId.SMALLINT: pa.int16(),
    LogicalTypeId.INTEGER: pa.int32(),
    LogicalTypeId.BIGINT: pa.int64(),
    LogicalTypeId.HUGEINT: pa.decimal128(38, 0),
    LogicalTypeId.UTINYINT: pa.uint8(),
    LogicalTypeId.USMALLINT: pa.uint16(),
    LogicalTypeId.UINTEGER: pa.uint32(),
    LogicalTypeId.UBIGINT: pa.int64(),
    LogicalTypeId.UHUGEINT: pa.decimal128(38, 0),
    LogicalTypeId.FLOAT: pa.float32(),
    LogicalTypeId.DOUBLE: pa.float64(),
    LogicalTypeId.CHAR: pa.utf8(),
    LogicalTypeId.VARCHAR: pa.utf8(),
    LogicalTypeId.BLOB: pa.binary(),
    LogicalTypeId.DATE: pa.date32(),
    LogicalTypeId.TIME: pa.timestamp('ms'),
    LogicalTypeId.TIMESTAMP_SEC: pa.timestamp('s'),
    LogicalTypeId.TIMESTAMP_MS: pa.timestamp('ms'),
    LogicalTypeId.TIMESTAMP: pa.timestamp('us'),
    LogicalTypeId.TIMESTAMP_NS: pa.timestamp('ns'),
    LogicalTypeId.INTERVAL: pa.duration('us'),
}

# Time zone used for TIMESTAMP WITH TIME ZONE when no session zone is known
DEFAULT_TIME_ZONE = 'UTC'


def map_type(logical_type: LogicalType, time_zone: str | None = None) -> pa.DataType:
    """Map an engine logical type onto an Arrow interchange type.

    Total and deterministic: every LogicalType yields a type, with the Arrow
    null type standing in for kinds that cannot be represented.

    Args:
        logical_type: Engine column type
        time_zone: Session time zone for timezone-aware timestamps

    Returns
        pyarrow DataType
    """
    type_id = logical_type.id
    if type_id in _FIXED_TYPES:
        return _FIXED_TYPES[type_id]
    if type_id is LogicalTypeId.DECIMAL:
        return smallest_decimal(logical_type.width, logical_type.scale) or pa.null()
    if type_id is LogicalTypeId.TIMESTAMP_TZ:
        return pa.timestamp('us', tz=time_zone or DEFAULT_TIME_ZONE)
    return pa.null()
