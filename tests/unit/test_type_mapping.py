"""
Unit tests for resolving engine logical types to Arrow types.
"""
import pyarrow as pa
import pytest
from duckarrow.adapters import LogicalType, LogicalTypeId, map_type
from duckarrow.adapters import parse_logical_type, smallest_decimal


@pytest.mark.parametrize('type_id', list(LogicalTypeId))
def test_map_type_is_total_and_deterministic(type_id):
    """Every logical type maps to an Arrow type, the same one on every call"""
    logical_type = LogicalType(type_id)
    first = map_type(logical_type)
    second = map_type(logical_type)
    assert isinstance(first, pa.DataType)
    assert first == second


@pytest.mark.parametrize(('type_id', 'expected'), [
    (LogicalTypeId.BOOLEAN, pa.bool_()),
    (LogicalTypeId.TINYINT, pa.int8()),
    (LogicalTypeId.SMALLINT, pa.int16()),
    (LogicalTypeId.INTEGER, pa.int32()),
    (LogicalTypeId.BIGINT, pa.int64()),
    (LogicalTypeId.UTINYINT, pa.uint8()),
    (LogicalTypeId.USMALLINT, pa.uint16()),
    (LogicalTypeId.UINTEGER, pa.uint32()),
    (LogicalTypeId.UBIGINT, pa.int64()),
    (LogicalTypeId.HUGEINT, pa.decimal128(38, 0)),
    (LogicalTypeId.FLOAT, pa.float32()),
    (LogicalTypeId.DOUBLE, pa.float64()),
    (LogicalTypeId.CHAR, pa.utf8()),
    (LogicalTypeId.VARCHAR, pa.utf8()),
    (LogicalTypeId.BLOB, pa.binary()),
    (LogicalTypeId.DATE, pa.date32()),
    (LogicalTypeId.TIME, pa.timestamp('ms')),
    (LogicalTypeId.TIMESTAMP_SEC, pa.timestamp('s')),
    (LogicalTypeId.TIMESTAMP_MS, pa.timestamp('ms')),
    (LogicalTypeId.TIMESTAMP, pa.timestamp('us')),
    (LogicalTypeId.TIMESTAMP_NS, pa.timestamp('ns')),
    (LogicalTypeId.INTERVAL, pa.duration('us')),
])
def test_fixed_mappings(type_id, expected):
    assert map_type(LogicalType(type_id)) == expected


@pytest.mark.parametrize('type_id', [
    LogicalTypeId.STRUCT,
    LogicalTypeId.LIST,
    LogicalTypeId.MAP,
    LogicalTypeId.UNION,
    LogicalTypeId.ENUM,
    LogicalTypeId.UUID,
    LogicalTypeId.TIME_TZ,
    LogicalTypeId.SQLNULL,
    LogicalTypeId.USER,
    LogicalTypeId.UNKNOWN,
])
def test_unrepresentable_types_map_to_null(type_id):
    assert map_type(LogicalType(type_id)) == pa.null()


def test_decimal_uses_smallest_arrow_decimal():
    assert map_type(LogicalType.decimal(10, 2)) == pa.decimal128(10, 2)
    assert map_type(LogicalType.decimal(38, 0)) == pa.decimal128(38, 0)
    assert map_type(LogicalType.decimal(39, 2)) == pa.decimal256(39, 2)
    assert map_type(LogicalType.decimal(76, 10)) == pa.decimal256(76, 10)


def test_decimal_out_of_range_maps_to_null():
    assert map_type(LogicalType.decimal(77, 0)) == pa.null()
    assert map_type(LogicalType.decimal(4, 6)) == pa.null()
    assert smallest_decimal(None, None) is None
    assert smallest_decimal(0, 0) is None


def test_timestamp_with_time_zone():
    """Timezone-aware timestamps carry the session zone, UTC when unknown"""
    logical_type = LogicalType(LogicalTypeId.TIMESTAMP_TZ)
    assert map_type(logical_type, 'America/New_York') == pa.timestamp('us', tz='America/New_York')
    assert map_type(logical_type) == pa.timestamp('us', tz='UTC')


@pytest.mark.parametrize(('text', 'expected'), [
    ('INTEGER', LogicalTypeId.INTEGER),
    ('integer', LogicalTypeId.INTEGER),
    ('INT', LogicalTypeId.INTEGER),
    ('BIGINT', LogicalTypeId.BIGINT),
    ('UBIGINT', LogicalTypeId.UBIGINT),
    ('VARCHAR', LogicalTypeId.VARCHAR),
    ('VARCHAR COLLATE NOCASE', LogicalTypeId.VARCHAR),
    ('TIME WITH TIME ZONE', LogicalTypeId.TIME_TZ),
    ('TIMESTAMP WITH TIME ZONE', LogicalTypeId.TIMESTAMP_TZ),
    ('timestamptz', LogicalTypeId.TIMESTAMP_TZ),
    ('TIMESTAMP_S', LogicalTypeId.TIMESTAMP_SEC),
    ('INTEGER[]', LogicalTypeId.LIST),
    ('INTEGER[3]', LogicalTypeId.ARRAY),
    ('STRUCT(a INTEGER, b VARCHAR)', LogicalTypeId.STRUCT),
    ('MAP(VARCHAR, INTEGER)', LogicalTypeId.MAP),
    ("ENUM('a', 'b')", LogicalTypeId.ENUM),
    ('JSON', LogicalTypeId.USER),
    ('NULL', LogicalTypeId.SQLNULL),
    ('not a type', LogicalTypeId.UNKNOWN),
    ('', LogicalTypeId.UNKNOWN),
])
def test_parse_logical_type(text, expected):
    assert parse_logical_type(text).id is expected


def test_parse_decimal():
    assert parse_logical_type('DECIMAL(10,2)') == LogicalType.decimal(10, 2)
    assert parse_logical_type('NUMERIC(12, 4)') == LogicalType.decimal(12, 4)
    assert parse_logical_type('DECIMAL(9)') == LogicalType.decimal(9, 0)
    assert parse_logical_type('DECIMAL') == LogicalType.decimal(18, 3)
    assert parse_logical_type('DECIMAL(x)').id is LogicalTypeId.UNKNOWN


def test_logical_type_text():
    assert str(LogicalType.decimal(10, 2)) == 'DECIMAL(10,2)'
    assert str(LogicalType(LogicalTypeId.TIMESTAMP_TZ)) == 'TIMESTAMP WITH TIME ZONE'


def test_from_engine_accepts_logical_type_and_text():
    logical_type = LogicalType(LogicalTypeId.DATE)
    assert LogicalType.from_engine(logical_type) is logical_type
    assert LogicalType.from_engine('DATE') == logical_type
