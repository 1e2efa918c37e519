"""
Module-level query functions and type export against DuckDB.
"""
import datetime
from decimal import Decimal
from types import SimpleNamespace

import duckarrow as db
import pandas as pd
import pyarrow as pa
import pytest
from duckarrow.exceptions import ProgrammingError
from duckarrow.options import iterdict_data_loader


def test_select_returns_dataframe(duckdb_conn):
    df = db.select(duckdb_conn, 'SELECT id, name, value FROM test_table ORDER BY id')
    assert isinstance(df, pd.DataFrame)
    assert list(df['name']) == ['Alice', 'Bob', 'Charlie']
    assert df.attrs['column_types'] == {'id': 'int32', 'name': 'string', 'value': 'int32'}


def test_select_arrow(duckdb_conn):
    table = db.select_arrow(duckdb_conn, 'SELECT id, name FROM test_table WHERE value > ?', 15)
    assert table.num_rows == 2
    assert table.schema == pa.schema([('id', pa.int32()), ('name', pa.utf8())])


def test_select_empty_result_keeps_schema(duckdb_conn):
    table = db.select_arrow(duckdb_conn, 'SELECT id, name FROM test_table WHERE id < 0')
    assert table.num_rows == 0
    assert table.column_names == ['id', 'name']


def test_select_row_and_scalar(duckdb_conn):
    row = db.select_row(duckdb_conn, 'SELECT name, value FROM test_table WHERE id = ?', 2)
    assert row == {'name': 'Bob', 'value': 20}

    total = db.select_scalar(duckdb_conn, 'SELECT sum(value) FROM test_table')
    assert total == 60

    with pytest.raises(ProgrammingError):
        db.select_row(duckdb_conn, 'SELECT name FROM test_table')


def test_execute_aliases(duckdb_conn):
    assert db.insert(duckdb_conn, 'INSERT INTO test_table VALUES (?, ?, ?)', 4, 'Dave', 40) == 1
    assert db.update(duckdb_conn, 'UPDATE test_table SET value = 0 WHERE value >= ?', 30) == 2
    assert db.delete(duckdb_conn, 'DELETE FROM test_table') == 4
    assert db.select_scalar(duckdb_conn, 'SELECT count(*) FROM test_table') == 0


def test_iter_batches(duckdb_conn):
    batches = list(db.iter_batches(duckdb_conn, 'SELECT id FROM test_table ORDER BY id'))
    assert [r['id'] for b in batches for r in b.to_pylist()] == [1, 2, 3]


def test_describe(duckdb_conn):
    schema = db.describe(duckdb_conn, 'SELECT name, CAST(value AS DECIMAL(10,2)) AS amount FROM test_table')
    assert schema == pa.schema([('name', pa.utf8()), ('amount', pa.decimal128(10, 2))])


def test_describe_leaves_data_untouched(duckdb_conn):
    """Statements described by running them are rolled back afterwards"""
    schema = db.describe(duckdb_conn, 'DELETE FROM test_table WHERE id = 1 RETURNING name')
    assert schema == pa.schema([('name', pa.utf8())])
    assert db.select_scalar(duckdb_conn, 'SELECT count(*) FROM test_table') == 3

    db.describe(duckdb_conn, 'CREATE TABLE other (a INTEGER)')
    assert db.select_scalar(
        duckdb_conn, "SELECT count(*) FROM duckdb_tables() WHERE table_name = 'other'") == 0


def test_statement_calls_are_tracked(duckdb_conn):
    calls = duckdb_conn.calls
    db.select(duckdb_conn, 'SELECT 1')
    assert duckdb_conn.calls == calls + 1


@pytest.mark.parametrize(('expression', 'arrow_type', 'value'), [
    ('CAST(1.5 AS DECIMAL(10,2))', pa.decimal128(10, 2), Decimal('1.50')),
    ('CAST(12 AS HUGEINT)', pa.decimal128(38, 0), Decimal('12')),
    ('CAST(5 AS UBIGINT)', pa.int64(), 5),
    ('CAST(7 AS UTINYINT)', pa.uint8(), 7),
    ("DATE '2024-03-01'", pa.date32(), datetime.date(2024, 3, 1)),
    ("TIME '01:02:03'", pa.timestamp('ms'), datetime.datetime(1970, 1, 1, 1, 2, 3)),
    ("TIMESTAMP '2024-03-01 10:00:00'", pa.timestamp('us'), datetime.datetime(2024, 3, 1, 10)),
    ('INTERVAL 1 DAY', pa.duration('us'), datetime.timedelta(days=1)),
    ("{'a': 1}", pa.null(), None),
    ('[1, 2, 3]', pa.null(), None),
    ('NULL::INTEGER', pa.int32(), None),
])
def test_exported_types(duckdb_conn, expression, arrow_type, value):
    """Fetched values carry the mapped interchange type"""
    table = db.select_arrow(duckdb_conn, f'SELECT {expression} AS v')
    assert table.schema.field('v').type == arrow_type
    assert table.column('v').to_pylist() == [value]
    assert db.describe(duckdb_conn, f'SELECT {expression} AS v').field('v').type == arrow_type


def test_session_time_zone(duckdb_conn_new_york):
    cn = duckdb_conn_new_york
    assert cn.time_zone() == 'America/New_York'

    sql = "SELECT TIMESTAMPTZ '2024-01-01 12:00:00+00' AS ts"
    assert db.describe(cn, sql).field('ts').type == pa.timestamp('us', tz='America/New_York')

    table = db.select_arrow(cn, sql)
    assert table.schema.field('ts').type.tz == 'America/New_York'
    # stored as UTC instants whatever the display zone
    assert table.column('ts').cast(pa.int64()).to_pylist() == [1_704_110_400_000_000]


def test_connect_from_options():
    options = db.DatabaseOptions(rows_per_batch=10, data_loader=iterdict_data_loader)
    with db.connect(options) as cn:
        assert cn.options.rows_per_batch == 10
        assert db.select(cn, 'SELECT 1 AS one') == [{'one': 1}]
    assert cn.closed


def test_connect_from_named_options():
    config = SimpleNamespace(duckdb={
        'scratch': {'rows_per_batch': 2, 'engine_config': {'threads': 1}},
        })
    with db.connect('duckdb.scratch', config=config, time_zone='UTC') as cn:
        assert cn.options.rows_per_batch == 2
        assert cn.time_zone() == 'UTC'
        assert db.select_scalar(cn, "SELECT current_setting('threads')") == 1
        with cn.statement('SELECT range AS n FROM range(5)') as stmt:
            sizes = [batch.num_rows for batch in stmt.execute()]
        assert sum(sizes) == 5
        assert max(sizes) <= 2


def test_connect_rejects_unknown_options():
    with pytest.raises(TypeError):
        db.connect(rows_per_bach=10)


if __name__ == '__main__':
    __import__('pytest').main([__file__])
