import duckarrow as db
import pytest


@pytest.fixture
def duckdb_conn():
    """Create an in-memory DuckDB database for testing"""
    # Create connection with default pandas data_loader
    conn = db.connect({
        'drivername': 'duckdb',
        'database': ':memory:'
    })

    # Create test schema
    create_table = """
    CREATE TABLE test_table (
        id INTEGER PRIMARY KEY,
        name VARCHAR NOT NULL UNIQUE,
        value INTEGER NOT NULL
    )
    """
    db.execute(conn, create_table)

    # Insert test data
    insert_data = """
    INSERT INTO test_table (id, name, value) VALUES
    (1, 'Alice', 10),
    (2, 'Bob', 20),
    (3, 'Charlie', 30)
    """
    db.execute(conn, insert_data)

    yield conn
    conn.close()


@pytest.fixture
def duckdb_conn_small_batches():
    """In-memory DuckDB connection that fetches at most 1000 rows per batch"""
    conn = db.connect(rows_per_batch=1000)
    yield conn
    conn.close()


@pytest.fixture
def duckdb_conn_new_york():
    """In-memory DuckDB connection with a non-UTC session time zone"""
    conn = db.connect(time_zone='America/New_York')
    yield conn
    conn.close()
