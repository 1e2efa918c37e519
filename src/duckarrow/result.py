"""
Result streaming and batch export.

This module provides:
- ResultStreamer: pulls engine chunks one at a time and exports each one
- ResultBatch: exported view of one chunk with an Arrow C data interface
- NO_DATA: terminal marker returned once a result is exhausted
- affected_row_count: DML outcome normalization for a first fetched batch

Every exported batch is re-typed to the schema `map_type` derives for the
result. Columns whose engine Arrow type already matches are passed through
without copying; the rest are converted here.
"""
import logging
from typing import Any, Self

import numpy as np
import pyarrow as pa
import pyarrow.compute as pc
from duckarrow.adapters.column_info import ClientProperties, Column
from duckarrow.adapters.column_info import to_arrow_schema
from duckarrow.exceptions import FetchError, SchemaExportError, is_cancellation
from duckarrow.strategy.base import EngineResult

logger = logging.getLogger(__name__)

_UNITS_PER_SECOND = {'s': 1, 'ms': 1_000, 'us': 1_000_000, 'ns': 1_000_000_000}

# The engine's own interval arithmetic counts a month as 30 days
DAYS_PER_MONTH = 30
MICROS_PER_DAY = 86_400 * 1_000_000

_MONTH_DAY_NANO = np.dtype([('months', '<i4'), ('days', '<i4'), ('nanos', '<i8')])


class _NoData:
    """Stream-exhausted terminal result; falsy and a singleton."""

    __slots__ = ()
    _instance = None

    def __new__(cls) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'NO_DATA'

    def __reduce__(self) -> str:
        return 'NO_DATA'


NO_DATA = _NoData()


def _rescale(ticks: pa.Array, from_unit: str, to_unit: str) -> pa.Array:
    """Convert integer ticks between time units (truncating)."""
    source, target = _UNITS_PER_SECOND[from_unit], _UNITS_PER_SECOND[to_unit]
    if source > target:
        return pc.divide(ticks, source // target)
    if target > source:
        return pc.multiply(ticks, target // source)
    return ticks


def _time_to_timestamp(array: pa.Array, target: pa.DataType) -> pa.Array:
    """Time of day as a timestamp on the epoch date."""
    ticks = array.cast(pa.int64() if pa.types.is_time64(array.type) else pa.int32())
    ticks = _rescale(ticks.cast(pa.int64()), array.type.unit, target.unit)
    return ticks.cast(target)


def _interval_to_duration(array: pa.Array, target: pa.DataType) -> pa.Array:
    """Month/day/nanosecond intervals as fixed durations."""
    if len(array) == 0:
        return pa.array([], type=target)
    values = np.frombuffer(array.buffers()[1], dtype=_MONTH_DAY_NANO)
    values = values[array.offset:array.offset + len(array)]
    days = values['months'].astype(np.int64) * DAYS_PER_MONTH + values['days']
    micros = days * MICROS_PER_DAY + values['nanos'] // 1_000
    mask = array.is_null().to_numpy(zero_copy_only=False)
    durations = pa.array(micros, type=pa.int64(), mask=mask)
    return _rescale(durations, 'us', target.unit).cast(target)


def conform_array(array: pa.Array, target: pa.DataType) -> pa.Array:
    """Re-type one engine column to its mapped interchange type.

    Raises SchemaExportError if the engine type cannot be converted.
    """
    if array.type == target:
        return array
    if pa.types.is_null(target):
        return pa.nulls(len(array))

    source = array.type
    try:
        if pa.types.is_uint64(source) and pa.types.is_int64(target):
            # reinterpreted as signed, values above 2**63 - 1 wrap
            return array.view(target)
        if pa.types.is_time(source) and pa.types.is_timestamp(target):
            return _time_to_timestamp(array, target)
        if pa.types.is_interval(source) and pa.types.is_duration(target):
            return _interval_to_duration(array, target)
        return array.cast(target)
    except (pa.ArrowInvalid, pa.ArrowNotImplementedError, pa.ArrowTypeError) as exc:
        raise SchemaExportError(f'Cannot export {source} column as {target}: {exc}') from exc


def conform_batch(batch: pa.RecordBatch, columns: list[Column],
                  properties: ClientProperties) -> pa.RecordBatch:
    """Pair an engine chunk with the schema derived for its result.
    """
    schema = to_arrow_schema(columns, properties)
    if batch.num_columns != len(schema):
        raise SchemaExportError(
            f'Chunk has {batch.num_columns} columns but the result describes {len(schema)}')
    arrays = [conform_array(batch.column(i), schema.field(i).type)
              for i in range(batch.num_columns)]
    return pa.RecordBatch.from_arrays(arrays, schema=schema)


class ResultBatch:
    """Exported view of one window of result rows.

    The batch carries its own schema. Consumers outside Python take the
    buffers through `__arrow_c_array__` / `export_to_c`; the exported
    structures own their buffers and the consumer invokes their release
    callback exactly once. `release()` drops this view's reference.
    """

    def __init__(self, batch: pa.RecordBatch) -> None:
        self._batch = batch

    def __repr__(self) -> str:
        if self._batch is None:
            return 'ResultBatch(released)'
        return f'ResultBatch(rows={self._batch.num_rows}, columns={self._batch.num_columns})'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.release()

    @property
    def record_batch(self) -> pa.RecordBatch:
        """Underlying pyarrow RecordBatch."""
        if self._batch is None:
            raise SchemaExportError('Batch has been released')
        return self._batch

    @property
    def released(self) -> bool:
        return self._batch is None

    @property
    def schema(self) -> pa.Schema:
        return self.record_batch.schema

    @property
    def num_rows(self) -> int:
        return self.record_batch.num_rows

    @property
    def num_columns(self) -> int:
        return self.record_batch.num_columns

    def column(self, i: int | str) -> pa.Array:
        return self.record_batch.column(i)

    def to_pylist(self) -> list[dict[str, Any]]:
        return self.record_batch.to_pylist()

    def __arrow_c_schema__(self) -> Any:
        return self.record_batch.schema.__arrow_c_schema__()

    def __arrow_c_array__(self, requested_schema: Any = None) -> tuple[Any, Any]:
        """Export as (schema, array) PyCapsules of the Arrow C data interface."""
        return self.record_batch.__arrow_c_array__(requested_schema)

    def export_to_c(self, array_ptr: int, schema_ptr: int = 0) -> None:
        """Export into caller-allocated ArrowArray / ArrowSchema structs."""
        self.record_batch._export_to_c(array_ptr, schema_ptr)

    def release(self) -> None:
        """Drop this view's reference to the batch buffers; idempotent."""
        self._batch = None


class ResultStreamer:
    """Pull-based iteration over the chunks of one execution.

    Each `fetch` pulls at most one engine chunk. Faults while pulling are
    reported as FetchError and end the stream; exhaustion is reported as
    NO_DATA on this and every later call.
    """

    def __init__(self, result: EngineResult,
                 error_types: tuple[type[BaseException], ...]) -> None:
        self._result = result
        self._error_types = error_types
        self.columns = result.columns
        self.properties = result.properties
        self.batches = 0
        self.rows = 0

    @property
    def exhausted(self) -> bool:
        return self._result is None

    @property
    def schema(self) -> pa.Schema:
        """Schema of the batches this stream exports."""
        return to_arrow_schema(self.columns, self.properties)

    def fetch(self) -> ResultBatch | _NoData:
        if self._result is None:
            return NO_DATA

        try:
            chunk = self._result.fetch_chunk()
        except self._error_types as exc:
            self.close()
            raise FetchError(str(exc), cancelled=is_cancellation(exc)) from exc

        if chunk is None:
            logger.debug(f'Result exhausted after {self.batches} batches, {self.rows} rows')
            self.close()
            return NO_DATA

        batch = ResultBatch(conform_batch(chunk, self.columns, self.properties))
        self.batches += 1
        self.rows += batch.num_rows
        return batch

    def close(self) -> None:
        if self._result is not None:
            result, self._result = self._result, None
            result.close()


def affected_row_count(batch: ResultBatch | _NoData) -> int:
    """Affected-row count for the first batch of a non-query statement.

    The engine reports DML outcomes as a single non-null BIGINT cell; any
    other shape falls back to the number of rows in the batch.
    """
    if batch is NO_DATA:
        return 0

    if (batch.num_rows == 1 and batch.num_columns == 1
            and pa.types.is_int64(batch.schema.field(0).type)):
        value = batch.column(0)[0]
        if value.is_valid:
            return value.as_py()

    return batch.num_rows
