"""
Unit tests for normalizing bound parameter values.
"""
import datetime
from decimal import Decimal

import numpy as np
import pandas as pd
import pyarrow as pa
import pytest
from duckarrow.adapters import TypeConverter


@pytest.mark.parametrize(('value', 'expected'), [
    (np.int64(5), 5),
    (np.float64(1.5), 1.5),
    (np.bool_(True), True),
    (pa.scalar(3), 3),
    (pa.scalar('abc'), 'abc'),
    (pd.NA, None),
    (pd.NaT, None),
    (np.datetime64('NaT'), None),
    (None, None),
    ('text', 'text'),
    (Decimal('1.25'), Decimal('1.25')),
])
def test_convert_value(value, expected):
    assert TypeConverter.convert_value(value) == expected


def test_numpy_scalars_become_builtins():
    assert type(TypeConverter.convert_value(np.int32(7))) is int
    assert type(TypeConverter.convert_value(np.float32(0.5))) is float


def test_datetime_values():
    value = TypeConverter.convert_value(np.datetime64('2024-01-02T03:04:05'))
    assert value == datetime.datetime(2024, 1, 2, 3, 4, 5)

    value = TypeConverter.convert_value(pd.Timestamp('2024-01-02 03:04:05'))
    assert isinstance(value, datetime.datetime)
    assert value == datetime.datetime(2024, 1, 2, 3, 4, 5)

    value = TypeConverter.convert_value(pd.Timedelta(minutes=5))
    assert value == datetime.timedelta(minutes=5)

    value = TypeConverter.convert_value(np.timedelta64(3, 's'))
    assert value == datetime.timedelta(seconds=3)


def test_convert_params():
    """Mappings stay mappings, sequences become lists"""
    assert TypeConverter.convert_params({'a': np.int64(1), 'b': pd.NA}) == {'a': 1, 'b': None}
    assert TypeConverter.convert_params((np.int64(1), 'x')) == [1, 'x']
    assert TypeConverter.convert_params([pa.scalar(2.5)]) == [2.5]
    assert TypeConverter.convert_params(None) is None
