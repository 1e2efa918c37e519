"""
Parameter conversion for statement binding (Python -> engine direction only).

Values are normalized to their plain Python equivalent without changing
their kind: NumPy and PyArrow scalars become the matching builtin value and
pandas missing markers become None. No other coercion happens here; the
engine performs its own casts when binding.

Usage:
    params = TypeConverter.convert_params(my_params)
    statement.execute(*params)
"""
import logging
from collections.abc import Mapping
from typing import Any

import numpy as np
import pandas as pd
import pyarrow as pa

logger = logging.getLogger(__name__)


def _convert_numpy_value(val: Any) -> Any:
    """Convert NumPy scalar to Python type."""
    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return val.astype('datetime64[us]').item()

    if isinstance(val, np.timedelta64):
        if np.isnat(val):
            return None
        return val.astype('timedelta64[us]').item()

    return val.item()


def _convert_pandas_value(val: Any) -> Any:
    """Convert pandas scalar to Python type."""
    if val is pd.NaT or val is pd.NA:
        return None
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    if isinstance(val, pd.Timedelta):
        return val.to_pytimedelta()
    return val


def _convert_pyarrow_value(value: pa.Scalar) -> Any:
    """Convert PyArrow scalar to Python type."""
    return value.as_py()


class TypeConverter:
    """Normalization of bound parameter values.

    Handles NumPy, pandas, and PyArrow scalars.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a form the engine binds natively."""
        if value is None:
            return None

        if isinstance(value, np.generic):
            return _convert_numpy_value(value)

        if isinstance(value, pa.Scalar):
            return _convert_pyarrow_value(value)

        if value is pd.NaT or value is pd.NA or isinstance(value, (pd.Timestamp, pd.Timedelta)):
            return _convert_pandas_value(value)

        return value

    @staticmethod
    def convert_params(params: Any) -> Any:
        """Convert a collection of parameters for binding.

        Mappings are converted value-wise (named parameters); lists and tuples
        element-wise (positional parameters).
        """
        if params is None:
            return None

        if isinstance(params, Mapping):
            return {k: TypeConverter.convert_value(v) for k, v in params.items()}

        if isinstance(params, list | tuple):
            return [TypeConverter.convert_value(v) for v in params]

        return TypeConverter.convert_value(params)
