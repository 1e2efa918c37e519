from collections.abc import Callable, Mapping
from functools import wraps
from typing import Any

import pandas as pd
import pyarrow as pa
from duckarrow.strategy import get_available_dialects, is_supported_dialect
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    'DatabaseOptions',
    'load_options',
    'resolve_options',
    'arrow_data_loader',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'iterdict_data_loader',
    'use_iterdict_data_loader',
]


def use_iterdict_data_loader(func):
    """Temporarily use default dict loader over user-specified loader"""

    @wraps(func)
    def inner(*args, **kwargs):
        cn = args[0]

        original_data_loader = cn.options.data_loader
        cn.options.data_loader = iterdict_data_loader

        try:
            return func(*args, **kwargs)
        finally:
            cn.options.data_loader = original_data_loader

    return inner


def iterdict_data_loader(table: pa.Table, **kwargs) -> list[dict]:
    """Minimal data loader.

    Accepts additional keyword arguments for compatibility with other data
    loaders, but doesn't use them.
    """
    return table.to_pylist()


def arrow_data_loader(table: pa.Table, **kwargs) -> pa.Table:
    """Return the Arrow table unchanged."""
    return table


def _column_types(table: pa.Table) -> dict[str, str]:
    return {field.name: str(field.type) for field in table.schema}


def pandas_numpy_data_loader(table: pa.Table, **kwargs) -> pd.DataFrame:
    """Standard pandas DataFrame loader using NumPy dtypes.

    Always returns a DataFrame, with columns preserved for empty results.
    Includes Arrow type information in the DataFrame.attrs attribute.
    """
    df = table.to_pandas()
    df.attrs['column_types'] = _column_types(table)
    return df


def pandas_pyarrow_data_loader(table: pa.Table, **kwargs) -> pd.DataFrame:
    """PyArrow-backed pandas DataFrame loader.

    Always returns a DataFrame, with columns preserved for empty results.
    """
    df = table.to_pandas(types_mapper=pd.ArrowDtype)
    df.attrs['column_types'] = _column_types(table)
    return df


class DatabaseOptions(BaseSettings):
    """Options

    supported engine names: `duckdb`

    - database: database file path, `:memory:` for an in-memory database
    - read_only: open the database file read-only
    - engine_config: engine settings passed at connect time
    - time_zone: session time zone applied after connecting
    - rows_per_batch: maximum rows per fetched result chunk (default: 2048)
    - data_loader: converts fetched Arrow tables for `select`

    Unset fields are read from `DUCKARROW_*` environment variables or a
    `.env` file, e.g. `DUCKARROW_ROWS_PER_BATCH=1000`.
    """

    model_config = SettingsConfigDict(
        env_prefix='DUCKARROW_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
    )

    drivername: str = 'duckdb'
    database: str = ':memory:'
    read_only: bool = False
    engine_config: dict[str, Any] | None = None
    time_zone: str | None = None
    rows_per_batch: int = Field(default=2048, gt=0)
    data_loader: Callable[..., Any] = pandas_pyarrow_data_loader

    @field_validator('drivername')
    @classmethod
    def _check_drivername(cls, value: str) -> str:
        if not is_supported_dialect(value):
            raise ValueError(f'drivername must be one of: {get_available_dialects()}')
        return value

    @model_validator(mode='after')
    def _check_read_only(self) -> 'DatabaseOptions':
        if self.read_only and self.database == ':memory:':
            raise ValueError('read_only requires a database file')
        return self


def _lookup(config: Any, name: str) -> Any:
    """Follow a dotted name through nested mappings or attributes."""
    node = config
    for part in name.split('.'):
        if isinstance(node, Mapping) and part in node:
            node = node[part]
        elif hasattr(node, part):
            node = getattr(node, part)
        else:
            raise ValueError(f'No options named {name!r} in config')
    return node


def resolve_options(cls: type[BaseSettings], options: Any = None,
                    config: Any | None = None, **kw: Any) -> BaseSettings:
    """Build a `cls` instance from any of the accepted option forms.

    Args:
        cls: Settings class to build
        options: Can be:
                - an instance of `cls`
                - a mapping of field values
                - a dotted name looked up on `config`
                - None, with options specified as keyword arguments
        config: Configuration object holding named option sets
        **kw: Field values overriding those from `options`

    Raises
        TypeError: A keyword argument names no field of `cls`
        ValueError: A named option set is missing or a value is invalid
    """
    unknown = sorted(set(kw) - set(cls.model_fields))
    if unknown:
        raise TypeError(f'Unknown {cls.__name__} fields: {unknown}')

    if isinstance(options, cls):
        if not kw:
            return options
        return cls(**(dict(options) | kw))

    if isinstance(options, str):
        if config is None:
            raise ValueError(f'Options named {options!r} need a config object')
        options = _lookup(config, options)

    if options is None:
        values = {}
    elif isinstance(options, Mapping):
        values = dict(options)
    else:
        values = dict(vars(options))
    return cls(**(values | kw))


def load_options(cls: type[BaseSettings]):
    """Decorator turning a function's `options` argument into a `cls` instance.

    The decorated function is called as `func(options, config)` with the
    resolved options; see `resolve_options` for the accepted forms.

    Usage:
        @load_options(cls=DatabaseOptions)
        def connect(options, config=None, **kw):
            ...
    """
    def decorator(func):
        @wraps(func)
        def wrapper(options: Any = None, config: Any | None = None, **kw: Any):
            return func(resolve_options(cls, options, config, **kw), config)
        return wrapper
    return decorator
