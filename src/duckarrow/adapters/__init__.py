"""
Engine adapters package.

This package provides the following components:

- type_mapping: DuckDB logical types and their mapping onto Arrow types
- column_info: Column metadata, session properties and schema derivation
- type_conversion: Parameter normalization for statement binding

Type conversion principles:
1. Engine → Arrow: values are produced by the engine's own Arrow export and
   only re-typed where the mapped schema differs (see duckarrow.result)
2. Python → Engine: handled by TypeConverter during parameter binding
"""

from duckarrow.adapters.column_info import ClientProperties, Column
from duckarrow.adapters.column_info import columns_from_description
from duckarrow.adapters.column_info import to_arrow_schema
from duckarrow.adapters.type_conversion import TypeConverter
from duckarrow.adapters.type_mapping import LogicalType, LogicalTypeId
from duckarrow.adapters.type_mapping import map_type, parse_logical_type
from duckarrow.adapters.type_mapping import smallest_decimal

__all__ = [
    'ClientProperties',
    'Column',
    'LogicalType',
    'LogicalTypeId',
    'TypeConverter',
    'columns_from_description',
    'map_type',
    'parse_logical_type',
    'smallest_decimal',
    'to_arrow_schema',
]
