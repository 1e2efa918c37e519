"""
Column information and schema derivation for statement results.
"""
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Self

import pyarrow as pa
from duckarrow.adapters.type_mapping import LogicalType, map_type
from duckarrow.exceptions import SchemaExportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientProperties:
    """Session properties a result was evaluated with.

    A session may override its time zone per statement, so the properties of
    an executed result can differ from the connection defaults.
    """
    time_zone: str | None = None


class Column:
    """Name and engine logical type of one statement column.

    Columns are derived once per prepared statement (or per execution for
    result streams) and converted to Arrow fields on demand, so that time zone
    dependent types pick up the properties in effect for each schema.
    """

    def __init__(self, name: str, logical_type: LogicalType) -> None:
        self.name = name
        self.logical_type = logical_type

    def __repr__(self) -> str:
        return f'Column({self.name!r}, {self.logical_type})'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Column):
            return NotImplemented
        return (self.name, self.logical_type) == (other.name, other.logical_type)

    def __hash__(self) -> int:
        return hash((self.name, self.logical_type))

    @classmethod
    def from_description(cls, description_item: Sequence[Any]) -> Self:
        """Create a Column from one DB-API style description item.

        Args:
            description_item: Tuple whose first two entries are name and type

        Returns
            Column instance
        """
        name, type_code = description_item[0], description_item[1]
        return cls(str(name), LogicalType.from_engine(type_code))

    def to_field(self, properties: ClientProperties | None = None) -> pa.Field:
        """Arrow field for this column under the given session properties."""
        time_zone = properties.time_zone if properties else None
        return pa.field(self.name, map_type(self.logical_type, time_zone), nullable=True)

    @staticmethod
    def get_names(columns: Iterable['Column']) -> list[str]:
        """Get column names from a list of columns."""
        return [c.name for c in columns]


def columns_from_description(description: Iterable[Sequence[Any]] | None) -> list[Column]:
    """Create Columns from a cursor description; None means no result set."""
    if description is None:
        return []
    return [Column.from_description(item) for item in description]


def to_arrow_schema(columns: Iterable[Column],
                    properties: ClientProperties | None = None) -> pa.Schema:
    """Build a new Arrow schema for the columns.

    A fresh schema object is returned on every call.
    """
    try:
        return pa.schema([column.to_field(properties) for column in columns])
    except (pa.ArrowException, TypeError, ValueError) as exc:
        raise SchemaExportError(f'Could not build schema: {exc}') from exc
