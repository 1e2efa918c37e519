"""
Base strategy interface for engine operations.

Defines the abstract base class that engine-specific strategies inherit from.
A strategy owns the engine calls a statement handle needs (prepare, describe,
execute, deallocate) and raises the engine's own exceptions; the statement
handle translates those into the duckarrow error kinds using `error_types`.
"""
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import pyarrow as pa
from duckarrow.adapters.column_info import ClientProperties, Column

# Registry of engine name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['EngineStrategy']] = {}

Params = Sequence[Any] | Mapping[str, Any] | None


def register_strategy(dialect: str):
    """Decorator to register a strategy class for an engine.

    Usage:
        @register_strategy('duckdb')
        class DuckDBStrategy(EngineStrategy):
            ...
    """
    def decorator(cls: type['EngineStrategy']) -> type['EngineStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


@dataclass
class PreparedStatement:
    """Engine-side prepared statement owned by exactly one handle.

    `columns` is filled lazily by the first describe and reused afterwards.
    """
    sql: str
    statement_type: str
    name: str | None = None
    parameter_names: tuple[str, ...] = ()
    native: Any = None
    columns: list[Column] | None = field(default=None, repr=False)

    @property
    def parameter_count(self) -> int:
        return len(self.parameter_names)

    @property
    def has_named_parameters(self) -> bool:
        return any(not name.isdigit() for name in self.parameter_names)


class EngineResult(ABC):
    """Cursor over the chunks of one execution.

    Owns the engine result; chunks handed out by `fetch_chunk` are not
    retained.
    """

    def __init__(self, columns: list[Column], properties: ClientProperties) -> None:
        self.columns = columns
        self.properties = properties

    @abstractmethod
    def fetch_chunk(self) -> pa.RecordBatch | None:
        """Return the next chunk, or None once the result is exhausted.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the engine result.
        """


class EngineStrategy(ABC):
    """Base class for engine-specific operations.
    """

    # Exceptions the engine raises for prepare, execute and fetch faults
    error_types: tuple[type[BaseException], ...] = ()

    @abstractmethod
    def prepare(self, connection: Any, sql: str) -> PreparedStatement:
        """Parse and bind SQL text without executing it.

        Args:
            connection: Raw engine connection
            sql: SQL text of a single statement

        Returns
            PreparedStatement owned by the caller
        """

    @abstractmethod
    def describe(self, connection: Any, prepared: PreparedStatement) -> list[Column]:
        """Result columns of a prepared statement, leaving no effects behind.

        Args:
            connection: Raw engine connection
            prepared: Statement returned by `prepare`

        Returns
            Ordered list of columns; empty when the statement yields no rows
        """

    @abstractmethod
    def execute(self, connection: Any, prepared: PreparedStatement, params: Params,
                rows_per_batch: int) -> EngineResult:
        """Bind parameters and run the statement.

        Args:
            connection: Raw engine connection
            prepared: Statement returned by `prepare`
            params: Positional sequence, name mapping, or None
            rows_per_batch: Maximum rows per fetched chunk

        Returns
            EngineResult positioned before the first chunk
        """

    @abstractmethod
    def deallocate(self, connection: Any, prepared: PreparedStatement) -> None:
        """Release the engine-side statement; runs at most once.
        """

    @abstractmethod
    def time_zone(self, connection: Any) -> str | None:
        """Current session time zone of the connection.
        """

    def interrupt(self, connection: Any) -> None:
        """Ask the engine to cancel whatever the connection is running.
        """
        raise NotImplementedError(f'{type(self).__name__} does not support interrupt')
