"""
Engine strategy factory for engine-specific operations.
"""
from functools import lru_cache

from duckarrow.strategy.base import _STRATEGY_REGISTRY
from duckarrow.strategy.base import EngineResult as EngineResult
from duckarrow.strategy.base import EngineStrategy as EngineStrategy
from duckarrow.strategy.base import PreparedStatement as PreparedStatement
from duckarrow.strategy.base import register_strategy as register_strategy
from duckarrow.strategy.duckdb import DuckDBStrategy as DuckDBStrategy
from duckarrow.utils import get_dialect_name


def _validate_dialect(dialect: str) -> None:
    """Raise ValueError if dialect is not registered."""
    if dialect not in _STRATEGY_REGISTRY:
        available = list(_STRATEGY_REGISTRY.keys())
        raise ValueError(f'Unsupported engine: {dialect}. Available: {available}')


@lru_cache(maxsize=8)
def _get_strategy(dialect: str) -> EngineStrategy:
    """Get cached strategy instance for an engine."""
    _validate_dialect(dialect)
    return _STRATEGY_REGISTRY[dialect]()


def get_strategy(dialect: str) -> EngineStrategy:
    """Get strategy instance for an engine name.

    This is the public interface for getting a strategy when you have an
    engine name string but not a connection object.
    """
    return _get_strategy(dialect)


def get_db_strategy(cn) -> EngineStrategy:
    """Get engine strategy for the connection."""
    dialect = get_dialect_name(cn)
    return _get_strategy(dialect)


def get_available_dialects() -> list[str]:
    """Return list of registered engine names."""
    return list(_STRATEGY_REGISTRY.keys())


def is_supported_dialect(dialect: str) -> bool:
    """Check if an engine is supported."""
    return dialect in _STRATEGY_REGISTRY
