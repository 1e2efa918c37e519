"""
Statement bridge exception classes.

Every fault is surfaced as exactly one of the kinds below; the protocol layer
maps them onto its own status codes and should not paraphrase them.
"""
import re

import duckdb

CANCELLATION_PATTERNS = [
    r'interrupt',
    r'cancel(l)?ed',
    r'query was cancelled',
]

_CANCELLATION_REGEX = re.compile('|'.join(CANCELLATION_PATTERNS), re.IGNORECASE)


def is_cancellation(exc: BaseException) -> bool:
    """Check if an engine exception reports an interrupted statement.

    An owning connection may interrupt a long running statement; the engine
    then surfaces the interruption as an ordinary error from execute or fetch.

    :param exc: The engine exception to check.
    :returns: True if the error was caused by a cancellation request.
    """
    if isinstance(exc, duckdb.InterruptException):
        return True
    return bool(_CANCELLATION_REGEX.search(str(exc)))


class DuckArrowError(Exception):
    """Base class for all duckarrow errors.
    """


class PrepareError(DuckArrowError):
    """SQL text could not be parsed or resolved by the engine.
    """

    def __init__(self, sql: str, diagnostic: str) -> None:
        self.sql = sql
        self.diagnostic = diagnostic
        super().__init__(f"Can't prepare statement: '{sql}' - Error: {diagnostic}")


class ExecutionError(DuckArrowError):
    """Statement ran but the engine reported a runtime fault.

    Constraint violations, conversion failures and arithmetic faults all land
    here. The statement handle stays usable after this error.
    """

    def __init__(self, sql: str, diagnostic: str, cancelled: bool = False) -> None:
        self.sql = sql
        self.diagnostic = diagnostic
        self.cancelled = cancelled
        super().__init__(f'An execution error has occurred: {diagnostic}')


class FetchError(DuckArrowError):
    """Fault while iterating result chunks after a successful execute.
    """

    def __init__(self, diagnostic: str, cancelled: bool = False) -> None:
        self.diagnostic = diagnostic
        self.cancelled = cancelled
        super().__init__(f'A fetch error has occurred: {diagnostic}')


class SchemaExportError(DuckArrowError):
    """Error converting a schema or chunk into its interchange form.
    """


class ProgrammingError(DuckArrowError):
    """API misuse, such as fetching before a successful execute.
    """


class StatementClosedError(ProgrammingError):
    """Operation attempted on a closed statement handle.
    """


EngineFault = (
    ExecutionError,
    FetchError,
    )
