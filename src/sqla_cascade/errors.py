from __future__ import annotations

from collections.abc import Iterable


class SqlaCascadeError(Exception):
    """Base class for every error raised by sqla_cascade."""


class ConfigurationError(SqlaCascadeError, ValueError):
    """The descriptor graph was declared inconsistently.

    Raised while building descriptors or Daos, never while running statements.
    """


class NullValueError(SqlaCascadeError, ValueError):
    """A null value was about to be written into a non-nullable column.

    Raised while binding parameters, before any statement is executed.
    """


class UnsavedReferenceError(SqlaCascadeError, ValueError):
    """A join column references an entity that has no primary key yet."""


class ConversionError(SqlaCascadeError, ValueError):
    """A converter received a stored value it does not recognise."""


class ExecutionError(SqlaCascadeError):
    """Wraps a failure raised by the database while running *sql*.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message if sql is None else f"{message}\n[SQL: {sql}]")
        self.sql = sql


class ValidationError(SqlaCascadeError):
    """Every problem found while checking descriptors against a live schema."""

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems: list[str] = list(problems)
        super().__init__("\n".join(self.problems))
