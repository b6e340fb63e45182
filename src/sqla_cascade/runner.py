"""Statement execution against a SQLAlchemy connection, key minting and transactions.

Generated SQL uses ``?`` placeholders.  :class:`SqlRunner` turns them into typed
``bindparam`` objects and hands the statement to SQLAlchemy, so value processing
(booleans and decimals on SQLite, timestamps everywhere) is the dialect's job.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, NamedTuple, Protocol, TypeVar

import sqlalchemy as sa
from sqlalchemy.sql.selectable import TextualSelect
from sqlalchemy.types import TypeEngine

from .errors import ConfigurationError, ExecutionError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class BindValue(NamedTuple):
    """A value headed for a ``?`` placeholder and the type it is bound with."""

    value: Any
    sa_type: TypeEngine[Any] | None = None


def to_statement(
    sql: str,
    binds: Sequence[BindValue] = (),
    columns: Mapping[str, TypeEngine[Any]] | None = None,
    scalar_type: TypeEngine[Any] | None = None,
) -> sa.TextClause | TextualSelect:
    """Build a SQLAlchemy textual statement from ``?``-style *sql*.

    Each placeholder becomes ``:p0``, ``:p1``, ... in order of appearance.
    When *columns* is given, result columns are typed by label; *scalar_type*
    types the single result column by position instead.
    """
    parts = sql.replace(":", r"\:").split("?")
    if len(parts) - 1 != len(binds):
        raise ConfigurationError(
            f"Statement has {len(parts) - 1} placeholders but {len(binds)} values: {sql}"
        )

    text = parts[0] + "".join(f":p{index}{part}" for index, part in enumerate(parts[1:]))
    statement = sa.text(text).bindparams(
        *(
            sa.bindparam(f"p{index}", bind.value, type_=bind.sa_type)
            for index, bind in enumerate(binds)
        )
    )
    if columns:
        return statement.columns(**columns)
    if scalar_type is not None:
        return statement.columns(sa.column("value", scalar_type))

    return statement


class SqlRunner:
    """Executes generated SQL on one connection; not thread-safe."""

    __slots__ = ("connection",)

    def __init__(self, connection: sa.Connection) -> None:
        self.connection = connection

    def _execute(
        self,
        sql: str,
        binds: Sequence[BindValue],
        columns: Mapping[str, TypeEngine[Any]] | None = None,
        scalar_type: TypeEngine[Any] | None = None,
    ) -> sa.CursorResult[Any]:
        logger.debug("%s %s", sql, [bind.value for bind in binds])
        statement = to_statement(sql, binds, columns, scalar_type)
        try:
            return self.connection.execute(statement)
        except sa.exc.SQLAlchemyError as exc:
            raise ExecutionError(str(exc), sql=sql) from exc

    def select(
        self,
        sql: str,
        binds: Sequence[BindValue] = (),
        columns: Mapping[str, TypeEngine[Any]] | None = None,
    ) -> list[dict[str, Any]]:
        """Rows as dicts keyed by lower-cased column label."""
        result = self._execute(sql, binds, columns)
        return [
            {str(key).lower(): value for key, value in row.items()}
            for row in result.mappings()
        ]

    def write(self, sql: str, binds: Sequence[BindValue] = ()) -> int:
        return self._execute(sql, binds).rowcount

    def scalars(
        self,
        sql: str,
        binds: Sequence[BindValue] = (),
        sa_type: TypeEngine[Any] | None = None,
    ) -> list[Any]:
        """First column of every row, typed by *sa_type* when given."""
        return list(self._execute(sql, binds, scalar_type=sa_type).scalars().all())

    def scalar(
        self,
        sql: str,
        binds: Sequence[BindValue] = (),
        sa_type: TypeEngine[Any] | None = None,
    ) -> Any:
        values = self.scalars(sql, binds, sa_type)
        return values[0] if values else None

    def next_sequence_value(self, sequence_name: str) -> Any:
        statement = sa.select(sa.Sequence(sequence_name).next_value())
        logger.debug("next value of sequence %s", sequence_name)
        try:
            return self.connection.scalar(statement)
        except sa.exc.SQLAlchemyError as exc:
            raise ExecutionError(str(exc), sql=str(statement)) from exc


class KeyProducer(Protocol):
    """Mints a new primary key value for a row about to be inserted."""

    def __call__(self, runner: SqlRunner, sequence_name: str | None) -> Any: ...


def sequence_key_producer(runner: SqlRunner, sequence_name: str | None) -> Any:
    if sequence_name is None:
        raise ConfigurationError("No sequence declared to mint primary keys from")

    return runner.next_sequence_value(sequence_name)


@dataclass(frozen=True, slots=True)
class PersistenceContext:
    """Per-Dao state handed down the save/load/delete cascades."""

    runner: SqlRunner
    key_producer: KeyProducer = sequence_key_producer

    def new_key(self, sequence_name: str | None) -> Any:
        return self.key_producer(self.runner, sequence_name)


def atomically(connection: sa.Connection, work: Callable[[], T]) -> T:
    """Run *work*, committing on success and rolling back on any exception.

    The connection stays open either way.
    """
    try:
        result = work()
    except Exception:
        logger.debug("Rolling back after failed unit of work")
        connection.rollback()
        raise

    connection.commit()
    return result


class Transactor:
    """Runs units of work on a fresh connection and owns its lifecycle.

    Args:
        bind: An engine, or a zero-argument callable returning a new connection.

    Example::

        transactor = Transactor(engine)
        key = transactor.run_and_commit(
            lambda connection: person_builder.build_dao(connection).insert(person)
        )
    """

    __slots__ = ("_connect",)

    def __init__(self, bind: sa.Engine | Callable[[], sa.Connection]) -> None:
        self._connect: Callable[[], sa.Connection] = (
            bind.connect if isinstance(bind, sa.Engine) else bind
        )

    def run_and_commit(self, work: Callable[[sa.Connection], T]) -> T:
        connection = self._connect()
        try:
            return atomically(connection, lambda: work(connection))
        finally:
            connection.close()

    def run_and_rollback(self, work: Callable[[sa.Connection], T]) -> T:
        """Run *work* and discard its writes; useful for dry runs."""
        connection = self._connect()
        try:
            return work(connection)
        finally:
            connection.rollback()
            connection.close()
