"""Data access objects: one descriptor bound to one connection."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import sqlalchemy as sa

from .columns import Column, JoinColumn, PrimaryKey
from .errors import ConfigurationError, NullValueError
from .loading import finalize, populate_level, read_rows
from .runner import (
    KeyProducer,
    PersistenceContext,
    SqlRunner,
    atomically,
    sequence_key_producer,
)
from .sql import SqlBuilder, sql_builder
from .strategies import check_strategy_consistency, root_selector
from .tools import single_or_none
from .where import ColumnSelection, Operator, Order, SqlFunction, Where


if TYPE_CHECKING:
    from .descriptor import EntityDescriptor


logger = logging.getLogger(__name__)

E = TypeVar("E")
A = TypeVar("A")


class KeylessDao(Generic[E]):
    """Inserts and selects for one entity type over one connection.

    Not thread-safe: a Dao and everything it cascades into use its connection
    sequentially.  Build one per connection.
    """

    __slots__ = ("connection", "context", "descriptor")

    def __init__(
        self,
        connection: sa.Connection,
        descriptor: EntityDescriptor[E, Any],
        key_producer: KeyProducer = sequence_key_producer,
    ) -> None:
        check_strategy_consistency(descriptor)
        self.connection = connection
        self.descriptor = descriptor
        self.context = PersistenceContext(SqlRunner(connection), key_producer)

    @property
    def runner(self) -> SqlRunner:
        return self.context.runner

    def queries(self) -> SqlBuilder:
        """The SQL this Dao runs."""
        return sql_builder(self.descriptor)

    def _column(self, name: str) -> Column:
        column = self.queries().plan.column_for(name)
        if column is None:
            raise ConfigurationError(f"{self.descriptor.table} has no column {name}")
        return column

    # writes

    def insert(self, item: E, *, parent_key: Any = None) -> None:
        builder = self.queries()
        self.runner.write(builder.insert(), builder.insert_binds(item, parent_key=parent_key))

    def atomic_insert(self, item: E, *, parent_key: Any = None) -> Any:
        return atomically(self.connection, lambda: self.insert(item, parent_key=parent_key))

    # selects

    def _load(self, where: Where | None = None, order: Order | None = None) -> list[E]:
        builder = self.queries()
        rows = self.runner.select(
            builder.select_where(where, order), builder.where_binds(where), builder.plan.result_types
        )
        envelopes = read_rows(builder.plan, rows)
        populate_level(
            self.context,
            envelopes,
            self.descriptor,
            root_selector(self.descriptor.strategy, builder, where),
        )
        return [finalize(envelope, self.descriptor) for envelope in envelopes]

    def select_all(self, order: Order | None = None) -> list[E]:
        return self._load(order=order)

    def select_where(self, where: Where, order: Order | None = None) -> list[E]:
        """Entities matching *where*, children and joined entities populated.

        Example:
            >>> dao.select_where(Where.where("name", Operator.LIKE, "Ber%"), Order.ascending("name"))
        """
        return self._load(where, order)

    def select_one(self, where: Where) -> E | None:
        """The single match of *where*, or ``None``.

        Raises:
            sqlalchemy.exc.MultipleResultsFound: If more than one row matches.
        """
        return single_or_none(self._load(where))

    def _example(
        self,
        item: E,
        columns: Sequence[str],
        operators: Mapping[str, Operator] | None,
    ) -> Where:
        selection = ColumnSelection.of(*columns, operators=operators)
        values = {}
        for name in selection.names:
            column = self._column(name)
            operator = selection.operator_for(name)
            if isinstance(column, JoinColumn) or not operator.compares_equality:
                values[name] = column.value_of(item)
            else:
                # Converted on binding.
                values[name] = column.getter(item) if column.getter is not None else None
        return selection.as_where(values)

    def select_by_columns(
        self,
        item: E,
        *columns: str,
        operators: Mapping[str, Operator] | None = None,
        order: Order | None = None,
    ) -> list[E]:
        """Entities whose *columns* match the values on the example *item*.

        Columns compare with equality unless *operators* names another operator.
        """
        return self._load(self._example(item, columns, operators), order)

    def select_one_by_columns(
        self,
        item: E,
        *columns: str,
        operators: Mapping[str, Operator] | None = None,
    ) -> E | None:
        return single_or_none(self._load(self._example(item, columns, operators)))

    def fold(
        self,
        identity: A,
        accumulator: Callable[[A, E], A],
        where: Where | None = None,
    ) -> A:
        """Reduce the matching entities into a single value."""
        return functools.reduce(accumulator, self._load(where), identity)

    def select_distinct(self, *names: str, where: Where | None = None) -> list[tuple[Any, ...]]:
        """Distinct combinations of values in the named columns, in domain form."""
        columns = [self._column(name) for name in names]
        builder = self.queries()
        rows = self.runner.select(
            builder.select_distinct(columns, where),
            builder.where_binds(where),
            {column.label(builder.plan.alias): column.sa_type for column in columns},
        )
        return [
            tuple(column.to_domain(row[column.label(builder.plan.alias)]) for column in columns)
            for row in rows
        ]

    def run_function(
        self, function: SqlFunction, column: str, where: Where | None = None
    ) -> Any:
        """Run an aggregate over *column*, e.g. ``run_function(SqlFunction.MAX, "age")``."""
        builder = self.queries()
        sql = builder.select_function(function, column, where)
        if function in (SqlFunction.MIN, SqlFunction.MAX):
            target = self._column(column)
            value = self.runner.scalar(sql, builder.where_binds(where), target.sa_type)
            return target.to_domain(value)

        return self.runner.scalar(sql, builder.where_binds(where))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.descriptor.table}>"


class Dao(KeylessDao[E]):
    """Full create/read/update/delete for an entity with a primary key.

    Saving cascades into owned children: new children are inserted, known ones
    updated and children missing from the entity are deleted.  Joined entities
    are referenced by key only and never written.
    """

    __slots__ = ()

    def __init__(
        self,
        connection: sa.Connection,
        descriptor: EntityDescriptor[E, Any],
        key_producer: KeyProducer = sequence_key_producer,
    ) -> None:
        if descriptor.primary_key is None:
            raise ConfigurationError(f"Cannot build a Dao for {descriptor.table} without a primary key")
        super().__init__(connection, descriptor, key_producer)

    @property
    def primary_key(self) -> PrimaryKey:
        assert self.descriptor.primary_key is not None
        return self.descriptor.primary_key

    def _key_of(self, item: E) -> Any:
        key = self.primary_key.get_key(item)
        if key is None:
            raise NullValueError(f"{self.descriptor.table} entity has no primary key")
        return key

    def _save_children(self, key: Any, item: E) -> None:
        for children in self.descriptor.children:
            children.save_children(self.context, key, item)

    def insert(self, item: E, *, parent_key: Any = None) -> Any:
        """Insert *item* under a newly minted key, then its children. Returns the key.

        Raises:
            NullValueError: Before anything runs, when a non-nullable column is
                empty (for child entities: when *parent_key* is missing).
        """
        builder = self.queries()
        binds = builder.insert_binds(item, parent_key=parent_key, check_key=False)
        key = self.context.new_key(self.primary_key.sequence_name)
        binds[0] = builder.key_bind(key)
        self.primary_key.optimistic_set_key(item, key)

        self.runner.write(builder.insert(), binds)
        logger.debug("Inserted %s %r", self.descriptor.table, key)
        self._save_children(key, item)
        return key

    def update(self, item: E, *, parent_key: Any = None) -> None:
        """Update *item* by its key and reconcile its children.

        The parent column is only rewritten when *parent_key* is given.
        """
        builder = self.queries()
        key = self._key_of(item)
        self.runner.write(
            builder.update(with_parent=parent_key is not None),
            builder.update_binds(item, key, parent_key),
        )
        self._save_children(key, item)

    def save(self, item: E, *, parent_key: Any = None) -> Any:
        """Insert when *item* has no key yet, update otherwise. Returns the key."""
        key = self.primary_key.get_key(item)
        if key is None:
            return self.insert(item, parent_key=parent_key)

        self.update(item, parent_key=parent_key)
        return key

    def delete(self, item: E) -> None:
        """Delete *item* and, bottom-up, every child it owns."""
        builder = self.queries()
        key = self._key_of(item)
        for children in self.descriptor.children:
            children.delete_all(self.context, key)
        self.runner.write(builder.delete(), [builder.key_bind(key)])
        logger.debug("Deleted %s %r", self.descriptor.table, key)

    def select(self, key: Any) -> E | None:
        return self.select_one(Where.where(self.primary_key.name, Operator.EQUALS, key))

    def select_many(self, keys: Iterable[Any]) -> list[E]:
        keys = list(keys)
        if not keys:
            return []

        return self.select_where(Where.in_(self.primary_key.name, keys))

    def atomic_update(self, item: E, *, parent_key: Any = None) -> None:
        atomically(self.connection, lambda: self.update(item, parent_key=parent_key))

    def atomic_save(self, item: E, *, parent_key: Any = None) -> Any:
        return atomically(self.connection, lambda: self.save(item, parent_key=parent_key))

    def atomic_delete(self, item: E) -> None:
        atomically(self.connection, lambda: self.delete(item))
