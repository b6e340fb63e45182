"""SQL text for one entity descriptor.

Statements are plain strings with ``?`` placeholders, computed once per
descriptor and memoised (see :func:`sql_builder`).  Joined tables are flattened
depth first: every joined table gets the next alias from a fresh
:class:`~sqla_cascade.datastructures.Prefixer`, then its own joins are
flattened before the next sibling join, so the same descriptor graph always
yields the same text::

    select a.id as a_id, a.name as a_name, a.city_id as a_city_id,
           b.id as b_id, b.name as b_name, b.country_id as b_country_id,
           c.id as c_id, c.name as c_name
      from person a
      LEFT JOIN city b ON a.city_id=b.id
      LEFT JOIN country c ON b.country_id=c.id
     where 1=1
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from sqlalchemy.types import TypeEngine

from .columns import Column, JoinColumn
from .datastructures import Prefixer, frozendict
from .errors import ConfigurationError
from .runner import BindValue
from .tools import placeholders
from .where import Order, SqlFunction, Where


if TYPE_CHECKING:
    from .descriptor import EntityDescriptor


@dataclass(frozen=True, slots=True, eq=False)
class JoinNode:
    """One joined table inside a select: who joins it, under which alias."""

    column: JoinColumn
    alias: str
    parent_alias: str
    joins: tuple[JoinNode, ...]

    @property
    def descriptor(self) -> EntityDescriptor[Any, Any]:
        return self.column.descriptor

    @property
    def clause(self) -> str:
        primary_key = self.descriptor.primary_key
        assert primary_key is not None
        return (
            f" LEFT JOIN {self.descriptor.table} {self.alias}"
            f" ON {self.parent_alias}.{self.column.name}={self.alias}.{primary_key.name}"
        )

    def walk(self) -> Iterator[JoinNode]:
        yield self
        for node in self.joins:
            yield from node.walk()


def _plan_joins(
    descriptor: EntityDescriptor[Any, Any], alias: str, prefixer: Prefixer
) -> tuple[JoinNode, ...]:
    nodes = []
    for column in descriptor.join_columns:
        join_alias = prefixer.next_prefix()
        nested = _plan_joins(column.descriptor, join_alias, prefixer)
        nodes.append(JoinNode(column, join_alias, alias, nested))

    return tuple(nodes)


@dataclass(frozen=True, slots=True, eq=False)
class SelectPlan:
    """Flattened view of a descriptor and everything it joins, transitively."""

    descriptor: EntityDescriptor[Any, Any]
    alias: str
    joins: tuple[JoinNode, ...]

    def nodes(self) -> Iterator[JoinNode]:
        """Every join node, in the order the ``LEFT JOIN`` clauses are emitted."""
        for node in self.joins:
            yield from node.walk()

    def tables(self) -> Iterator[tuple[str, EntityDescriptor[Any, Any]]]:
        yield self.alias, self.descriptor
        for node in self.nodes():
            yield node.alias, node.descriptor

    @property
    def from_clause(self) -> str:
        return f"{self.descriptor.table} {self.alias}" + "".join(
            node.clause for node in self.nodes()
        )

    @property
    def select_list(self) -> str:
        return ", ".join(
            f"{column.qualified(alias)} as {column.label(alias)}"
            for alias, descriptor in self.tables()
            for column in descriptor.all_columns
        )

    @property
    def result_types(self) -> dict[str, TypeEngine[Any]]:
        return {
            column.label(alias): column.sa_type
            for alias, descriptor in self.tables()
            for column in descriptor.all_columns
        }

    def column_for(self, name: str) -> Column | None:
        """Resolve ``"name"`` on the root table or ``"b.name"`` on a joined one."""
        alias, _, column = name.rpartition(".")
        for table_alias, descriptor in self.tables():
            if table_alias == (alias.lower() or self.alias):
                return descriptor.column(column)

        return None


def plan_select(descriptor: EntityDescriptor[Any, Any]) -> SelectPlan:
    prefixer = Prefixer()
    alias = prefixer.next_prefix()
    return SelectPlan(descriptor, alias, _plan_joins(descriptor, alias, prefixer))


def _names(columns: Sequence[Column]) -> str:
    return ", ".join(column.name for column in columns)


class SqlBuilder:
    """Every statement the persistence layer issues for one descriptor.

    Fixed statements are rendered once in ``__init__``; predicate-dependent
    ones are assembled per call.
    """

    __slots__ = (
        "_delete",
        "_insert",
        "_select",
        "_update",
        "_update_without_parent",
        "descriptor",
        "plan",
    )

    def __init__(self, descriptor: EntityDescriptor[Any, Any]) -> None:
        self.descriptor = descriptor
        self.plan = plan_select(descriptor)
        self._select = f"select {self.plan.select_list} from {self.plan.from_clause} where 1=1"

        table = descriptor.table
        primary_key = descriptor.primary_key
        insert_columns = self.insert_columns
        self._insert = (
            f"insert into {table} ( {_names(insert_columns)} )"
            f" values ( {placeholders(len(insert_columns))} )"
        )

        if primary_key is None:
            self._update = self._update_without_parent = self._delete = None
        else:
            set_columns = self.update_columns(with_parent=True)
            self._update = self._render_update(set_columns)
            self._update_without_parent = self._render_update(
                self.update_columns(with_parent=False)
            )
            self._delete = f"delete from {table} where {primary_key.name} = ?"

    def _render_update(self, columns: Sequence[Column]) -> str:
        assignments = ", ".join(f"{column.name} = ?" for column in columns)
        return (
            f"update {self.descriptor.table} set {assignments}"
            f" where {self.descriptor.primary_key.name} = ?"  # type: ignore[union-attr]
        )

    @property
    def insert_columns(self) -> tuple[Column, ...]:
        descriptor = self.descriptor
        return tuple(
            column
            for column in (descriptor.primary_key, descriptor.parent_column)
            if column is not None
        ) + descriptor.data_columns + descriptor.join_columns

    def update_columns(self, *, with_parent: bool) -> tuple[Column, ...]:
        descriptor = self.descriptor
        parent = (descriptor.parent_column,) if with_parent and descriptor.parent_column else ()
        return parent + descriptor.data_columns + descriptor.join_columns

    def _require_key(self, statement: str | None) -> str:
        if statement is None:
            raise ConfigurationError(f"{self.descriptor.table} has no primary key")
        return statement

    # selects

    def select(self) -> str:
        return self._select

    def select_where(self, where: Where | None = None, order: Order | None = None) -> str:
        sql = self._select
        if where is not None and not where.is_empty:
            sql += f" and ( {where.render()} )"
        if order is not None:
            sql += order.render(f"{self.plan.alias}.")
        return sql

    def select_with_condition(self, condition: str) -> str:
        """Select narrowed by a ready-made ``and ...`` *condition*, in key order."""
        sql = self._select + condition
        primary_key = self.descriptor.primary_key
        if primary_key is not None:
            sql += f" ORDER BY {self.plan.alias}.{primary_key.name} ASC"
        return sql

    def parent_condition(self, operand: str) -> str:
        """``and a.<parent column> <operand>`` for selecting rows of this child table."""
        parent_column = self.descriptor.parent_column
        if parent_column is None:
            raise ConfigurationError(f"{self.descriptor.table} has no parent column")
        return f" and {parent_column.qualified(self.plan.alias)} {operand}"

    def select_child_ids(self) -> str:
        """Primary keys of this (child) table belonging to one parent."""
        primary_key = self.descriptor.primary_key
        parent_column = self.descriptor.parent_column
        if primary_key is None or parent_column is None:
            raise ConfigurationError(f"{self.descriptor.table} is not a keyed child table")

        return (
            f"select {primary_key.name} from {self.descriptor.table}"
            f" where {parent_column.name} = ?"
        )

    def select_distinct(self, columns: Sequence[Column], where: Where | None = None) -> str:
        alias = self.plan.alias
        listed = ", ".join(
            f"{column.qualified(alias)} as {column.label(alias)}" for column in columns
        )
        sql = f"select distinct {listed} from {self.plan.from_clause} where 1=1"
        if where is not None and not where.is_empty:
            sql += f" and ( {where.render()} )"
        return sql

    def select_function(
        self, function: SqlFunction, column: str, where: Where | None = None
    ) -> str:
        sql = (
            f"select {function.render(column, f'{self.plan.alias}.')} as value"
            f" from {self.plan.from_clause} where 1=1"
        )
        if where is not None and not where.is_empty:
            sql += f" and ( {where.render()} )"
        return sql

    def sub_select_keys(self, key_column: str, condition: str) -> str:
        """``select <key_column> from <this select's tables> where 1=1<condition>``."""
        return f"select {key_column} from {self.plan.from_clause} where 1=1{condition}"

    # writes

    def insert(self) -> str:
        return self._insert

    def update(self, *, with_parent: bool = True) -> str:
        if with_parent and self.descriptor.parent_column is not None:
            return self._require_key(self._update)
        return self._require_key(self._update_without_parent)

    def delete(self) -> str:
        return self._require_key(self._delete)

    # binds

    def insert_binds(
        self,
        item: Any,
        key: Any = None,
        parent_key: Any = None,
        *,
        check_key: bool = True,
    ) -> list[BindValue]:
        """Bound values for :meth:`insert`, in column order.

        With ``check_key=False`` the key slot may stay empty, so the row can be
        checked before a key is minted for it.

        Raises:
            NullValueError: When a non-nullable column (including the parent
                column) would receive ``None``.
        """
        descriptor = self.descriptor
        binds = []
        if descriptor.primary_key is not None:
            primary_key = descriptor.primary_key
            binds.append(
                primary_key.bind_value(key) if check_key else BindValue(key, primary_key.sa_type)
            )
        if descriptor.parent_column is not None:
            binds.append(descriptor.parent_column.bind_value(parent_key))
        binds.extend(column.bind(item) for column in descriptor.data_columns)
        binds.extend(column.bind(item) for column in descriptor.join_columns)
        return binds

    def update_binds(self, item: Any, key: Any, parent_key: Any = None) -> list[BindValue]:
        descriptor = self.descriptor
        binds = []
        if parent_key is not None and descriptor.parent_column is not None:
            binds.append(descriptor.parent_column.bind_value(parent_key))
        binds.extend(column.bind(item) for column in descriptor.data_columns)
        binds.extend(column.bind(item) for column in descriptor.join_columns)
        binds.append(descriptor.primary_key.bind_value(key))  # type: ignore[union-attr]
        return binds

    def key_bind(self, key: Any) -> BindValue:
        return self.descriptor.primary_key.bind_value(key)  # type: ignore[union-attr]

    def where_binds(self, where: Where | None) -> list[BindValue]:
        """Typed values for the placeholders of a rendered :class:`Where`.

        Values compared for equality pass through the column's converter, so
        ``Where.where("active", Operator.EQ, True)`` matches a ``"T"`` column.
        """
        if where is None:
            return []

        binds = []
        for atom in where.atoms:
            column = self.plan.column_for(atom.column)
            for value in atom.values:
                if column is None:
                    binds.append(BindValue(value))
                    continue
                if (
                    value is not None
                    and column.converter is not None
                    and atom.operator.compares_equality
                ):
                    value = column.converter.to_storage(value)
                binds.append(BindValue(value, column.sa_type))

        return binds

    def __repr__(self) -> str:
        return f"<SqlBuilder {self.descriptor.table}>"


@lru_cache(maxsize=512)
def sql_builder(descriptor: EntityDescriptor[Any, Any]) -> SqlBuilder:
    """Memoised :class:`SqlBuilder` for *descriptor* (descriptors hash by identity)."""
    return SqlBuilder(descriptor)


def cache_info() -> frozendict[str, Any]:
    """Return LRU cache statistics for the SQL caches."""
    return frozendict({fn.__name__: fn.cache_info() for fn in (sql_builder,)})


def cache_clear() -> None:
    """Clear the SQL caches."""
    sql_builder.cache_clear()
