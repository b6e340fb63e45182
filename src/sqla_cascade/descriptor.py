"""Entity descriptors and the fluent builder that declares them.

A descriptor is everything the persistence layer knows about one entity: its
table, how to create and finish builders, its columns, the entities it joins
and the children it owns.  Descriptors are declared once with a
:class:`DescriptorBuilder` and are immutable afterwards::

    countries = (
        DescriptorBuilder("country", Country)
        .with_primary_key("id", "id", "id", sequence="country_seq")
        .with_string_column("name", "name", "name", nullable=False)
    )
    cities = (
        DescriptorBuilder("city", City)
        .with_primary_key("id", "id", "id", sequence="city_seq")
        .with_string_column("name", "name", "name")
        .with_join_column("country_id", "country", "country", countries)
    )
    dao = cities.build_dao(connection)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import sqlalchemy as sa

from . import column_types
from .children import ChildrenDescriptor
from .column_types import ColumnType
from .columns import (
    BackReferenceParentColumn,
    Column,
    ColumnCollection,
    JoinColumn,
    NoBackReferenceParentColumn,
    ParentColumn,
    PrimaryKey,
)
from .converters import ONE_ZERO_BOOLEAN, T_F_BOOLEAN, Converter
from .dao import Dao, KeylessDao
from .datastructures import frozendict
from .errors import ConfigurationError
from .runner import KeyProducer
from .sql import SqlBuilder, sql_builder
from .strategies import ChildSelectStrategy
from .tools import Getter, Setter, as_getter, as_setter


logger = logging.getLogger(__name__)

E = TypeVar("E")
B = TypeVar("B")

Accessor = str | Callable[..., Any]


@dataclass(frozen=True, slots=True, eq=False)
class EntityDescriptor(Generic[E, B]):
    """Immutable persistence metadata for one entity type; safe to share between threads.

    When *build* is ``None`` the object returned by *supplier* is the entity
    itself and is populated in place.
    """

    table: str
    supplier: Callable[[], B]
    build: Callable[[B], E] | None = None
    primary_key: PrimaryKey | None = None
    parent_column: ParentColumn | None = None
    data_columns: tuple[Column, ...] = ()
    join_columns: tuple[JoinColumn, ...] = ()
    children: tuple[ChildrenDescriptor, ...] = ()
    unique_constraints: tuple[tuple[str, ...], ...] = ()
    strategy: ChildSelectStrategy = ChildSelectStrategy.STANDARD
    columns_by_name: frozendict[str, Column] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "columns_by_name",
            frozendict({column.name.lower(): column for column in self.all_columns}),
        )

    @property
    def all_columns(self) -> tuple[Column, ...]:
        """Primary key, parent column, data columns, then join columns."""
        keys = tuple(
            column for column in (self.primary_key, self.parent_column) if column is not None
        )
        return keys + self.data_columns + self.join_columns

    @property
    def builds_in_place(self) -> bool:
        return self.build is None

    def new_builder(self) -> B:
        return self.supplier()

    def build_item(self, builder: B) -> E:
        if self.build is None:
            return builder  # type: ignore[return-value]
        return self.build(builder)

    def column(self, name: str) -> Column | None:
        return self.columns_by_name.get(name.lower())

    def walk(self) -> Iterator[EntityDescriptor[Any, Any]]:
        """This descriptor, then every descriptor it joins or owns, transitively."""
        yield self
        for column in self.join_columns:
            yield from column.descriptor.walk()
        for children in self.children:
            yield from children.descriptor.walk()

    def __repr__(self) -> str:
        return f"<EntityDescriptor {self.table}>"


class DescriptorBuilder(Generic[E, B]):
    """Fluent declaration of an :class:`EntityDescriptor`.

    Accessors are either attribute names or callables: getters take the entity,
    setters take ``(builder, value)``.  Every ``with_*`` method returns the
    builder.  Joined and child entities may be given as builders; they are
    built on the spot, so declare them completely before referencing them.

    Args:
        table: Table name.
        supplier: Creates an empty builder (or entity, in mutable mode).
        build: Turns a populated builder into the entity; omit for mutable entities.
    """

    __slots__ = (
        "_build",
        "_children",
        "_columns",
        "_descriptor",
        "_strategy",
        "_supplier",
        "_table",
    )

    def __init__(
        self,
        table: str,
        supplier: Callable[[], B],
        build: Callable[[B], E] | None = None,
    ) -> None:
        self._table = table
        self._supplier = supplier
        self._build = build
        self._columns = ColumnCollection()
        self._children: list[tuple[Getter, Setter, EntityDescriptor[Any, Any]]] = []
        self._strategy = ChildSelectStrategy.STANDARD
        self._descriptor: EntityDescriptor[E, B] | None = None

    @property
    def table(self) -> str:
        return self._table

    def _changed(self) -> DescriptorBuilder[E, B]:
        self._descriptor = None
        return self

    # keys

    def with_primary_key(
        self,
        name: str,
        getter: Accessor,
        setter: Accessor,
        *,
        sequence: str | None = None,
        column_type: ColumnType = column_types.INTEGER,
    ) -> DescriptorBuilder[E, B]:
        """Declare the surrogate key, minted from *sequence* on insert."""
        self._columns.primary_key = PrimaryKey(
            name=name,
            column_type=column_type,
            getter=as_getter(getter),
            setter=as_setter(setter),
            sequence_name=sequence,
            assign_on_entity=self._build is None,
        )
        return self._changed()

    def with_parent_column(
        self,
        name: str,
        setter: Accessor | None = None,
        *,
        nullable: bool = False,
        column_type: ColumnType = column_types.INTEGER,
    ) -> DescriptorBuilder[E, B]:
        """Declare the column referencing the owning parent's key.

        With a *setter* the loaded child gets a reference to its parent;
        without one the child type carries no pointer to its parent at all.

        Raises:
            ConfigurationError: If *nullable* is true.
        """
        if nullable:
            raise ConfigurationError(f"Parent column {name} cannot be nullable")

        if setter is None:
            parent: ParentColumn = NoBackReferenceParentColumn(name=name, column_type=column_type)
        else:
            parent = BackReferenceParentColumn(
                name=name, column_type=column_type, setter=as_setter(setter)
            )
        self._columns.parent_column = parent
        return self._changed()

    # data columns

    def with_generic_column(
        self,
        name: str,
        getter: Accessor,
        setter: Accessor,
        column_type: ColumnType,
        converter: Converter[Any, Any] | None = None,
        *,
        nullable: bool = True,
        sql_type_name: str | None = None,
    ) -> DescriptorBuilder[E, B]:
        self._columns.add_data_column(
            Column(
                name=name,
                column_type=column_type,
                getter=as_getter(getter),
                setter=as_setter(setter),
                converter=converter,
                nullable=nullable,
                sql_type_name=sql_type_name,
            )
        )
        return self._changed()

    def with_string_column(
        self, name: str, getter: Accessor, setter: Accessor, **options: Any
    ) -> DescriptorBuilder[E, B]:
        return self.with_generic_column(name, getter, setter, column_types.STRING, **options)

    def with_integer_column(
        self, name: str, getter: Accessor, setter: Accessor, **options: Any
    ) -> DescriptorBuilder[E, B]:
        return self.with_generic_column(name, getter, setter, column_types.INTEGER, **options)

    def with_decimal_column(
        self, name: str, getter: Accessor, setter: Accessor, **options: Any
    ) -> DescriptorBuilder[E, B]:
        """Column holding :class:`~decimal.Decimal` values."""
        return self.with_generic_column(name, getter, setter, column_types.DECIMAL, **options)

    def with_float_column(
        self, name: str, getter: Accessor, setter: Accessor, **options: Any
    ) -> DescriptorBuilder[E, B]:
        return self.with_generic_column(name, getter, setter, column_types.FLOAT, **options)

    def with_boolean_column(
        self, name: str, getter: Accessor, setter: Accessor, **options: Any
    ) -> DescriptorBuilder[E, B]:
        """Native boolean column."""
        return self.with_generic_column(name, getter, setter, column_types.BOOLEAN, **options)

    def with_string_boolean_column(
        self, name: str, getter: Accessor, setter: Accessor, **options: Any
    ) -> DescriptorBuilder[E, B]:
        """Boolean stored as ``"T"``/``"F"`` text."""
        return self.with_generic_column(
            name, getter, setter, column_types.STRING, T_F_BOOLEAN, **options
        )

    def with_integer_boolean_column(
        self, name: str, getter: Accessor, setter: Accessor, **options: Any
    ) -> DescriptorBuilder[E, B]:
        """Boolean stored as ``1``/``0``."""
        return self.with_generic_column(
            name, getter, setter, column_types.INTEGER, ONE_ZERO_BOOLEAN, **options
        )

    def with_datetime_column(
        self, name: str, getter: Accessor, setter: Accessor, **options: Any
    ) -> DescriptorBuilder[E, B]:
        return self.with_generic_column(name, getter, setter, column_types.DATETIME, **options)

    def with_date_column(
        self, name: str, getter: Accessor, setter: Accessor, **options: Any
    ) -> DescriptorBuilder[E, B]:
        return self.with_generic_column(name, getter, setter, column_types.DATE, **options)

    def with_converting_string_column(
        self,
        name: str,
        getter: Accessor,
        setter: Accessor,
        converter: Converter[Any, str],
        **options: Any,
    ) -> DescriptorBuilder[E, B]:
        """Text column holding a domain value mapped through *converter*."""
        return self.with_generic_column(
            name, getter, setter, column_types.STRING, converter, **options
        )

    # relationships

    def with_join_column(
        self,
        name: str,
        getter: Accessor,
        setter: Accessor,
        joined: DescriptorBuilder[Any, Any] | EntityDescriptor[Any, Any],
        *,
        nullable: bool = True,
        sql_type_name: str | None = None,
    ) -> DescriptorBuilder[E, B]:
        """Reference an independently persisted entity; it is loaded through a ``LEFT JOIN``."""
        descriptor = _resolve(joined)
        if descriptor.primary_key is None:
            raise ConfigurationError(
                f"Join column {name} references {descriptor.table} without a primary key"
            )

        self._columns.add_join_column(
            JoinColumn(
                name=name,
                column_type=descriptor.primary_key.column_type,
                getter=as_getter(getter),
                setter=as_setter(setter),
                nullable=nullable,
                sql_type_name=sql_type_name,
                descriptor=descriptor,
            )
        )
        return self._changed()

    def with_children(
        self,
        getter: Accessor,
        setter: Accessor,
        child: DescriptorBuilder[Any, Any] | EntityDescriptor[Any, Any],
    ) -> DescriptorBuilder[E, B]:
        """Own a list of child entities, saved and deleted along with this one."""
        descriptor = _resolve(child)
        if descriptor.primary_key is None or descriptor.parent_column is None:
            raise ConfigurationError(
                f"Child {descriptor.table} of {self._table} needs a primary key and a parent column"
            )

        self._children.append((as_getter(getter), as_setter(setter), descriptor))
        return self._changed()

    def with_unique_constraint(self, *names: str) -> DescriptorBuilder[E, B]:
        self._columns.add_unique_constraint(*names)
        return self._changed()

    def with_child_select_strategy(self, strategy: ChildSelectStrategy) -> DescriptorBuilder[E, B]:
        self._strategy = strategy
        return self._changed()

    # building

    def build_descriptor(self) -> EntityDescriptor[E, B]:
        """Freeze the declaration. Repeated calls return the same descriptor.

        Raises:
            ConfigurationError: On inconsistent declarations.
        """
        if self._descriptor is not None:
            return self._descriptor

        columns = self._columns
        columns.check_constraints()
        if self._children and columns.primary_key is None:
            raise ConfigurationError(f"{self._table} owns children but has no primary key")

        self._descriptor = EntityDescriptor(
            table=self._table,
            supplier=self._supplier,
            build=self._build,
            primary_key=columns.primary_key,
            parent_column=columns.parent_column,
            data_columns=columns.data_columns,
            join_columns=columns.join_columns,
            children=tuple(
                ChildrenDescriptor(getter, setter, child, columns.primary_key)  # type: ignore[arg-type]
                for getter, setter, child in self._children
            ),
            unique_constraints=columns.unique_constraints,
            strategy=self._strategy,
        )
        logger.debug("Built descriptor for %s", self._table)
        return self._descriptor

    def build_queries(self) -> SqlBuilder:
        return sql_builder(self.build_descriptor())

    def build_dao(
        self, connection: sa.Connection, key_producer: KeyProducer | None = None
    ) -> Dao[E]:
        """Bind the descriptor to *connection*.

        Without a *key_producer*, keys come from each table's sequence.

        Raises:
            ConfigurationError: Without a primary key, when strategies of joined
                entities disagree, or when a key has no sequence to come from.
        """
        descriptor = self.build_descriptor()
        if key_producer is None:
            _check_sequences(descriptor)
            return Dao(connection, descriptor)

        return Dao(connection, descriptor, key_producer)

    def build_keyless_dao(self, connection: sa.Connection) -> KeylessDao[E]:
        """Bind the descriptor to *connection* for inserts and selects only."""
        return KeylessDao(connection, self.build_descriptor())

    def __repr__(self) -> str:
        return f"<DescriptorBuilder {self._table}>"


def _resolve(
    target: DescriptorBuilder[Any, Any] | EntityDescriptor[Any, Any],
) -> EntityDescriptor[Any, Any]:
    if isinstance(target, DescriptorBuilder):
        return target.build_descriptor()
    return target


def _check_sequences(descriptor: EntityDescriptor[Any, Any]) -> None:
    """Keys minted by this descriptor (and owned children) need a sequence."""
    pending = [descriptor]
    while pending:
        current = pending.pop()
        if current.primary_key is not None and current.primary_key.sequence_name is None:
            raise ConfigurationError(
                f"Primary key of {current.table} has no sequence; declare one or pass a key_producer"
            )
        pending.extend(children.descriptor for children in current.children)

