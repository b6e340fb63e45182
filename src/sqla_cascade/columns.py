"""Typed accessors between entity attributes and single table columns.

Every column knows how to read its value from an entity (applying an optional
converter and enforcing nullability) and how to write a value read from a row
into a builder.  The specialised kinds (primary key, parent reference, join
reference) are closed subclasses of :class:`Column`; a :class:`ColumnCollection`
gathers them for one entity while its descriptor is being declared.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy.types import TypeEngine

from . import column_types
from .column_types import ColumnType
from .converters import Converter
from .errors import ConfigurationError, NullValueError, UnsavedReferenceError
from .runner import BindValue
from .tools import Getter, Setter


if TYPE_CHECKING:
    from .descriptor import EntityDescriptor

logger = logging.getLogger(__name__)


class ColumnKind(enum.Enum):
    DATA = "data"
    PRIMARY_KEY = "primary_key"
    PARENT = "parent"
    JOIN = "join"


@dataclass(frozen=True, slots=True, kw_only=True, eq=False, repr=False)
class Column:
    """A plain data column.

    Args:
        name: Column name in the table.
        column_type: Storage type (bind/result processing and validation).
        getter: Reads the domain value from an entity.
        setter: Writes the domain value onto a builder.
        converter: Optional mapping between domain and stored values.
        nullable: When ``False`` writing ``None`` raises :class:`NullValueError`.
        sql_type_name: Overrides the type name accepted by schema validation.
    """

    name: str
    column_type: ColumnType
    getter: Getter | None = None
    setter: Setter | None = None
    converter: Converter[Any, Any] | None = None
    nullable: bool = True
    sql_type_name: str | None = None

    kind: ClassVar[ColumnKind] = ColumnKind.DATA

    @property
    def sa_type(self) -> TypeEngine[Any]:
        return self.column_type.sa_type

    @property
    def type_name(self) -> str:
        return self.sql_type_name or self.column_type.sql_type_name

    def label(self, alias: str) -> str:
        """Result label used when selected under *alias* (``a.name as a_name``)."""
        return f"{alias}_{self.name}".lower()

    def qualified(self, alias: str) -> str:
        return f"{alias}.{self.name}"

    def value_of(self, item: Any) -> Any:
        """Stored representation of this column's value on *item*."""
        if self.getter is None:
            return None

        value = self.getter(item)
        if value is not None and self.converter is not None:
            return self.converter.to_storage(value)

        return value

    def bind_value(self, value: Any) -> BindValue:
        if value is None and not self.nullable:
            raise NullValueError(
                f"Tried to set a null value for {self.name} which was set not nullable"
            )

        return BindValue(value, self.sa_type)

    def bind(self, item: Any) -> BindValue:
        return self.bind_value(self.value_of(item))

    def to_domain(self, stored: Any) -> Any:
        if stored is not None and self.converter is not None:
            return self.converter.to_domain(stored)

        return stored

    def populate(self, builder: Any, stored: Any) -> None:
        if self.setter is not None:
            self.setter(builder, self.to_domain(stored))

    def supports(self, reflected: TypeEngine[Any]) -> bool:
        if self.sql_type_name and str(reflected).lower().startswith(self.sql_type_name.lower()):
            return True

        return self.column_type.supports(reflected)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


@dataclass(frozen=True, slots=True, kw_only=True, eq=False, repr=False)
class PrimaryKey(Column):
    """Surrogate key column, minted client-side from *sequence_name*.

    ``assign_on_entity`` is ``False`` for immutable entities: a freshly minted
    key can only be written onto builders, never onto the finished entity.
    """

    sequence_name: str | None = None
    nullable: bool = False
    assign_on_entity: bool = True

    kind: ClassVar[ColumnKind] = ColumnKind.PRIMARY_KEY

    def get_key(self, item: Any) -> Any:
        return self.getter(item) if self.getter is not None else None

    def set_key(self, builder: Any, key: Any) -> None:
        if self.setter is not None:
            self.setter(builder, key)

    def optimistic_set_key(self, item: Any, key: Any) -> None:
        if self.assign_on_entity:
            self.set_key(item, key)
        else:
            logger.debug("Key %r for %s not assigned onto immutable entity", key, self.name)


@dataclass(frozen=True, slots=True, kw_only=True, eq=False, repr=False)
class ParentColumn(Column):
    """Foreign key from a child row to the row of its owning parent.

    The value is always supplied by the persistence engine (the parent's key),
    never read from the child object.
    """

    nullable: bool = False
    column_type: ColumnType = column_types.INTEGER

    kind: ClassVar[ColumnKind] = ColumnKind.PARENT

    def __post_init__(self) -> None:
        if self.nullable:
            raise ConfigurationError(f"Parent column {self.name} cannot be nullable")

    def value_of(self, item: Any) -> Any:
        return None

    def assign_parent(self, builder: Any, parent: Any) -> None:
        """Hook for children that keep a reference to their parent."""

    @property
    def has_back_reference(self) -> bool:
        return False


@dataclass(frozen=True, slots=True, kw_only=True, eq=False, repr=False)
class NoBackReferenceParentColumn(ParentColumn):
    """Parent column for child types that carry no pointer to their parent."""


@dataclass(frozen=True, slots=True, kw_only=True, eq=False, repr=False)
class BackReferenceParentColumn(ParentColumn):
    """Parent column whose *setter* stores the parent object on the child."""

    def assign_parent(self, builder: Any, parent: Any) -> None:
        if self.setter is not None:
            self.setter(builder, parent)

    @property
    def has_back_reference(self) -> bool:
        return True


@dataclass(frozen=True, slots=True, kw_only=True, eq=False, repr=False)
class JoinColumn(Column):
    """Foreign key to an independently persisted entity described by *descriptor*.

    The stored value is the referenced entity's primary key; reading selects the
    referenced row through a ``LEFT JOIN`` and rebuilds the entity.
    """

    descriptor: EntityDescriptor[Any, Any]

    kind: ClassVar[ColumnKind] = ColumnKind.JOIN

    def value_of(self, item: Any) -> Any:
        joined = self.getter(item) if self.getter is not None else None
        if joined is None:
            return None

        key = self.descriptor.primary_key.get_key(joined)  # type: ignore[union-attr]
        if key is None:
            raise UnsavedReferenceError(
                f"Column {self.name} references a {self.descriptor.table} entity without a key"
            )

        return key

    def populate(self, builder: Any, stored: Any) -> None:
        if self.setter is not None:
            self.setter(builder, stored)


class ColumnCollection:
    """Mutable holder of one entity's columns while its descriptor is declared.

    Enforces a single primary key, a single parent column and unique column
    names. Uniqueness constraints are checked against known columns in
    :meth:`check_constraints`, once every column has been declared.
    """

    __slots__ = (
        "_data_columns",
        "_join_columns",
        "_names",
        "_parent_column",
        "_primary_key",
        "_unique_constraints",
    )

    def __init__(self) -> None:
        self._primary_key: PrimaryKey | None = None
        self._parent_column: ParentColumn | None = None
        self._data_columns: list[Column] = []
        self._join_columns: list[JoinColumn] = []
        self._unique_constraints: list[tuple[str, ...]] = []
        self._names: set[str] = set()

    def _claim(self, name: str) -> None:
        key = name.lower()
        if key in self._names:
            raise ConfigurationError(f"Column {name} declared twice")
        self._names.add(key)

    @property
    def primary_key(self) -> PrimaryKey | None:
        return self._primary_key

    @primary_key.setter
    def primary_key(self, primary_key: PrimaryKey) -> None:
        if self._primary_key is not None:
            raise ConfigurationError("Attempt to set a second primary key")
        self._claim(primary_key.name)
        self._primary_key = primary_key

    @property
    def parent_column(self) -> ParentColumn | None:
        return self._parent_column

    @parent_column.setter
    def parent_column(self, parent_column: ParentColumn) -> None:
        if self._parent_column is not None:
            raise ConfigurationError("Attempt to set a second parent column")
        self._claim(parent_column.name)
        self._parent_column = parent_column

    def add_data_column(self, column: Column) -> Column:
        self._claim(column.name)
        self._data_columns.append(column)
        return column

    def add_join_column(self, column: JoinColumn) -> JoinColumn:
        self._claim(column.name)
        self._join_columns.append(column)
        return column

    def add_unique_constraint(self, *names: str) -> None:
        if not names:
            raise ConfigurationError("A uniqueness constraint needs at least one column")
        self._unique_constraints.append(names)

    @property
    def data_columns(self) -> tuple[Column, ...]:
        return tuple(self._data_columns)

    @property
    def join_columns(self) -> tuple[JoinColumn, ...]:
        return tuple(self._join_columns)

    @property
    def unique_constraints(self) -> tuple[tuple[str, ...], ...]:
        return tuple(self._unique_constraints)

    def check_constraints(self) -> None:
        for constraint in self._unique_constraints:
            unknown = [name for name in constraint if name.lower() not in self._names]
            if unknown:
                raise ConfigurationError(
                    f"Uniqueness constraint {constraint} references unknown columns {unknown}"
                )
