"""Immutable predicates, orderings and aggregate selections.

A :class:`Where` is a binary tree of ``column operator value`` atoms joined by
``AND``/``OR``.  Rendering walks the tree left to right, and :attr:`Where.atoms`
walks it in the same order, so bound values always line up with the ``?``
placeholders of the rendered text::

    >>> where = (
    ...     Where.where("n", Operator.GT, 3)
    ...     .and_("n", Operator.LT, 82)
    ...     .and_(Where.where("o", Operator.EQ, 14).or_("t", Operator.GT, 23))
    ... )
    >>> where.render()
    'A.n > ? AND A.n < ? AND ( A.o = ? OR A.t > ? )'
    >>> where.values
    (3, 82, 14, 23)
"""

from __future__ import annotations

import enum
import sys
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Final

from .datastructures import frozendict
from .errors import ConfigurationError
from .tools import placeholders, qualify


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


ROOT_PREFIX: Final[str] = "A."


class Operator(enum.Enum):
    EQUALS = "="
    NOT_EQUALS = "<>"
    LESS_THAN = "<"
    LESS_THAN_OR_EQUALS = "<="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUALS = ">="
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    IN = "IN"
    NOT_IN = "NOT IN"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"

    EQ = "="
    NE = "<>"
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    @property
    def takes_value(self) -> bool:
        return self not in (Operator.IS_NULL, Operator.IS_NOT_NULL)

    @property
    def takes_many(self) -> bool:
        return self in (Operator.IN, Operator.NOT_IN)

    @property
    def compares_equality(self) -> bool:
        return self in (Operator.EQUALS, Operator.NOT_EQUALS, Operator.IN, Operator.NOT_IN)


class Conjunction(enum.Enum):
    AND = "AND"
    OR = "OR"


@dataclass(frozen=True, slots=True)
class Atom:
    column: str
    operator: Operator
    values: tuple[Any, ...] = ()

    def render(self, prefix: str) -> str:
        column = qualify(self.column, prefix)
        if not self.operator.takes_value:
            return f"{column} {self.operator.value}"

        if self.operator.takes_many:
            if not self.values:
                # Nothing is IN an empty list; everything is NOT IN it.
                return "1=0" if self.operator is Operator.IN else "1=1"
            return f"{column} {self.operator.value} ({placeholders(len(self.values))})"

        return f"{column} {self.operator.value} ?"

    def atoms(self) -> Iterator[Atom]:
        yield self


@dataclass(frozen=True, slots=True)
class Group:
    inner: Branch | Atom | Group

    def render(self, prefix: str) -> str:
        return f"( {self.inner.render(prefix)} )"

    def atoms(self) -> Iterator[Atom]:
        yield from self.inner.atoms()


@dataclass(frozen=True, slots=True)
class Branch:
    left: Branch | Atom | Group
    conjunction: Conjunction
    right: Branch | Atom | Group

    def render(self, prefix: str) -> str:
        return f"{self.left.render(prefix)} {self.conjunction.value} {self.right.render(prefix)}"

    def atoms(self) -> Iterator[Atom]:
        yield from self.left.atoms()
        yield from self.right.atoms()


Node = Branch | Atom | Group


def _atom(column: str, operator: Operator, value: Any) -> Atom:
    if not operator.takes_value:
        return Atom(column, operator)

    if operator.takes_many:
        return Atom(column, operator, tuple(value))

    return Atom(column, operator, (value,))


@dataclass(frozen=True, slots=True)
class Where:
    """Composable predicate; every combinator returns a new instance.

    ``Where()`` is the empty predicate and renders to nothing.
    """

    root: Node | None = None

    @classmethod
    def where(cls, column: str, operator: Operator = Operator.EQUALS, value: Any = None) -> Self:
        return cls(_atom(column, operator, value))

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> Self:
        return cls(_atom(column, Operator.IN, values))

    @classmethod
    def not_in(cls, column: str, values: Iterable[Any]) -> Self:
        return cls(_atom(column, Operator.NOT_IN, values))

    @classmethod
    def is_null(cls, column: str) -> Self:
        return cls(Atom(column, Operator.IS_NULL))

    @classmethod
    def is_not_null(cls, column: str) -> Self:
        return cls(Atom(column, Operator.IS_NOT_NULL))

    def _combine(
        self,
        conjunction: Conjunction,
        column_or_where: str | Where,
        operator: Operator,
        value: Any,
    ) -> Self:
        if isinstance(column_or_where, Where):
            if column_or_where.root is None:
                return self
            node: Node = Group(column_or_where.root)
        else:
            node = _atom(column_or_where, operator, value)

        if self.root is None:
            return type(self)(node)

        return type(self)(Branch(self.root, conjunction, node))

    def and_(
        self,
        column_or_where: str | Where,
        operator: Operator = Operator.EQUALS,
        value: Any = None,
    ) -> Self:
        """``AND`` another atom, or a whole :class:`Where` wrapped in parentheses."""
        return self._combine(Conjunction.AND, column_or_where, operator, value)

    def or_(
        self,
        column_or_where: str | Where,
        operator: Operator = Operator.EQUALS,
        value: Any = None,
    ) -> Self:
        return self._combine(Conjunction.OR, column_or_where, operator, value)

    @property
    def is_empty(self) -> bool:
        return self.root is None

    def render(self, prefix: str = ROOT_PREFIX) -> str:
        return "" if self.root is None else self.root.render(prefix)

    @property
    def atoms(self) -> tuple[Atom, ...]:
        return () if self.root is None else tuple(self.root.atoms())

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(value for atom in self.atoms for value in atom.values)


class Direction(enum.Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True, slots=True)
class Order:
    """``ORDER BY`` specification, a non-empty list of ``(column, direction)`` pairs.

    Example:
        >>> Order.ascending("last_name").then(Order.descending("age")).render("a.")
        ' ORDER BY a.last_name ASC, a.age DESC'
    """

    columns: tuple[tuple[str, Direction], ...]

    def __post_init__(self) -> None:
        if not self.columns:
            raise ConfigurationError("Must provide at least one column to sort by")

    @classmethod
    def ascending(cls, *columns: str) -> Self:
        return cls(tuple((column, Direction.ASC) for column in columns))

    @classmethod
    def descending(cls, *columns: str) -> Self:
        return cls(tuple((column, Direction.DESC) for column in columns))

    def then(self, other: Order) -> Self:
        return type(self)(self.columns + other.columns)

    def render(self, prefix: str = "a.") -> str:
        rendered = ", ".join(
            f"{qualify(column, prefix)} {direction.value}" for column, direction in self.columns
        )
        return f" ORDER BY {rendered}"


@dataclass(frozen=True, slots=True)
class ColumnSelection:
    """Columns of an example entity to match on, each with its own operator.

    Columns without an explicit operator compare with :attr:`Operator.EQUALS`.
    """

    names: tuple[str, ...]
    operators: frozendict[str, Operator] = frozendict()

    def __post_init__(self) -> None:
        if not self.names:
            raise ConfigurationError("Must select at least one column")

    @classmethod
    def of(cls, *names: str, operators: Mapping[str, Operator] | None = None) -> Self:
        return cls(tuple(names), frozendict(operators or {}))

    def operator_for(self, name: str) -> Operator:
        return self.operators.get(name, Operator.EQUALS)

    def as_where(self, values: Mapping[str, Any]) -> Where:
        """Predicate matching *values* (stored representations keyed by column name)."""
        where = Where()
        for name in self.names:
            operator = self.operator_for(name)
            value = values[name]
            if value is None and operator in (Operator.EQUALS, Operator.NOT_EQUALS):
                operator = Operator.IS_NULL if operator is Operator.EQUALS else Operator.IS_NOT_NULL
            where = where.and_(name, operator, value)

        return where


class SqlFunction(enum.Enum):
    COUNT = "COUNT"
    SUM = "SUM"
    MIN = "MIN"
    MAX = "MAX"
    AVG = "AVG"

    def render(self, column: str, prefix: str = "a.") -> str:
        return f"{self.value}({qualify(column, prefix)})"
