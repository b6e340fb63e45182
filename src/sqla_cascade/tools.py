from __future__ import annotations

import operator
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import sqlalchemy as sa


_R = TypeVar("_R")

Getter = Callable[[Any], Any]
Setter = Callable[[Any, Any], None]


def as_getter(accessor: str | Getter) -> Getter:
    """Turn an attribute name into a getter; callables pass through unchanged.

    Example:
        >>> as_getter("name")(person)  # same as person.name
    """
    if isinstance(accessor, str):
        return operator.attrgetter(accessor)

    return accessor


def as_setter(accessor: str | Setter) -> Setter:
    """Turn an attribute name into a ``setter(builder, value)`` callable."""
    if isinstance(accessor, str):
        name = accessor

        def _set(target: Any, value: Any) -> None:
            setattr(target, name, value)

        _set.__qualname__ = f"set_{name}"
        return _set

    return accessor


def single_or_none(items: Sequence[_R]) -> _R | None:
    """Return the only element of *items*, ``None`` when empty.

    Raises:
        sqlalchemy.exc.MultipleResultsFound: If more than one element is present.
    """
    if not items:
        return None

    if len(items) > 1:
        raise sa.exc.MultipleResultsFound(f"Found {len(items)} items, expected at most one")

    return items[0]


def placeholders(count: int) -> str:
    """``placeholders(3) == "?, ?, ?"``."""
    return ", ".join("?" * count)


def qualify(column: str, prefix: str) -> str:
    """Prefix *column* with a table alias unless it already names one (``b.name``)."""
    return column if "." in column else f"{prefix}{column}"
