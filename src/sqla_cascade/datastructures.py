from __future__ import annotations

import string
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


K = TypeVar("K")
V = TypeVar("V")


class frozendict(Mapping[K, V]):  # noqa: N801
    """Immutable, hashable mapping.

    Descriptors are shared between threads once built, so lookups that hang off
    them (column-by-name indexes, per-column operator maps) are frozen.

    Example:
        >>> operators = frozendict({"name": Operator.LIKE})
        >>> operators["name"]
        <Operator.LIKE: 'LIKE'>
        >>> operators.copy(age=Operator.GREATER_THAN)
        <frozendict {'name': <Operator.LIKE: 'LIKE'>, 'age': <Operator.GREATER_THAN: '>'>}>
    """

    __slots__ = ("_dict", "_hash")

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._dict: dict[K, V] = dict(*args, **kwargs)
        self._hash: int | None = None

    def __getitem__(self, key: K) -> V:
        return self._dict[key]

    def __contains__(self, key: Any) -> bool:
        return key in self._dict

    def copy(self, **add_or_replace: Any) -> Self:
        """Return a new frozendict with *add_or_replace* merged in."""
        return type(self)(self, **add_or_replace)

    def __iter__(self) -> Iterator[K]:
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._dict!r}>"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, frozendict):
            return self._dict == other._dict

        if isinstance(other, dict):
            return self._dict == other

        return NotImplemented

    def __hash__(self) -> int:
        # Lazily computed: values such as columns are only hashable by identity.
        if self._hash is None:
            self._hash = hash(frozenset(self._dict.items()))

        return self._hash


def alias_for(index: int) -> str:
    """Return the table alias at position *index*: ``a`` .. ``z``, ``aa``, ``ab`` ..."""
    letters = string.ascii_lowercase
    alias = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, len(letters))
        alias = letters[remainder] + alias

    return alias


class Prefixer:
    """Hands out table aliases in a fixed order for one SQL statement.

    A fresh instance is created for every plan and passed down the recursive
    join flattening, so the same descriptor graph always yields the same aliases.
    """

    __slots__ = ("_index",)

    def __init__(self) -> None:
        self._index = 0

    def next_prefix(self) -> str:
        alias = alias_for(self._index)
        self._index += 1
        return alias

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        return self.next_prefix()


@dataclass(slots=True)
class Envelope:
    """An accumulator (or entity) travelling with its keys through one operation.

    ``joined`` holds the envelopes of every joined row read alongside this one,
    keyed by the join alias they were selected under.
    """

    item: Any
    key: Any = None
    parent_key: Any = None
    joins: list[tuple[Any, Envelope]] = field(default_factory=list)
    joined: dict[str, Envelope] = field(default_factory=dict)
