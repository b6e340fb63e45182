from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Final, Generic, Protocol, TypeVar

from .errors import ConversionError


D = TypeVar("D")
S = TypeVar("S")
E = TypeVar("E", bound=enum.Enum)


class Converter(Protocol[D, S]):
    """Maps a domain value to the representation stored in a column and back.

    Converters never see ``None``; columns pass nulls through untouched.
    """

    def to_storage(self, value: D) -> S: ...

    def to_domain(self, value: S) -> D: ...


@dataclass(frozen=True, slots=True)
class BooleanConverter(Generic[S]):
    """Stores booleans as one of two marker values, e.g. ``"T"``/``"F"`` or ``1``/``0``."""

    true_value: S
    false_value: S

    def to_storage(self, value: bool) -> S:
        return self.true_value if value else self.false_value

    def to_domain(self, value: S) -> bool:
        if value == self.true_value:
            return True
        if value == self.false_value:
            return False

        raise ConversionError(
            f"Unsupported value {value!r}, expected {self.true_value!r} or {self.false_value!r}"
        )


@dataclass(frozen=True, slots=True)
class EnumConverter(Generic[E]):
    """Stores an enum member by its name."""

    enum_type: type[E]

    def to_storage(self, value: E) -> str:
        return value.name

    def to_domain(self, value: str) -> E:
        try:
            return self.enum_type[value]
        except KeyError:
            raise ConversionError(
                f"{value!r} is not a member of {self.enum_type.__name__}"
            ) from None


class IdentityConverter:
    __slots__ = ()

    def to_storage(self, value: Any) -> Any:
        return value

    def to_domain(self, value: Any) -> Any:
        return value


T_F_BOOLEAN: Final[BooleanConverter[str]] = BooleanConverter("T", "F")
ONE_ZERO_BOOLEAN: Final[BooleanConverter[int]] = BooleanConverter(1, 0)
IDENTITY: Final[IdentityConverter] = IdentityConverter()
