from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Final

import sqlalchemy as sa
from sqlalchemy.types import TypeEngine


@dataclass(frozen=True, slots=True)
class ColumnType:
    """How values of one column are bound, read back and validated.

    Args:
        sa_type: SQLAlchemy type used for bind parameters and result processing.
        sql_type_name: Name of the type as it would appear in DDL.
        supported: Reflected SQLAlchemy type classes accepted by validation.

    Example:
        A user-defined type for JSON payloads::

            JSON = ColumnType(sa.JSON(), "json", (sa.JSON, sa.String))
    """

    sa_type: TypeEngine[Any]
    sql_type_name: str
    supported: tuple[type[TypeEngine[Any]], ...] = field(default=())

    def supports(self, reflected: TypeEngine[Any]) -> bool:
        """Whether a type reported by the live schema can hold this column."""
        supported = self.supported or (type(self.sa_type),)
        return isinstance(reflected, supported)


INTEGER: Final[ColumnType] = ColumnType(sa.BigInteger(), "integer", (sa.Integer, sa.Numeric))
DECIMAL: Final[ColumnType] = ColumnType(
    sa.Numeric(asdecimal=True), "decimal", (sa.Numeric, sa.Integer)
)
FLOAT: Final[ColumnType] = ColumnType(sa.Float(), "double precision", (sa.Float, sa.Numeric))
STRING: Final[ColumnType] = ColumnType(sa.String(), "text", (sa.String,))
BOOLEAN: Final[ColumnType] = ColumnType(sa.Boolean(), "boolean", (sa.Boolean, sa.Integer))
DATETIME: Final[ColumnType] = ColumnType(sa.DateTime(), "timestamp", (sa.DateTime,))
DATE: Final[ColumnType] = ColumnType(sa.Date(), "date", (sa.Date,))
