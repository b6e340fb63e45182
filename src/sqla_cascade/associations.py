"""Many-to-many links between two keyed entities, stored in a link table.

The link table holds its own key and one foreign key per side::

    create table visit (
        id bigint primary key,
        person_id bigint not null references person (id),
        city_id bigint not null references city (id)
    )

"Left" and "right" only name the two sides; they have nothing to do with
``LEFT JOIN``.  Neither side is written through an :class:`AssociationDao`,
only the link rows are.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import sqlalchemy as sa

from . import column_types
from .column_types import ColumnType
from .dao import Dao
from .descriptor import DescriptorBuilder, EntityDescriptor, _resolve
from .errors import ConfigurationError, NullValueError
from .runner import KeyProducer
from .where import Order


logger = logging.getLogger(__name__)

L = TypeVar("L")
R = TypeVar("R")


@dataclass
class Association(Generic[L, R]):
    """One row of a link table."""

    id: Any = None
    left: L | None = None
    right: R | None = None


class AssociationDao(Generic[L, R]):
    """Finds, creates and removes links between *left* and *right* entities."""

    __slots__ = ("dao", "left_column", "right_column")

    def __init__(self, dao: Dao[Association[L, R]], left_column: str, right_column: str) -> None:
        self.dao = dao
        self.left_column = left_column
        self.right_column = right_column

    def _links(self, example: Association[L, R], *columns: str) -> list[Association[L, R]]:
        return self.dao.select_by_columns(
            example, *columns, order=Order.ascending(self.dao.primary_key.name)
        )

    def select_left_associates(self, right: R) -> list[L]:
        """Left entities linked to *right*, in the order the links were made."""
        _require(right, "right")
        links = self._links(Association(right=right), self.right_column)
        return [link.left for link in links]  # type: ignore[misc]

    def select_right_associates(self, left: L) -> list[R]:
        _require(left, "left")
        links = self._links(Association(left=left), self.left_column)
        return [link.right for link in links]  # type: ignore[misc]

    def insert_association(self, left: L, right: R) -> Any:
        """Link *left* and *right*; returns the key of the new link row.

        Raises:
            NullValueError: If either side is ``None``.
            UnsavedReferenceError: If either side has no key yet.
        """
        return self.dao.insert(Association(left=left, right=right))

    def delete_association(self, left: L, right: R) -> None:
        """Remove every link between *left* and *right*."""
        _require(left, "left")
        _require(right, "right")
        example = Association(left=left, right=right)
        links = self._links(example, self.left_column, self.right_column)
        for link in links:
            self.dao.delete(link)
        logger.debug("Deleted %d %s links", len(links), self.dao.descriptor.table)

    def __repr__(self) -> str:
        return f"<AssociationDao {self.dao.descriptor.table}>"


def _require(entity: Any, side: str) -> None:
    if entity is None:
        raise NullValueError(f"No {side} entity given")


class AssociationDaoBuilder(Generic[L, R]):
    """Declares the link table between two described entities.

    Example::

        visits = (
            AssociationDaoBuilder("visit", people, cities)
            .with_primary_key("id", sequence="visit_seq")
            .with_left_column("person_id")
            .with_right_column("city_id")
        )
        visits.build_dao(connection).insert_association(ann, berlin)
    """

    __slots__ = (
        "_key_type",
        "_left",
        "_left_column",
        "_links",
        "_primary_key",
        "_right",
        "_right_column",
        "_sequence",
        "_table",
    )

    def __init__(
        self,
        table: str,
        left: DescriptorBuilder[L, Any] | EntityDescriptor[L, Any],
        right: DescriptorBuilder[R, Any] | EntityDescriptor[R, Any],
    ) -> None:
        self._table = table
        self._left = left
        self._right = right
        self._primary_key: str | None = None
        self._sequence: str | None = None
        self._key_type = column_types.INTEGER
        self._left_column: str | None = None
        self._right_column: str | None = None
        self._links: DescriptorBuilder[Association[L, R], Association[L, R]] | None = None

    def with_primary_key(
        self,
        name: str,
        *,
        sequence: str | None = None,
        column_type: ColumnType = column_types.INTEGER,
    ) -> AssociationDaoBuilder[L, R]:
        self._primary_key = name
        self._sequence = sequence
        self._key_type = column_type
        return self._changed()

    def with_left_column(self, name: str) -> AssociationDaoBuilder[L, R]:
        """Column referencing the key of the left entity."""
        self._left_column = name
        return self._changed()

    def with_right_column(self, name: str) -> AssociationDaoBuilder[L, R]:
        self._right_column = name
        return self._changed()

    def _changed(self) -> AssociationDaoBuilder[L, R]:
        self._links = None
        return self

    @property
    def ready(self) -> bool:
        """Whether the key and both reference columns are declared."""
        return None not in (self._primary_key, self._left_column, self._right_column)

    def _descriptor_builder(self) -> DescriptorBuilder[Association[L, R], Association[L, R]]:
        if self._links is not None:
            return self._links
        if not self.ready:
            raise ConfigurationError(
                f"Association {self._table} needs a primary key, a left column and a right column"
            )

        left = _resolve(self._left)
        right = _resolve(self._right)
        # follow the side that owns children
        strategy = left.strategy if left.children or not right.children else right.strategy
        self._links = (
            DescriptorBuilder(self._table, Association)
            .with_primary_key(
                self._primary_key,  # type: ignore[arg-type]
                "id",
                "id",
                sequence=self._sequence,
                column_type=self._key_type,
            )
            .with_join_column(
                self._left_column, "left", "left", left, nullable=False  # type: ignore[arg-type]
            )
            .with_join_column(
                self._right_column, "right", "right", right, nullable=False  # type: ignore[arg-type]
            )
            .with_child_select_strategy(strategy)
        )
        return self._links

    def build_descriptor(self) -> EntityDescriptor[Association[L, R], Association[L, R]]:
        """Descriptor of the link table, e.g. for :func:`~sqla_cascade.validation.validate`.

        Raises:
            ConfigurationError: If the builder is not :attr:`ready`.
        """
        return self._descriptor_builder().build_descriptor()

    def build_dao(
        self, connection: sa.Connection, key_producer: KeyProducer | None = None
    ) -> AssociationDao[L, R]:
        dao = self._descriptor_builder().build_dao(connection, key_producer)
        return AssociationDao(dao, self._left_column, self._right_column)  # type: ignore[arg-type]

    def __repr__(self) -> str:
        return f"<AssociationDaoBuilder {self._table}>"
