"""Owned one-to-many relationships and the save/delete cascade over them."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .columns import ParentColumn, PrimaryKey
from .datastructures import Envelope
from .runner import PersistenceContext
from .sql import sql_builder
from .tools import Getter, Setter


if TYPE_CHECKING:
    from .descriptor import EntityDescriptor


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, eq=False)
class ChildrenDescriptor:
    """A parent's list of owned children, persisted in the child table.

    Holds no per-call state; everything an operation needs is passed in, so one
    instance is shared by every Dao built from the parent's descriptor.

    Args:
        getter: Returns the children of a parent entity (``None`` means none).
        setter: Stores the loaded list on a parent builder.
        descriptor: Descriptor of the child entity; must have a primary key and
            a parent column.
        parent_primary_key: Key of the owning entity, which children reference.
    """

    getter: Getter
    setter: Setter
    descriptor: EntityDescriptor[Any, Any]
    parent_primary_key: PrimaryKey

    @property
    def primary_key(self) -> PrimaryKey:
        assert self.descriptor.primary_key is not None
        return self.descriptor.primary_key

    @property
    def parent_column(self) -> ParentColumn:
        assert self.descriptor.parent_column is not None
        return self.descriptor.parent_column

    def children_of(self, parent: Any) -> Iterable[Any]:
        return self.getter(parent) or ()

    def find_existing_ids(self, context: PersistenceContext, parent_key: Any) -> set[Any]:
        builder = sql_builder(self.descriptor)
        return set(
            context.runner.scalars(
                builder.select_child_ids(),
                [self.parent_column.bind_value(parent_key)],
                self.primary_key.sa_type,
            )
        )

    def save_children(self, context: PersistenceContext, parent_key: Any, parent: Any) -> None:
        """Insert new children, update known ones, delete those no longer present.

        Recurses into grandchildren with each child as the new parent.
        """
        builder = sql_builder(self.descriptor)
        primary_key = self.primary_key
        existing = self.find_existing_ids(context, parent_key)

        for child in self.children_of(parent):
            key = primary_key.get_key(child)
            if key is None:
                binds = builder.insert_binds(child, parent_key=parent_key, check_key=False)
                key = context.new_key(primary_key.sequence_name)
                binds[0] = builder.key_bind(key)
                primary_key.optimistic_set_key(child, key)
                logger.debug("Inserting %s %r under parent %r", self.descriptor.table, key, parent_key)
                context.runner.write(builder.insert(), binds)
            else:
                existing.discard(key)
                logger.debug("Updating %s %r under parent %r", self.descriptor.table, key, parent_key)
                context.runner.write(
                    builder.update(with_parent=True), builder.update_binds(child, key, parent_key)
                )

            for grandchildren in self.descriptor.children:
                grandchildren.save_children(context, key, child)

        self.delete_orphans(context, existing)

    def delete_orphans(self, context: PersistenceContext, keys: Iterable[Any]) -> None:
        """Delete the rows with *keys*, their own children first."""
        builder = sql_builder(self.descriptor)
        for key in sorted(keys):
            for grandchildren in self.descriptor.children:
                grandchildren.delete_all(context, key)
            logger.debug("Deleting orphaned %s %r", self.descriptor.table, key)
            context.runner.write(builder.delete(), [builder.key_bind(key)])

    def delete_all(self, context: PersistenceContext, parent_key: Any) -> None:
        self.delete_orphans(context, self.find_existing_ids(context, parent_key))

    def attach(self, parents: Sequence[Envelope], children: Sequence[Envelope]) -> None:
        """Give each parent builder the list of finished children that reference it.

        Parents without children receive an empty list.
        """
        grouped: defaultdict[Any, list[Any]] = defaultdict(list)
        for child in children:
            grouped[child.parent_key].append(child.item)

        for parent in parents:
            self.setter(parent.item, list(grouped.get(parent.key, ())))

    def __repr__(self) -> str:
        return f"<ChildrenDescriptor {self.descriptor.table}>"
