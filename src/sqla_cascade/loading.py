"""Turning selected rows into entity graphs.

Rows are first read into :class:`~sqla_cascade.datastructures.Envelope` objects
holding *builders*.  Children (and the children of joined entities) are then
selected level by level through a child selector, attached to their parents'
builders, and finally every builder is turned into its entity bottom-up.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from .datastructures import Envelope
from .sql import JoinNode, SelectPlan, sql_builder


if TYPE_CHECKING:
    from .children import ChildrenDescriptor
    from .descriptor import EntityDescriptor
    from .runner import PersistenceContext
    from .strategies import ChildSelector


logger = logging.getLogger(__name__)


def _read(
    descriptor: EntityDescriptor[Any, Any],
    alias: str,
    joins: Sequence[JoinNode],
    row: Mapping[str, Any],
    joined: dict[str, Envelope],
) -> Envelope:
    builder = descriptor.new_builder()
    for column in descriptor.data_columns:
        column.populate(builder, row[column.label(alias)])

    envelope = Envelope(builder)
    if descriptor.primary_key is not None:
        envelope.key = row[descriptor.primary_key.label(alias)]
        descriptor.primary_key.set_key(builder, envelope.key)
    if descriptor.parent_column is not None:
        envelope.parent_key = row[descriptor.parent_column.label(alias)]

    for node in joins:
        joined_key = node.descriptor.primary_key
        if joined_key is None or row[joined_key.label(node.alias)] is None:
            node.column.populate(builder, None)
            continue

        nested = _read(node.descriptor, node.alias, node.joins, row, joined)
        envelope.joins.append((node.column, nested))
        joined[node.alias] = nested

    return envelope


def read_rows(plan: SelectPlan, rows: Sequence[Mapping[str, Any]]) -> list[Envelope]:
    """One envelope per row; ``joined`` maps every join alias to its envelope."""
    envelopes = []
    for row in rows:
        joined: dict[str, Envelope] = {}
        envelope = _read(plan.descriptor, plan.alias, plan.joins, row, joined)
        envelope.joined = joined
        envelopes.append(envelope)

    return envelopes


def finalize(envelope: Envelope, descriptor: EntityDescriptor[Any, Any]) -> Any:
    """Build pending joined entities, then the entity itself. Call once per envelope."""
    for column, nested in envelope.joins:
        column.populate(envelope.item, finalize(nested, column.descriptor))
    envelope.joins.clear()

    envelope.item = descriptor.build_item(envelope.item)
    return envelope.item


def parent_reference(descriptor: EntityDescriptor[Any, Any], envelope: Envelope) -> Any:
    """What a child's back reference points at while the parent is still a builder."""
    if descriptor.builds_in_place:
        return envelope.item

    return descriptor.build_item(envelope.item)


def populate_level(
    context: PersistenceContext,
    envelopes: Sequence[Envelope],
    descriptor: EntityDescriptor[Any, Any],
    selector: ChildSelector,
) -> None:
    """Populate children of *envelopes* and of every entity they join."""
    plan = sql_builder(descriptor).plan
    for node in plan.nodes():
        if not node.descriptor.children:
            continue
        joined = [envelope.joined[node.alias] for envelope in envelopes if node.alias in envelope.joined]
        populate_children(context, joined, node.descriptor, selector.joined(node))

    populate_children(context, envelopes, descriptor, selector)


def populate_children(
    context: PersistenceContext,
    parents: Sequence[Envelope],
    descriptor: EntityDescriptor[Any, Any],
    selector: ChildSelector,
) -> None:
    if not parents:
        return

    for children in descriptor.children:
        found = selector.select_children(context, children, parents)
        logger.debug(
            "Selected %d %s rows for %d %s rows",
            len(found),
            children.descriptor.table,
            len(parents),
            descriptor.table,
        )
        populate_level(context, found, children.descriptor, selector.descend(children))
        attach(children, descriptor, parents, found)


def attach(
    children: ChildrenDescriptor,
    descriptor: EntityDescriptor[Any, Any],
    parents: Sequence[Envelope],
    found: Sequence[Envelope],
) -> None:
    """Finish *found* child envelopes and hand each parent the list of its own.

    Parents sharing a key (one joined entity reached from several rows) share
    the same child objects; back references point at the first such parent.
    """
    parent_column = children.descriptor.parent_column
    by_key: dict[Any, Envelope] = {}
    for parent in parents:
        by_key.setdefault(parent.key, parent)

    for child in found:
        parent = by_key.get(child.parent_key)
        if parent is not None and parent_column is not None and parent_column.has_back_reference:
            parent_column.assign_parent(child.item, parent_reference(descriptor, parent))
        finalize(child, children.descriptor)

    children.attach(parents, found)
