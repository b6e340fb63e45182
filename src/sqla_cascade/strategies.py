"""How owned children are fetched when several parents are loaded at once.

``STANDARD``
    one select per distinct parent key and children relationship.
``BY_KEYS_IN_CLAUSE``
    one select per relationship, ``parent_id in (?, ?, ...)`` over the loaded keys.
``SUB_SELECT_IN_CLAUSE``
    one select per relationship, ``parent_id in ( select id from ... )`` repeating
    the predicate the parents were selected with.

All three yield the same graphs; they differ in round trips and query shape.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Protocol

from .datastructures import Envelope
from .errors import ConfigurationError
from .loading import read_rows
from .runner import BindValue, PersistenceContext
from .sql import JoinNode, SqlBuilder, plan_select, sql_builder
from .tools import placeholders
from .where import Where


if TYPE_CHECKING:
    from .children import ChildrenDescriptor
    from .descriptor import EntityDescriptor


class ChildSelectStrategy(enum.Enum):
    STANDARD = "standard"
    BY_KEYS_IN_CLAUSE = "by_keys_in_clause"
    SUB_SELECT_IN_CLAUSE = "sub_select_in_clause"


class ChildSelector(Protocol):
    def select_children(
        self,
        context: PersistenceContext,
        children: ChildrenDescriptor,
        parents: Sequence[Envelope],
    ) -> list[Envelope]: ...

    def joined(self, node: JoinNode) -> ChildSelector:
        """Selector for children of the entities joined under *node*."""
        ...

    def descend(self, children: ChildrenDescriptor) -> ChildSelector:
        """Selector for the level below *children*."""
        ...


def _select(
    context: PersistenceContext,
    builder: SqlBuilder,
    condition: str,
    binds: Sequence[BindValue],
) -> list[Envelope]:
    rows = context.runner.select(
        builder.select_with_condition(condition), binds, builder.plan.result_types
    )
    return read_rows(builder.plan, rows)


def _parent_key_bind(builder: SqlBuilder, key: Any) -> BindValue:
    return builder.descriptor.parent_column.bind_value(key)  # type: ignore[union-attr]


class StandardSelector:
    __slots__ = ()

    def select_children(
        self,
        context: PersistenceContext,
        children: ChildrenDescriptor,
        parents: Sequence[Envelope],
    ) -> list[Envelope]:
        builder = sql_builder(children.descriptor)
        condition = builder.parent_condition("= ?")
        found = []
        for key in dict.fromkeys(parent.key for parent in parents if parent.key is not None):
            found.extend(_select(context, builder, condition, [_parent_key_bind(builder, key)]))

        return found

    def joined(self, node: JoinNode) -> StandardSelector:
        return self

    def descend(self, children: ChildrenDescriptor) -> StandardSelector:
        return self


class InClauseSelector:
    __slots__ = ()

    def select_children(
        self,
        context: PersistenceContext,
        children: ChildrenDescriptor,
        parents: Sequence[Envelope],
    ) -> list[Envelope]:
        keys = list(dict.fromkeys(parent.key for parent in parents if parent.key is not None))
        if not keys:
            return []

        builder = sql_builder(children.descriptor)
        condition = builder.parent_condition(f"in ({placeholders(len(keys))})")
        return _select(context, builder, condition, [_parent_key_bind(builder, key) for key in keys])

    def joined(self, node: JoinNode) -> InClauseSelector:
        return self

    def descend(self, children: ChildrenDescriptor) -> InClauseSelector:
        return self


@dataclass(frozen=True, slots=True)
class Scope:
    """The rows of one level, expressed as a query instead of a list of keys.

    Args:
        builder: Builder whose ``FROM`` clause (joins included) the rows come from.
        key_column: Alias-qualified key projected by the sub-select.
        condition: ``and ...`` text narrowing ``builder``'s rows to this level.
        binds: Values for the placeholders in *condition*.
    """

    builder: SqlBuilder
    key_column: str
    condition: str
    binds: tuple[BindValue, ...]

    @classmethod
    def for_where(cls, builder: SqlBuilder, where: Where | None) -> Scope:
        condition = ""
        if where is not None and not where.is_empty:
            condition = f" and ( {where.render()} )"

        return cls(
            builder,
            _key_column(builder.plan.alias, builder.descriptor),
            condition,
            tuple(builder.where_binds(where)),
        )

    def sub_select(self) -> str:
        return self.builder.sub_select_keys(self.key_column, self.condition)


def _key_column(alias: str, descriptor: EntityDescriptor[Any, Any]) -> str:
    if descriptor.primary_key is None:
        raise ConfigurationError(f"{descriptor.table} has no primary key to select children by")
    return descriptor.primary_key.qualified(alias)


class SubSelectSelector:
    __slots__ = ("scope",)

    def __init__(self, scope: Scope) -> None:
        self.scope = scope

    def condition(self, children: ChildrenDescriptor) -> str:
        builder = sql_builder(children.descriptor)
        return builder.parent_condition(f"in ( {self.scope.sub_select()} )")

    def select_children(
        self,
        context: PersistenceContext,
        children: ChildrenDescriptor,
        parents: Sequence[Envelope],
    ) -> list[Envelope]:
        builder = sql_builder(children.descriptor)
        return _select(context, builder, self.condition(children), self.scope.binds)

    def joined(self, node: JoinNode) -> SubSelectSelector:
        return SubSelectSelector(
            replace(self.scope, key_column=_key_column(node.alias, node.descriptor))
        )

    def descend(self, children: ChildrenDescriptor) -> SubSelectSelector:
        builder = sql_builder(children.descriptor)
        return SubSelectSelector(
            Scope(
                builder,
                _key_column(builder.plan.alias, children.descriptor),
                self.condition(children),
                self.scope.binds,
            )
        )


def root_selector(
    strategy: ChildSelectStrategy, builder: SqlBuilder, where: Where | None = None
) -> ChildSelector:
    """Selector for children of the rows ``builder.select_where(where)`` returns."""
    if strategy is ChildSelectStrategy.BY_KEYS_IN_CLAUSE:
        return InClauseSelector()
    if strategy is ChildSelectStrategy.SUB_SELECT_IN_CLAUSE:
        return SubSelectSelector(Scope.for_where(builder, where))
    return StandardSelector()


def check_strategy_consistency(descriptor: EntityDescriptor[Any, Any]) -> None:
    """Every joined entity that owns children must use the root's strategy.

    Joined children are loaded by the root's selector, so a joined descriptor
    declaring another strategy cannot be honoured.

    Raises:
        ConfigurationError: On the first joined descriptor that disagrees.
    """
    for node in plan_select(descriptor).nodes():
        joined = node.descriptor
        if joined.children and joined.strategy is not descriptor.strategy:
            raise ConfigurationError(
                f"{descriptor.table} selects children with {descriptor.strategy.name}"
                f" but joined {joined.table} (as {node.column.name}) uses {joined.strategy.name}"
            )
