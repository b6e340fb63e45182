"""Checking descriptors against a live database schema."""

from __future__ import annotations

import logging
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine.reflection import Inspector

from .errors import ValidationError


logger = logging.getLogger(__name__)


def _check_descriptor(
    inspector: Inspector,
    descriptor: Any,
    problems: list[str],
    seen: set[str],
) -> None:
    table = descriptor.table
    if table.lower() in seen:
        return
    seen.add(table.lower())

    if not inspector.has_table(table):
        problems.append(f"Table {table} does not exist")
    else:
        reflected = {column["name"].lower(): column for column in inspector.get_columns(table)}
        for column in descriptor.all_columns:
            found = reflected.get(column.name.lower())
            if found is None:
                problems.append(f"Column {column.name} does not exist in table {table}")
            elif not column.supports(found["type"]):
                problems.append(
                    f"Column {column.name} in table {table} has type {found['type']},"
                    f" which does not hold {column.type_name} values"
                )

    primary_key = descriptor.primary_key
    if (
        primary_key is not None
        and primary_key.sequence_name is not None
        and inspector.dialect.supports_sequences
        and not inspector.has_sequence(primary_key.sequence_name)
    ):
        problems.append(f"Sequence {primary_key.sequence_name} does not exist")

    for column in descriptor.join_columns:
        _check_descriptor(inspector, column.descriptor, problems, seen)
    for children in descriptor.children:
        _check_descriptor(inspector, children.descriptor, problems, seen)


def find_problems(bind: sa.Engine | sa.Connection, descriptor: Any) -> list[str]:
    """Every mismatch between *descriptor* (joined and child entities included) and the schema."""
    problems: list[str] = []
    _check_descriptor(sa.inspect(bind), descriptor, problems, set())
    return problems


def validate(bind: sa.Engine | sa.Connection, descriptor: Any) -> None:
    """Raise :class:`~sqla_cascade.errors.ValidationError` listing all problems found.

    Example::

        with engine.connect() as connection:
            validate(connection, person_builder.build_descriptor())
    """
    problems = find_problems(bind, descriptor)
    if problems:
        raise ValidationError(problems)

    logger.debug("Descriptor for %s matches the schema", descriptor.table)
