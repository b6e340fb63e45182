"""Basic sqla-cascade usage examples.

Demonstrates declaring descriptors, saving whole graphs, querying,
orphan removal and transactions.

NOTE: SQLite has no sequences, so keys here come from a counter passed
as ``key_producer``; on PostgreSQL drop it and keys come from the
declared sequences.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

import sqlalchemy as sa

from sqla_cascade import (
    Operator,
    Order,
    SqlFunction,
    SqlRunner,
    Transactor,
    Where,
    validate,
)

from .models import Author, Comment, Post, authors, metadata, posts


# ── 1. Engine, schema and keys ──────────────────────────────────────

engine = sa.create_engine("sqlite:///:memory:")
_keys = itertools.count(1)


def next_key(runner: SqlRunner, sequence_name: str | None) -> Any:
    return next(_keys)


def setup() -> None:
    metadata.create_all(engine)
    with engine.connect() as connection:
        # Raises ValidationError listing every mismatch
        validate(connection, posts.build_descriptor())


# ── 2. Saving a graph ───────────────────────────────────────────────


def create_post(connection: sa.Connection) -> Post:
    author = Author(name="Ada")
    authors.build_dao(connection, next_key).insert(author)

    post = Post(
        title="Hello",
        published=True,
        author=author,
        comments=[Comment(body="First!"), Comment(body="Nice post")],
    )
    posts.build_dao(connection, next_key).insert(post)
    return post


# ── 3. Queries ──────────────────────────────────────────────────────


def published_posts(connection: sa.Connection) -> list[Post]:
    dao = posts.build_dao(connection, next_key)
    return dao.select_where(
        Where.where("published", Operator.EQ, True).and_("b.name", Operator.LIKE, "A%"),
        Order.descending("id"),
    )


def posts_like(connection: sa.Connection, example: Post) -> list[Post]:
    dao = posts.build_dao(connection, next_key)
    return dao.select_by_columns(example, "title", operators={"title": Operator.LIKE})


def post_count(connection: sa.Connection) -> int:
    dao = posts.build_dao(connection, next_key)
    return int(dao.run_function(SqlFunction.COUNT, "id"))


# ── 4. Orphans ──────────────────────────────────────────────────────


def drop_first_comment(connection: sa.Connection, post: Post) -> None:
    post.comments.pop(0)
    posts.build_dao(connection, next_key).update(post)


# ── 5. Transactions ─────────────────────────────────────────────────


def main() -> None:
    logging.basicConfig(level=logging.DEBUG)
    setup()

    transactor = Transactor(engine)
    post = transactor.run_and_commit(create_post)
    transactor.run_and_commit(lambda connection: drop_first_comment(connection, post))

    for found in transactor.run_and_rollback(published_posts):
        print(found)


if __name__ == "__main__":
    main()
