"""Minimal entities and descriptors for sqla-cascade examples."""

from __future__ import annotations

from dataclasses import dataclass, field

import sqlalchemy as sa

from sqla_cascade import ChildSelectStrategy, DescriptorBuilder


metadata = sa.MetaData()

sa.Table(
    "authors",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("name", sa.String(100), nullable=False),
)

sa.Table(
    "posts",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("author_id", sa.Integer, sa.ForeignKey("authors.id")),
    sa.Column("title", sa.String(200), nullable=False),
    sa.Column("published", sa.String(1)),
)

sa.Table(
    "comments",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("post_id", sa.Integer, sa.ForeignKey("posts.id"), nullable=False),
    sa.Column("body", sa.Text),
)


@dataclass
class Author:
    id: int | None = None
    name: str = ""


@dataclass
class Comment:
    id: int | None = None
    body: str = ""
    post: Post | None = field(default=None, repr=False, compare=False)


@dataclass
class Post:
    id: int | None = None
    title: str = ""
    published: bool = False
    author: Author | None = None
    comments: list[Comment] = field(default_factory=list)


authors = (
    DescriptorBuilder("authors", Author)
    .with_primary_key("id", "id", "id", sequence="authors_seq")
    .with_string_column("name", "name", "name", nullable=False)
)

comments = (
    DescriptorBuilder("comments", Comment)
    .with_primary_key("id", "id", "id", sequence="comments_seq")
    .with_parent_column("post_id", "post")
    .with_string_column("body", "body", "body")
)

posts = (
    DescriptorBuilder("posts", Post)
    .with_primary_key("id", "id", "id", sequence="posts_seq")
    .with_join_column("author_id", "author", "author", authors)
    .with_string_column("title", "title", "title", nullable=False)
    .with_string_boolean_column("published", "published", "published")
    .with_children("comments", "comments", comments)
    .with_child_select_strategy(ChildSelectStrategy.BY_KEYS_IN_CLAUSE)
)
