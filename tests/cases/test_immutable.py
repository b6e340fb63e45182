from __future__ import annotations

import dataclasses
from datetime import date

import pytest
import sqlalchemy as sa

from sqla_cascade import ChildSelectStrategy, KeyProducer

from ..models import Book, Chapter, book_builder


@pytest.fixture
def dune_key(connection: sa.Connection, key_producer: KeyProducer | None) -> int:
    dao = book_builder().build_dao(connection, key_producer)
    book = Book(
        None,
        "Dune",
        date(1965, 8, 1),
        (Chapter(None, "Prologue", 0), Chapter(None, "Arrakis", 1)),
    )
    return dao.insert(book)


class TestImmutableEntities:
    def test_key_not_written_back(
        self, connection: sa.Connection, key_producer: KeyProducer | None
    ) -> None:
        dao = book_builder().build_dao(connection, key_producer)
        book = Book(None, "Emma")

        key = dao.insert(book)

        assert key is not None
        assert book.id is None

    def test_loaded_through_builders(
        self, connection: sa.Connection, key_producer: KeyProducer | None, dune_key: int
    ) -> None:
        loaded = book_builder().build_dao(connection, key_producer).select(dune_key)

        assert isinstance(loaded, Book)
        assert loaded.id == dune_key
        assert loaded.published == date(1965, 8, 1)
        assert isinstance(loaded.chapters, tuple)
        assert [chapter.title for chapter in loaded.chapters] == ["Prologue", "Arrakis"]
        assert all(chapter.id is not None for chapter in loaded.chapters)

    def test_update_from_loaded_copy(
        self, connection: sa.Connection, key_producer: KeyProducer | None, dune_key: int
    ) -> None:
        dao = book_builder().build_dao(connection, key_producer)
        loaded = dao.select(dune_key)
        assert loaded is not None

        revised = dataclasses.replace(
            loaded,
            title="Dune (revised)",
            chapters=(loaded.chapters[1], Chapter(None, "Appendix", 2)),
        )
        dao.update(revised)

        reloaded = dao.select(dune_key)
        assert reloaded is not None
        assert reloaded.title == "Dune (revised)"
        assert [chapter.title for chapter in reloaded.chapters] == ["Arrakis", "Appendix"]
        assert reloaded.chapters[0] == loaded.chapters[1]

    @pytest.mark.parametrize("strategy", list(ChildSelectStrategy), ids=lambda s: s.value)
    def test_all_strategies(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        dune_key: int,
        strategy: ChildSelectStrategy,
    ) -> None:
        dao = (
            book_builder()
            .with_child_select_strategy(strategy)
            .build_dao(connection, key_producer)
        )

        books = dao.select_all()

        assert [book.id for book in books] == [dune_key]
        assert len(books[0].chapters) == 2
