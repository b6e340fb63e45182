from __future__ import annotations

import pytest
import sqlalchemy as sa

from sqla_cascade import ChildSelectStrategy, KeyProducer, Operator, Order, Where

from ..conftest import StatementCounter
from ..models import person_builder
from .conftest import World


ALL_STRATEGIES = list(ChildSelectStrategy)


class TestEquivalentGraphs:
    @pytest.mark.parametrize("strategy", ALL_STRATEGIES, ids=lambda s: s.value)
    def test_select_all(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        strategy: ChildSelectStrategy,
    ) -> None:
        dao = person_builder(strategy).build_dao(connection, key_producer)

        assert dao.select_all(Order.ascending("name")) == world.people

    @pytest.mark.parametrize("strategy", ALL_STRATEGIES, ids=lambda s: s.value)
    def test_select_where(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        strategy: ChildSelectStrategy,
    ) -> None:
        dao = person_builder(strategy).build_dao(connection, key_producer)
        where = Where.where("name", Operator.NE, "Cid").and_("b.name", Operator.EQ, "Paris")

        assert dao.select_where(where) == [world.bob]

    @pytest.mark.parametrize("strategy", ALL_STRATEGIES, ids=lambda s: s.value)
    def test_back_references(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        strategy: ChildSelectStrategy,
    ) -> None:
        dao = person_builder(strategy).build_dao(connection, key_producer)

        for person in dao.select_all():
            for pet in person.pets:
                assert all(toy.pet is pet for toy in pet.toys)

    @pytest.mark.parametrize("strategy", ALL_STRATEGIES, ids=lambda s: s.value)
    def test_nothing_found(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        strategy: ChildSelectStrategy,
        statements: StatementCounter,
    ) -> None:
        dao = person_builder(strategy).build_dao(connection, key_producer)
        statements.reset()

        assert dao.select_where(Where.where("name", Operator.EQ, "Nobody")) == []
        assert statements.count == 1


class TestSharedJoinedEntities:
    @pytest.mark.parametrize("strategy", ALL_STRATEGIES, ids=lambda s: s.value)
    def test_children_loaded_once(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        strategy: ChildSelectStrategy,
    ) -> None:
        dao = person_builder(strategy).build_dao(connection, key_producer)

        ann, bob, cid = dao.select_all(Order.ascending("name"))

        for city in (ann.home, bob.work, cid.home, cid.work):
            assert city is not None
            assert [district.name for district in city.districts] == ["Mitte", "Pankow"]

    @pytest.mark.parametrize("strategy", ALL_STRATEGIES, ids=lambda s: s.value)
    def test_back_references_point_at_first_row(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        strategy: ChildSelectStrategy,
    ) -> None:
        dao = person_builder(strategy, back_reference=True).build_dao(connection, key_producer)

        ann, bob, cid = dao.select_all(Order.ascending("name"))
        assert cid.home is not None
        assert cid.work is not None

        assert cid.home.districts[0] is ann.home.districts[0]  # type: ignore[union-attr]
        assert all(district.city is ann.home for district in cid.home.districts)
        assert all(district.city is bob.work for district in cid.work.districts)
        assert all(district.city == cid.work for district in cid.work.districts)

    def test_standard_selects_each_city_once(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        statements: StatementCounter,
    ) -> None:
        dao = person_builder(ChildSelectStrategy.STANDARD).build_dao(connection, key_producer)
        statements.reset()

        dao.select_all()

        districts = [sql for sql in statements.statements if " from district a " in sql]
        assert len(districts) == 4


class TestRoundTrips:
    @pytest.mark.parametrize(
        ("strategy", "expected"),
        [
            # people; districts per distinct home city (Berlin, Paris) and per
            # distinct work city (Paris, Berlin); pets per person; toys per pet
            (ChildSelectStrategy.STANDARD, 1 + 2 + 2 + 3 + 3),
            (ChildSelectStrategy.BY_KEYS_IN_CLAUSE, 5),
            (ChildSelectStrategy.SUB_SELECT_IN_CLAUSE, 5),
        ],
        ids=lambda value: value.value if isinstance(value, ChildSelectStrategy) else str(value),
    )
    def test_statement_count(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        statements: StatementCounter,
        strategy: ChildSelectStrategy,
        expected: int,
    ) -> None:
        dao = person_builder(strategy).build_dao(connection, key_producer)
        statements.reset()

        dao.select_all()

        assert statements.count == expected

    def test_in_clause_lists_parent_keys(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        statements: StatementCounter,
    ) -> None:
        dao = person_builder(ChildSelectStrategy.BY_KEYS_IN_CLAUSE).build_dao(
            connection, key_producer
        )
        statements.reset()

        dao.select_all()

        pets = [sql for sql in statements.statements if " from pet a " in sql]
        assert len(pets) == 1
        assert "a.person_id in (" in pets[0]

    def test_sub_select_repeats_predicate(
        self,
        connection: sa.Connection,
        key_producer: KeyProducer | None,
        world: World,
        statements: StatementCounter,
    ) -> None:
        dao = person_builder(ChildSelectStrategy.SUB_SELECT_IN_CLAUSE).build_dao(
            connection, key_producer
        )
        statements.reset()

        dao.select_where(Where.where("name", Operator.EQ, "Ann"))

        toys = [sql for sql in statements.statements if " from toy a " in sql]
        assert len(toys) == 1
        assert "a.pet_id in ( select a.id from pet a" in toys[0]
        assert "a.person_id in ( select a.id from person a" in toys[0]
        assert "A.name = " in toys[0]
