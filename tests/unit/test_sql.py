from __future__ import annotations

import pytest

from sqla_cascade import (
    ConfigurationError,
    DescriptorBuilder,
    Operator,
    Order,
    SqlFunction,
    Where,
    cache_info,
    sql_builder,
)

from ..models import (
    City,
    Person,
    Pet,
    Species,
    city_builder,
    country_builder,
    district_builder,
    event_builder,
    person_builder,
    pet_builder,
)


class TestSelect:
    def test_plain_table(self) -> None:
        builder = country_builder().build_queries()

        assert builder.select() == (
            "select a.id as a_id, a.name as a_name from country a where 1=1"
        )

    def test_joined_table(self) -> None:
        builder = city_builder().build_queries()

        assert builder.select() == (
            "select a.id as a_id, a.name as a_name, a.country_id as a_country_id,"
            " b.id as b_id, b.name as b_name"
            " from city a LEFT JOIN country b ON a.country_id=b.id where 1=1"
        )

    def test_aliases_follow_joins_depth_first(self) -> None:
        plan = person_builder().build_queries().plan

        assert [(node.alias, node.parent_alias, node.descriptor.table) for node in plan.nodes()] == [
            ("b", "a", "city"),
            ("c", "b", "country"),
            ("d", "a", "city"),
            ("e", "d", "country"),
        ]
        assert plan.from_clause == (
            "person a"
            " LEFT JOIN city b ON a.home_city_id=b.id"
            " LEFT JOIN country c ON b.country_id=c.id"
            " LEFT JOIN city d ON a.work_city_id=d.id"
            " LEFT JOIN country e ON d.country_id=e.id"
        )

    def test_same_text_every_time(self) -> None:
        first = person_builder().build_queries().select()
        second = person_builder().build_queries().select()

        assert first == second

    def test_select_where_and_order(self) -> None:
        builder = country_builder().build_queries()
        where = Where.where("name", Operator.LIKE, "F%").or_("id", Operator.GT, 3)

        assert builder.select_where(where, Order.ascending("name")) == (
            "select a.id as a_id, a.name as a_name from country a where 1=1"
            " and ( A.name LIKE ? OR A.id > ? )"
            " ORDER BY a.name ASC"
        )

    def test_empty_where_adds_nothing(self) -> None:
        builder = country_builder().build_queries()

        assert builder.select_where(Where()) == builder.select()

    def test_child_select_is_ordered_by_key(self) -> None:
        builder = district_builder().build_queries()
        condition = builder.parent_condition("= ?")

        assert builder.select_with_condition(condition) == (
            "select a.id as a_id, a.city_id as a_city_id, a.name as a_name"
            " from district a where 1=1 and a.city_id = ? ORDER BY a.id ASC"
        )

    def test_parent_condition_needs_parent_column(self) -> None:
        with pytest.raises(ConfigurationError):
            country_builder().build_queries().parent_condition("= ?")

    def test_result_types_cover_every_label(self) -> None:
        plan = person_builder().build_queries().plan

        assert {"a_id", "a_home_city_id", "b_id", "c_name", "e_id"} <= set(plan.result_types)

    def test_column_for_dotted_name(self) -> None:
        plan = person_builder().build_queries().plan

        assert plan.column_for("name") is plan.descriptor.column("name")
        assert plan.column_for("b.name") is not None
        assert plan.column_for("b.name") is not plan.column_for("name")
        assert plan.column_for("z.name") is None

    def test_distinct_and_function(self) -> None:
        builder = country_builder().build_queries()
        name = builder.descriptor.column("name")
        assert name is not None

        assert builder.select_distinct([name]) == (
            "select distinct a.name as a_name from country a where 1=1"
        )
        assert builder.select_function(
            SqlFunction.COUNT, "id", Where.where("name", Operator.NE, "x")
        ) == ("select COUNT(a.id) as value from country a where 1=1 and ( A.name <> ? )")

    def test_sub_select_keys(self) -> None:
        builder = city_builder().build_queries()

        assert builder.sub_select_keys("b.id", " and ( A.name = ? )") == (
            "select b.id from city a LEFT JOIN country b ON a.country_id=b.id"
            " where 1=1 and ( A.name = ? )"
        )


class TestWrites:
    def test_insert(self) -> None:
        assert district_builder().build_queries().insert() == (
            "insert into district ( id, city_id, name ) values ( ?, ?, ? )"
        )

    def test_insert_join_column(self) -> None:
        assert city_builder().build_queries().insert() == (
            "insert into city ( id, name, country_id ) values ( ?, ?, ? )"
        )

    def test_update_with_and_without_parent(self) -> None:
        builder = district_builder().build_queries()

        assert builder.update() == "update district set city_id = ?, name = ? where id = ?"
        assert builder.update(with_parent=False) == "update district set name = ? where id = ?"

    def test_update_never_sets_key(self) -> None:
        builder = country_builder().build_queries()

        assert builder.update() == "update country set name = ? where id = ?"

    def test_delete_and_child_ids(self) -> None:
        builder = district_builder().build_queries()

        assert builder.delete() == "delete from district where id = ?"
        assert builder.select_child_ids() == "select id from district where city_id = ?"

    def test_keyless_table_has_no_update(self) -> None:
        builder = event_builder().build_queries()

        assert builder.insert() == (
            "insert into event ( name, amount, happened_at ) values ( ?, ?, ? )"
        )
        with pytest.raises(ConfigurationError):
            builder.update()
        with pytest.raises(ConfigurationError):
            builder.delete()


class TestBinds:
    def test_insert_binds_in_column_order(self) -> None:
        builder = pet_builder().build_queries()
        pet = Pet(name="Rex", species=Species.CAT)

        binds = builder.insert_binds(pet, 10, 5)

        assert [bind.value for bind in binds] == [10, 5, "Rex", "CAT"]

    def test_join_column_binds_referenced_key(self) -> None:
        builder = person_builder().build_queries()
        person = Person(name="Ann", home=City(id=7))

        values = [bind.value for bind in builder.insert_binds(person, 1)]

        assert values[-2:] == [7, None]

    def test_where_binds_convert_equality(self) -> None:
        builder = person_builder().build_queries()
        where = Where.where("admin", Operator.EQ, True).and_("name", Operator.LIKE, "A%")

        assert [bind.value for bind in builder.where_binds(where)] == ["T", "A%"]

    def test_where_binds_for_unknown_column_are_untyped(self) -> None:
        builder = country_builder().build_queries()
        binds = builder.where_binds(Where.where("upper(a.name)", Operator.EQ, "X"))

        assert binds[0].value == "X"
        assert binds[0].sa_type is None


class TestCaching:
    def test_builder_is_memoised_per_descriptor(self) -> None:
        descriptor = country_builder().build_descriptor()

        assert sql_builder(descriptor) is sql_builder(descriptor)
        assert cache_info()["sql_builder"].hits >= 1

    def test_distinct_descriptors_get_distinct_builders(self) -> None:
        first = country_builder().build_descriptor()
        second = country_builder().build_descriptor()

        assert sql_builder(first) is not sql_builder(second)

    def test_builder_repr(self) -> None:
        builder = DescriptorBuilder("thing", dict).build_queries()

        assert repr(builder) == "<SqlBuilder thing>"
