from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest
import sqlalchemy as sa

from sqla_cascade import KeylessDao, NullValueError, Operator, Order, SqlFunction, Where

from ..conftest import StatementCounter
from ..models import Event, event_builder


@pytest.fixture
def events(connection: sa.Connection) -> KeylessDao[Event]:
    dao = event_builder().build_keyless_dao(connection)
    dao.insert(Event("deploy", Decimal("12.5"), datetime(2024, 3, 1, 9, 0)))
    dao.insert(Event("rollback", Decimal("7.25"), datetime(2024, 3, 1, 9, 30)))
    dao.insert(Event("deploy", None, datetime(2024, 3, 2, 10, 0)))
    return dao


class TestKeylessDao:
    def test_select_all(self, events: KeylessDao[Event]) -> None:
        loaded = events.select_all(Order.ascending("happened_at"))

        assert [event.name for event in loaded] == ["deploy", "rollback", "deploy"]
        assert loaded[0].amount == Decimal("12.5")
        assert loaded[2].amount is None

    def test_select_where(self, events: KeylessDao[Event]) -> None:
        loaded = events.select_where(
            Where.where("happened_at", Operator.LT, datetime(2024, 3, 2)),
            Order.descending("happened_at"),
        )

        assert [event.name for event in loaded] == ["rollback", "deploy"]

    def test_select_by_columns(self, events: KeylessDao[Event]) -> None:
        loaded = events.select_by_columns(Event(name="deploy"), "name")

        assert len(loaded) == 2

    def test_null_column(self, events: KeylessDao[Event], statements: StatementCounter) -> None:
        statements.reset()

        with pytest.raises(NullValueError):
            events.insert(Event(name=None))  # type: ignore[arg-type]

        assert statements.count == 0

    def test_functions(self, events: KeylessDao[Event]) -> None:
        assert events.run_function(SqlFunction.COUNT, "name") == 3
        assert events.run_function(SqlFunction.MAX, "amount") == Decimal("12.5")
        assert events.run_function(SqlFunction.MIN, "happened_at") == datetime(2024, 3, 1, 9, 0)

    def test_distinct(self, events: KeylessDao[Event]) -> None:
        assert sorted(events.select_distinct("name")) == [("deploy",), ("rollback",)]

    def test_atomic_insert(self, connection: sa.Connection, events: KeylessDao[Event]) -> None:
        events.atomic_insert(Event("restart"))
        connection.rollback()

        assert events.run_function(SqlFunction.COUNT, "name") == 4

    def test_no_update_or_delete(self, events: KeylessDao[Event]) -> None:
        assert not hasattr(events, "delete")
        assert not hasattr(events, "update")
