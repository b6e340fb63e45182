from __future__ import annotations

import pytest

from sqla_cascade import Envelope, Operator, Prefixer, frozendict
from sqla_cascade.datastructures import alias_for


class TestFrozendict:
    def test_from_kwargs(self) -> None:
        fd: frozendict[str, int] = frozendict(x=10, y=20)
        assert fd["x"] == 10
        assert len(fd) == 2

    def test_no_setitem(self) -> None:
        fd: frozendict[str, int] = frozendict({"a": 1})
        with pytest.raises(TypeError):
            fd["a"] = 2  # type: ignore[index]

    def test_equal_dicts_same_hash(self) -> None:
        fd1: frozendict[str, int] = frozendict({"a": 1, "b": 2})
        fd2: frozendict[str, int] = frozendict({"b": 2, "a": 1})
        assert fd1 == fd2
        assert hash(fd1) == hash(fd2)

    def test_equal_to_dict(self) -> None:
        assert frozendict({"a": 1}) == {"a": 1}
        assert frozendict({"a": 1}) != [("a", 1)]

    def test_copy_adds_and_replaces(self) -> None:
        operators = frozendict({"name": Operator.LIKE})
        copied = operators.copy(age=Operator.GT, name=Operator.EQ)

        assert copied == {"name": Operator.EQ, "age": Operator.GT}
        assert operators == {"name": Operator.LIKE}

    def test_repr(self) -> None:
        assert repr(frozendict(a=1)) == "<frozendict {'a': 1}>"


class TestPrefixer:
    def test_sequence(self) -> None:
        prefixer = Prefixer()

        assert [prefixer.next_prefix() for _ in range(5)] == ["a", "b", "c", "d", "e"]

    def test_iterates(self) -> None:
        prefixer = Prefixer()

        assert next(prefixer) == "a"
        assert next(prefixer) == "b"

    def test_fresh_prefixer_restarts(self) -> None:
        Prefixer().next_prefix()

        assert Prefixer().next_prefix() == "a"

    @pytest.mark.parametrize(
        ("index", "alias"),
        [(0, "a"), (25, "z"), (26, "aa"), (27, "ab"), (51, "az"), (52, "ba")],
    )
    def test_alias_for(self, index: int, alias: str) -> None:
        assert alias_for(index) == alias


class TestEnvelope:
    def test_defaults(self) -> None:
        envelope = Envelope("item")

        assert envelope.key is None
        assert envelope.parent_key is None
        assert envelope.joins == []
        assert envelope.joined == {}

    def test_independent_lists(self) -> None:
        first, second = Envelope(1), Envelope(2)
        first.joins.append(("column", second))

        assert second.joins == []
