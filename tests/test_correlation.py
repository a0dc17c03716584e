"""Tests for kbankapi.core.correlation."""
import pytest

from kbankapi.core.correlation import CorrelationNotFound, CorrelationTable


def test_register_then_resolve_returns_same_payload():
    table = CorrelationTable("transfers")
    payload = object()

    table.register("abc123", payload)

    assert table.resolve("abc123") is payload
    assert "abc123" in table
    assert len(table) == 1


def test_resolve_unknown_raises_not_found():
    table = CorrelationTable("activities")

    with pytest.raises(CorrelationNotFound) as excinfo:
        table.resolve("xyz999")

    assert isinstance(excinfo.value, KeyError)
    assert excinfo.value.key == "xyz999"
    assert excinfo.value.table == "activities"
    assert "xyz999" in str(excinfo.value)


def test_resolve_does_not_remove_entry():
    table = CorrelationTable("transfers")
    table.register("abc123", {"handle": 1})

    table.resolve("abc123")
    table.resolve("abc123")

    assert len(table) == 1


def test_oldest_entry_evicted_first_when_full():
    table = CorrelationTable("activities", max_entries=2)

    table.register("a", 1)
    table.register("b", 2)
    table.register("c", 3)

    assert "a" not in table
    assert table.resolve("b") == 2
    assert table.resolve("c") == 3
    assert len(table) == 2


def test_reregistration_replaces_payload_and_becomes_newest():
    table = CorrelationTable("activities", max_entries=2)
    table.register("a", 1)
    table.register("b", 2)

    table.register("a", 10)
    table.register("c", 3)

    assert table.resolve("a") == 10
    assert "b" not in table


def test_unbounded_table_keeps_everything():
    table = CorrelationTable("activities")

    for index in range(5000):
        table.register(f"rq-{index}", index)

    assert len(table) == 5000
    assert table.resolve("rq-0") == 0
