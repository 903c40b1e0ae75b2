"""Tests for shipyard.core.structured module."""

from shipyard.core.structured import (
    as_obj_list,
    as_str_dict,
    get_bool,
    get_int,
    get_str,
    get_str_list,
    get_table,
    is_str_dict,
)


def test_is_str_dict() -> None:
    assert is_str_dict({"a": 1})
    assert not is_str_dict({1: "a"})
    assert not is_str_dict(["a"])


def test_as_helpers() -> None:
    assert as_str_dict({"a": 1}) == {"a": 1}
    assert as_str_dict("nope") is None
    assert as_obj_list([1, "a"]) == [1, "a"]
    assert as_obj_list({"a": 1}) is None


def test_get_str_strips_and_rejects_blank() -> None:
    table: dict[str, object] = {"name": "  Zettlr ", "blank": "   ", "num": 3}
    assert get_str(table, "name") == "Zettlr"
    assert get_str(table, "blank") is None
    assert get_str(table, "num") is None
    assert get_str(table, "missing") is None


def test_get_int_rejects_bool() -> None:
    table: dict[str, object] = {"timeout": 60, "flag": True}
    assert get_int(table, "timeout") == 60
    assert get_int(table, "flag") is None


def test_get_bool() -> None:
    table: dict[str, object] = {"yes": True, "str": "true"}
    assert get_bool(table, "yes") is True
    assert get_bool(table, "str") is None


def test_get_table() -> None:
    table: dict[str, object] = {"product": {"name": "x"}, "flat": 1}
    assert get_table(table, "product") == {"name": "x"}
    assert get_table(table, "flat") is None


def test_get_str_list() -> None:
    table: dict[str, object] = {"ok": ["-vzhr", "--delete"], "mixed": ["a", 1]}
    assert get_str_list(table, "ok") == ["-vzhr", "--delete"]
    assert get_str_list(table, "mixed") is None
    assert get_str_list(table, "missing") is None
