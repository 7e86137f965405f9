"""Unit tests for element operations used by set and map fields."""

from __future__ import annotations

import pytest

from syncdb.core.codec import FormatError
from syncdb.core.ops import (
    ADD,
    REMOVE,
    ElementOp,
    added_elements,
    apply_map_ops,
    apply_set_ops,
    diff_maps,
    diff_sets,
    ops_from_wire,
    ops_to_wire,
)


class TestElementOp:
    def test_rejects_unknown_op(self):
        with pytest.raises(ValueError):
            ElementOp("replace", "x")

    def test_to_dict_omits_missing_value(self):
        assert ElementOp(ADD, '"a"').to_dict() == {"op": "add", "element": '"a"'}

    def test_to_dict_includes_map_value(self):
        assert ElementOp(ADD, '"k"', "4").to_dict() == {"op": "add", "element": '"k"', "value": "4"}

    def test_from_dict(self):
        op = ElementOp.from_dict({"op": "remove", "element": '"a"'})
        assert op == ElementOp(REMOVE, '"a"')

    @pytest.mark.parametrize(
        "payload",
        [
            "add",
            {"op": "drop", "element": "x"},
            {"op": "add"},
            {"op": "add", "element": 3},
            {"op": "add", "element": "x", "value": 4},
        ],
    )
    def test_from_dict_rejects_malformed(self, payload):
        with pytest.raises(FormatError):
            ElementOp.from_dict(payload)


class TestWire:
    def test_ops_to_wire(self):
        wire = ops_to_wire([ElementOp(ADD, "a"), ElementOp(REMOVE, "b")])
        assert wire == [{"op": "add", "element": "a"}, {"op": "remove", "element": "b"}]

    def test_ops_from_wire_requires_list(self):
        with pytest.raises(FormatError):
            ops_from_wire('"three"')

    def test_ops_from_wire_parses_each(self):
        ops = ops_from_wire([{"op": "add", "element": "a"}])
        assert ops == [ElementOp(ADD, "a")]


class TestSetDiff:
    def test_diff_is_sorted_by_element(self):
        ops = diff_sets({"b", "c"}, {"a", "c", "d"})
        assert [(o.op, o.element) for o in ops] == [("add", "a"), ("remove", "b"), ("add", "d")]

    def test_no_change_no_ops(self):
        assert diff_sets({"a"}, {"a"}) == []

    def test_readded_element_is_sent_as_add(self):
        assert diff_sets({"a", "b"}, {"a", "b"}, readded={"a"}) == [ElementOp(ADD, "a")]

    def test_readded_element_not_held_is_ignored(self):
        assert diff_sets({"a"}, set(), readded={"a"}) == [ElementOp(REMOVE, "a")]

    def test_apply_reproduces_current(self):
        baseline, current = {"x", "y"}, {"y", "z"}
        assert apply_set_ops(baseline, diff_sets(baseline, current)) == current

    def test_apply_is_ordered(self):
        ops = [ElementOp(ADD, "a"), ElementOp(REMOVE, "a"), ElementOp(ADD, "a")]
        assert apply_set_ops(set(), ops) == {"a"}

    def test_apply_does_not_mutate_input(self):
        elements = {"a"}
        apply_set_ops(elements, [ElementOp(REMOVE, "a")])
        assert elements == {"a"}


class TestMapDiff:
    def test_changed_value_is_an_add(self):
        ops = diff_maps({"k": "1"}, {"k": "2"})
        assert ops == [ElementOp(ADD, "k", "2")]

    def test_removed_key(self):
        assert diff_maps({"k": "1"}, {}) == [ElementOp(REMOVE, "k")]

    def test_reput_key_is_sent_as_add(self):
        assert diff_maps({"k": "1", "j": "2"}, {"k": "1", "j": "2"}, reput={"k"}) == [
            ElementOp(ADD, "k", "1"),
        ]

    def test_apply_reproduces_current(self):
        baseline = {"one": "1", "two": "2"}
        current = {"two": "2", "four": "44"}
        assert apply_map_ops(baseline, diff_maps(baseline, current)) == current

    def test_add_without_value_is_rejected(self):
        with pytest.raises(FormatError):
            apply_map_ops({}, [ElementOp(ADD, "k")])

    def test_remove_missing_key_is_noop(self):
        assert apply_map_ops({"a": "1"}, [ElementOp(REMOVE, "b")]) == {"a": "1"}


class TestAddedElements:
    def test_collects_every_addition(self):
        ops = [ElementOp(REMOVE, "a"), ElementOp(ADD, "a"), ElementOp(ADD, "k", "1")]
        assert added_elements(ops) == {"a", "k"}

    def test_removals_only(self):
        assert added_elements([ElementOp(REMOVE, "a")]) == set()
