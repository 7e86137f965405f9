"""Unit tests for set and map merge policies."""

from __future__ import annotations

import pytest

from syncdb.core import resolver
from syncdb.core.set_resolver import (
    INTERSECTION,
    SERVER,
    UNION,
    MapResolver,
    SetResolver,
    as_map_resolver,
)


def fs(*items):
    return frozenset(items)


class TestUnion:
    def test_adds_from_both_sides(self):
        merged = UNION.resolve(fs("one", "two"), fs("one", "two", "four"), fs("one", "two", "three"))
        assert merged == {"one", "two", "three", "four"}

    def test_uncontested_local_remove_sticks(self):
        merged = UNION.resolve(fs("a", "b"), fs("a"), fs("a", "b", "c"))
        assert merged == {"a", "c"}

    def test_uncontested_server_remove_sticks(self):
        merged = UNION.resolve(fs("a", "b"), fs("a", "b", "x"), fs("a"))
        assert merged == {"a", "x"}

    def test_same_add_on_both_sides(self):
        merged = UNION.resolve(fs(), fs("b"), fs("b"))
        assert merged == {"b"}

    def test_server_readd_beats_local_remove(self):
        merged = UNION.resolve(fs("x"), fs(), fs("x"), server_adds=fs("x"))
        assert merged == {"x"}

    def test_local_readd_beats_server_remove(self):
        merged = UNION.resolve(fs("x"), fs("x"), fs(), local_adds=fs("x"))
        assert merged == {"x"}

    def test_add_of_element_no_longer_held_is_ignored(self):
        merged = UNION.resolve(fs("x"), fs(), fs(), server_adds=fs("x"))
        assert merged == frozenset()


class TestIntersection:
    def test_keeps_common_elements(self):
        merged = INTERSECTION.resolve(fs(), fs("1", "2"), fs("2", "3"))
        assert merged == {"2"}

    def test_disjoint_is_empty(self):
        assert INTERSECTION.resolve(fs(), fs("a"), fs("b")) == frozenset()


class TestServerSet:
    def test_takes_server_contents(self):
        merged = SERVER.resolve(fs("a"), fs("a", "d"), fs("a", "b", "c"))
        assert merged == {"a", "b", "c"}


class TestSetResolverProtocol:
    @pytest.mark.parametrize("policy", [UNION, INTERSECTION, SERVER])
    def test_builtins_conform(self, policy):
        assert isinstance(policy, SetResolver)

    @pytest.mark.parametrize("policy", [UNION, INTERSECTION, SERVER])
    def test_returns_frozenset(self, policy):
        assert isinstance(policy.resolve(fs(), fs("a"), fs("a")), frozenset)


class TestMapResolverPerKey:
    def test_one_sided_changes_are_kept(self):
        policy = MapResolver.per_key(resolver.INTMAX)
        baseline = {"one": 1, "two": 2}
        local = {"two": 2, "four": 44}  # removed "one", added "four"
        server = {"one": 1, "two": 2, "three": 3}  # added "three"
        assert policy.resolve(baseline, local, server) == {"two": 2, "three": 3, "four": 44}

    def test_both_sides_written_uses_value_resolver(self):
        policy = MapResolver.per_key(resolver.INTMAX)
        assert policy.resolve({"k": 1}, {"k": 5}, {"k": 9}) == {"k": 9}
        assert policy.resolve({"k": 1}, {"k": 12}, {"k": 9}) == {"k": 12}

    def test_put_beats_remove(self):
        policy = MapResolver.per_key(resolver.SERVER)
        assert policy.resolve({"k": 1}, {}, {"k": 2}) == {"k": 2}
        assert policy.resolve({"k": 1}, {"k": 3}, {}) == {"k": 3}

    def test_put_back_beats_remove(self):
        policy = MapResolver.per_key(resolver.SERVER)
        assert policy.resolve({"k": 1}, {"k": 1}, {}, local_puts={"k"}) == {"k": 1}
        assert policy.resolve({"k": 1}, {}, {"k": 1}, server_puts={"k"}) == {"k": 1}

    def test_put_back_on_both_sides_uses_value_resolver(self):
        policy = MapResolver.per_key(resolver.INTMAX)
        assert policy.resolve({"k": 5}, {"k": 5}, {"k": 9}, local_puts={"k"}) == {"k": 9}
        assert policy.resolve({"k": 1}, {"k": 1}, {"k": 1}, local_puts={"k"}) == {"k": 1}

    def test_both_removed(self):
        policy = MapResolver.per_key(resolver.CLIENT)
        assert policy.resolve({"k": 1}, {}, {}) == {}

    def test_same_new_value_on_both_sides(self):
        policy = MapResolver.per_key(resolver.CLIENT)
        assert policy.resolve({}, {"k": 4}, {"k": 4}) == {"k": 4}

    def test_value_resolver_property(self):
        assert MapResolver.per_key(resolver.INTMAX).value_resolver is resolver.INTMAX
        assert MapResolver.SERVER.value_resolver is None


class TestMapResolverServer:
    def test_server_map_wins_wholesale(self):
        merged = MapResolver.SERVER.resolve({"a": 1}, {"a": 2, "b": 3}, {"a": 1, "c": 4})
        assert merged == {"a": 1, "c": 4}

    def test_repr(self):
        assert repr(MapResolver.SERVER) == "MapResolver.SERVER"
        assert repr(MapResolver.per_key(resolver.INTMAX)) == "MapResolver.per_key(INTMAX)"


class TestAsMapResolver:
    def test_passes_map_resolvers_through(self):
        assert as_map_resolver(MapResolver.SERVER) is MapResolver.SERVER

    def test_wraps_scalar_resolver(self):
        wrapped = as_map_resolver(resolver.LONGMAX)
        assert isinstance(wrapped, MapResolver)
        assert wrapped.value_resolver is resolver.LONGMAX

    def test_rejects_other_objects(self):
        with pytest.raises(TypeError):
            as_map_resolver("INTMAX")
