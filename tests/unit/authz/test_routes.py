"""Tests for route tokenizing, matching and resolution."""

import logging

import pytest

from accessgate.core.authz.routes import (
    RouteBindingRecord,
    RoutePattern,
    RouteResolver,
    SegmentKind,
    find_conflict,
    normalize_method,
    normalize_path,
    split_path,
)

pytestmark = pytest.mark.unit


class TestPathNormalization:
    """Test path and method normalization."""

    def test_split_drops_query_and_edge_slashes(self):
        """Query strings, fragments and edge slashes are not significant."""
        assert split_path("/api/users/?page=2") == ("api", "users")
        assert split_path("api/users#top") == ("api", "users")
        assert split_path("/") == ()

    def test_normalize_path(self):
        assert normalize_path("api/users/") == "/api/users"
        assert normalize_path("/") == "/"
        assert normalize_path("") == "/"

    def test_normalize_method(self):
        """Methods are upper-cased; empty and wildcard mean any method."""
        assert normalize_method("get") == "GET"
        assert normalize_method(" Post ") == "POST"
        assert normalize_method("*") is None
        assert normalize_method("") is None
        assert normalize_method(None) is None


class TestRoutePattern:
    """Test segment tokenizing and matching."""

    def test_parse_segments(self):
        pattern = RoutePattern.parse("/api/users/:id/roles")
        kinds = [s.kind for s in pattern.segments]
        assert kinds == [SegmentKind.LITERAL, SegmentKind.LITERAL, SegmentKind.PARAM, SegmentKind.LITERAL]
        assert pattern.param_names == ["id"]
        assert pattern.is_parameterized

    def test_literal_pattern_is_not_parameterized(self):
        assert not RoutePattern.parse("/api/users").is_parameterized

    def test_match_extracts_params(self):
        """A parameter captures exactly one segment."""
        pattern = RoutePattern.parse("/api/users/:id/roles")
        assert pattern.match("/api/users/42/roles") == {"id": "42"}

    def test_match_requires_whole_path(self):
        pattern = RoutePattern.parse("/api/users/:id")
        assert pattern.match("/api/users") is None
        assert pattern.match("/api/users/42/roles") is None

    def test_parameter_does_not_match_empty_segment(self):
        pattern = RoutePattern.parse("/api/users/:id/roles")
        assert pattern.match("/api/users//roles") is None

    def test_literal_segments_must_be_equal(self):
        pattern = RoutePattern.parse("/api/users/:id")
        assert pattern.match("/api/roles/42") is None

    def test_trailing_slash_and_query_ignored(self):
        pattern = RoutePattern.parse("/api/users/:id")
        assert pattern.match("/api/users/7/?expand=roles") == {"id": "7"}

    def test_regex_characters_are_literal(self):
        """Stored paths are never compiled into regular expressions."""
        pattern = RoutePattern.parse("/api/v1.0/items")
        assert pattern.match("/api/v1.0/items") == {}
        assert pattern.match("/api/v1x0/items") is None

    def test_overlaps(self):
        users_by_id = RoutePattern.parse("/api/users/:id")
        assert users_by_id.overlaps(RoutePattern.parse("/api/users/:user_id"))
        assert users_by_id.overlaps(RoutePattern.parse("/api/:resource/7"))
        assert not users_by_id.overlaps(RoutePattern.parse("/api/roles/:id"))
        assert not users_by_id.overlaps(RoutePattern.parse("/api/users/:id/roles"))


def _binding(binding_id, path, method=None, capability_id=1):
    return RouteBindingRecord(id=binding_id, path=path, method=method, capability_id=capability_id)


class TestFindConflict:
    """Test overlap detection used at registration time."""

    def test_overlapping_patterns_same_method(self):
        existing = [_binding(1, "/api/users/:id", "GET")]
        conflict = find_conflict("/api/users/:user_id", "GET", existing)
        assert conflict is existing[0]

    def test_overlapping_patterns_different_methods(self):
        existing = [_binding(1, "/api/users/:id", "GET")]
        assert find_conflict("/api/users/:id", "POST", existing) is None

    def test_method_less_binding_overlaps_every_method(self):
        existing = [_binding(1, "/api/users/:id", None)]
        assert find_conflict("/api/users/:other", "DELETE", existing) is not None

    def test_literal_never_clashes_with_pattern(self):
        """Exact bindings always win, so a literal beside a pattern is unambiguous."""
        existing = [_binding(1, "/api/users/:id", "GET")]
        assert find_conflict("/api/users/me", "GET", existing) is None

    def test_exact_duplicate(self):
        existing = [_binding(1, "/api/users", "GET")]
        assert find_conflict("/api/users/", "get", existing) is existing[0]

    def test_same_literal_with_distinct_methods(self):
        existing = [_binding(1, "/api/users", "GET")]
        assert find_conflict("/api/users", "POST", existing) is None
        assert find_conflict("/api/users", None, existing) is None


class TestRouteResolver:
    """Test resolution against stored bindings."""

    def test_exact_match_wins_over_pattern(self, store):
        """Exact bindings are tried before patterns, regardless of order."""
        store.add_binding("/api/users/:id", capability_id=1, method="GET")
        me = store.add_binding("/api/users/me", capability_id=2, method="GET")

        match = RouteResolver(store).resolve("GET", "/api/users/me")

        assert match.binding == me
        assert match.exact
        assert match.capability_id == 2

    def test_parameterized_resolution(self, store):
        store.add_binding("/api/users/:id/roles", capability_id=5)

        match = RouteResolver(store).resolve("GET", "/api/users/42/roles")

        assert match.capability_id == 5
        assert not match.exact
        assert match.params == {"id": "42"}

    def test_method_specific_exact_binding_preferred(self, store):
        store.add_binding("/api/users", capability_id=3)
        store.add_binding("/api/users", capability_id=4, method="GET")
        resolver = RouteResolver(store)

        assert resolver.resolve("GET", "/api/users").capability_id == 4
        assert resolver.resolve("POST", "/api/users").capability_id == 3

    def test_method_is_case_insensitive(self, store):
        store.add_binding("/api/reports", capability_id=9, method="GET")
        assert RouteResolver(store).resolve("get", "/api/reports/").capability_id == 9

    def test_binding_for_other_method_not_used(self, store):
        store.add_binding("/api/users/:id", capability_id=1, method="POST")
        assert RouteResolver(store).resolve("GET", "/api/users/5") is None

    def test_unmapped_route(self, store):
        store.add_binding("/api/users", capability_id=1)
        assert RouteResolver(store).resolve("GET", "/api/unknown") is None

    def test_ambiguous_patterns_first_registered_wins(self, store, caplog):
        store.add_binding("/api/:resource/export", capability_id=1)
        store.add_binding("/api/users/:id", capability_id=2)

        with caplog.at_level(logging.WARNING, logger="accessgate.core.authz.routes"):
            match = RouteResolver(store).resolve("GET", "/api/users/export")

        assert match.capability_id == 1
        assert "Ambiguous route" in caplog.text
