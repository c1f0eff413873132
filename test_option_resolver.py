"""
Unit tests for option_resolver module.
"""

from form_engine.field_model import Condition, OptionSet
from form_engine.option_resolver import (
    condition_matches,
    condition_value_choices,
    find_field,
    resolve_options,
    value_matches,
)
from test_fixtures import FormFixtures, make_field


class TestValueMatching:
    """Test condition value comparison."""

    def test_any_matches_non_empty_only(self):
        assert value_matches("any", "Comlab 201")
        assert value_matches("any", "x")
        assert not value_matches("any", "")

    def test_exact_match_is_case_sensitive(self):
        assert value_matches("hardware", "hardware")
        assert not value_matches("hardware", "Hardware")
        assert not value_matches("hardware", "")

    def test_condition_on_missing_field_never_matches(self):
        fields = FormFixtures.union_schema()
        condition = Condition(field="ghost", value="any")
        assert not condition_matches(condition, {"t": "t1"}, fields)

    def test_find_field(self):
        fields = FormFixtures.union_schema()
        assert find_field("s", fields).label == "S"
        assert find_field("missing", fields) is None


class TestResolveOptions:
    """Test option resolution for select fields."""

    def test_union_without_duplicates(self):
        t, s = FormFixtures.union_schema()
        options = resolve_options(s, {"t": "t1", "s": ""}, [t, s])

        assert set(options) == {"x", "y", "z"}
        assert list(options) == ["x", "y", "z"]

    def test_only_default_set_when_condition_unmet(self):
        t, s = FormFixtures.union_schema()
        assert set(resolve_options(s, {"t": "t2"}, [t, s])) == {"x", "y"}
        assert set(resolve_options(s, {}, [t, s])) == {"x", "y"}

    def test_idempotent(self):
        t, s = FormFixtures.union_schema()
        values = {"t": "t1"}
        first = resolve_options(s, values, [t, s])
        second = resolve_options(s, values, [t, s])

        assert first == second
        assert values == {"t": "t1"}

    def test_no_default_set_starts_empty(self):
        t = make_field("t", "T", "select", option_sets=[OptionSet(options=["t1"])])
        s = make_field("s", "S", "select", option_sets=[
            OptionSet(options=["only"], condition=Condition(field="t", value="t1")),
        ])
        assert set(resolve_options(s, {"t": ""}, [t, s])) == set()
        assert set(resolve_options(s, {"t": "t1"}, [t, s])) == {"only"}

    def test_any_condition_on_option_set(self):
        t = make_field("t", "T", "select", option_sets=[OptionSet(options=["t1", "t2"])])
        s = make_field("s", "S", "select", option_sets=[
            OptionSet(options=["base"]),
            OptionSet(options=["extra"], condition=Condition(field="t", value="any")),
        ])
        assert set(resolve_options(s, {"t": "t2"}, [t, s])) == {"base", "extra"}
        assert set(resolve_options(s, {"t": ""}, [t, s])) == {"base"}

    def test_every_unconditional_set_contributes(self):
        t = make_field("t", "T", "select", option_sets=[OptionSet(options=["t1"])])
        s = make_field("s", "S", "select", option_sets=[
            OptionSet(options=["x"]),
            OptionSet(options=["z"], condition=Condition(field="t", value="t1")),
            OptionSet(options=["y", "x"]),
        ])

        assert list(resolve_options(s, {}, [t, s])) == ["x", "y"]
        assert list(resolve_options(s, {"t": "t1"}, [t, s])) == ["x", "y", "z"]

    def test_dangling_condition_contributes_nothing(self):
        s = make_field("s", "S", "select", option_sets=[
            OptionSet(options=["base"]),
            OptionSet(options=["ghost"], condition=Condition(field="deleted", value="any")),
        ])
        assert set(resolve_options(s, {"deleted": "yes"}, [s])) == {"base"}

    def test_legacy_options(self):
        field = make_field("k", "Kind", "select", options=["hardware", "software", "hardware"])
        assert list(resolve_options(field, {}, [field])) == ["hardware", "software"]

    def test_select_without_options(self):
        field = make_field("k", "Kind", "select")
        assert resolve_options(field, {}, [field]) == {}

    def test_non_select_returns_empty(self):
        field = make_field("d", "Description", "textarea", options=["ignored"])
        assert resolve_options(field, {}, [field]) == {}


class TestConditionValueChoices:
    """Test the editor helper listing every possible option."""

    def test_union_of_all_option_sets(self):
        fields = FormFixtures.union_schema()
        assert condition_value_choices("s", fields) == ["x", "y", "z"]

    def test_legacy_options_take_precedence(self):
        field = make_field("k", "Kind", "select", options=["a"],
                           option_sets=[OptionSet(options=["b"])])
        assert condition_value_choices("k", [field]) == ["a"]

    def test_non_select_or_missing(self):
        field = make_field("d", "Description", "text")
        assert condition_value_choices("d", [field]) == []
        assert condition_value_choices("nope", [field]) == []
