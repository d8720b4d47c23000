"""Tests for {{path}} variable resolution."""

import json

import pytest

from workflow.variables import (
    get_value_from_path,
    resolve_json_placeholders,
    resolve_variables,
    stringify,
)

CONTEXT = {
    "contact": {
        "name": "Maria",
        "tags": ["lead", "vip"],
        "custom_fields": {"city": "Lisbon", "score": 42, "active": True},
    },
    "trigger": {"payload": {"text": {"body": "hello"}, "items": [{"sku": "A1"}]}},
}


@pytest.mark.unit
class TestGetValueFromPath:
    def test_nested_mapping(self):
        assert get_value_from_path(CONTEXT, "contact.custom_fields.city") == "Lisbon"

    def test_list_index(self):
        assert get_value_from_path(CONTEXT, "trigger.payload.items.0.sku") == "A1"

    def test_missing_segment_is_none(self):
        assert get_value_from_path(CONTEXT, "contact.custom_fields.country") is None
        assert get_value_from_path(CONTEXT, "contact.name.first") is None

    def test_out_of_range_index_is_none(self):
        assert get_value_from_path(CONTEXT, "trigger.payload.items.5") is None

    def test_absent_root(self):
        assert get_value_from_path({"contact": None}, "contact.name") is None
        assert get_value_from_path(None, "contact.name") is None
        assert get_value_from_path(CONTEXT, "") is None


@pytest.mark.unit
class TestStringify:
    def test_scalars(self):
        assert stringify(None) == ""
        assert stringify(True) == "true"
        assert stringify(False) == "false"
        assert stringify(3.0) == "3"
        assert stringify(2.5) == "2.5"
        assert stringify(7) == "7"

    def test_structures_render_as_json(self):
        assert json.loads(stringify({"a": 1})) == {"a": 1}
        assert stringify(["x"]) == '["x"]'


@pytest.mark.unit
class TestResolveVariables:
    def test_substitutes_placeholders(self):
        assert resolve_variables("Hi {{contact.name}}!", CONTEXT) == "Hi Maria!"

    def test_whitespace_inside_braces(self):
        assert resolve_variables("{{ contact.name }}", CONTEXT) == "Maria"

    def test_unresolved_placeholder_is_kept(self):
        text = "City: {{contact.custom_fields.country}}"
        assert resolve_variables(text, CONTEXT) == text

    def test_lists_are_joined(self):
        assert resolve_variables("Tags: {{contact.tags}}", CONTEXT) == "Tags: lead, vip"

    def test_numbers_and_booleans(self):
        text = "{{contact.custom_fields.score}}/{{contact.custom_fields.active}}"
        assert resolve_variables(text, CONTEXT) == "42/true"

    def test_multiple_placeholders(self):
        text = "{{contact.name}} said {{trigger.payload.text.body}}"
        assert resolve_variables(text, CONTEXT) == "Maria said hello"

    def test_non_string_passthrough(self):
        assert resolve_variables(12, CONTEXT) == 12
        assert resolve_variables(None, CONTEXT) is None

    def test_missing_contact(self):
        assert resolve_variables("{{contact.name}}", {"contact": None}) == "{{contact.name}}"


@pytest.mark.unit
class TestResolveJsonPlaceholders:
    def test_keeps_value_types(self):
        template = (
            '{"name": "{{contact.name}}", "score": "{{contact.custom_fields.score}}",'
            ' "active": {{contact.custom_fields.active}}, "tags": "{{contact.tags}}"}'
        )
        body = json.loads(resolve_json_placeholders(template, CONTEXT))
        assert body == {"name": "Maria", "score": 42, "active": True, "tags": ["lead", "vip"]}

    def test_missing_value_is_null(self):
        body = json.loads(resolve_json_placeholders('{"x": "{{contact.nope}}"}', CONTEXT))
        assert body == {"x": None}

    def test_strings_are_escaped(self):
        context = {"contact": {"name": 'Ana "Nana" Lima'}}
        body = json.loads(resolve_json_placeholders('{"n": "{{contact.name}}"}', context))
        assert body["n"] == 'Ana "Nana" Lima'

    def test_non_finite_numbers_become_null(self):
        context = {"contact": {"score": float("nan"), "stats": {"ratio": float("inf"), "n": 2}}}
        text = resolve_json_placeholders('{"v": "{{contact.score}}", "s": "{{contact.stats}}"}', context)
        assert "NaN" not in text and "Infinity" not in text
        assert json.loads(text) == {"v": None, "s": {"ratio": None, "n": 2}}

    def test_non_string_template_is_serialized(self):
        assert json.loads(resolve_json_placeholders({"a": 1}, CONTEXT)) == {"a": 1}
