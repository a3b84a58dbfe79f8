import re

import pytest

from awsm_http.config import KeyValueItem
from awsm_http.dynamic_data import DataGenerator
from awsm_http.variables import VariableScope, find_variables, parse_call_arguments, resolve


UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


class TestResolvePlainVariables:
    def test_text_without_braces_is_unchanged(self):
        assert resolve("https://api.example/users?x=1", {"x": "2"}) == "https://api.example/users?x=1"

    def test_known_key_is_substituted(self):
        assert resolve("a{{key}}b", {"key": "v"}) == "avb"

    def test_unknown_key_is_preserved_verbatim(self):
        assert resolve("{{key}}", {}) == "{{key}}"

    def test_inner_whitespace_is_trimmed_for_lookup(self):
        assert resolve("{{ key }}", {"key": "v"}) == "v"

    def test_unknown_key_keeps_original_spacing(self):
        assert resolve("{{ missing }}", {}) == "{{ missing }}"

    def test_multiple_tokens(self):
        scope = {"baseUrl": "https://api.example", "id": "42"}
        assert resolve("{{baseUrl}}/users/{{id}}", scope) == "https://api.example/users/42"

    def test_unterminated_token_is_left_alone(self):
        assert resolve("{{abc", {"abc": "x"}) == "{{abc"

    def test_resolution_is_repeatable_for_plain_variables(self):
        scope = {"a": "1"}
        assert resolve("{{a}}-{{a}}", scope) == resolve("{{a}}-{{a}}", scope) == "1-1"

    def test_non_string_input_is_returned_as_is(self):
        assert resolve(None, {"a": "1"}) is None


class TestVariableScope:
    def test_disabled_entry_is_absent(self):
        scope = VariableScope.from_layers([KeyValueItem(key="key", value="v", enabled=False)])
        assert "key" not in scope
        assert resolve("{{key}}", scope) == "{{key}}"

    def test_disabled_entry_does_not_shadow_lower_layer(self):
        scope = VariableScope.from_layers(
            [KeyValueItem(key="host", value="global.example")],
            [KeyValueItem(key="host", value="env.example", enabled=False)],
        )
        assert scope["host"] == "global.example"

    def test_later_layers_win(self):
        scope = VariableScope.from_layers(
            [KeyValueItem(key="host", value="global.example")],
            [KeyValueItem(key="host", value="env.example")],
        )
        assert scope["host"] == "env.example"

    def test_empty_keys_are_dropped(self):
        scope = VariableScope.from_layers([KeyValueItem(key="", value="x")])
        assert len(scope) == 0

    def test_merged_returns_new_scope(self):
        base = VariableScope({"a": "1"})
        merged = base.merged({"a": "2", "b": "3"})
        assert base.to_dict() == {"a": "1"}
        assert merged.to_dict() == {"a": "2", "b": "3"}

    def test_changes_from(self):
        after = VariableScope({"a": "1", "b": "changed", "c": "new"})
        assert after.changes_from({"a": "1", "b": "old"}) == {"b": "changed", "c": "new"}

    def test_values_are_coerced_to_text(self):
        scope = VariableScope({"flag": True, "count": 3})
        assert scope["flag"] == "true"
        assert scope["count"] == "3"


class TestResolveDynamicData:
    def test_faker_call_without_arguments(self):
        assert UUID_RE.match(resolve("{{faker.string.uuid()}}", {}))

    def test_call_without_faker_prefix(self):
        value = resolve("{{string.uuid()}}", {})
        assert UUID_RE.match(value)

    def test_object_literal_argument(self):
        value = resolve("{{faker.internet.email({ firstName: 'Jeanne' })}}", {})
        assert value.startswith("jeanne@")

    def test_scalar_argument(self):
        value = int(resolve("{{faker.number.int(10)}}", {}))
        assert 0 <= value <= 10

    def test_each_call_is_evaluated_separately(self):
        value = resolve("{{faker.string.uuid()}} {{faker.string.uuid()}}", {})
        first, second = value.split(" ")
        assert first != second

    def test_seeded_generator_is_reproducible(self):
        first = resolve("{{faker.person.fullName()}}", {}, generator=DataGenerator("en", seed=3))
        second = resolve("{{faker.person.fullName()}}", {}, generator=DataGenerator("en", seed=3))
        assert first == second

    def test_variable_wins_over_call_syntax(self):
        assert resolve("{{faker.string.uuid()}}", {"faker.string.uuid()": "fixed"}) == "fixed"

    @pytest.mark.parametrize("template", [
        "{{faker.nope.thing()}}",
        "{{faker.person.nope()}}",
        "{{faker.person.fullName(}}",
        "{{faker.internet.email({ firstName: someVar })}}",
        "{{faker.number.int(1, 2)}}",
    ])
    def test_malformed_calls_are_preserved(self, template):
        assert resolve(template, {}) == template

    @pytest.mark.parametrize("template", [
        "{{_fake.seed_instance(1)}}",
        "{{__class__.mro()}}",
        "{{faker.__class__.mro()}}",
        "{{person.__class__()}}",
        "{{faker.call.__call__()}}",
    ])
    def test_private_names_are_not_evaluated(self, template):
        generator = DataGenerator("en", seed=5)
        untouched = DataGenerator("en", seed=5)

        assert resolve(template, {}, generator=generator) == template
        # a reseed would restart the sequence
        assert generator.string.uuid() == untouched.string.uuid()


class TestParseCallArguments:
    def test_empty(self):
        assert parse_call_arguments("  ") is None

    def test_js_object_literal(self):
        assert parse_call_arguments("{ firstName: 'Jeanne', count: 3, ok: true, none: null }") == {
            "firstName": "Jeanne",
            "count": 3,
            "ok": True,
            "none": None,
        }

    def test_quoted_keys_and_colons_in_strings(self):
        assert parse_call_arguments('{"a": "x: y"}') == {"a": "x: y"}

    def test_scalar(self):
        assert parse_call_arguments("5") == 5

    def test_bare_identifier_is_rejected(self):
        with pytest.raises(ValueError):
            parse_call_arguments("foo")

    def test_expressions_are_rejected(self):
        with pytest.raises(ValueError):
            parse_call_arguments("1 + 1")


class TestFindVariables:
    def test_lists_plain_variables_once_in_order(self):
        text = "{{baseUrl}}/{{id}}/{{baseUrl}}/{{faker.string.uuid()}}"
        assert find_variables(text) == ["baseUrl", "id"]
