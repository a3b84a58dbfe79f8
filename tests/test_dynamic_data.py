import datetime

import pytest

from awsm_http.dynamic_data import (
    AVAILABLE_LOCALES,
    DEFAULT_LOCALE,
    DataGenerator,
    get_generator,
    snake_case,
    to_text,
)


UUID_LENGTH = 36


class TestDataGenerator:
    def test_unknown_locale_falls_back_to_default(self):
        generator = DataGenerator("xx_XX")
        assert generator.locale == DEFAULT_LOCALE

    @pytest.mark.parametrize("locale", sorted(AVAILABLE_LOCALES))
    def test_every_locale_produces_names(self, locale):
        generator = DataGenerator(locale, seed=1)
        assert generator.person.first_name()

    def test_camel_and_snake_case_names_are_equivalent(self):
        first = DataGenerator(seed=11).person.fullName()
        second = DataGenerator(seed=11).person.full_name()
        assert first == second

    def test_options_object_and_keyword_arguments(self):
        generator = DataGenerator(seed=5)
        assert generator.internet.email({"firstName": "Ana", "provider": "example.com"}) == "ana@example.com"
        assert generator.internet.email(first_name="Ana", provider="example.com") == "ana@example.com"

    def test_scalar_argument_binds_primary_option(self):
        value = DataGenerator(seed=2).string.alpha(8)
        assert len(value) == 8

    def test_number_int_respects_bounds(self):
        generator = DataGenerator(seed=9)
        for _ in range(20):
            assert 5 <= generator.number.int({"min": 5, "max": 7}) <= 7

    def test_date_past_is_iso_and_in_the_past(self):
        value = DataGenerator(seed=4).date.past()
        parsed = datetime.datetime.fromisoformat(value)
        assert parsed <= datetime.datetime.now()

    def test_unknown_category_raises(self):
        with pytest.raises(AttributeError):
            DataGenerator().nothing

    def test_unknown_method_raises(self):
        with pytest.raises(AttributeError):
            DataGenerator().person.nothing()

    def test_call_by_name(self):
        generator = DataGenerator(seed=1)
        assert generator.call("datatype", "boolean") in (True, False)
        assert len(generator.call("string", "uuid")) == UUID_LENGTH

    @pytest.mark.parametrize("category,method", [
        ("__class__", "mro"),
        ("_fake", "seed_instance"),
        ("_categories", "clear"),
        ("person", "__class__"),
        ("person", "_fake"),
        ("call", "__call__"),
        ("describe", "keys"),
    ])
    def test_call_only_reaches_registered_methods(self, category, method):
        with pytest.raises(AttributeError):
            DataGenerator().call(category, method)

    def test_private_names_never_resolve(self):
        generator = DataGenerator()
        with pytest.raises(AttributeError):
            generator.category("_fake")
        with pytest.raises(AttributeError):
            generator.person.method("_methods")

    def test_describe_is_locale_independent(self):
        described = DataGenerator.describe()
        assert "full_name" in described["person"]
        assert "uuid" in described["string"]
        assert DataGenerator("de").describe() == DataGenerator("ja").describe()


class TestGetGenerator:
    def test_unseeded_generators_are_shared(self):
        assert get_generator("fr") is get_generator("fr")

    def test_seeded_generators_are_fresh(self):
        first = get_generator("en", seed=1)
        second = get_generator("en", seed=1)
        assert first is not second
        assert first.string.uuid() == second.string.uuid()


class TestHelpers:
    @pytest.mark.parametrize("value,expected", [
        ("text", "text"),
        (True, "true"),
        (False, "false"),
        (None, "null"),
        (3, "3"),
        (1.5, "1.5"),
        ({"a": 1}, '{"a": 1}'),
        ([1, 2], "[1, 2]"),
        (datetime.date(2024, 1, 2), "2024-01-02"),
    ])
    def test_to_text(self, value, expected):
        assert to_text(value) == expected

    def test_snake_case(self):
        assert snake_case("fullName") == "full_name"
        assert snake_case("catchPhrase") == "catch_phrase"
        assert snake_case("uuid") == "uuid"
