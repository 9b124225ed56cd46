"""Tests for _engine.py: load() and load_explicit()."""

import logging
from typing import Annotated

import pytest
from pydantic import ValidationError

from specwise import (
    AppEnv,
    Atom,
    Err,
    FieldSpec,
    ImproperExplicitValueError,
    LoadFailure,
    MalformedParserResultError,
    MalformedSourceResultError,
    MissingRequiredFieldsError,
    Ok,
    Parser,
    ParsingError,
    Schema,
    Specification,
    SystemEnv,
    load,
    load_explicit,
    put_env,
)


class BasicExample(Specification):
    name: str = "Jabberwocky"
    age: int
    colors: Annotated[list, Parser(("list", "atom"))] = []


class ParsingExample(Specification):
    size: int = "42"


class RecordingSource:
    """Source returning a fixed result and recording every load."""

    def __init__(self, result, optional=False):
        self.result = result
        self.optional = optional
        self.calls = 0

    def load(self, schema):
        self.calls += 1
        return self.result

    def __repr__(self):
        return f"RecordingSource({self.result!r})"


def _found(**values) -> RecordingSource:
    return RecordingSource(Ok(values))


class TestBasicLoading:
    def test_defaults_and_explicit_values(self):
        assert BasicExample.load(explicit_values={"age": 42}) == BasicExample.model_construct(
            name="Jabberwocky", age=42, colors=[]
        )

    def test_load_explicit(self):
        config = load_explicit(BasicExample, {"age": 44, "colors": [Atom("red"), Atom("green")]})
        assert config.age == 44
        assert config.colors == [Atom("red"), Atom("green")]

    def test_class_level_load_explicit(self):
        assert BasicExample.load_explicit({"age": 43}).age == 43

    def test_explicit_values_as_pairs(self):
        assert load(BasicExample, explicit_values=[("age", 7)]).age == 7

    def test_result_is_frozen(self):
        config = BasicExample.load_explicit({"age": 1})
        with pytest.raises(ValidationError):
            config.age = 2

    def test_missing_required_field(self):
        with pytest.raises(MissingRequiredFieldsError, match="'age'") as excinfo:
            load(BasicExample)
        assert excinfo.value.fields == ("age",)
        assert excinfo.value.schema_name == "BasicExample"

    def test_missing_with_empty_explicit_values(self):
        with pytest.raises(MissingRequiredFieldsError):
            BasicExample.load_explicit({})

    def test_compound_parser_from_text(self):
        Atom("red"), Atom("green"), Atom("blue")
        config = BasicExample.load_explicit({"age": 22, "colors": "[red, green, blue]"})
        assert config.colors == [Atom("red"), Atom("green"), Atom("blue")]

    def test_compound_parser_with_mixed_elements(self):
        Atom("cyan")
        config = BasicExample.load_explicit({"age": 22, "colors": [Atom("red"), "cyan"]})
        assert config.colors == [Atom("red"), Atom("cyan")]

    def test_schema_built_explicitly(self):
        schema = Schema.build(
            "Person",
            [FieldSpec("name", "string", default="X"), FieldSpec("age", "integer")],
        )
        record = load(schema, explicit_values={"age": 42})
        assert (record.name, record.age) == ("X", 42)
        with pytest.raises(MissingRequiredFieldsError, match="'age'"):
            load(schema, explicit_values={})


class TestParsing:
    def test_default_is_parsed(self):
        assert ParsingExample.load().size == 42

    @pytest.mark.parametrize("value", [0, -5, "12", 10**20])
    def test_parser_called_with_value(self, value):
        assert ParsingExample.load_explicit({"size": value}).size == int(value)

    @pytest.mark.parametrize("value", ["abc", 1.5, None, [1], {"a": 1}])
    def test_parse_failure_raises(self, value):
        with pytest.raises(ParsingError) as excinfo:
            ParsingExample.load_explicit({"size": value})
        assert excinfo.value.field == "size"
        assert excinfo.value.schema_name == "ParsingExample"
        assert "'size'" in str(excinfo.value)

    def test_custom_parsing_error(self):
        class MyCustomError(Exception):
            pass

        with pytest.raises(MyCustomError, match="'size'"):
            ParsingExample.load_explicit({"size": "abc"}, parsing_error=MyCustomError)

    def test_custom_missing_fields_error(self):
        class Missing(Exception):
            pass

        with pytest.raises(Missing, match="'age'"):
            load(BasicExample, missing_fields_error=Missing)

    def test_first_parse_failure_aborts(self):
        calls = []

        def tracking(value):
            calls.append(value)
            return Ok(value)

        schema = Schema.build(
            "Ordered",
            [FieldSpec("first", "integer"), FieldSpec("second", tracking)],
        )
        with pytest.raises(ParsingError, match="'first'"):
            load(schema, explicit_values={"first": "bad", "second": "fine"})
        assert calls == []

    def test_only_the_winner_is_parsed(self):
        config = ParsingExample.load(sources=[{"size": "garbage"}], explicit_values={"size": 3})
        assert config.size == 3

    def test_malformed_parser_result(self):
        schema = Schema.build("Broken", [FieldSpec("x", lambda value: value)])
        with pytest.raises(MalformedParserResultError, match="Ok\\(value\\) or Err\\(reason\\)") as excinfo:
            load(schema, explicit_values={"x": 5})
        assert excinfo.value.result == 5

    def test_alternatives_failure_reports_generic_reason(self):
        schema = Schema.build("Alt", [FieldSpec("x", ["integer", "boolean"])])
        assert load(schema, explicit_values={"x": "true"}).x is True
        with pytest.raises(ParsingError, match="no validating parser found"):
            load(schema, explicit_values={"x": "maybe"})


class TestPrecedence:
    def test_later_sources_win(self):
        config = BasicExample.load(sources=[{"age": 1}, {"age": 2}])
        assert config.age == 2

    def test_explicit_values_win_over_sources(self):
        config = BasicExample.load(sources=[{"age": 1}, {"age": 2}], explicit_values={"age": 3})
        assert config.age == 3

    def test_sources_win_over_defaults(self):
        config = BasicExample.load(sources=[{"age": 1, "name": "Floof"}])
        assert config.name == "Floof"

    def test_partial_sources_only_contribute_their_fields(self):
        config = BasicExample.load(sources=[{"age": 1, "name": "A"}, {"age": 2}])
        assert (config.name, config.age) == ("A", 2)

    def test_unknown_keys_in_sources_are_ignored(self):
        assert BasicExample.load(sources=[{"age": 1, "weight": 3}]).age == 1

    def test_mixed_source_kinds(self):
        put_env("BasicExample", "age", "10")
        environ = {"BASICEXAMPLE_AGE": "20", "BASICEXAMPLE_NAME": "Env"}
        config = BasicExample.load(sources=[AppEnv(), SystemEnv(environ=environ), [("age", 30)]])
        assert (config.name, config.age) == ("Env", 30)


class TestExplicitValueValidation:
    def test_unknown_field_rejected(self):
        with pytest.raises(ImproperExplicitValueError, match="'unknown_field'") as excinfo:
            BasicExample.load_explicit({"unknown_field": 1, "age": 1})
        assert excinfo.value.fields == ("unknown_field",)

    def test_rejected_before_sources_are_queried(self):
        source = _found(age=1)
        with pytest.raises(ImproperExplicitValueError):
            BasicExample.load(sources=[source], explicit_values={"agee": 1})
        assert source.calls == 0

    def test_explicit_values_must_be_a_mapping(self):
        with pytest.raises(ImproperExplicitValueError):
            BasicExample.load(explicit_values="age=1")

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            BasicExample.load_explicit({"nope": 1})


class TestUnloadableSources:
    def test_not_found_source_does_not_abort(self, caplog):
        missing = RecordingSource(Err(LoadFailure.NOT_FOUND))
        with caplog.at_level(logging.WARNING, logger="specwise._engine"):
            config = BasicExample.load(sources=[missing, {"age": 5}])
        assert config.age == 5
        assert missing.calls == 1
        assert "could not be found" in caplog.text
        assert "BasicExample" in caplog.text

    def test_not_found_only_supplier_gives_missing_fields(self):
        missing = RecordingSource(Err(LoadFailure.NOT_FOUND))
        with pytest.raises(MissingRequiredFieldsError, match="'age'"):
            BasicExample.load(sources=[missing])

    def test_malformed_source_is_logged(self, caplog):
        malformed = RecordingSource(Err(LoadFailure.MALFORMED))
        with caplog.at_level(logging.WARNING, logger="specwise._engine"):
            config = BasicExample.load(sources=[malformed], explicit_values={"age": 1})
        assert config.age == 1
        record = next(r for r in caplog.records if r.name == "specwise._engine")
        assert record.levelno == logging.WARNING
        assert record.failure == LoadFailure.MALFORMED
        assert record.source is malformed

    def test_optional_sources_are_not_warned_about(self, caplog):
        missing = RecordingSource(Err(LoadFailure.NOT_FOUND), optional=True)
        with caplog.at_level(logging.WARNING, logger="specwise._engine"):
            BasicExample.load(sources=[missing], explicit_values={"age": 1})
        assert caplog.records == []

    def test_missing_system_env_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="specwise._engine"):
            config = BasicExample.load(sources=[SystemEnv(environ={})], explicit_values={"age": 1})
        assert config.age == 1
        assert "SystemEnv" in caplog.text


class TestExplain:
    def test_returns_candidates_per_field(self):
        explained = BasicExample.load(sources=[{"age": 1}, {"age": "2"}], explain=True)
        assert explained == {"name": ["Jabberwocky"], "age": [1, "2"], "colors": [[]]}

    def test_required_fields_without_candidates_are_empty(self):
        assert load(BasicExample, explain=True)["age"] == []

    def test_explicit_values_come_last(self):
        explained = BasicExample.load(
            sources=[{"name": "A"}], explicit_values={"name": "B"}, explain=True
        )
        assert explained["name"] == ["Jabberwocky", "A", "B"]

    def test_values_are_not_parsed(self):
        explained = ParsingExample.load(explicit_values={"size": "garbage"}, explain=True)
        assert explained == {"size": ["42", "garbage"]}


class TestSchemaOptions:
    def test_explicit_values_from_schema_build(self):
        schema = Schema.build("Declared", [FieldSpec("a", "integer")], explicit_values={"a": 1})
        assert load(schema).a == 1

    def test_explicit_values_from_meta_options(self):
        class Declared(Specification):
            class Meta:
                options = {"explicit_values": {"age": "3"}}

            age: int

        assert Declared.load().age == 3
        assert Declared.load(sources=[{"age": 1}]).age == 3

    def test_call_explicit_values_replace_declared_ones(self):
        schema = Schema.build(
            "Declared",
            [FieldSpec("a", "integer"), FieldSpec("b", "integer", default=0)],
            explicit_values={"a": 1, "b": 1},
        )
        record = load(schema, explicit_values={"a": 2})
        assert (record.a, record.b) == (2, 0)

    def test_declared_explicit_values_are_validated(self):
        schema = Schema.build("Declared", [FieldSpec("a", "integer")], explicit_values={"b": 1})
        with pytest.raises(ImproperExplicitValueError, match="'b'"):
            load(schema)

    def test_missing_fields_error_from_meta_options(self):
        class Missing(Exception):
            pass

        class Declared(Specification):
            class Meta:
                options = {"missing_fields_error": Missing}

            age: int

        with pytest.raises(Missing, match="'age'"):
            Declared.load()

    def test_parsing_error_from_meta_options(self):
        class Unparsable(Exception):
            pass

        class Declared(Specification):
            class Meta:
                options = {"parsing_error": Unparsable}

            age: int

        with pytest.raises(Unparsable, match="'age'"):
            Declared.load_explicit({"age": "old"})


class TestDefaultsAreNotShared:
    def test_mutable_defaults_are_copied_per_load(self):
        class Shared(Specification):
            mapping: dict = {}
            items: list = []

        first, second = Shared.load(), Shared.load()
        first.mapping["x"] = 1
        first.items.append(1)
        assert second.mapping == {}
        assert second.items == []
        assert Shared.config_schema().defaults["mapping"] == {}


class TestMalformedSourceResults:
    @pytest.mark.parametrize("result", [{"age": 1}, None, Ok(["age", 1])])
    def test_source_returning_neither_ok_nor_err(self, result):
        source = RecordingSource(result)
        with pytest.raises(MalformedSourceResultError, match="RecordingSource") as excinfo:
            BasicExample.load(sources=[source], explicit_values={"age": 1})
        assert excinfo.value.source is source
        assert excinfo.value.result == result

    def test_is_a_type_error(self):
        with pytest.raises(TypeError):
            BasicExample.load(sources=[RecordingSource(42)], explicit_values={"age": 1})
