"""Tests for ToolSchema, SchemaBuilder and the standalone validator helpers."""

from toolspine import (
    ToolSchema,
    api_key_field,
    create_schema,
    create_validator,
    email_field,
    number_field,
    string_field,
    validate_field,
)
from toolspine.schema import ValidationCode, ValidationOptions


def _builder():
    return (
        create_schema()
        .add_input("message", string_field().required())
        .add_input("count", number_field().integer().min(1).max(10).default(1))
        .add_config("apiKey", api_key_field())
    )


def test_schema_builder_validates_directly() -> None:
    schema = _builder()
    assert schema.validate_input({"message": "hi"}).data == {"message": "hi", "count": 1}
    assert schema.validate_config({"apiKey": "k"}).success


def test_build_snapshots_fields() -> None:
    builder = _builder()
    built = builder.build()
    builder.add_input("extra", string_field())

    assert list(built.input) == ["message", "count"]
    assert built.field_names == {"input": ["message", "count"], "config": ["apiKey"]}


def test_test_field() -> None:
    builder = _builder()
    assert builder.test_field("count", 11).errors[0].code == ValidationCode.TOO_BIG
    assert builder.test_field("apiKey", "k", scope="config").success

    missing = builder.test_field("nope", 1)
    assert missing.errors[0].code == ValidationCode.FIELD_NOT_FOUND
    assert missing.errors[0].message == "Field 'nope' not found in input schema"


def test_validate_tool_data() -> None:
    result = _builder().validate_tool_data(
        {"input": {"message": "hi"}, "config": {"apiKey": "k"}}, ValidationOptions(env={}),
    )
    assert result.data == {"input": {"message": "hi", "count": 1}, "config": {"apiKey": "k"}}


def test_create_validator_from_mapping() -> None:
    validator = create_validator({"input": {"email": {"type": "string", "format": "email", "required": True}}})
    assert not validator.validate_input({"email": "nope"}).success
    assert validator.validate_input({"email": "a@b.co"}).success


def test_create_validator_from_tool_schema() -> None:
    schema = ToolSchema.of(input={"message": string_field().required()})
    assert create_validator(schema).validate_input({}).errors[0].code == ValidationCode.REQUIRED_FIELD_MISSING


def test_validate_field_one_off() -> None:
    assert validate_field(email_field(), "user@example.com", "email").success
    assert not validate_field(email_field(), "user@", "email").success


def test_documentation_and_example_request() -> None:
    builder = _builder()
    assert builder.generate_documentation({"name": "echo"})["info"]["title"] == "echo"
    assert builder.generate_example_request()["input_data"] == {"message": "example string", "count": 1}


def test_metrics_and_reset() -> None:
    builder = _builder()
    builder.validate_input({"message": "a"})
    builder.validate_input({"message": "b"})
    assert builder.get_metrics().cache_hits == 1

    builder.reset()
    assert builder.get_metrics().total_validations == 0
