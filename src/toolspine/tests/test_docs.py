"""Tests for OpenAPI generation and example payloads."""

import orjson

from toolspine.schema import (
    ToolSchema,
    api_key_field,
    array_field,
    enum_field,
    generate_example_request,
    generate_example_value,
    generate_openapi_schema,
    generate_tool_documentation,
    number_field,
    string_field,
    uuid_field,
)


def _schema() -> ToolSchema:
    return ToolSchema.of(
        input={
            "message": string_field().required().max_length(100).description("Text to echo"),
            "count": number_field().integer().min(1).max(10).default(1),
            "mode": enum_field(["fast", "slow"]),
        },
        config={"apiKey": api_key_field().env_var("ECHO_API_KEY")},
    )


def test_field_mapping() -> None:
    assert generate_openapi_schema(string_field().min_length(2).max_length(5)) == {
        "type": "string", "minLength": 2, "maxLength": 5,
    }
    assert generate_openapi_schema(number_field().integer().min(1).max(10).default(1)) == {
        "type": "integer", "default": 1, "minimum": 1, "maximum": 10,
    }
    assert generate_openapi_schema(array_field(uuid_field()).max_items(3))["items"]["format"] == "uuid"


def test_sensitive_fields_are_write_only() -> None:
    schema = generate_openapi_schema(api_key_field().example("sk-live"))
    assert schema["format"] == "password"
    assert schema["writeOnly"] is True
    assert "example" not in schema


def test_examples_follow_constraints() -> None:
    assert generate_example_value(number_field().min(1).max(10)) == 5
    assert generate_example_value(number_field().default(3)) == 3
    assert generate_example_value(enum_field(["b", "a"])) == "b"
    assert generate_example_value(string_field().max_length(4)) == "exam"
    assert generate_example_value(api_key_field()).startswith("sk-")


def test_example_request() -> None:
    request = generate_example_request(_schema())
    assert request["input_data"] == {"message": "example string", "count": 1, "mode": "fast"}
    assert set(request["config"]) == {"apiKey"}


def test_document_shape() -> None:
    document = generate_tool_documentation(_schema(), {"name": "echo", "version": "1.2.0", "description": "Echo"})

    assert document["openapi"] == "3.0.3"
    assert document["info"] == {"title": "echo", "description": "Echo", "version": "1.2.0"}
    body = document["paths"]["/api/execute"]["post"]["requestBody"]["content"]["application/json"]["schema"]
    assert body["required"] == ["input_data"]
    assert body["properties"]["input_data"]["required"] == ["message"]
    assert body["properties"]["config"]["properties"]["apiKey"]["format"] == "password"
    assert set(document["paths"]) == {"/api/execute", "/health", "/schema", "/metrics"}


def test_documentation_is_deterministic() -> None:
    """Repeated generation serializes byte for byte the same."""
    first = orjson.dumps(generate_tool_documentation(_schema(), {"name": "echo"}))
    second = orjson.dumps(generate_tool_documentation(_schema(), {"name": "echo"}))
    assert first == second
