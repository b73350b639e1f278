"""Tests for the validation engine.

Validates:
- Defaults, required fields and type checks
- Error collection across fields and nested paths
- Transforms applied only to valid values
- Unknown field handling
- Config precedence (explicit value > env var > default)
- Cross-field rules
"""

import pytest

from toolspine.schema import (
    ToolSchema,
    ValidationCode,
    ValidationEngine,
    ValidationOptions,
    api_key_field,
    array_field,
    boolean_field,
    conditional,
    config_number_field,
    config_string_field,
    date_field,
    datetime_field,
    dependency,
    email_field,
    enum_field,
    file_field,
    json_field,
    mutual_exclusion,
    number_field,
    object_field,
    string_field,
    time_field,
    url_config_field,
    when,
)


@pytest.fixture
def engine() -> ValidationEngine:
    return ValidationEngine()


def codes(result) -> list[str]:
    return [e.code for e in result.errors]


# ═════════════════════════════════════════════════════════════════════════════
# Per-Field Algorithm
# ═════════════════════════════════════════════════════════════════════════════


def test_defaults_are_injected(engine: ValidationEngine) -> None:
    fields = {
        "message": string_field().required(),
        "count": number_field().integer().min(1).max(10).default(1),
    }
    result = engine.validate_input({"message": "hi"}, fields)

    assert result.success
    assert result.data == {"message": "hi", "count": 1}


def test_null_is_treated_as_absent(engine: ValidationEngine) -> None:
    fields = {"tags": array_field(string_field()).default(["a"])}
    first = engine.validate_input({"tags": None}, fields)
    first.data["tags"].append("mutated")

    second = engine.validate_input({}, fields)
    assert second.data == {"tags": ["a"]}


def test_missing_required_field(engine: ValidationEngine) -> None:
    result = engine.validate_input({}, {"message": string_field().required()})

    assert not result.success
    assert result.data is None
    error = result.errors[0]
    assert error.code == ValidationCode.REQUIRED_FIELD_MISSING
    assert error.path == ["message"]
    assert error.received == "undefined"


def test_optional_absent_field_is_omitted(engine: ValidationEngine) -> None:
    result = engine.validate_input({}, {"note": string_field()})
    assert result.success and result.data == {}


def test_type_mismatch_stops_further_checks(engine: ValidationEngine) -> None:
    result = engine.validate_input({"name": 5}, {"name": string_field().min_length(3).pattern("^a")})

    assert codes(result) == [ValidationCode.INVALID_TYPE]
    assert result.errors[0].message == "Expected string, received number"


def test_every_failing_field_is_reported(engine: ValidationEngine) -> None:
    fields = {
        "name": string_field().required().min_length(2),
        "age": number_field().min(0).max(150),
        "email": email_field(),
    }
    result = engine.validate_input({"name": "A", "age": 200, "email": "nope"}, fields)

    assert codes(result) == [ValidationCode.TOO_SMALL, ValidationCode.TOO_BIG, ValidationCode.INVALID_STRING]
    assert result.errors[0].message == "String must contain at least 2 character(s)"
    assert result.errors[1].message == "Number must be less than or equal to 150"
    assert result.errors[2].message == "Invalid email"


def test_abort_early_stops_at_first_error(engine: ValidationEngine) -> None:
    fields = {"a": string_field().required(), "b": string_field().required()}
    result = engine.validate_input({}, fields, ValidationOptions(abort_early=True))
    assert len(result.errors) == 1


def test_non_object_input_is_rejected(engine: ValidationEngine) -> None:
    result = engine.validate_input([1, 2], {"a": string_field()})
    assert codes(result) == [ValidationCode.INVALID_TYPE]
    assert result.errors[0].path == []


# ═════════════════════════════════════════════════════════════════════════════
# Kinds
# ═════════════════════════════════════════════════════════════════════════════


def test_number_constraints(engine: ValidationEngine) -> None:
    fields = {"n": number_field().integer().min(1)}
    assert codes(engine.validate_input({"n": 0.5}, fields)) == [ValidationCode.TOO_SMALL, ValidationCode.NOT_INTEGER]
    assert engine.validate_input({"n": True}, fields).errors[0].received == "boolean"

    precise = {"price": number_field().precision(2)}
    assert engine.validate_input({"price": 9.99}, precise).success
    assert codes(engine.validate_input({"price": 9.999}, precise)) == [ValidationCode.INVALID_PRECISION]


def test_huge_integers_fail_without_raising(engine: ValidationEngine) -> None:
    bounded = {"n": number_field().integer().max(100)}
    assert codes(engine.validate_input({"n": 10**400}, bounded)) == [ValidationCode.TOO_BIG]
    assert codes(engine.validate_input({"n": -(10**400)}, {"n": number_field()})) == [ValidationCode.TOO_SMALL]
    assert engine.validate_input({"n": 2**63}, {"n": number_field().precision(0)}).success


def test_enum_and_boolean(engine: ValidationEngine) -> None:
    fields = {"mode": enum_field(["fast", "slow"]), "flag": boolean_field()}
    assert engine.validate_input({"mode": "fast", "flag": False}, fields).success

    result = engine.validate_input({"mode": "medium", "flag": "yes"}, fields)
    assert codes(result) == [ValidationCode.INVALID_ENUM_VALUE, ValidationCode.INVALID_TYPE]


def test_array_items_and_uniqueness(engine: ValidationEngine) -> None:
    fields = {"tags": array_field(string_field().min_length(2)).max_items(3).unique()}
    result = engine.validate_input({"tags": ["ok", "x", "ok", "fine"]}, fields)

    by_code = {e.code: e for e in result.errors}
    assert by_code[ValidationCode.TOO_SMALL].path == ["tags", 1]
    assert ValidationCode.TOO_BIG in by_code
    assert ValidationCode.NOT_UNIQUE in by_code


def test_nested_error_paths(engine: ValidationEngine) -> None:
    fields = {"user": object_field({"name": string_field().required().min_length(2)})}
    result = engine.validate_input({"user": {"name": "A"}}, fields)

    assert result.errors[0].path == ["user", "name"]
    assert result.errors[0].dotted_path == "user.name"


def test_object_additional_properties(engine: ValidationEngine) -> None:
    props = {"a": number_field()}
    stripped = engine.validate_input({"o": {"a": 1, "b": 2}}, {"o": object_field(props)})
    kept = engine.validate_input({"o": {"a": 1, "b": 2}}, {"o": object_field(props).additional_properties(True)})
    rejected = engine.validate_input({"o": {"a": 1, "b": 2}}, {"o": object_field(props).strict()})

    assert stripped.data == {"o": {"a": 1}}
    assert kept.data == {"o": {"a": 1, "b": 2}}
    assert codes(rejected) == [ValidationCode.UNEXPECTED_FIELDS]


def test_dates_and_times(engine: ValidationEngine) -> None:
    fields = {
        "day": date_field().min_date("2024-01-01"),
        "at": datetime_field(),
        "time": time_field(),
    }
    ok = engine.validate_input({"day": "2024-06-01", "at": "2024-06-01T10:00:00Z", "time": "09:30"}, fields)
    assert ok.success

    bad = engine.validate_input({"day": "2023-12-31", "at": "yesterday", "time": "25:00"}, fields)
    assert codes(bad) == [ValidationCode.TOO_SMALL, ValidationCode.INVALID_DATE, ValidationCode.INVALID_STRING]
    assert bad.errors[0].message == "Date must be on or after 2024-01-01"


def test_file_descriptor(engine: ValidationEngine) -> None:
    fields = {"upload": file_field(mime_types=["image/*"], max_size=1024)}
    ok = engine.validate_input({"upload": {"name": "a.png", "size": 10, "type": "image/png"}}, fields)
    too_big = engine.validate_input({"upload": {"name": "a.png", "size": 4096, "type": "image/png"}}, fields)

    assert ok.success
    assert codes(too_big) == [ValidationCode.INVALID_FILE]


def test_json_strings_are_parsed(engine: ValidationEngine) -> None:
    fields = {"payload": json_field()}
    assert engine.validate_input({"payload": '{"a": 1}'}, fields).data == {"payload": {"a": 1}}
    assert codes(engine.validate_input({"payload": "{oops"}, fields)) == [ValidationCode.INVALID_JSON]


# ═════════════════════════════════════════════════════════════════════════════
# Transforms
# ═════════════════════════════════════════════════════════════════════════════


def test_transforms_apply_to_valid_values(engine: ValidationEngine) -> None:
    fields = {
        "code": string_field().transform("uppercase"),
        "name": string_field().transform("trim"),
        "text": string_field().transform("normalize"),
    }
    result = engine.validate_input({"code": "abc", "name": "  Ada  ", "text": " a \n\t b "}, fields)
    assert result.data == {"code": "ABC", "name": "Ada", "text": "a b"}


def test_transform_can_be_disabled(engine: ValidationEngine) -> None:
    fields = {"code": string_field().transform("uppercase")}
    result = engine.validate_input({"code": "abc"}, fields, ValidationOptions(transform=False))
    assert result.data == {"code": "abc"}


def test_sanitize_strips_markup(engine: ValidationEngine) -> None:
    result = engine.validate_input({"bio": "<b>hi</b>\x07"}, {"bio": string_field().sanitize()})
    assert result.data == {"bio": "hi"}


# ═════════════════════════════════════════════════════════════════════════════
# Unknown Fields and Messages
# ═════════════════════════════════════════════════════════════════════════════


def test_unknown_fields_are_rejected_by_default(engine: ValidationEngine) -> None:
    result = engine.validate_input({"a": "x", "extra": 1}, {"a": string_field()})

    assert codes(result) == [ValidationCode.UNEXPECTED_FIELDS]
    assert result.errors[0].path == []
    assert "'extra'" in result.errors[0].message


def test_strip_unknown_drops_undeclared_fields(engine: ValidationEngine) -> None:
    result = engine.validate_input({"a": "x", "extra": 1}, {"a": string_field()}, ValidationOptions(strip_unknown=True))
    assert result.success and result.data == {"a": "x"}


def test_custom_messages(engine: ValidationEngine) -> None:
    options = ValidationOptions(custom_messages={"name.min_length": "Name is too short"})
    result = engine.validate_input({"name": "A"}, {"name": string_field().min_length(2)}, options)
    assert result.errors[0].message == "Name is too short"


def test_field_error_message_override(engine: ValidationEngine) -> None:
    result = engine.validate_input({}, {"name": string_field().required().error_message("Tell us your name")})
    assert result.errors[0].message == "Tell us your name"


def test_error_summary(engine: ValidationEngine) -> None:
    result = engine.validate_input({}, {"name": string_field().required()})
    assert result.error_summary == "name: Field is required"


# ═════════════════════════════════════════════════════════════════════════════
# Configuration
# ═════════════════════════════════════════════════════════════════════════════


def test_config_precedence(engine: ValidationEngine) -> None:
    fields = {"region": config_string_field().env_var("TEST_REGION").default("us")}
    env = ValidationOptions(env={"TEST_REGION": "eu"})

    assert engine.validate_config({"region": "ap"}, fields, env).data == {"region": "ap"}
    assert engine.validate_config({}, fields, env).data == {"region": "eu"}
    assert engine.validate_config({}, fields, ValidationOptions(env={})).data == {"region": "us"}


def test_env_values_are_coerced(engine: ValidationEngine) -> None:
    fields = {"retries": config_number_field().integer().env_var("TEST_RETRIES")}
    result = engine.validate_config(None, fields, ValidationOptions(env={"TEST_RETRIES": "3"}))
    assert result.data == {"retries": 3}


def test_config_errors_never_echo_values(engine: ValidationEngine) -> None:
    fields = {"apiKey": api_key_field(), "endpoint": url_config_field()}
    result = engine.validate_config({"apiKey": "", "endpoint": "ftp://host"}, fields, ValidationOptions(env={}))

    assert codes(result) == [ValidationCode.TOO_SMALL, ValidationCode.INVALID_URL]
    assert all(e.value is None for e in result.errors)


def test_missing_api_key(engine: ValidationEngine) -> None:
    result = engine.validate_config(None, {"apiKey": api_key_field()}, ValidationOptions(env={}))
    assert codes(result) == [ValidationCode.REQUIRED_FIELD_MISSING]


def test_validate_field_picks_config_scope_for_secrets(engine: ValidationEngine) -> None:
    result = engine.validate_field(api_key_field(), "sk-secret", "apiKey")
    assert result.success and result.data == {"apiKey": "sk-secret"}


# ═════════════════════════════════════════════════════════════════════════════
# Cross-Field Rules
# ═════════════════════════════════════════════════════════════════════════════


def test_dependency_rule(engine: ValidationEngine) -> None:
    fields = {"title": string_field(), "surname": string_field()}
    rules = [dependency("title", requires=["surname"])]

    assert engine.validate_input({"title": "Dr"}, fields, rules=rules).errors[0].message == (
        "Field 'surname' is required when 'title' is provided"
    )
    assert engine.validate_input({"title": "Dr", "surname": "Who"}, fields, rules=rules).success
    assert engine.validate_input({}, fields, rules=rules).success


def test_conditional_rule(engine: ValidationEngine) -> None:
    fields = {"method": enum_field(["card", "cash"]), "card_number": string_field()}
    rules = [conditional(when("method", "eq", "card"), requires=["card_number"])]

    result = engine.validate_input({"method": "card"}, fields, rules=rules)
    assert codes(result) == [ValidationCode.CROSS_FIELD_VALIDATION_FAILED]
    assert result.errors[0].path == []
    assert engine.validate_input({"method": "cash"}, fields, rules=rules).success


def test_mutual_exclusion_rule(engine: ValidationEngine) -> None:
    fields = {"url": string_field(), "file": string_field()}
    rules = [mutual_exclusion("url", "file", message="Provide a URL or a file, not both")]
    result = engine.validate_input({"url": "a", "file": "b"}, fields, rules=rules)
    assert result.errors[0].message == "Provide a URL or a file, not both"


def test_rules_only_run_on_valid_data(engine: ValidationEngine) -> None:
    fields = {"title": string_field().min_length(2), "surname": string_field()}
    rules = [dependency("title", requires=["surname"])]
    result = engine.validate_input({"title": "D"}, fields, rules=rules)
    assert codes(result) == [ValidationCode.TOO_SMALL]


def test_rules_see_defaults(engine: ValidationEngine) -> None:
    fields = {"mode": enum_field(["a", "b"]).default("a"), "target": string_field()}
    rules = [conditional(when("mode", "eq", "a"), requires=["target"])]
    assert not engine.validate_input({}, fields, rules=rules).success


# ═════════════════════════════════════════════════════════════════════════════
# Tool Data and Metrics
# ═════════════════════════════════════════════════════════════════════════════


def test_validate_tool_data_prefixes_paths(engine: ValidationEngine) -> None:
    schema = ToolSchema.of(
        input={"message": string_field().required()},
        config={"apiKey": api_key_field()},
    )
    result = engine.validate_tool_data({"input": {}, "config": {}}, schema, ValidationOptions(env={}))

    assert [e.path for e in result.errors] == [["config", "apiKey"], ["input", "message"]]

    ok = engine.validate_tool_data({"input": {"message": "hi"}, "config": {"apiKey": "k"}}, schema)
    assert ok.data == {"input": {"message": "hi"}, "config": {"apiKey": "k"}}


def test_metrics_count_validations_and_cache_hits(engine: ValidationEngine) -> None:
    fields = {"a": string_field().required()}
    engine.validate_input({"a": "x"}, fields)
    engine.validate_input({}, fields)

    metrics = engine.get_metrics()
    assert metrics.total_validations == 2
    assert metrics.failed_validations == 1
    assert metrics.cache_hits == 1 and metrics.cache_misses == 1
    assert metrics.cache_hit_rate == 50.0

    engine.reset()
    assert engine.get_metrics().total_validations == 0
