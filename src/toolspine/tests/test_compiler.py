"""Tests for schema compilation and the compiled-schema cache."""

import pytest

from toolspine import ConfigurationError, SchemaCompilationError
from toolspine.foundation.errors import ErrorCode
from toolspine.schema import (
    SchemaCompiler,
    array_field,
    dependency,
    enum_field,
    number_field,
    object_field,
    string_field,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


# ═════════════════════════════════════════════════════════════════════════════
# Cache Behavior
# ═════════════════════════════════════════════════════════════════════════════


def test_identical_shapes_share_compiled_schema() -> None:
    """Equal definitions hit the cache regardless of object identity."""
    compiler = SchemaCompiler(max_size=10)

    first, hit1 = compiler.compile({"name": string_field().required().min_length(2)})
    second, hit2 = compiler.compile({"name": string_field().required().min_length(2)})

    assert (hit1, hit2) == (False, True)
    assert first is second
    stats = compiler.stats()
    assert stats["hits"] == 1 and stats["misses"] == 1 and stats["size"] == 1


def test_scope_is_part_of_the_key() -> None:
    compiler = SchemaCompiler()
    fields = {"name": string_field()}

    compiler.compile(fields, scope="input")
    _, hit = compiler.compile(fields, scope="config")

    assert not hit
    assert compiler.size == 2


def test_different_constraints_compile_separately() -> None:
    compiler = SchemaCompiler()
    a, _ = compiler.compile({"n": number_field().max(5)})
    b, hit = compiler.compile({"n": number_field().max(6)})
    assert not hit and a is not b


def test_lru_eviction_drops_least_recently_used() -> None:
    compiler = SchemaCompiler(max_size=2)
    one = {"a": string_field()}
    two = {"b": string_field()}
    three = {"c": string_field()}

    compiler.compile(one)
    compiler.compile(two)
    compiler.compile(one)  # refresh "one"
    compiler.compile(three)  # evicts "two"

    assert compiler.stats()["evictions"] == 1
    assert compiler.compile(one)[1] is True
    assert compiler.compile(two)[1] is False


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    compiler = SchemaCompiler(max_size=10, ttl=60, clock=clock)
    fields = {"a": string_field()}

    compiler.compile(fields)
    clock.now = 59
    assert compiler.compile(fields)[1] is True

    clock.now = 200
    assert compiler.compile(fields)[1] is False


def test_prune_and_clear() -> None:
    clock = FakeClock()
    compiler = SchemaCompiler(ttl=10, clock=clock)
    compiler.compile({"a": string_field()})
    compiler.compile({"b": string_field()})

    clock.now = 11
    assert compiler.prune() == 2
    assert compiler.size == 0

    compiler.compile({"a": string_field()})
    compiler.clear()
    assert compiler.stats()["misses"] == 0


def test_miss_sweeps_expired_entries() -> None:
    clock = FakeClock()
    compiler = SchemaCompiler(ttl=10, clock=clock)
    compiler.compile({"a": string_field()})
    compiler.compile({"b": string_field()})

    clock.now = 11
    compiler.compile({"c": string_field()})
    assert compiler.size == 1


def test_max_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SchemaCompiler(max_size=0)


# ═════════════════════════════════════════════════════════════════════════════
# Malformed Schemas
# ═════════════════════════════════════════════════════════════════════════════


def test_min_greater_than_max_fails_compilation() -> None:
    compiler = SchemaCompiler()
    with pytest.raises(SchemaCompilationError, match="greater than maximum") as exc_info:
        compiler.compile({"n": number_field().min(10).max(1)})

    assert exc_info.value.code == ErrorCode.VALIDATION_SYSTEM_ERROR
    assert exc_info.value.path == ["n"]


def test_empty_enum_fails_compilation() -> None:
    with pytest.raises(SchemaCompilationError, match="at least one value"):
        SchemaCompiler().compile({"mode": enum_field([])})


def test_invalid_regex_fails_compilation() -> None:
    with pytest.raises(SchemaCompilationError, match="invalid pattern"):
        SchemaCompiler().compile({"code": string_field().pattern("([a-z")})


def test_negative_length_fails_compilation() -> None:
    with pytest.raises(SchemaCompilationError, match="must not be negative"):
        SchemaCompiler().compile({"s": string_field().min_length(-1)})


def test_nested_errors_carry_their_path() -> None:
    fields = {"items": array_field(object_field({"n": number_field().min(3).max(2)}))}
    with pytest.raises(SchemaCompilationError) as exc_info:
        SchemaCompiler().compile(fields)
    assert exc_info.value.path == ["items", "items", "n"]


def test_undeclared_required_property_fails_compilation() -> None:
    with pytest.raises(SchemaCompilationError, match="not declared: missing"):
        SchemaCompiler().compile({"user": object_field({"name": string_field()}, required=["missing"])})


def test_rule_referencing_unknown_field_fails() -> None:
    with pytest.raises(SchemaCompilationError, match="undeclared field 'ghost'"):
        SchemaCompiler().compile({"a": string_field()}, rules=[dependency("a", requires=["ghost"])])


def test_compilation_errors_are_configuration_errors() -> None:
    """Malformed schemas surface as configuration problems, not validation results."""
    with pytest.raises(ConfigurationError):
        SchemaCompiler().compile({"n": number_field().min(2).max(1)})


def test_failed_compilation_is_not_cached() -> None:
    compiler = SchemaCompiler()
    with pytest.raises(SchemaCompilationError):
        compiler.compile({"n": number_field().min(2).max(1)})
    assert compiler.size == 0
