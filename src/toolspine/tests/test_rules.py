"""Tests for cross-field predicates and rules."""

import pytest

from toolspine import ConfigurationError
from toolspine.schema import all_of, any_of, conditional, dependency, mutual_exclusion, when
from toolspine.schema.rules import MISSING, parse_rule, resolve_path


def test_resolve_dotted_paths() -> None:
    data = {"user": {"tags": ["a", "b"]}}
    assert resolve_path(data, "user.tags.1") == "b"
    assert resolve_path(data, "user.tags.5") is MISSING
    assert resolve_path(data, "user.name") is MISSING


@pytest.mark.parametrize(
    ("op", "value", "actual", "expected"),
    [
        ("eq", "a", "a", True),
        ("ne", "a", "b", True),
        ("in", ["a", "b"], "b", True),
        ("not_in", ["a"], "b", True),
        ("gt", 5, 6, True),
        ("lte", 5, 6, False),
        ("gt", 5, "six", False),
    ],
)
def test_condition_operators(op: str, value: object, actual: object, expected: bool) -> None:
    assert when("x", op, value).evaluate({"x": actual}) is expected


def test_existence_operators() -> None:
    assert when("x", "exists").evaluate({"x": 0})
    assert when("x", "missing").evaluate({"x": None})
    assert when("x", "ne", 1).evaluate({})


def test_combinators() -> None:
    both = all_of(when("a", "eq", 1), when("b", "eq", 2))
    either = any_of(when("a", "eq", 1), when("b", "eq", 2))

    assert both.evaluate({"a": 1, "b": 2})
    assert not both.evaluate({"a": 1})
    assert either.evaluate({"b": 2})
    assert both.describe() == "(a == 1) and (b == 2)"


def test_conditional_forbids() -> None:
    rule = conditional(when("mode", "eq", "simple"), forbids=["advanced"])
    assert rule.check({"mode": "simple", "advanced": True}) == (
        "Field 'advanced' is not allowed when mode == 'simple'"
    )
    assert rule.check({"mode": "simple"}) is None


def test_dependency_ignores_null_trigger() -> None:
    rule = dependency("a", requires=["b"])
    assert rule.check({"a": None}) is None


def test_mutual_exclusion_default_message() -> None:
    rule = mutual_exclusion("a", "b", "c")
    assert rule.check({"a": 1}) is None
    assert rule.check({"a": 1, "c": 2}) == "Fields 'a', 'c' are mutually exclusive"


def test_parse_rule_from_mapping() -> None:
    rule = parse_rule({"kind": "dependency", "trigger": "a", "requires": ["b"]})
    assert rule.check({"a": 1}) is not None


def test_parse_rule_rejects_garbage() -> None:
    with pytest.raises(ConfigurationError, match="Invalid cross-field rule"):
        parse_rule({"kind": "sometimes"})
