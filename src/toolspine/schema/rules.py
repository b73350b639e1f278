"""Cross-field rules evaluated against already-validated data.

Conditions are explicit predicates (dotted path + operator + literal), never
evaluated expression strings. Rules are frozen models so they serialize into
the compiler cache key and the generated documentation.

Example:
    >>> rule = conditional(when("type", "eq", "advanced"), requires=["advanced_options"])
    >>> rule.check({"type": "basic"}) is None
    True
    >>> rule.check({"type": "advanced"})
    "Field 'advanced_options' is required when type == 'advanced'"
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from toolspine.foundation.errors import ConfigurationError


class Operator(StrEnum):
    EQ = "eq"
    NE = "ne"
    IN = "in"
    NOT_IN = "not_in"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EXISTS = "exists"
    MISSING = "missing"


_SYMBOLS: dict[Operator, str] = {
    Operator.EQ: "==",
    Operator.NE: "!=",
    Operator.IN: "in",
    Operator.NOT_IN: "not in",
    Operator.GT: ">",
    Operator.GTE: ">=",
    Operator.LT: "<",
    Operator.LTE: "<=",
}


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<missing>"


MISSING: Any = _Missing()


def resolve_path(data: Any, path: str) -> Any:
    """Walk a dotted path through mappings and sequences. Returns MISSING if absent."""
    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def is_present(data: Any, path: str) -> bool:
    """A path is present when it resolves to anything other than None."""
    value = resolve_path(data, path)
    return value is not MISSING and value is not None


# ═══════════════════════════════════════════════════════════════════════════════
# Predicates
# ═══════════════════════════════════════════════════════════════════════════════


class Condition(BaseModel):
    """Single comparison of the value at `path` against a literal."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["condition"] = "condition"
    path: Annotated[str, Field(min_length=1)]
    op: Operator = Operator.EQ
    value: Any = None

    def evaluate(self, data: Any) -> bool:
        actual = resolve_path(data, self.path)
        match self.op:
            case Operator.EXISTS:
                return actual is not MISSING and actual is not None
            case Operator.MISSING:
                return actual is MISSING or actual is None
        if actual is MISSING:
            return self.op in (Operator.NE, Operator.NOT_IN)
        try:
            match self.op:
                case Operator.EQ:
                    return actual == self.value
                case Operator.NE:
                    return actual != self.value
                case Operator.IN:
                    return actual in self.value
                case Operator.NOT_IN:
                    return actual not in self.value
                case Operator.GT:
                    return actual > self.value
                case Operator.GTE:
                    return actual >= self.value
                case Operator.LT:
                    return actual < self.value
                case Operator.LTE:
                    return actual <= self.value
        except TypeError:
            # Incomparable operands never satisfy an ordering or membership test
            return False
        return False

    def describe(self) -> str:
        if self.op is Operator.EXISTS:
            return f"{self.path} is present"
        if self.op is Operator.MISSING:
            return f"{self.path} is missing"
        return f"{self.path} {_SYMBOLS[self.op]} {self.value!r}"


class AllOf(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["all_of"] = "all_of"
    conditions: tuple[Predicate, ...]

    def evaluate(self, data: Any) -> bool:
        return all(c.evaluate(data) for c in self.conditions)

    def describe(self) -> str:
        return " and ".join(f"({c.describe()})" for c in self.conditions)


class AnyOf(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["any_of"] = "any_of"
    conditions: tuple[Predicate, ...]

    def evaluate(self, data: Any) -> bool:
        return any(c.evaluate(data) for c in self.conditions)

    def describe(self) -> str:
        return " or ".join(f"({c.describe()})" for c in self.conditions)


Predicate = Annotated[Union[Condition, AllOf, AnyOf], Field(discriminator="kind")]

AllOf.model_rebuild()
AnyOf.model_rebuild()


# ═══════════════════════════════════════════════════════════════════════════════
# Rules
# ═══════════════════════════════════════════════════════════════════════════════


class ConditionalRule(BaseModel):
    """When `condition` holds, `requires` must be present and `forbids` absent."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["conditional"] = "conditional"
    condition: Predicate
    requires: tuple[str, ...] = ()
    forbids: tuple[str, ...] = ()
    message: str | None = None

    def check(self, data: Any) -> str | None:
        if not self.condition.evaluate(data):
            return None
        if missing := [p for p in self.requires if not is_present(data, p)]:
            return self.message or (
                f"Field '{missing[0]}' is required when {self.condition.describe()}"
            )
        if present := [p for p in self.forbids if is_present(data, p)]:
            return self.message or (
                f"Field '{present[0]}' is not allowed when {self.condition.describe()}"
            )
        return None

    @property
    def paths(self) -> tuple[str, ...]:
        return self.requires + self.forbids


class DependencyRule(BaseModel):
    """When `trigger` is present, every path in `requires` must be present too."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["dependency"] = "dependency"
    trigger: str
    requires: tuple[str, ...]
    message: str | None = None

    def check(self, data: Any) -> str | None:
        if not is_present(data, self.trigger):
            return None
        if missing := [p for p in self.requires if not is_present(data, p)]:
            return self.message or f"Field '{missing[0]}' is required when '{self.trigger}' is provided"
        return None

    @property
    def paths(self) -> tuple[str, ...]:
        return (self.trigger, *self.requires)


class MutualExclusionRule(BaseModel):
    """At most one of `fields` may be present."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["mutual_exclusion"] = "mutual_exclusion"
    fields: tuple[str, ...]
    message: str | None = None

    def check(self, data: Any) -> str | None:
        present = [p for p in self.fields if is_present(data, p)]
        if len(present) > 1:
            return self.message or f"Fields {', '.join(repr(p) for p in present)} are mutually exclusive"
        return None

    @property
    def paths(self) -> tuple[str, ...]:
        return self.fields


CrossFieldRule = Annotated[
    Union[ConditionalRule, DependencyRule, MutualExclusionRule],
    Field(discriminator="kind"),
]

_RULE_ADAPTER: TypeAdapter[CrossFieldRule] = TypeAdapter(CrossFieldRule)


# ═══════════════════════════════════════════════════════════════════════════════
# Constructors
# ═══════════════════════════════════════════════════════════════════════════════


def when(path: str, op: Operator | str = Operator.EQ, value: Any = None) -> Condition:
    return Condition(path=path, op=Operator(op), value=value)


def all_of(*conditions: Condition | AllOf | AnyOf) -> AllOf:
    return AllOf(conditions=conditions)


def any_of(*conditions: Condition | AllOf | AnyOf) -> AnyOf:
    return AnyOf(conditions=conditions)


def conditional(
    condition: Condition | AllOf | AnyOf,
    requires: Iterable[str] = (),
    forbids: Iterable[str] = (),
    message: str | None = None,
) -> ConditionalRule:
    return ConditionalRule(condition=condition, requires=tuple(requires), forbids=tuple(forbids), message=message)


def dependency(trigger: str, requires: Iterable[str], message: str | None = None) -> DependencyRule:
    return DependencyRule(trigger=trigger, requires=tuple(requires), message=message)


def mutual_exclusion(*fields: str, message: str | None = None) -> MutualExclusionRule:
    return MutualExclusionRule(fields=fields, message=message)


def parse_rule(value: Any) -> CrossFieldRule:
    """Coerce a rule model or raw mapping into a rule."""
    if isinstance(value, (ConditionalRule, DependencyRule, MutualExclusionRule)):
        return value
    try:
        return _RULE_ADAPTER.validate_python(value)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid cross-field rule: {e.errors(include_url=False)[0]['msg']}") from e


def parse_rules(rules: Iterable[Any] | None) -> tuple[CrossFieldRule, ...]:
    return tuple(parse_rule(r) for r in rules or ())
