"""Schema compiler with structural-shape memoization.

Turns a `{name -> definition}` map (plus optional cross-field rules) into a
CompiledSchema. Results are cached under a SHA-256 of the canonical
serialization of the shape, so two equal field sets share one compiled
artifact regardless of declaration order or object identity.
"""

from __future__ import annotations

import hashlib
import threading
import time
from collections import OrderedDict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable, Literal

from toolspine.foundation.errors import SchemaCompilationError

from .fields import FieldDefinition, field_to_dict, parse_fields
from .nodes import (
    MISSING,
    Node,
    ValidationCode,
    ValidationState,
    build_node,
    canonical,
    type_name,
    validate_members,
)
from .rules import CrossFieldRule, parse_rules

Scope = Literal["input", "config"]

DEFAULT_CACHE_SIZE = 1000
DEFAULT_CACHE_TTL = 300.0


class CompiledSchema:
    """Executable validator graph for one schema shape."""

    __slots__ = ("key", "scope", "definitions", "children", "rules")

    def __init__(
        self,
        key: str,
        scope: Scope,
        definitions: Mapping[str, FieldDefinition],
        rules: tuple[CrossFieldRule, ...] = (),
    ) -> None:
        self.key = key
        self.scope = scope
        self.definitions = dict(definitions)
        self.children: dict[str, Node] = {name: build_node(d, (name,)) for name, d in definitions.items()}
        self.rules = rules

    def validate(
        self,
        data: Any,
        state: ValidationState,
        *,
        strip_unknown: bool = False,
        env: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Validate a top-level mapping, appending failures to `state.errors`."""
        if not isinstance(data, Mapping):
            received = type_name(data)
            state.fail(None, (), ValidationCode.INVALID_TYPE, f"Expected object, received {received}", "type",
                       expected="object", received=received)
            return {}

        source = None
        if env is not None:
            def source(name: str, node: Node) -> Any:
                value = data.get(name, MISSING)
                var = node.definition.env_var
                if (value is MISSING or value is None) and var and var in env:
                    return node.coerce_env(env[var])
                return value

        out = validate_members(self.children, data, (), state, source=source)
        if state.aborted:
            return out

        if not strip_unknown and (unknown := [k for k in data if k not in self.children]):
            state.fail(None, (), ValidationCode.UNEXPECTED_FIELDS,
                       f"Unrecognized field(s): {', '.join(repr(k) for k in unknown)}", "unexpected",
                       expected="declared fields only")
            return out

        # Cross-field rules only see data that passed every per-field check
        if not state.errors:
            for rule in self.rules:
                if (message := rule.check(out)) is not None:
                    state.fail(None, (), ValidationCode.CROSS_FIELD_VALIDATION_FAILED, message, "cross_field")
                    if state.abort_early:
                        break
        return out

    def __repr__(self) -> str:
        return f"CompiledSchema(scope={self.scope!r}, fields={list(self.children)}, rules={len(self.rules)})"


@dataclass(slots=True)
class CacheEntry:
    """A compiled schema with expiration tracking."""
    schema: CompiledSchema
    expires_at: float
    hits: int = 0


class SchemaCompiler:
    """Thread-safe compiler with an LRU + TTL cache of compiled schemas.

    Args:
        max_size: Compiled schemas kept before least-recently-used eviction
        ttl: Seconds a compiled schema stays valid
        clock: Monotonic time source (injectable for tests)

    Example:
        >>> compiler = SchemaCompiler(max_size=10)
        >>> schema, hit = compiler.compile({"name": string_field().required()})
        >>> compiler.compile({"name": string_field().required()})[1]
        True
    """

    __slots__ = ("_cache", "_max_size", "_ttl", "_clock", "_lock", "_hits", "_misses", "_evictions")

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_SIZE,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.RLock()
        self._hits = self._misses = self._evictions = 0

    @staticmethod
    def cache_key(
        fields: Mapping[str, FieldDefinition],
        scope: Scope,
        rules: Iterable[CrossFieldRule] = (),
    ) -> str:
        """Deterministic key over the schema shape: sorted keys, canonical constraint order."""
        shape = {
            "scope": scope,
            "fields": {name: field_to_dict(d) for name, d in fields.items()},
            "rules": [r.model_dump(mode="json") for r in rules],
        }
        return hashlib.sha256(canonical(shape)).hexdigest()

    def compile(
        self,
        fields: Mapping[str, Any] | None,
        *,
        scope: Scope = "input",
        rules: Iterable[Any] | None = None,
    ) -> tuple[CompiledSchema, bool]:
        """Compile (or fetch) the validator for a schema shape.

        Returns:
            (compiled schema, whether it came from the cache)

        Raises:
            ConfigurationError: a definition does not parse (e.g. unknown kind)
            SchemaCompilationError: a definition's constraints are malformed
        """
        definitions = parse_fields(fields)
        parsed_rules = parse_rules(rules)
        key = self.cache_key(definitions, scope, parsed_rules)

        with self._lock:
            if (entry := self._cache.get(key)) is not None:
                if self._clock() < entry.expires_at:
                    self._cache.move_to_end(key)
                    entry.hits += 1
                    self._hits += 1
                    return entry.schema, True
                del self._cache[key]
            self._misses += 1

        _check_rule_paths(parsed_rules, definitions)
        compiled = CompiledSchema(key, scope, definitions, parsed_rules)

        with self._lock:
            self.prune()
            self._cache[key] = CacheEntry(compiled, self._clock() + self._ttl)
            self._cache.move_to_end(key)
            while len(self._cache) > self._max_size:
                self._cache.popitem(last=False)
                self._evictions += 1
        return compiled, False

    def prune(self) -> int:
        """Drop expired entries. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, v in self._cache.items() if v.expires_at <= now]
            for key in expired:
                del self._cache[key]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = self._misses = self._evictions = 0

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    @property
    def max_size(self) -> int:
        return self._max_size

    def stats(self) -> dict[str, Any]:
        """Get cache statistics for monitoring."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "ttl_seconds": self._ttl,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }


def _check_rule_paths(rules: tuple[CrossFieldRule, ...], definitions: Mapping[str, FieldDefinition]) -> None:
    for rule in rules:
        paths = list(rule.paths)
        if rule.kind == "conditional":
            paths.extend(_condition_paths(rule.condition))
        for path in paths:
            if path.split(".", 1)[0] not in definitions:
                raise SchemaCompilationError(f"Cross-field rule references undeclared field '{path}'", [path])


def _condition_paths(condition: Any) -> list[str]:
    if condition.kind == "condition":
        return [condition.path]
    return [p for c in condition.conditions for p in _condition_paths(c)]
