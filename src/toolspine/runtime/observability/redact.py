"""Redaction of credentials and configuration values.

Keys matching the secret pattern are replaced wherever they occur; config
mappings can additionally be redacted by schema (`sensitive` fields) or
wholesale for error details.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "***REDACTED***"

SECRET_KEY_PATTERN = re.compile(
    r"api[_-]?key|secret|token|password|passwd|private[_-]?key|authorization|credential",
    re.IGNORECASE,
)

_MAX_DEPTH = 8


def is_secret_key(key: object) -> bool:
    return isinstance(key, str) and SECRET_KEY_PATTERN.search(key) is not None


def redact(value: Any, *, extra_keys: Iterable[str] = (), _depth: int = 0) -> Any:
    """Copy of `value` with secret-looking keys replaced, recursing into containers."""
    if _depth > _MAX_DEPTH:
        return value
    extra = frozenset(extra_keys)
    if isinstance(value, Mapping):
        return {
            k: REDACTED if (is_secret_key(k) or k in extra) and v is not None
            else redact(v, extra_keys=extra, _depth=_depth + 1)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v, extra_keys=extra, _depth=_depth + 1) for v in value]
    return value


def sanitize_config(config: Mapping[str, Any] | None, sensitive: Iterable[str] = ()) -> dict[str, Any]:
    """Config with secrets redacted: secret-looking keys plus the named sensitive fields.

    Example:
        >>> sanitize_config({"api_key": "sk-1", "region": "eu"})
        {'api_key': '***REDACTED***', 'region': 'eu'}
    """
    if not config:
        return {}
    return redact(dict(config), extra_keys=sensitive)
