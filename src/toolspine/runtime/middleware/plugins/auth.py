"""API-key authentication middleware."""

from __future__ import annotations

import hmac
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from starlette.requests import Request
from starlette.responses import Response

from toolspine.foundation.errors import ErrorCode, ErrorInfo, ErrorType
from toolspine.runtime.context import hash_api_key
from toolspine.runtime.responses import error_response

from ..middleware import Context, Next

API_KEY_HEADER = "x-api-key"


def extract_api_key(headers: Mapping[str, str]) -> str | None:
    """Key from `X-API-Key`, else from `Authorization: Bearer <key>`."""
    if key := headers.get(API_KEY_HEADER):
        return key.strip() or None
    scheme, _, credentials = (headers.get("authorization") or "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def verify_api_key(candidate: str, accepted: Iterable[str]) -> bool:
    """Constant-time comparison against every accepted key."""
    given = candidate.encode()
    matched = False
    for key in accepted:
        matched |= hmac.compare_digest(given, key.encode())
    return matched


@dataclass(slots=True)
class AuthMiddleware:
    """Reject callers without a valid API key (401 AUTHENTICATION_REQUIRED).

    On success the caller fingerprint (first 8 hex chars of the key's
    SHA-256) is stored in the context as `caller`; the raw key never is.

    Example:
        >>> AuthMiddleware(api_keys=("k1", "k2"))
    """

    api_keys: tuple[str, ...] = ()
    realm: str = field(default="toolspine")

    async def __call__(self, request: Request, ctx: Context, next: Next) -> Response:
        key = extract_api_key(request.headers)
        if key is None or not verify_api_key(key, self.api_keys):
            ctx["rejection"] = ErrorCode.AUTHENTICATION_REQUIRED
            info = ErrorInfo.create(
                ErrorCode.AUTHENTICATION_REQUIRED,
                "Valid API key required" if key is None else "Invalid API key",
                ErrorType.CLIENT,
                retryable=False,
            )
            return error_response(info, 401, headers={"WWW-Authenticate": f'Bearer realm="{self.realm}"'})
        ctx["caller"] = hash_api_key(key)
        return await next(request, ctx)
