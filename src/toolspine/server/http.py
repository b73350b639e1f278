"""Starlette application exposing a Tool over HTTP.

Endpoints:
    POST /api/execute  Validate and execute (auth and rate limit apply)
    GET  /health       Health report (503 when unhealthy)
    GET  /schema       OpenAPI 3.0.3 document
    GET  /metrics      Runtime and validation metrics
    GET  /             Service index

Every response carries X-Request-ID (echoed from the request or
generated). Unknown routes get an ENDPOINT_NOT_FOUND envelope.

Example:
    >>> app = create_app(tool)
    >>> async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://t") as client:
    ...     await client.post("/api/execute", json={"input_data": {"message": "hi"}})
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import orjson
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware as StarletteMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from toolspine.foundation.errors import ErrorCode, ErrorInfo, ErrorType
from toolspine.runtime.middleware import (
    REQUEST_ID_HEADER,
    AuthMiddleware,
    Context,
    Handler,
    LoggingMiddleware,
    Middleware,
    MetricsMiddleware,
    RateLimitMiddleware,
    compose,
)
from toolspine.runtime.observability import get_logger
from toolspine.runtime.responses import ORJSONResponse, error_response

if TYPE_CHECKING:
    from toolspine.runtime.tool import Tool

ENDPOINTS = {
    "execute": "POST /api/execute",
    "health": "GET /health",
    "schema": "GET /schema",
    "metrics": "GET /metrics",
}


def _client_error(code: ErrorCode, message: str) -> ErrorInfo:
    return ErrorInfo.create(code, message, ErrorType.CLIENT, retryable=False)


def _with_request_id(handler: Handler) -> Any:
    """Adapt a (request, ctx) handler into a Starlette endpoint that sets X-Request-ID."""
    async def endpoint(request: Request) -> Response:
        ctx = Context.for_request(request)
        response = await handler(request, ctx)
        response.headers[REQUEST_ID_HEADER] = ctx.request_id
        return response
    return endpoint


def create_app(tool: Tool) -> Starlette:
    """Build the ASGI app for `tool` from its settings."""
    settings = tool.settings
    security = settings.security
    log = get_logger("toolspine.http", tool=tool.metadata.name)

    outer: list[Middleware] = []
    if settings.logging.log_requests:
        outer.append(LoggingMiddleware(log))
    auth: list[Middleware] = []
    if security.auth_enabled:
        auth.append(AuthMiddleware(api_keys=tuple(k.get_secret_value() for k in security.api_keys)))

    async def on_limited(caller: str) -> None:
        await tool.emit("rate_limit_exceeded", caller)

    execute_chain: list[Middleware] = [*outer, MetricsMiddleware(tool.metrics), *auth]
    if tool.limiter is not None:
        execute_chain.append(RateLimitMiddleware(tool.limiter, on_limited=on_limited))
    metadata_chain: list[Middleware] = [*outer, *(auth if security.protect_metadata_endpoints else ())]

    # ─────────────────────────────────────────────────────────────────────────
    # Handlers
    # ─────────────────────────────────────────────────────────────────────────

    async def dispatch(request: Request, ctx: Context) -> Response:
        body = await request.body()
        if len(body) > settings.server.max_body_size:
            ctx["rejection"] = ErrorCode.INVALID_REQUEST
            return error_response(_client_error(ErrorCode.INVALID_REQUEST, "Request body too large"), 413)
        try:
            payload = orjson.loads(body) if body.strip() else {}
        except orjson.JSONDecodeError:
            ctx["rejection"] = ErrorCode.INVALID_JSON
            return error_response(_client_error(ErrorCode.INVALID_JSON, "Invalid JSON in request body"), 400)
        if not isinstance(payload, dict):
            ctx["rejection"] = ErrorCode.INVALID_REQUEST
            return error_response(_client_error(ErrorCode.INVALID_REQUEST, "Request body must be a JSON object"), 400)
        config = payload.get("config")
        if config is not None and not isinstance(config, dict):
            ctx["rejection"] = ErrorCode.INVALID_REQUEST
            return error_response(_client_error(ErrorCode.INVALID_REQUEST, "config must be a JSON object"), 400)
        metadata = payload.get("metadata")

        result = await tool.execute(
            payload.get("input_data", {}),
            config or None,
            request_id=ctx.request_id,
            caller=ctx.get("caller"),  # type: ignore[arg-type]
            source_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            rate_limit_remaining=ctx.get("rate_limit_remaining"),  # type: ignore[arg-type]
            metadata=metadata if isinstance(metadata, dict) else None,
        )
        return ORJSONResponse(result.to_response().payload(), status_code=result.status_code)

    async def health(request: Request, ctx: Context) -> Response:
        report = await tool.health()
        return ORJSONResponse(report.model_dump(mode="json"), status_code=report.status_code)

    async def schema(request: Request, ctx: Context) -> Response:
        try:
            document = tool.documentation()
        except Exception:
            log.exception("schema generation failed")
            info = ErrorInfo.create(ErrorCode.SCHEMA_GENERATION_ERROR, "Failed to generate schema", ErrorType.SYSTEM)
            return error_response(info, 500)
        return ORJSONResponse(document)

    async def metrics(request: Request, ctx: Context) -> Response:
        try:
            body = {
                **tool.metrics_snapshot().to_wire(),
                "validation": tool.engine.get_metrics().model_dump(mode="json"),
            }
        except Exception:
            log.exception("metrics collection failed")
            info = ErrorInfo.create(ErrorCode.METRICS_ERROR, "Failed to collect metrics", ErrorType.SYSTEM)
            return error_response(info, 500)
        return ORJSONResponse(body)

    async def index(request: Request, ctx: Context) -> Response:
        return ORJSONResponse({**tool.describe(), "endpoints": ENDPOINTS})

    # ─────────────────────────────────────────────────────────────────────────
    # Errors
    # ─────────────────────────────────────────────────────────────────────────

    async def not_found(request: Request, exc: Exception) -> Response:
        info = _client_error(ErrorCode.ENDPOINT_NOT_FOUND, f"Endpoint {request.method} {request.url.path} not found")
        response = error_response(info, 404, headers={"X-Available-Endpoints": ", ".join(ENDPOINTS.values())})
        response.headers[REQUEST_ID_HEADER] = Context.for_request(request).request_id
        return response

    async def http_error(request: Request, exc: Exception) -> Response:
        status = exc.status_code if isinstance(exc, HTTPException) else 400
        detail = exc.detail if isinstance(exc, HTTPException) else str(exc)
        response = error_response(_client_error(ErrorCode.INVALID_REQUEST, str(detail)), status)
        response.headers[REQUEST_ID_HEADER] = Context.for_request(request).request_id
        return response

    async def internal_error(request: Request, exc: Exception) -> Response:
        log.error("unhandled error", path=request.url.path, error=type(exc).__name__)
        details = {"exception": type(exc).__name__, "message": str(exc)} if settings.is_development else None
        info = ErrorInfo.create(ErrorCode.INTERNAL_ERROR, "An internal error occurred", ErrorType.SYSTEM, details=details)
        return error_response(info, 500)

    middleware = []
    if settings.cors.enabled:
        middleware.append(StarletteMiddleware(
            CORSMiddleware,
            allow_origins=settings.cors.allow_origins,
            allow_methods=settings.cors.allow_methods,
            allow_headers=settings.cors.allow_headers,
            expose_headers=[REQUEST_ID_HEADER, "X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
        ))

    return Starlette(
        routes=[
            Route("/api/execute", _with_request_id(compose(execute_chain, dispatch)), methods=["POST"]),
            Route("/health", _with_request_id(compose(metadata_chain, health)), methods=["GET"]),
            Route("/schema", _with_request_id(compose(metadata_chain, schema)), methods=["GET"]),
            Route("/metrics", _with_request_id(compose(metadata_chain, metrics)), methods=["GET"]),
            Route("/", _with_request_id(compose(outer, index)), methods=["GET"]),
        ],
        middleware=middleware,
        exception_handlers={404: not_found, HTTPException: http_error, Exception: internal_error},
    )
