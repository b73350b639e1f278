"""Tests for middleware composition, API key handling and the sliding window limiter."""

import threading
from typing import Any

import pytest
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from toolspine.runtime.middleware import (
    Context,
    SlidingWindowLimiter,
    compose,
    extract_api_key,
    verify_api_key,
)


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


# ═════════════════════════════════════════════════════════════════════════════
# Composition
# ═════════════════════════════════════════════════════════════════════════════


class Tag:
    def __init__(self, name: str, trail: list[str]) -> None:
        self.name, self.trail = name, trail

    async def __call__(self, request: Request, ctx: Context, next: Any) -> Response:
        self.trail.append(f"{self.name}:in")
        response = await next(request, ctx)
        self.trail.append(f"{self.name}:out")
        return response


@pytest.mark.asyncio
async def test_compose_runs_first_middleware_outermost() -> None:
    trail: list[str] = []

    async def handler(request: Request, ctx: Context) -> Response:
        trail.append("handler")
        return PlainTextResponse("ok")

    chain = compose([Tag("a", trail), Tag("b", trail)], handler)
    request = Request({"type": "http", "method": "POST", "path": "/", "headers": []})
    await chain(request, Context())

    assert trail == ["a:in", "b:in", "handler", "b:out", "a:out"]


def test_context_mapping_access() -> None:
    ctx = Context(request_id="r1")
    ctx["caller"] = "abc"
    assert "caller" in ctx
    assert ctx["caller"] == "abc"
    assert ctx.get("missing", 7) == 7


# ═════════════════════════════════════════════════════════════════════════════
# API Keys
# ═════════════════════════════════════════════════════════════════════════════


def test_extract_api_key() -> None:
    assert extract_api_key({"x-api-key": "k1"}) == "k1"
    assert extract_api_key({"authorization": "Bearer k2"}) == "k2"
    assert extract_api_key({"authorization": "Basic abc"}) is None
    assert extract_api_key({}) is None


def test_verify_api_key() -> None:
    assert verify_api_key("k2", ["k1", "k2"])
    assert not verify_api_key("k3", ["k1", "k2"])
    assert not verify_api_key("k1", [])


# ═════════════════════════════════════════════════════════════════════════════
# Sliding Window
# ═════════════════════════════════════════════════════════════════════════════


def test_limit_is_exact_at_boundary() -> None:
    clock = FakeClock()
    limiter = SlidingWindowLimiter(max_requests=2, window_seconds=10, clock=clock)

    assert limiter.hit("a").allowed
    assert limiter.hit("a").allowed
    denied = limiter.hit("a")
    assert not denied.allowed
    assert denied.remaining == 0
    assert denied.retry_after_ms == 10_000


def test_window_slides() -> None:
    clock = FakeClock()
    limiter = SlidingWindowLimiter(max_requests=2, window_seconds=10, clock=clock)

    limiter.hit("a")
    clock.now = 5
    limiter.hit("a")
    clock.now = 9.9
    assert not limiter.hit("a").allowed

    clock.now = 10
    assert limiter.hit("a").allowed
    assert not limiter.hit("a").allowed


def test_denied_attempts_do_not_consume_budget() -> None:
    clock = FakeClock()
    limiter = SlidingWindowLimiter(max_requests=1, window_seconds=10, clock=clock)
    limiter.hit("a")
    for _ in range(5):
        limiter.hit("a")
    clock.now = 10
    assert limiter.hit("a").allowed


def test_callers_are_independent() -> None:
    limiter = SlidingWindowLimiter(max_requests=1, window_seconds=60)
    assert limiter.hit("a").allowed
    assert limiter.hit("b").allowed
    assert not limiter.hit("a").allowed


def test_concurrent_hits_admit_exactly_the_limit() -> None:
    limiter = SlidingWindowLimiter(max_requests=50, window_seconds=60)
    barrier = threading.Barrier(20)
    allowed: list[bool] = []
    guard = threading.Lock()

    def worker() -> None:
        barrier.wait()
        for _ in range(10):
            decision = limiter.hit("shared")
            with guard:
                allowed.append(decision.allowed)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(allowed) == 200
    assert allowed.count(True) == 50


def test_caller_map_is_bounded() -> None:
    clock = FakeClock()
    limiter = SlidingWindowLimiter(max_requests=5, window_seconds=10, max_callers=3, clock=clock)
    for caller in "abcdef":
        limiter.hit(caller)
    assert limiter.tracked_callers <= 3

    limiter.reset()
    assert limiter.tracked_callers == 0
