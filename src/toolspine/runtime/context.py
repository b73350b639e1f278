"""Per-request execution context handed to the user's execute function.

Created fresh for every request and never persisted. Frozen so the
function cannot alter what the runtime later reports.
"""

from __future__ import annotations

import hashlib
import time
import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


def new_execution_id() -> str:
    return f"exec_{uuid.uuid4().hex}"


def hash_api_key(api_key: str) -> str:
    """Short, non-reversible caller fingerprint (first 8 hex chars of SHA-256)."""
    return hashlib.sha256(api_key.encode()).hexdigest()[:8]


class SecurityContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key_hash: str | None = None
    source_ip: str | None = None
    user_agent: str | None = None
    permissions: tuple[str, ...] = ()
    rate_limit_remaining: int | None = None


class PerformanceContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_time: float = Field(default_factory=time.perf_counter)
    timeout_ms: int = 30_000
    priority: Literal["low", "normal", "high"] = "normal"


class ExecutionFlags(BaseModel):
    model_config = ConfigDict(frozen=True)

    debug: bool = False
    dry_run: bool = False


class ExecutionContext(BaseModel):
    """Everything the runtime knows about one invocation.

    Attributes:
        execution_id: Unique id, echoed in the response envelope
        tool_id/tool_version: Identity of the executing tool
        request_id: Correlation id from X-Request-ID (or generated)
        security: Caller fingerprint and rate-limit budget
        performance: Start time and time budget
        flags: debug / dry_run switches
    """

    model_config = ConfigDict(frozen=True)

    execution_id: str = Field(default_factory=new_execution_id)
    tool_id: str
    tool_version: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    request_id: str | None = None
    environment: str = "development"
    security: SecurityContext = Field(default_factory=SecurityContext)
    performance: PerformanceContext = Field(default_factory=PerformanceContext)
    flags: ExecutionFlags = Field(default_factory=ExecutionFlags)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @computed_field
    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.performance.start_time) * 1000

    @property
    def remaining_ms(self) -> float:
        """Time budget left before the runtime stops waiting."""
        return max(0.0, self.performance.timeout_ms - self.elapsed_ms)
