"""Runtime execution metrics: counters, bounded history, recent errors.

One RuntimeMetrics instance per tool, constructed with the tool and reset
when it starts. All mutation happens under a lock so concurrent requests
never lose an update.
"""

from __future__ import annotations

import threading
import time
from collections import Counter, deque
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


@dataclass(slots=True, frozen=True)
class ExecutionRecord:
    """One completed execution as kept in history."""

    execution_id: str
    status: str
    duration_ms: float
    timestamp: float
    error_code: str | None = None
    error_message: str | None = None
    caller: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class RecentError(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    execution_id: str
    code: str
    message: str
    timestamp: float


class MetricsSnapshot(BaseModel):
    """Point-in-time view served by `GET /metrics` (camelCase on the wire)."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    timeout_executions: int = 0
    error_rate_percent: float = 0.0
    average_execution_time_ms: float = 0.0
    min_execution_time_ms: float = 0.0
    max_execution_time_ms: float = 0.0
    requests_per_minute: int = 0
    uptime_seconds: float = 0.0
    last_execution_at: float | None = None
    rate_limited_requests: int = 0
    rejected_requests: int = 0
    error_counts: dict[str, int] = Field(default_factory=dict)
    recent_errors: list[RecentError] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RuntimeMetrics:
    """Thread-safe execution accounting.

    Example:
        >>> m = RuntimeMetrics(history_size=100)
        >>> m.record(ExecutionRecord("exec_1", "success", 12.5, time.time()))
        >>> m.snapshot().total_executions
        1
    """

    __slots__ = ("_lock", "_history", "_errors", "_error_counts", "_clock", "_started_at",
                 "_total", "_success", "_failed", "_timeouts", "_duration_total",
                 "_min", "_max", "_rate_limited", "_rejected")

    def __init__(self, history_size: int = 1000, recent_errors: int = 10,
                 clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._history: deque[ExecutionRecord] = deque(maxlen=history_size)
        self._errors: deque[RecentError] = deque(maxlen=recent_errors)
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._error_counts: Counter[str] = Counter()
        self._history.clear()
        self._errors.clear()
        self._started_at = self._clock()
        self._total = self._success = self._failed = self._timeouts = 0
        self._rate_limited = self._rejected = 0
        self._duration_total = 0.0
        self._min = self._max = 0.0

    def record(self, record: ExecutionRecord) -> None:
        with self._lock:
            self._total += 1
            self._duration_total += record.duration_ms
            self._min = record.duration_ms if self._total == 1 else min(self._min, record.duration_ms)
            self._max = max(self._max, record.duration_ms)
            match record.status:
                case "success":
                    self._success += 1
                case "timeout":
                    self._timeouts += 1
                    self._failed += 1
                case _:
                    self._failed += 1
            if record.error_code:
                self._error_counts[record.error_code] += 1
                self._errors.append(RecentError(
                    execution_id=record.execution_id, code=record.error_code,
                    message=record.error_message or "", timestamp=record.timestamp,
                ))
            self._history.append(record)

    def record_rejection(self, code: str, *, rate_limited: bool = False) -> None:
        """Count a request refused before execution (auth, rate limit)."""
        with self._lock:
            self._rejected += 1
            if rate_limited:
                self._rate_limited += 1
            self._error_counts[code] += 1

    def history(self, limit: int | None = None) -> list[ExecutionRecord]:
        with self._lock:
            items = list(self._history)
        return items if limit is None else items[-limit:]

    @property
    def error_rate(self) -> float:
        """Failed share of executions in percent."""
        with self._lock:
            return (self._failed / self._total * 100) if self._total else 0.0

    @property
    def total(self) -> int:
        return self._total

    def snapshot(self) -> MetricsSnapshot:
        now = self._clock()
        with self._lock:
            total = self._total
            return MetricsSnapshot(
                total_executions=total,
                successful_executions=self._success,
                failed_executions=self._failed,
                timeout_executions=self._timeouts,
                error_rate_percent=round(self._failed / total * 100, 2) if total else 0.0,
                average_execution_time_ms=round(self._duration_total / total, 3) if total else 0.0,
                min_execution_time_ms=round(self._min, 3),
                max_execution_time_ms=round(self._max, 3),
                requests_per_minute=sum(1 for r in self._history if r.timestamp >= now - 60),
                uptime_seconds=round(now - self._started_at, 3),
                last_execution_at=self._history[-1].timestamp if self._history else None,
                rate_limited_requests=self._rate_limited,
                rejected_requests=self._rejected,
                error_counts=dict(self._error_counts),
                recent_errors=list(self._errors),
            )

    def reset(self) -> None:
        with self._lock:
            self._reset_counters()
