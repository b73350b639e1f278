"""Tests for runtime execution metrics."""

from toolspine.runtime.metrics import ExecutionRecord, RuntimeMetrics


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _record(n: int, status: str = "success", duration: float = 10.0, at: float = 1000.0,
            code: str | None = None) -> ExecutionRecord:
    return ExecutionRecord(f"exec_{n}", status, duration, at, error_code=code, error_message=code and "failed")


def test_counts_and_timings() -> None:
    metrics = RuntimeMetrics(clock=FakeClock())
    metrics.record(_record(1, duration=10))
    metrics.record(_record(2, duration=30))
    metrics.record(_record(3, "error", duration=20, code="EXECUTION_ERROR"))
    metrics.record(_record(4, "timeout", duration=100, code="EXECUTION_TIMEOUT"))

    snap = metrics.snapshot()
    assert snap.total_executions == 4
    assert snap.successful_executions == 2
    assert snap.failed_executions == 2
    assert snap.timeout_executions == 1
    assert snap.error_rate_percent == 50.0
    assert snap.average_execution_time_ms == 40.0
    assert (snap.min_execution_time_ms, snap.max_execution_time_ms) == (10.0, 100.0)
    assert snap.error_counts == {"EXECUTION_ERROR": 1, "EXECUTION_TIMEOUT": 1}
    assert [e.code for e in snap.recent_errors] == ["EXECUTION_ERROR", "EXECUTION_TIMEOUT"]


def test_empty_snapshot() -> None:
    snap = RuntimeMetrics().snapshot()
    assert snap.total_executions == 0
    assert snap.error_rate_percent == 0.0
    assert snap.last_execution_at is None


def test_history_is_bounded() -> None:
    metrics = RuntimeMetrics(history_size=3, recent_errors=2)
    for n in range(5):
        metrics.record(_record(n, "error", code="E"))

    assert [r.execution_id for r in metrics.history()] == ["exec_2", "exec_3", "exec_4"]
    assert [r.execution_id for r in metrics.history(limit=1)] == ["exec_4"]
    assert len(metrics.snapshot().recent_errors) == 2
    assert metrics.total == 5


def test_requests_per_minute_uses_last_minute() -> None:
    clock = FakeClock(1000.0)
    metrics = RuntimeMetrics(clock=clock)
    metrics.record(_record(1, at=900.0))
    metrics.record(_record(2, at=950.0))
    metrics.record(_record(3, at=990.0))
    assert metrics.snapshot().requests_per_minute == 2


def test_rejections_are_counted_separately() -> None:
    metrics = RuntimeMetrics()
    metrics.record_rejection("AUTHENTICATION_REQUIRED")
    metrics.record_rejection("RATE_LIMIT_EXCEEDED", rate_limited=True)

    snap = metrics.snapshot()
    assert snap.total_executions == 0
    assert snap.rejected_requests == 2
    assert snap.rate_limited_requests == 1
    assert snap.error_counts["RATE_LIMIT_EXCEEDED"] == 1


def test_wire_format_uses_camel_case() -> None:
    metrics = RuntimeMetrics(clock=FakeClock())
    metrics.record(_record(1))
    wire = metrics.snapshot().to_wire()

    assert wire["totalExecutions"] == 1
    assert wire["lastExecutionAt"] == 1000.0
    assert "total_executions" not in wire


def test_reset() -> None:
    metrics = RuntimeMetrics()
    metrics.record(_record(1, "error", code="E"))
    metrics.reset()
    snap = metrics.snapshot()
    assert snap.total_executions == 0
    assert snap.error_counts == {}
    assert metrics.history() == []
