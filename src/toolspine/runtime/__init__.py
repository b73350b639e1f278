"""Tool execution runtime.

- tool/builder: Lifecycle, configuration, execution and health of one tool
- context/result: Per-request context and the normalized result envelope
- metrics: Thread-safe counters and bounded execution history
- middleware: Request pipeline (logging, metrics, auth, rate limiting)
- observability: Structured logging with redaction
"""

from .builder import ToolBuilder, create_tool
from .context import ExecutionContext, ExecutionFlags, PerformanceContext, SecurityContext, hash_api_key
from .metrics import ExecutionRecord, MetricsSnapshot, RuntimeMetrics
from .result import ExecuteResponse, ExecutionResult, ExecutionStatus, Timing
from .tool import HealthReport, Tool, ToolEvent, ToolMetadata, ToolState

__all__ = [
    # Tool
    "Tool", "ToolBuilder", "create_tool", "ToolMetadata", "ToolState", "ToolEvent", "HealthReport",
    # Context & results
    "ExecutionContext", "SecurityContext", "PerformanceContext", "ExecutionFlags", "hash_api_key",
    "ExecutionResult", "ExecutionStatus", "ExecuteResponse", "Timing",
    # Metrics
    "RuntimeMetrics", "MetricsSnapshot", "ExecutionRecord",
]
