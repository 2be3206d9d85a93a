"""
Observability module for automatic trace correlation and structured logging.

- Execution ids propagate via ContextVar (scenario → agent → node)
- Structured JSON logging for production
- Human-readable logging for development
"""

from agentflow.observability.logging import (
    clear_trace_context,
    configure_logging,
    get_trace_context,
    set_trace_context,
    trace_scope,
)

__all__ = [
    "configure_logging",
    "get_trace_context",
    "set_trace_context",
    "clear_trace_context",
    "trace_scope",
]
