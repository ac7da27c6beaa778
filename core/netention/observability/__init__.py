"""
Observability module for trace correlation and structured logging.

- Note/attempt context propagation via ContextVar
- Structured JSON logging for production
- Human-readable logging for development
"""

from netention.observability.logging import (
    configure_logging,
    get_trace_context,
    trace_scope,
)

__all__ = [
    "configure_logging",
    "get_trace_context",
    "trace_scope",
]
