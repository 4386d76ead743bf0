"""
Monitoring module exports.
"""

from hazelpilot.monitoring.logger import (
    ContextLogAdapter,
    JSONFormatter,
    RunLogHandler,
    SanitizingHandler,
    get_logger,
    log_performance_metric,
    log_run_event,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_run_event",
    "log_performance_metric",
    "JSONFormatter",
    "SanitizingHandler",
    "RunLogHandler",
    "ContextLogAdapter",
]
