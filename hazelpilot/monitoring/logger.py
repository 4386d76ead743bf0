"""
Logging configuration and utilities for hazelpilot.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler

from hazelpilot.config.settings import get_settings
from hazelpilot.security.sanitizer import DataSanitizer

ROOT_LOGGER_NAME = "hazelpilot"


class JSONFormatter(logging.Formatter):
    """JSON log formatter with optional sanitization."""

    def __init__(self, *args, sanitize: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.sanitize = sanitize
        self.sanitizer = DataSanitizer() if sanitize else None

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        if self.sanitize and self.sanitizer:
            record = self.sanitizer.sanitize_log_record(record)

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field_name in ("run_id", "step_index", "action", "strategy"):
            if hasattr(record, field_name):
                log_data[field_name] = getattr(record, field_name)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.sanitize and self.sanitizer:
            log_data = self.sanitizer.sanitize_dict(log_data)

        return json.dumps(log_data, default=str)


class SanitizingHandler(logging.Handler):
    """Log handler that sanitizes messages before passing to wrapped handler."""

    def __init__(self, handler: logging.Handler, sanitizer: Optional[DataSanitizer] = None):
        super().__init__()
        self.handler = handler
        self.sanitizer = sanitizer or DataSanitizer()
        self.setLevel(handler.level)

    def emit(self, record: logging.LogRecord) -> None:
        """Emit sanitized record to wrapped handler."""
        try:
            self.handler.emit(self.sanitizer.sanitize_log_record(record))
        except Exception:
            self.handleError(record)


class RunLogHandler(logging.Handler):
    """
    Collects the lines of one run's log in memory.

    Attached to the ``hazelpilot`` logger for the lifetime of a run; the
    recorder writes :attr:`lines` to ``run.log`` when the run ends.
    """

    def __init__(self, level: int = logging.INFO, sanitize: bool = True):
        super().__init__(level)
        self.lines: List[str] = []
        self.sanitizer = DataSanitizer() if sanitize else None

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            if self.sanitizer:
                message = self.sanitizer.sanitize_string(message)
            stamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
            self.lines.append(f"[{stamp}] {message}")
        except Exception:
            self.handleError(record)

    def text(self) -> str:
        return "\n".join(self.lines)


class ContextLogAdapter(logging.LoggerAdapter):
    """Log adapter that merges fixed context into every record."""

    def process(
        self, msg: str, kwargs: Dict[str, Any]
    ) -> tuple[str, Dict[str, Any]]:
        """Add context to log records."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None,
    sanitize_logs: Optional[bool] = None,
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (defaults to settings)
        log_format: Log format 'json' or 'text' (defaults to settings)
        log_file: Optional log file path (defaults to settings)
        sanitize_logs: Whether to sanitize sensitive data in logs

    Returns:
        Root logger instance
    """
    settings = get_settings()

    level = log_level or settings.log_level
    format_type = log_format or settings.log_format
    file_path = log_file or settings.log_file
    sanitize = settings.sanitize_logs if sanitize_logs is None else sanitize_logs

    numeric_level = getattr(logging, level.upper())

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if format_type == "json":
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(JSONFormatter(sanitize=sanitize))
    else:
        console = Console(stderr=True)
        console_handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
        )

    console_handler.setLevel(numeric_level)

    if sanitize and format_type != "json":  # JSON formatter already sanitizes
        console_handler = SanitizingHandler(console_handler)

    root_logger.addHandler(console_handler)

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setLevel(numeric_level)

        if format_type == "json":
            file_handler.setFormatter(JSONFormatter(sanitize=sanitize))
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
                )
            )

        root_logger.addHandler(file_handler)

    root_logger.setLevel(numeric_level)

    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger(ROOT_LOGGER_NAME).debug(
        "hazelpilot logging initialized",
        extra={
            "log_level": level,
            "log_format": format_type,
            "log_file": file_path,
        },
    )

    return root_logger


def get_logger(name: str, **context: Any) -> logging.Logger:
    """
    Get a logger instance under the ``hazelpilot`` namespace.

    Args:
        name: Logger name, relative to ``hazelpilot``
        **context: Additional context to include in logs

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    logger = logging.getLogger(name)

    if context:
        return ContextLogAdapter(logger, context)

    return logger


def log_run_event(
    event_type: str,
    run_id: str,
    step_index: Optional[int] = None,
    data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a run lifecycle event.

    Args:
        event_type: Type of event
        run_id: Run identifier
        step_index: Optional 1-based step index
        data: Additional event data
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.run_events")

    extra: Dict[str, Any] = {
        "event_type": event_type,
        "run_id": run_id,
    }

    if step_index is not None:
        extra["step_index"] = step_index

    if data:
        extra.update(data)

    logger.debug(f"Run event: {event_type}", extra=extra)


def log_performance_metric(
    metric_name: str,
    value: float,
    unit: str = "ms",
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a performance metric.

    Args:
        metric_name: Name of the metric
        value: Metric value
        unit: Unit of measurement
        context: Additional context
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.performance")

    extra = {
        "metric_name": metric_name,
        "value": value,
        "unit": unit,
    }

    if context:
        extra.update(context)

    logger.debug(f"Performance metric: {metric_name}={value}{unit}", extra=extra)
