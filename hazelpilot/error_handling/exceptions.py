"""
Exception hierarchy for the hazelpilot step engine.

Every per-step failure is one of these kinds so the executor can record a
descriptive error on the step result and decide whether a retry makes sense.
Only LaunchError is expected to reach the caller of a run.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class HazelPilotError(Exception):
    """Base exception for all hazelpilot errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


class RetryableError(HazelPilotError):
    """Base class for errors that can be retried."""


class NonRetryableError(HazelPilotError):
    """Base class for errors that should not be retried."""


class TransientError(RetryableError):
    """Upstream was rate limited or failed server-side."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.details.update({"status_code": status_code})


class NormalizationDrop(NonRetryableError):
    """A raw step could not be classified; it is excluded, never executed."""

    def __init__(self, message: str, raw: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw = raw
        self.details.update({"raw": repr(raw)[:200]})


class ResolutionError(NonRetryableError):
    """No candidate element survived for a target."""

    def __init__(
        self,
        message: str,
        target: Any = None,
        intent: Optional[str] = None,
        strategies: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.target = target
        self.intent = intent
        self.strategies = strategies or []
        self.details.update({
            "target": target,
            "intent": intent,
            "strategies": self.strategies
        })


class ActionTimeoutError(RetryableError):
    """A browser operation exceeded its per-step bound."""

    def __init__(
        self,
        message: str,
        operation: str,
        timeout_ms: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.timeout_ms = timeout_ms
        self.details.update({
            "operation": operation,
            "timeout_ms": timeout_ms
        })


class AssertionFailure(NonRetryableError):
    """Page content or URL did not match the expected pattern."""

    def __init__(
        self,
        message: str,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual
        self.details.update({
            "expected": expected,
            "actual": actual[:200] if actual else actual
        })


class GlobalTimeoutError(NonRetryableError):
    """The run exceeded its overall wall-clock deadline."""

    def __init__(self, message: str, max_run_ms: int, **kwargs):
        super().__init__(message, **kwargs)
        self.max_run_ms = max_run_ms
        self.details.update({"max_run_ms": max_run_ms})


class UnknownStepError(NonRetryableError):
    """A step reached the executor with an action no handler serves."""

    def __init__(self, action: str, **kwargs):
        super().__init__(f"Unknown step: {action}", **kwargs)
        self.action = action
        self.details.update({"action": action})


class LaunchError(NonRetryableError):
    """The browser session could not be started; the run is aborted."""

    def __init__(self, message: str, browser: str = "chromium", **kwargs):
        super().__init__(message, **kwargs)
        self.browser = browser
        self.details.update({"browser": browser})


class StepSourceError(NonRetryableError):
    """A step file or plan document could not be read or understood."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.source = source
        self.details.update({"source": source})
