"""
Error handling and retry mechanisms for hazelpilot.
"""

from .exceptions import (
    HazelPilotError,
    RetryableError,
    NonRetryableError,
    TransientError,
    NormalizationDrop,
    ResolutionError,
    ActionTimeoutError,
    AssertionFailure,
    GlobalTimeoutError,
    UnknownStepError,
    LaunchError,
    StepSourceError,
)

from .recovery import (
    ExponentialBackoffStrategy,
    is_transient,
    with_backoff,
)

__all__ = [
    # Exceptions
    "HazelPilotError",
    "RetryableError",
    "NonRetryableError",
    "TransientError",
    "NormalizationDrop",
    "ResolutionError",
    "ActionTimeoutError",
    "AssertionFailure",
    "GlobalTimeoutError",
    "UnknownStepError",
    "LaunchError",
    "StepSourceError",

    # Recovery
    "ExponentialBackoffStrategy",
    "is_transient",
    "with_backoff",
]
