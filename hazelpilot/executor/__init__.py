"""
Execution module exports.
"""

from hazelpilot.executor.action_executor import ActionExecutor, join_url
from hazelpilot.executor.runner import new_run_id, run_web_tests

__all__ = [
    "ActionExecutor",
    "join_url",
    "new_run_id",
    "run_web_tests",
]
