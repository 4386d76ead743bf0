"""
Core module exports.
"""

from hazelpilot.core.interfaces import TieBreaker
from hazelpilot.core.types import (
    ActionKind,
    Candidate,
    NormalizedStep,
    RunArtifacts,
    RunReport,
    RunState,
    RunSummary,
    StepResult,
    StepStatus,
    Target,
    TargetSpec,
    describe_target,
    target_hint,
)

__all__ = [
    # Interfaces
    "TieBreaker",
    # Types
    "ActionKind",
    "Candidate",
    "NormalizedStep",
    "RunArtifacts",
    "RunReport",
    "RunState",
    "RunSummary",
    "StepResult",
    "StepStatus",
    "Target",
    "TargetSpec",
    "describe_target",
    "target_hint",
]
