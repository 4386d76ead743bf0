"""
Target resolution module exports.
"""

from hazelpilot.resolver.strategies import Intent, Strategy, plan_strategies
from hazelpilot.resolver.target_resolver import TargetResolver
from hazelpilot.resolver.tie_breaker import (
    NullTieBreaker,
    OpenAITieBreaker,
    build_tie_breaker,
    parse_choice,
)

__all__ = [
    "Intent",
    "Strategy",
    "plan_strategies",
    "TargetResolver",
    "NullTieBreaker",
    "OpenAITieBreaker",
    "build_tie_breaker",
    "parse_choice",
]
