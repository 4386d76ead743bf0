"""
Core interfaces for hazelpilot collaborators.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class TieBreaker(ABC):
    """Arbiter consulted when several candidates survive target resolution."""

    @abstractmethod
    async def pick(
        self,
        step_text: str,
        page_context: Dict[str, Any],
        candidates: List[Dict[str, Any]],
    ) -> Optional[int]:
        """
        Choose one of the surviving candidates.

        Args:
            step_text: Description of the step being executed
            page_context: Current page url and title
            candidates: Compact summaries (tag, attributes, text) in priority order

        Returns:
            Index into ``candidates`` or None for "none"
        """
        pass
