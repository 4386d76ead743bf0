"""
Tie-breaker implementations.

The resolver works without any tie-breaker; these only refine the choice
when several candidates survive the existence filter.
"""

import json
from typing import Any, Dict, List, Optional

from hazelpilot.config.settings import Settings, get_settings
from hazelpilot.core.interfaces import TieBreaker
from hazelpilot.error_handling.recovery import with_backoff
from hazelpilot.models.openai_client import OpenAIClient
from hazelpilot.monitoring.logger import get_logger

TIE_BREAKER_SYSTEM_PROMPT = """You pick which page element a UI test step refers to.
You receive the step, the page URL and a numbered list of candidate elements
(tag, attributes, visible text), best guess first.
Answer with JSON only: {"index": <number>} for the chosen candidate, or
{"index": "none"} if no candidate fits."""


class NullTieBreaker(TieBreaker):
    """Never decides; the resolver falls back to the first candidate."""

    async def pick(
        self,
        step_text: str,
        page_context: Dict[str, Any],
        candidates: List[Dict[str, Any]],
    ) -> Optional[int]:
        return None


class OpenAITieBreaker(TieBreaker):
    """Asks a chat model to choose among candidate summaries."""

    def __init__(
        self,
        client: Optional[OpenAIClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or OpenAIClient(
            model=self.settings.tie_breaker_model,
            api_key=self.settings.openai_api_key or None,
            settings=self.settings,
        )
        self.logger = get_logger("resolver.tie_breaker")

    def build_prompt(
        self,
        step_text: str,
        page_context: Dict[str, Any],
        candidates: List[Dict[str, Any]],
    ) -> str:
        lines = [f"Step: {step_text}", f"Page: {page_context.get('url') or 'unknown'}", "Candidates:"]
        for index, candidate in enumerate(candidates):
            lines.append(f"{index}. {json.dumps(candidate, ensure_ascii=False, default=str)}")
        return "\n".join(lines)

    async def pick(
        self,
        step_text: str,
        page_context: Dict[str, Any],
        candidates: List[Dict[str, Any]],
    ) -> Optional[int]:
        prompt = self.build_prompt(step_text, page_context, candidates)

        async def ask() -> Dict[str, Any]:
            return await self.client.call(
                messages=[{"role": "user", "content": prompt}],
                system_prompt=TIE_BREAKER_SYSTEM_PROMPT,
                temperature=self.settings.tie_breaker_temperature,
                response_format={"type": "json_object"},
            )

        try:
            response = await with_backoff(
                ask,
                max_attempts=self.settings.tie_breaker_max_attempts,
                base_delay_ms=self.settings.tie_breaker_base_delay_ms,
                operation_name="tie_breaker",
            )
        except Exception as e:
            self.logger.warning("Tie-breaker call failed", extra={"error": str(e)})
            return None

        return parse_choice(response.get("content"), len(candidates))


def parse_choice(content: Any, candidate_count: int) -> Optional[int]:
    """Extract a usable index from a model answer; anything else is "none"."""
    if isinstance(content, str):
        try:
            content = json.loads(content)
        except json.JSONDecodeError:
            return None
    if not isinstance(content, dict):
        return None

    index = content.get("index")
    if isinstance(index, bool):
        return None
    if isinstance(index, str) and index.strip().isdigit():
        index = int(index.strip())
    if isinstance(index, int) and 0 <= index < candidate_count:
        return index
    return None


def build_tie_breaker(settings: Optional[Settings] = None) -> TieBreaker:
    """Tie-breaker configured by settings; the null one when disabled or keyless."""
    settings = settings or get_settings()
    if not settings.tie_breaker_enabled:
        return NullTieBreaker()
    if not settings.openai_api_key:
        get_logger("resolver.tie_breaker").warning(
            "Tie-breaker enabled but no OpenAI API key configured; disabling it"
        )
        return NullTieBreaker()
    return OpenAITieBreaker(settings=settings)
