"""
Target resolver: TargetSpec + intent -> ordered, existence-filtered candidates.
"""

from typing import Any, Dict, List, Optional

from hazelpilot.core.interfaces import TieBreaker
from hazelpilot.core.types import Candidate, Target, describe_target, target_hint
from hazelpilot.error_handling.exceptions import ResolutionError
from hazelpilot.monitoring.logger import get_logger
from hazelpilot.resolver.strategies import Intent, plan_strategies, text_arg

# Summary of one element for the tie-breaker; runs in the page
SUMMARIZE_ELEMENT_JS = """
(el) => {
  const attributes = {};
  for (const name of ["id", "name", "type", "role", "aria-label", "placeholder", "href", "data-testid"]) {
    const value = el.getAttribute(name);
    if (value) attributes[name] = value.slice(0, 80);
  }
  const text = (el.innerText || el.value || "").trim().replace(/\\s+/g, " ").slice(0, 80);
  return { tag: el.tagName.toLowerCase(), attributes, text };
}
"""

STRICT_MODE_MARKER = "strict mode violation"


class TargetResolver:
    """
    Resolves step targets against the live page of one run.

    Strategies are planned in priority order and each is kept only if its
    locator currently matches at least one element. When several survive,
    the optional tie-breaker may pick one; otherwise the first wins.
    """

    def __init__(
        self,
        page: Any,
        tie_breaker: Optional[TieBreaker] = None,
        generic_fallbacks: bool = False,
    ) -> None:
        self.page = page
        self.tie_breaker = tie_breaker
        self.generic_fallbacks = generic_fallbacks
        self.logger = get_logger("resolver.target")

    async def resolve_candidates(
        self,
        target: Optional[Target],
        intent: Intent,
    ) -> List[Candidate]:
        """
        Build the ordered list of candidates that currently exist.

        Args:
            target: Plain string, TargetSpec, or None
            intent: What the step is about to do

        Returns:
            Candidates best-first; empty when nothing matches
        """
        candidates: List[Candidate] = []
        for strategy in plan_strategies(target, intent, self.generic_fallbacks):
            try:
                locator = strategy.build(self.page)
            except Exception as e:
                self.logger.debug(
                    "Strategy could not build a locator",
                    extra={"strategy": strategy.name, "error": str(e)},
                )
                continue

            if await self._count(locator) > 0:
                candidates.append(Candidate(strategy=strategy.name, locator=locator))

        self.logger.debug(
            f"Resolved {len(candidates)} candidate(s) for {describe_target(target)}",
            extra={"intent": intent.value, "strategies": [c.strategy for c in candidates]},
        )
        return candidates

    async def resolve_one(
        self,
        target: Optional[Target],
        intent: Intent,
        step_text: Optional[str] = None,
    ) -> Candidate:
        """
        Pick a single candidate for the target.

        Makes exactly one resolution pass; waiting for late elements is up
        to the caller.

        Args:
            target: Plain string, TargetSpec, or None
            intent: What the step is about to do
            step_text: Step description passed to the tie-breaker

        Raises:
            ResolutionError: If no candidate survives the existence filter
        """
        candidates = await self.resolve_candidates(target, intent)

        if not candidates:
            planned = plan_strategies(target, intent, self.generic_fallbacks)
            tried = [strategy.name for strategy in planned]
            raise ResolutionError(
                f"Target not found: {describe_target(target)} "
                f"(intent={intent.value}, tried={', '.join(tried) or 'nothing'})",
                target=describe_target(target),
                intent=intent.value,
                strategies=tried,
            )

        if len(candidates) == 1 or self.tie_breaker is None:
            return candidates[0]

        choice = await self._consult_tie_breaker(candidates, step_text or describe_target(target))
        return candidates[choice] if choice is not None else candidates[0]

    async def click(
        self,
        candidate: Candidate,
        target: Optional[Target],
        timeout_ms: int,
    ) -> str:
        """
        Click a resolved candidate, recovering from strict-mode conflicts.

        On a multi-match conflict, role-scoped queries for the target hint
        (button, then link) are retried, then the first element of the
        original candidate is clicked.

        Returns:
            Name of the strategy that performed the click
        """
        try:
            await candidate.locator.click(timeout=timeout_ms)
            return candidate.strategy
        except Exception as e:
            if STRICT_MODE_MARKER not in str(e).lower():
                raise
            self.logger.info(
                "Click matched several elements, retrying role-scoped",
                extra={"strategy": candidate.strategy},
            )

        hint = target_hint(target)
        if hint:
            for role in ("button", "link"):
                locator = self.page.get_by_role(role, name=text_arg(hint))
                if await self._count(locator) == 1:
                    await locator.click(timeout=timeout_ms)
                    return f"role:{role}-retry"

        await candidate.locator.first.click(timeout=timeout_ms)
        return f"{candidate.strategy}-first"

    async def summarize(self, candidate: Candidate) -> Dict[str, Any]:
        """Compact structural summary of a candidate's first element."""
        summary: Dict[str, Any] = {"strategy": candidate.strategy}
        try:
            summary.update(await candidate.locator.first.evaluate(SUMMARIZE_ELEMENT_JS))
        except Exception as e:
            summary["error"] = str(e)[:120]
        return summary

    async def _consult_tie_breaker(
        self,
        candidates: List[Candidate],
        step_text: str,
    ) -> Optional[int]:
        summaries = [await self.summarize(candidate) for candidate in candidates]
        page_context = {"url": getattr(self.page, "url", None)}
        try:
            choice = await self.tie_breaker.pick(step_text, page_context, summaries)
        except Exception as e:
            self.logger.warning(
                "Tie-breaker failed, using first candidate",
                extra={"error": str(e)},
            )
            return None

        if isinstance(choice, bool) or not isinstance(choice, int) or not 0 <= choice < len(candidates):
            if choice is not None:
                self.logger.info("Tie-breaker answer unusable, using first candidate", extra={"answer": choice})
            return None

        self.logger.info(
            "Tie-breaker picked a candidate",
            extra={"index": choice, "strategy": candidates[choice].strategy},
        )
        return choice

    async def _count(self, locator: Any) -> int:
        try:
            return await locator.count()
        except Exception as e:
            self.logger.debug("Locator count failed", extra={"error": str(e)})
            return 0
