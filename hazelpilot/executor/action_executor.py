"""
Action executor: a sequential state machine over normalized steps.

Each step is dispatched to exactly one handler. Per-step errors are captured
into that step's StepResult; the whole-run deadline is checked between
steps only.
"""

import asyncio
import re
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from hazelpilot.config.settings import Settings, get_settings
from hazelpilot.core.types import (
    ActionKind,
    NormalizedStep,
    RunState,
    StepResult,
    StepStatus,
    describe_target,
    target_hint,
)
from hazelpilot.error_handling.exceptions import (
    ActionTimeoutError,
    AssertionFailure,
    GlobalTimeoutError,
    HazelPilotError,
    ResolutionError,
    UnknownStepError,
)
from hazelpilot.error_handling.recovery import with_backoff
from hazelpilot.monitoring.logger import get_logger, log_run_event
from hazelpilot.normalizer.patterns import describe_pattern, literalize, pattern_matches
from hazelpilot.recorder.artifact_recorder import ArtifactRecorder
from hazelpilot.resolver.strategies import Intent
from hazelpilot.resolver.target_resolver import TargetResolver
from hazelpilot.security.sanitizer import is_secret_target, mask_value

Handler = Callable[[NormalizedStep], Awaitable[Optional[str]]]

_ABSOLUTE_URL = re.compile(r"^(?:https?|file|about|data):", re.IGNORECASE)
DEFAULT_PRESS_KEY = "Enter"
RESOLVE_POLL_MS = 250


def join_url(base_url: Optional[str], target: Optional[str]) -> str:
    """
    Resolve a goto target against the base URL.

    Absolute URLs are used as-is; relative ones are appended to the base
    with exactly one slash between them; no target means the base itself.
    """
    if not target:
        return base_url or "/"
    if _ABSOLUTE_URL.match(target):
        return target
    base = (base_url or "").rstrip("/")
    path = target if target.startswith("/") else f"/{target}"
    return base + path


def _is_step_retryable(error: BaseException) -> bool:
    return isinstance(error, (ResolutionError, ActionTimeoutError))


class ActionExecutor:
    """Runs normalized steps against one page and records their outcomes."""

    def __init__(
        self,
        page: Any,
        recorder: ArtifactRecorder,
        resolver: Optional[TargetResolver] = None,
        settings: Optional[Settings] = None,
        base_url: Optional[str] = None,
        stop_on_failure: Optional[bool] = None,
        max_run_ms: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the executor.

        Args:
            page: Playwright page owned by the run
            recorder: Artifact recorder of the run
            resolver: Target resolver (defaults to one without tie-breaker)
            settings: Settings (defaults to the cached settings)
            base_url: Base for relative goto targets
            stop_on_failure: Override ``settings.stop_on_failure``
            max_run_ms: Override ``settings.max_run_ms``
            clock: Monotonic clock in seconds
        """
        self.page = page
        self.recorder = recorder
        self.settings = settings or get_settings()
        self.resolver = resolver or TargetResolver(
            page, generic_fallbacks=self.settings.resolver_generic_fallbacks
        )
        self.base_url = base_url
        self.stop_on_failure = (
            self.settings.stop_on_failure if stop_on_failure is None else stop_on_failure
        )
        self.max_run_ms = max_run_ms if max_run_ms is not None else self.settings.max_run_ms
        self.clock = clock
        self.logger = get_logger("executor", run_id=recorder.run_id)

        self.state = RunState.RUNNING
        self.results: List[StepResult] = []
        self.handlers: Dict[ActionKind, Handler] = {
            ActionKind.GOTO: self._goto,
            ActionKind.CLICK: self._click,
            ActionKind.FILL: self._fill,
            ActionKind.PRESS: self._press,
            ActionKind.SELECT: self._select,
            ActionKind.CHECK: self._check,
            ActionKind.UNCHECK: self._uncheck,
            ActionKind.WAIT_FOR_VISIBLE: self._wait_for_visible,
            ActionKind.ASSERT_TEXT: self._assert_text,
            ActionKind.ASSERT_VISIBLE: self._assert_visible,
            ActionKind.ASSERT_URL: self._assert_url,
            ActionKind.SLEEP: self._sleep,
            ActionKind.SCREENSHOT: self._screenshot,
        }

    async def run(
        self,
        steps: List[NormalizedStep],
        deadline: Optional[float] = None,
    ) -> List[StepResult]:
        """
        Execute steps in order until completion, first failure or deadline.

        Args:
            steps: Normalized steps
            deadline: Absolute ``clock()`` value after which no new step
                starts (defaults to now + ``max_run_ms``)

        Returns:
            Results of the attempted steps, plus the synthetic timeout entry
            when the deadline was hit
        """
        if deadline is None:
            deadline = self.clock() + self.max_run_ms / 1000

        for index, step in enumerate(steps, start=1):
            if self.clock() > deadline:
                self._abort_by_deadline(index)
                return self.results

            result = await self.execute_step(index, step)
            self.results.append(result)
            if not result.ok and self.stop_on_failure:
                self.state = RunState.FAILED
                self.logger.info(f"Stopping after failed step {index}")
                return self.results

        self.state = RunState.COMPLETED
        return self.results

    def _abort_by_deadline(self, index: int) -> None:
        error = GlobalTimeoutError(f"Run exceeded {self.max_run_ms}ms", max_run_ms=self.max_run_ms)
        self.logger.warning("Global timeout reached; aborting run")
        self.results.append(StepResult(
            index=index,
            action="timeout",
            step=None,
            status=StepStatus.ERROR,
            error=error.message,
            error_kind=error.error_code,
        ))
        self.state = RunState.ABORTED
        log_run_event("run_aborted", self.recorder.run_id, step_index=index)

    async def execute_step(self, index: int, step: NormalizedStep) -> StepResult:
        """Run one step, capture its screenshot and build its result."""
        started = time.monotonic()
        status = StepStatus.OK
        error_message: Optional[str] = None
        error_kind: Optional[str] = None
        strategy: Optional[str] = None

        self.logger.info(f"STEP {index}: {self._describe_for_log(step)}", extra={"step_index": index})
        try:
            handler = self.handlers.get(step.kind) if step.kind else None
            if handler is None:
                raise UnknownStepError(step.action)

            strategy = await with_backoff(
                lambda: self._invoke(handler, step),
                max_attempts=self.settings.step_max_attempts,
                base_delay_ms=self.settings.step_retry_delay_ms,
                is_retryable=_is_step_retryable,
                operation_name=f"step {index}",
            )
        except HazelPilotError as e:
            status, error_message, error_kind = StepStatus.ERROR, e.message, e.error_code
        except Exception as e:
            status, error_message, error_kind = StepStatus.ERROR, str(e), type(e).__name__

        if status == StepStatus.ERROR:
            self.logger.info(f"STEP {index} FAILED: {error_message}", extra={"step_index": index})

        capture = await self.recorder.capture_step(self.page, index)
        duration_ms = (time.monotonic() - started) * 1000
        log_run_event(
            "step_finished",
            self.recorder.run_id,
            step_index=index,
            data={"status": status.value, "duration_ms": round(duration_ms, 1)},
        )
        return StepResult(
            index=index,
            action=step.action,
            step=step,
            status=status,
            error=error_message,
            error_kind=error_kind,
            screenshot_path=self.recorder.artifact_url(capture.path.name) if capture.ok else None,
            strategy=strategy,
            duration_ms=round(duration_ms, 1),
        )

    async def _invoke(self, handler: Handler, step: NormalizedStep) -> Optional[str]:
        try:
            return await handler(step)
        except PlaywrightTimeoutError as e:
            raise ActionTimeoutError(
                f"{step.action} timed out: {str(e).splitlines()[0] if str(e) else 'timeout'}",
                operation=step.action,
                timeout_ms=self.settings.step_timeout_ms,
                cause=e,
            ) from e

    def _describe_for_log(self, step: NormalizedStep) -> str:
        parts = [step.action]
        if step.target is not None or step.kind in (ActionKind.FILL, ActionKind.CLICK):
            parts.append(describe_target(step.target))
        if step.value is not None:
            value = step.value
            if step.kind == ActionKind.FILL and is_secret_target(target_hint(step.target)):
                value = mask_value(value)
            parts.append(f"value={value}")
        if step.key:
            parts.append(f"key={step.key}")
        if step.pattern:
            parts.append(f"~ {step.pattern}")
        return " ".join(parts)

    async def _resolve(self, step: NormalizedStep, intent: Intent, wait_ms: Optional[int] = None):
        """Resolve the step target, re-resolving until ``wait_ms`` has passed."""
        wait_ms = self.settings.resolve_wait_ms if wait_ms is None else wait_ms
        deadline = time.monotonic() + wait_ms / 1000
        while True:
            try:
                return await self.resolver.resolve_one(step.target, intent, step_text=step.describe())
            except ResolutionError:
                if time.monotonic() >= deadline:
                    raise
            await asyncio.sleep(RESOLVE_POLL_MS / 1000)

    # Handlers; each returns the resolution strategy used, if any

    async def _goto(self, step: NormalizedStep) -> Optional[str]:
        target = step.target if isinstance(step.target, str) else None
        url = join_url(self.base_url, target)
        await self.page.goto(
            url,
            wait_until="domcontentloaded",
            timeout=self.settings.navigation_timeout_ms,
        )
        return None

    async def _click(self, step: NormalizedStep) -> Optional[str]:
        candidate = await self._resolve(step, Intent.CLICK)
        return await self.resolver.click(candidate, step.target, self.settings.step_timeout_ms)

    async def _fill(self, step: NormalizedStep) -> Optional[str]:
        candidate = await self._resolve(step, Intent.FILL)
        await candidate.locator.first.fill(step.value or "", timeout=self.settings.step_timeout_ms)
        return candidate.strategy

    async def _press(self, step: NormalizedStep) -> Optional[str]:
        key = step.key or DEFAULT_PRESS_KEY
        if step.target is None:
            await self.page.keyboard.press(key)
            return "keyboard"
        candidate = await self._resolve(step, Intent.FILL)
        await candidate.locator.first.press(key, timeout=self.settings.step_timeout_ms)
        return candidate.strategy

    async def _select(self, step: NormalizedStep) -> Optional[str]:
        candidate = await self._resolve(step, Intent.SELECT)
        await candidate.locator.first.select_option(step.value or "", timeout=self.settings.step_timeout_ms)
        return candidate.strategy

    async def _check(self, step: NormalizedStep) -> Optional[str]:
        candidate = await self._resolve(step, Intent.CHECK)
        await candidate.locator.first.check(timeout=self.settings.step_timeout_ms)
        return candidate.strategy

    async def _uncheck(self, step: NormalizedStep) -> Optional[str]:
        candidate = await self._resolve(step, Intent.CHECK)
        await candidate.locator.first.uncheck(timeout=self.settings.step_timeout_ms)
        return candidate.strategy

    async def _wait_for_visible(self, step: NormalizedStep) -> Optional[str]:
        candidate = await self._resolve(step, Intent.READ, wait_ms=self.settings.step_timeout_ms)
        await candidate.locator.first.wait_for(state="visible", timeout=self.settings.step_timeout_ms)
        return candidate.strategy

    async def _assert_visible(self, step: NormalizedStep) -> Optional[str]:
        candidate = await self._resolve(step, Intent.READ)
        await candidate.locator.first.wait_for(state="visible", timeout=self.settings.step_timeout_ms)
        return candidate.strategy

    async def _assert_text(self, step: NormalizedStep) -> Optional[str]:
        if step.target is None or isinstance(step.target, str):
            pattern = step.pattern or step.target
            content = await self.page.locator("body").inner_text(
                timeout=self.settings.page_text_timeout_ms
            )
            if not pattern_matches(pattern, content):
                raise AssertionFailure(
                    f"assertText failed: pattern {describe_pattern(pattern)} not found in page",
                    expected=pattern,
                    actual=content,
                )
            return None

        candidate = await self._resolve(step, Intent.READ)
        element = candidate.locator.first
        await element.wait_for(state="visible", timeout=self.settings.step_timeout_ms)
        content = await element.inner_text(timeout=self.settings.step_timeout_ms)
        if not pattern_matches(step.pattern, content):
            raise AssertionFailure(
                f"assertText failed: pattern {describe_pattern(step.pattern)} not found in "
                f"{describe_target(step.target)} (text: {content[:80]!r})",
                expected=step.pattern,
                actual=content,
            )
        return candidate.strategy

    async def _assert_url(self, step: NormalizedStep) -> Optional[str]:
        compiled = literalize(step.pattern)
        url = self.page.url
        if compiled.search(url or ""):
            return None

        # the URL may still be changing after the previous step
        try:
            await self.page.wait_for_url(
                compiled, wait_until="commit", timeout=self.settings.step_timeout_ms
            )
        except PlaywrightTimeoutError:
            pass

        url = self.page.url
        if not compiled.search(url or ""):
            raise AssertionFailure(
                f'assertUrl failed: "{url}" !~ {describe_pattern(step.pattern)}',
                expected=step.pattern,
                actual=url,
            )
        return None

    async def _sleep(self, step: NormalizedStep) -> Optional[str]:
        duration_ms = self.settings.default_sleep_ms
        if step.value is not None:
            try:
                duration_ms = max(0, int(float(step.value)))
            except ValueError:
                self.logger.warning(
                    f"Invalid sleep duration {step.value!r}, using {duration_ms}ms"
                )
        await self.page.wait_for_timeout(duration_ms)
        return None

    async def _screenshot(self, step: NormalizedStep) -> Optional[str]:
        # the post-step capture is the screenshot
        return None
