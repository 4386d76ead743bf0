"""
Run orchestration: raw steps in, RunReport out.

Owns the lifecycle of one run. The browser session is torn down, the video
saved and the log written on every exit path; only LaunchError escapes.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from hazelpilot.browser.session import BrowserSession
from hazelpilot.config.settings import Settings, get_settings
from hazelpilot.core.interfaces import TieBreaker
from hazelpilot.core.types import NormalizedStep, RunReport, RunState, StepResult
from hazelpilot.executor.action_executor import ActionExecutor
from hazelpilot.monitoring.logger import get_logger, log_performance_metric, log_run_event
from hazelpilot.normalizer.step_normalizer import StepNormalizer
from hazelpilot.recorder.artifact_recorder import ArtifactRecorder, BestEffortOutcome
from hazelpilot.resolver.target_resolver import TargetResolver
from hazelpilot.resolver.tie_breaker import build_tie_breaker

logger = get_logger("executor.runner")


def new_run_id() -> str:
    """Sortable, collision-resistant run identifier."""
    return f"{datetime.now(timezone.utc):%Y%m%d-%H%M%S}-{uuid.uuid4().hex[:6]}"


async def run_web_tests(
    steps: Iterable[Any],
    base_url: Optional[str] = None,
    run_id: Optional[str] = None,
    *,
    settings: Optional[Settings] = None,
    tie_breaker: Optional[TieBreaker] = None,
    stop_on_failure: Optional[bool] = None,
    max_run_ms: Optional[int] = None,
    headless: Optional[bool] = None,
) -> RunReport:
    """
    Normalize and execute raw steps in a fresh browser session.

    Args:
        steps: Raw steps (any producer shape) or NormalizedStep objects
        base_url: Base for relative goto targets
        run_id: Artifact directory name (generated when omitted)
        settings: Settings (defaults to the cached settings)
        tie_breaker: Arbiter for ambiguous targets (defaults per settings)
        stop_on_failure: Override ``settings.stop_on_failure``
        max_run_ms: Override ``settings.max_run_ms``; counted from this call
        headless: Override ``settings.browser_headless``

    Returns:
        RunReport for the run, whatever the step outcomes

    Raises:
        LaunchError: If the browser session could not be started
    """
    settings = settings or get_settings()
    run_id = run_id or new_run_id()
    max_run_ms = max_run_ms if max_run_ms is not None else settings.max_run_ms
    deadline = time.monotonic() + max_run_ms / 1000
    started_at = datetime.now(timezone.utc)

    normalized: List[NormalizedStep] = StepNormalizer(
        strict_actions=settings.strict_actions
    ).normalize_all(steps)

    recorder = ArtifactRecorder(run_id, settings)
    recorder.attach_log()
    session = BrowserSession(recorder.run_dir, settings, headless=headless)

    log_run_event(
        "run_started",
        run_id,
        data={"base_url": base_url, "step_count": len(normalized), "max_run_ms": max_run_ms},
    )
    logger.info(f"Run {run_id}: {len(normalized)} step(s), base URL {base_url or '(none)'}")

    results: List[StepResult] = []
    state = RunState.RUNNING
    video: Optional[BestEffortOutcome] = None
    log: Optional[BestEffortOutcome] = None
    executor: Optional[ActionExecutor] = None
    try:
        page = await session.start()
        executor = ActionExecutor(
            page,
            recorder,
            resolver=TargetResolver(
                page,
                tie_breaker or build_tie_breaker(settings),
                generic_fallbacks=settings.resolver_generic_fallbacks,
            ),
            settings=settings,
            base_url=base_url,
            stop_on_failure=stop_on_failure,
            max_run_ms=max_run_ms,
        )
        await executor.run(normalized, deadline=deadline)
    finally:
        try:
            if executor is not None:
                results, state = executor.results, executor.state
                # the recording is only complete once the context is closed,
                # and only reachable while Playwright is still running
                await session.close_context()
                if settings.record_video:
                    video = await recorder.save_video(session.video)
        finally:
            await session.stop()
            log = recorder.write_log()
            recorder.detach_log()

    report = recorder.build_report(
        results,
        state,
        base_url=base_url,
        started_at=started_at,
        video=video,
        log=log,
    )
    elapsed_ms = (datetime.now(timezone.utc) - started_at).total_seconds() * 1000
    log_performance_metric("run_duration", elapsed_ms, context={"run_id": run_id})
    log_run_event("run_finished", run_id, data={"state": state.value, **report.summary.model_dump()})
    logger.info(
        f"Run {run_id} {state.value}: "
        f"{report.summary.passed}/{report.summary.total} passed"
    )
    return report
