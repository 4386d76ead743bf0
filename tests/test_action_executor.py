"""
Tests for the action executor.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from hazelpilot.config.settings import Settings
from hazelpilot.core.types import Candidate, NormalizedStep, RunState, StepStatus, TargetSpec
from hazelpilot.error_handling.exceptions import ResolutionError
from hazelpilot.executor.action_executor import ActionExecutor, join_url
from hazelpilot.resolver.target_resolver import TargetResolver
from tests.fakes import (
    FakePage,
    FakeRecorder,
    button,
    checkbox,
    dropdown,
    login_routes,
    paragraph,
    textbox,
)

BASE_URL = "https://app.test"

LOGIN_STEPS = [
    NormalizedStep(action="goto", target="/login"),
    NormalizedStep(action="fill", target="Username", value="u"),
    NormalizedStep(action="fill", target="Password", value="p"),
    NormalizedStep(action="click", target="Login"),
    NormalizedStep(action="assertText", pattern="Welcome"),
]


class StepClock:
    """Monotonic clock returning scripted values, then repeating the last."""

    def __init__(self, *values):
        self.values = list(values)

    def __call__(self):
        if len(self.values) > 1:
            return self.values.pop(0)
        return self.values[0]


def make_executor(page, settings, recorder=None, **kwargs):
    return ActionExecutor(
        page,
        recorder or FakeRecorder(),
        resolver=TargetResolver(page),
        settings=settings,
        base_url=BASE_URL,
        **kwargs,
    )


async def run_one(page, settings, step, **kwargs):
    executor = make_executor(page, settings, **kwargs)
    results = await executor.run([step])
    return results[0]


class TestJoinUrl:
    """Tests for base URL resolution."""

    @pytest.mark.parametrize("base,target,expected", [
        ("https://a.test", "/login", "https://a.test/login"),
        ("https://a.test/", "login", "https://a.test/login"),
        ("https://a.test/", "/login", "https://a.test/login"),
        ("https://a.test", "https://b.test/x", "https://b.test/x"),
        ("https://a.test", "about:blank", "about:blank"),
        (None, "/login", "/login"),
        ("https://a.test", None, "https://a.test"),
        (None, None, "/"),
    ])
    def test_join_url(self, base, target, expected):
        assert join_url(base, target) == expected


class TestRun:
    """Tests for sequencing, stop policy and deadline."""

    @pytest.mark.asyncio
    async def test_login_flow_passes(self, settings):
        page = FakePage(routes=login_routes())
        recorder = FakeRecorder()
        executor = make_executor(page, settings, recorder=recorder)

        results = await executor.run(LOGIN_STEPS)

        assert executor.state == RunState.COMPLETED
        assert [result.status for result in results] == [StepStatus.OK] * 5
        assert [result.index for result in results] == [1, 2, 3, 4, 5]
        assert page.visited == ["https://app.test/login", "https://app.test/dashboard"]
        assert ("fill", "Username", "u") in page.actions
        assert results[1].strategy == "label-exact"
        assert results[3].strategy == "role:button"
        assert results[0].screenshot_path == "runs/test-run/01.png"
        assert recorder.captured == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_stops_after_first_failure(self, settings):
        page = FakePage(routes=login_routes(with_username=False))
        executor = make_executor(page, settings)

        results = await executor.run(LOGIN_STEPS)

        assert executor.state == RunState.FAILED
        assert len(results) == 2
        assert results[0].ok
        assert results[1].status == StepStatus.ERROR
        assert results[1].error_kind == "ResolutionError"
        assert "Username" in results[1].error
        assert results[1].screenshot_path == "runs/test-run/02.png"

    @pytest.mark.asyncio
    async def test_continue_on_failure(self, settings):
        page = FakePage(routes=login_routes(with_username=False))
        executor = make_executor(page, settings, stop_on_failure=False)

        results = await executor.run(LOGIN_STEPS)

        assert executor.state == RunState.COMPLETED
        assert len(results) == 5
        assert [result.ok for result in results] == [True, False, True, True, True]

    @pytest.mark.asyncio
    async def test_deadline_aborts_between_steps(self, settings):
        page = FakePage(routes=login_routes())
        executor = make_executor(page, settings, max_run_ms=1000, clock=StepClock(0.0, 0.5, 2.0))

        results = await executor.run(LOGIN_STEPS, deadline=1.0)

        assert executor.state == RunState.ABORTED
        assert len(results) == 3
        assert [result.ok for result in results[:2]] == [True, True]
        timeout = results[2]
        assert timeout.index == 3
        assert timeout.action == "timeout"
        assert timeout.step is None
        assert timeout.error == "Run exceeded 1000ms"
        assert timeout.error_kind == "GlobalTimeoutError"

    @pytest.mark.asyncio
    async def test_default_deadline_from_max_run_ms(self, settings):
        page = FakePage(routes=login_routes())
        executor = make_executor(page, settings, max_run_ms=1000, clock=StepClock(10.0, 10.2, 11.5))

        results = await executor.run(LOGIN_STEPS)

        assert executor.state == RunState.ABORTED
        assert [result.action for result in results] == ["goto", "timeout"]

    @pytest.mark.asyncio
    async def test_unknown_step(self, settings):
        result = await run_one(FakePage(), settings, NormalizedStep(action="hover", target="Menu"))
        assert result.status == StepStatus.ERROR
        assert result.error == "Unknown step: hover"
        assert result.error_kind == "UnknownStepError"
        assert result.step.action == "hover"

    @pytest.mark.asyncio
    async def test_screenshot_failure_does_not_fail_step(self, settings):
        result = await run_one(
            FakePage(),
            settings,
            NormalizedStep(action="sleep", value="0"),
            recorder=FakeRecorder(fail_screenshots=True),
        )
        assert result.ok
        assert result.screenshot_path is None

    @pytest.mark.asyncio
    async def test_retryable_step_errors_are_retried(self, settings):
        settings.step_max_attempts = 2
        page = FakePage([textbox(label="Email")])
        resolver = Mock()
        resolver.resolve_one = AsyncMock(side_effect=[
            ResolutionError("Target not found"),
            Candidate("label-exact", page.get_by_label("Email")),
        ])
        executor = ActionExecutor(page, FakeRecorder(), resolver=resolver, settings=settings)

        results = await executor.run([NormalizedStep(action="fill", target="Email", value="a@b.c")])

        assert results[0].ok
        assert resolver.resolve_one.call_count == 2
        assert page.dom[0].value == "a@b.c"

    @pytest.mark.asyncio
    async def test_default_settings_resolve_missing_target_once(self, tmp_path):
        settings = Settings(
            _env_file=None,
            runs_dir=tmp_path / "runs",
            record_video=False,
            screenshot_settle_ms=0,
        )
        page = FakePage([])
        resolver = TargetResolver(page)
        resolver.resolve_candidates = AsyncMock(return_value=[])
        executor = ActionExecutor(page, FakeRecorder(), resolver=resolver, settings=settings)

        results = await executor.run([
            NormalizedStep(action="fill", target=TargetSpec(label="Username"), value="u"),
        ])

        assert results[0].error_kind == "ResolutionError"
        resolver.resolve_candidates.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resolve_wait_picks_up_late_element(self, settings):
        settings.resolve_wait_ms = 2000
        page = FakePage([])

        async def render_later():
            await asyncio.sleep(0.05)
            page.dom.append(button("Continue"))

        task = asyncio.create_task(render_later())
        result = await run_one(page, settings, NormalizedStep(action="click", target="Continue"))
        await task

        assert result.ok
        assert result.strategy == "role:button"

    @pytest.mark.asyncio
    async def test_secret_values_are_masked_in_logs(self, settings, caplog):
        caplog.set_level(logging.INFO, logger="hazelpilot")
        page = FakePage([textbox(label="Password", input_type="password")])
        await run_one(page, settings, NormalizedStep(action="fill", target="Password", value="hunter2"))

        assert "hunter2" not in caplog.text
        assert 'STEP 1: fill "Password" value=*******' in caplog.text
        assert page.dom[0].value == "hunter2"


class TestHandlers:
    """Tests for individual action handlers."""

    @pytest.mark.asyncio
    async def test_goto_timeout(self, settings):
        page = FakePage()
        page.goto_error = PlaywrightTimeoutError("Timeout 100ms exceeded.")
        result = await run_one(page, settings, NormalizedStep(action="goto", target="/slow"))
        assert result.error_kind == "ActionTimeoutError"
        assert result.error == "goto timed out: Timeout 100ms exceeded."

    @pytest.mark.asyncio
    async def test_goto_browser_error(self, settings):
        page = FakePage()
        page.goto_error = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        result = await run_one(page, settings, NormalizedStep(action="goto", target="/"))
        assert result.error_kind == "Error"
        assert "ERR_NAME_NOT_RESOLVED" in result.error

    @pytest.mark.asyncio
    async def test_press_without_target_uses_keyboard(self, settings):
        page = FakePage()
        result = await run_one(page, settings, NormalizedStep(action="press"))
        assert result.strategy == "keyboard"
        assert page.keyboard.pressed == ["Enter"]

        await run_one(page, settings, NormalizedStep(action="press", key="Tab"))
        assert page.keyboard.pressed == ["Enter", "Tab"]

    @pytest.mark.asyncio
    async def test_press_on_target(self, settings):
        search = textbox(placeholder="Search")
        page = FakePage([search])
        result = await run_one(page, settings, NormalizedStep(action="press", target="Search", key="Enter"))
        assert result.ok
        assert search.pressed == ["Enter"]

    @pytest.mark.asyncio
    async def test_select(self, settings):
        country = dropdown("Country", ["NL", "DE"])
        page = FakePage([country])
        result = await run_one(page, settings, NormalizedStep(action="select", target="Country", value="DE"))
        assert result.ok
        assert country.value == "DE"

        result = await run_one(page, settings, NormalizedStep(action="select", target="Country", value="FR"))
        assert result.error_kind == "ActionTimeoutError"

    @pytest.mark.asyncio
    async def test_check_and_uncheck(self, settings):
        terms = checkbox("Accept terms")
        page = FakePage([terms])
        await run_one(page, settings, NormalizedStep(action="check", target="Accept terms"))
        assert terms.checked is True
        await run_one(page, settings, NormalizedStep(action="uncheck", target="Accept terms"))
        assert terms.checked is False

    @pytest.mark.asyncio
    async def test_wait_for_visible(self, settings):
        page = FakePage([paragraph("Loaded"), paragraph("Spinner", visible=False)])
        assert (await run_one(page, settings, NormalizedStep(action="waitForVisible", target="Loaded"))).ok

        result = await run_one(page, settings, NormalizedStep(action="waitForVisible", target="Spinner"))
        assert result.error_kind == "ActionTimeoutError"

    @pytest.mark.asyncio
    async def test_assert_visible_missing(self, settings):
        result = await run_one(FakePage(), settings, NormalizedStep(action="assertVisible", target="Dashboard"))
        assert result.error_kind == "ResolutionError"
        assert "Dashboard" in result.error

    @pytest.mark.asyncio
    async def test_assert_text_page_wide(self, settings):
        page = FakePage([paragraph("Welcome back, u")])
        assert (await run_one(page, settings, NormalizedStep(action="assertText", pattern="welcome"))).ok
        assert (await run_one(page, settings, NormalizedStep(action="assertText", pattern="/Welcome back, \\w/"))).ok

        result = await run_one(page, settings, NormalizedStep(action="assertText", pattern="Goodbye"))
        assert result.error_kind == "AssertionFailure"
        assert result.error == "assertText failed: pattern /Goodbye/i not found in page"

    @pytest.mark.asyncio
    async def test_assert_text_string_target_is_the_pattern(self, settings):
        page = FakePage([paragraph("Order confirmed")])
        assert (await run_one(page, settings, NormalizedStep(action="assertText", target="confirmed"))).ok

    @pytest.mark.asyncio
    async def test_assert_text_scoped_to_target(self, settings):
        page = FakePage([paragraph("Welcome back, u"), paragraph("Other text")])
        step = NormalizedStep(action="assertText", target=TargetSpec(text="Welcome"), pattern="back")
        result = await run_one(page, settings, step)
        assert result.ok
        assert result.strategy == "text"

        step = NormalizedStep(action="assertText", target=TargetSpec(text="Welcome"), pattern="Other")
        assert (await run_one(page, settings, step)).error_kind == "AssertionFailure"

    @pytest.mark.asyncio
    async def test_assert_url(self, settings):
        page = FakePage(url="https://app.test/dashboard")
        assert (await run_one(page, settings, NormalizedStep(action="assertUrl", pattern="/dashboard"))).ok
        assert (await run_one(page, settings, NormalizedStep(action="assertUrl", pattern="/\\/dash\\w+$/"))).ok

        result = await run_one(page, settings, NormalizedStep(action="assertUrl", pattern="/settings"))
        assert result.error_kind == "AssertionFailure"
        assert result.error.startswith('assertUrl failed: "https://app.test/dashboard" !~ ')

    @pytest.mark.asyncio
    async def test_sleep(self, settings):
        page = FakePage()
        await run_one(page, settings, NormalizedStep(action="sleep", value="250"))
        await run_one(page, settings, NormalizedStep(action="sleep"))
        await run_one(page, settings, NormalizedStep(action="sleep", value="soon"))
        assert page.waits == [250, 1000, 1000]

    @pytest.mark.asyncio
    async def test_screenshot_is_the_post_step_capture(self, settings):
        recorder = FakeRecorder()
        result = await run_one(FakePage(), settings, NormalizedStep(action="screenshot"), recorder=recorder)
        assert result.ok
        assert recorder.captured == [1]
        assert result.screenshot_path == "runs/test-run/01.png"
