"""
Tests for the artifact recorder.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest

from hazelpilot.core.types import NormalizedStep, RunState, StepResult, StepStatus
from hazelpilot.recorder.artifact_recorder import (
    LOG_FILENAME,
    REPORT_FILENAME,
    VIDEO_FILENAME,
    ArtifactRecorder,
    BestEffortOutcome,
    screenshot_name,
)
from tests.fakes import FakePage


@pytest.fixture
def recorder(settings):
    return ArtifactRecorder("run-1", settings)


def result(index, ok=True, screenshot=True):
    return StepResult(
        index=index,
        action="click",
        step=NormalizedStep(action="click", target="OK"),
        status=StepStatus.OK if ok else StepStatus.ERROR,
        error=None if ok else "Target not found",
        screenshot_path=f"runs/run-1/{screenshot_name(index)}" if screenshot else None,
    )


class TestScreenshots:
    """Tests for best-effort post-step screenshots."""

    def test_screenshot_name(self):
        assert screenshot_name(1) == "01.png"
        assert screenshot_name(12) == "12.png"
        assert screenshot_name(100) == "100.png"

    @pytest.mark.asyncio
    async def test_capture(self, recorder):
        page = FakePage()
        outcome = await recorder.capture_step(page, 3)
        assert outcome.ok
        assert outcome.path == recorder.run_dir / "03.png"
        assert outcome.path.exists()

    @pytest.mark.asyncio
    async def test_capture_retries(self, recorder):
        page = FakePage()
        page.screenshot_failures = 2
        outcome = await recorder.capture_step(page, 1)
        assert outcome.ok
        assert len(page.screenshots) == 1
        assert page.waits == [0, 0, 0]

    @pytest.mark.asyncio
    async def test_capture_gives_up(self, recorder):
        page = FakePage()
        page.screenshot_failures = 5
        outcome = await recorder.capture_step(page, 1)
        assert not outcome.ok
        assert "closed" in outcome.detail

    @pytest.mark.asyncio
    async def test_missing_file_is_a_failure(self, recorder):
        page = Mock()
        page.wait_for_timeout = AsyncMock()
        page.screenshot = AsyncMock(return_value=b"")
        outcome = await recorder.capture_step(page, 1)
        assert not outcome.ok
        assert outcome.detail == "screenshot file was not written"


class TestVideo:
    """Tests for moving the run video into place."""

    @pytest.mark.asyncio
    async def test_moves_recording(self, recorder):
        raw = recorder.run_dir / "3f2a9c.webm"
        raw.write_bytes(b"webm")
        video = Mock()
        video.path = AsyncMock(return_value=raw)

        outcome = await recorder.save_video(video)

        assert outcome.ok
        assert outcome.path == recorder.run_dir / VIDEO_FILENAME
        assert outcome.path.read_bytes() == b"webm"
        assert not raw.exists()

    @pytest.mark.asyncio
    async def test_falls_back_to_largest_recording(self, recorder):
        (recorder.run_dir / "small.webm").write_bytes(b"x")
        (recorder.run_dir / "large.webm").write_bytes(b"x" * 100)
        video = Mock()
        video.path = AsyncMock(side_effect=RuntimeError("Page did not produce any video frames"))

        outcome = await recorder.save_video(video)

        assert outcome.ok
        assert outcome.detail == "moved large.webm"
        assert (recorder.run_dir / VIDEO_FILENAME).read_bytes() == b"x" * 100
        assert not (recorder.run_dir / "large.webm").exists()

    @pytest.mark.asyncio
    async def test_missing_recording_file(self, recorder):
        video = Mock()
        video.path = AsyncMock(return_value=recorder.run_dir / "gone.webm")

        outcome = await recorder.save_video(video)

        assert not outcome.ok
        assert outcome.detail == "recording gone.webm not found"

    @pytest.mark.asyncio
    async def test_lookup_timeout(self, settings):
        settings.artifact_save_timeout_ms = 100
        recorder = ArtifactRecorder("run-1", settings)

        async def hang():
            await asyncio.sleep(5)

        video = Mock()
        video.path = hang
        outcome = await recorder.save_video(video)
        assert not outcome.ok
        assert "timed out" in outcome.detail

    @pytest.mark.asyncio
    async def test_no_video(self, recorder):
        outcome = await recorder.save_video(None)
        assert not outcome.ok
        assert outcome.detail == "no video recorded"


class TestRunLog:
    """Tests for the per-run log."""

    def test_collects_hazelpilot_records(self, recorder):
        recorder.attach_log()
        try:
            logging.getLogger("hazelpilot.executor").info("STEP 1: goto \"/login\"")
            logging.getLogger("other.library").warning("ignored")
        finally:
            recorder.detach_log()

        outcome = recorder.write_log()
        assert outcome.ok
        text = (recorder.run_dir / LOG_FILENAME).read_text(encoding="utf-8")
        assert 'STEP 1: goto "/login"' in text
        assert "ignored" not in text

    def test_detach_restores_level(self, recorder):
        root = logging.getLogger("hazelpilot")
        previous = root.level
        root.setLevel(logging.WARNING)
        try:
            recorder.attach_log()
            assert root.level == logging.INFO
            recorder.detach_log()
            assert root.level == logging.WARNING
            assert recorder.log_handler not in root.handlers
        finally:
            root.setLevel(previous)

    def test_empty_log(self, recorder):
        assert recorder.write_log().ok
        assert (recorder.run_dir / LOG_FILENAME).read_text(encoding="utf-8") == ""


class TestReport:
    """Tests for building and persisting the report."""

    def test_build_report(self, recorder):
        started = datetime(2024, 5, 1, tzinfo=timezone.utc)
        results = [result(1), result(2, ok=False, screenshot=False)]
        report = recorder.build_report(
            results,
            RunState.FAILED,
            base_url="https://app.test",
            started_at=started,
            video=BestEffortOutcome(ok=True),
            log=BestEffortOutcome(ok=False, detail="disk full"),
        )
        assert report.run_id == "run-1"
        assert report.state == RunState.FAILED
        assert (report.summary.total, report.summary.passed, report.summary.failed) == (2, 1, 1)
        assert report.artifacts.screenshots == ["runs/run-1/01.png"]
        assert report.artifacts.video == recorder.artifact_url(VIDEO_FILENAME)
        assert report.artifacts.log is None
        assert report.started_at == started
        assert report.finished_at >= started

    def test_artifact_url(self, recorder, settings):
        assert recorder.artifact_url("01.png") == f"{settings.runs_dir.as_posix()}/run-1/01.png"

    def test_write_report_json(self, recorder):
        report = recorder.build_report([result(1)], RunState.COMPLETED, base_url="https://app.test")
        path = recorder.write_report_json(report)
        assert path == recorder.run_dir / REPORT_FILENAME

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["runId"] == "run-1"
        assert data["baseUrl"] == "https://app.test"
        assert data["state"] == "completed"
        assert data["summary"] == {"total": 1, "passed": 1, "failed": 0}
        assert data["results"][0]["screenshotPath"] == "runs/run-1/01.png"
        assert data["results"][0]["step"] == {"action": "click", "target": "OK"}
