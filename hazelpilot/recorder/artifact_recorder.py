"""
Artifact recorder: per-step screenshots, run log, video and the final report.

Every capture here is best-effort. Each returns a :class:`BestEffortOutcome`
that is logged and reported but never raised, so a slow disk or a crashed
page cannot fail a step or lose the report.
"""

import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from hazelpilot.config.settings import Settings, get_settings
from hazelpilot.core.types import RunArtifacts, RunReport, RunState, RunSummary, StepResult
from hazelpilot.monitoring.logger import ROOT_LOGGER_NAME, RunLogHandler, get_logger

VIDEO_FILENAME = "run.webm"
LOG_FILENAME = "run.log"
REPORT_FILENAME = "report.json"


@dataclass
class BestEffortOutcome:
    """Result of an operation whose failure is logged, never escalated."""

    ok: bool
    path: Optional[Path] = None
    detail: Optional[str] = None


def screenshot_name(index: int) -> str:
    """``1`` -> ``"01.png"``."""
    return f"{index:02d}.png"


class ArtifactRecorder:
    """Owns the artifact directory of one run."""

    def __init__(
        self,
        run_id: str,
        settings: Optional[Settings] = None,
        run_dir: Optional[Path] = None,
    ) -> None:
        self.run_id = run_id
        self.settings = settings or get_settings()
        self.run_dir = Path(run_dir) if run_dir else self.settings.run_dir(run_id)
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.logger = get_logger("recorder")

        self.log_handler: Optional[RunLogHandler] = None
        self._previous_level: Optional[int] = None

    def artifact_url(self, filename: str) -> str:
        """Report path of an artifact, ``runs/<runId>/<filename>``."""
        return f"{self.settings.runs_dir.as_posix()}/{self.run_id}/{filename}"

    # Run log

    def attach_log(self) -> RunLogHandler:
        """Start collecting ``hazelpilot`` log records for this run."""
        if self.log_handler is not None:
            return self.log_handler

        root = logging.getLogger(ROOT_LOGGER_NAME)
        self.log_handler = RunLogHandler(sanitize=self.settings.sanitize_logs)
        root.addHandler(self.log_handler)
        if root.getEffectiveLevel() > logging.INFO:
            self._previous_level = root.level
            root.setLevel(logging.INFO)
        return self.log_handler

    def detach_log(self) -> None:
        if self.log_handler is None:
            return
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.removeHandler(self.log_handler)
        if self._previous_level is not None:
            root.setLevel(self._previous_level)
            self._previous_level = None

    def write_log(self) -> BestEffortOutcome:
        """Write the collected lines to ``run.log``."""
        path = self.run_dir / LOG_FILENAME
        lines = self.log_handler.lines if self.log_handler else []
        try:
            path.write_text("\n".join(lines), encoding="utf-8")
        except OSError as e:
            self.logger.warning("Failed to write run log", extra={"error": str(e)})
            return BestEffortOutcome(ok=False, path=path, detail=str(e))
        return BestEffortOutcome(ok=True, path=path)

    # Screenshots

    async def capture_step(self, page: Any, index: int) -> BestEffortOutcome:
        """
        Take the post-step screenshot ``NN.png``.

        Waits for the page to settle, then tries up to ``screenshot_attempts``
        times; success requires the file to exist afterwards.
        """
        path = self.run_dir / screenshot_name(index)
        detail = None
        for attempt in range(1, self.settings.screenshot_attempts + 1):
            try:
                await page.wait_for_timeout(self.settings.screenshot_settle_ms)
                await page.screenshot(path=str(path), type="png")
                if path.exists():
                    return BestEffortOutcome(ok=True, path=path)
                detail = "screenshot file was not written"
            except Exception as e:
                detail = str(e)
            self.logger.debug(
                "Screenshot attempt failed",
                extra={"step_index": index, "attempt": attempt, "error": detail},
            )

        self.logger.warning(
            f"Screenshot for step {index} failed",
            extra={"step_index": index, "error": detail},
        )
        return BestEffortOutcome(ok=False, path=path, detail=detail)

    # Video

    async def save_video(self, video: Any) -> BestEffortOutcome:
        """
        Move the page video to ``run.webm``.

        Must be called after the browser context closed, which finalizes
        the recording, and before Playwright stops. Looking up the recording
        races a timer; on failure or timeout the largest ``.webm`` in the run
        directory is used instead.
        """
        dest = self.run_dir / VIDEO_FILENAME
        timeout_s = self.settings.artifact_save_timeout_ms / 1000
        detail = "no video recorded"

        if video is not None:
            try:
                raw = Path(await asyncio.wait_for(video.path(), timeout=timeout_s))
                if raw.is_file():
                    shutil.move(str(raw), str(dest))
                    return BestEffortOutcome(ok=True, path=dest)
                detail = f"recording {raw.name} not found"
            except asyncio.TimeoutError:
                detail = f"video lookup timed out after {self.settings.artifact_save_timeout_ms}ms"
            except Exception as e:
                detail = str(e)
            self.logger.info("Video not available, looking for a raw recording", extra={"error": detail})

        return self._move_largest_recording(dest, detail)

    def _move_largest_recording(self, dest: Path, detail: Optional[str]) -> BestEffortOutcome:
        recordings = [
            path for path in self.run_dir.rglob("*.webm")
            if path.is_file() and path != dest
        ]
        if not recordings:
            if dest.exists():
                return BestEffortOutcome(ok=True, path=dest)
            return BestEffortOutcome(ok=False, path=None, detail=detail)

        largest = max(recordings, key=lambda path: path.stat().st_size)
        try:
            shutil.move(str(largest), str(dest))
        except OSError as e:
            self.logger.warning("Failed to move raw recording", extra={"error": str(e)})
            return BestEffortOutcome(ok=False, path=None, detail=str(e))
        return BestEffortOutcome(ok=True, path=dest, detail=f"moved {largest.name}")

    # Report

    def build_report(
        self,
        results: List[StepResult],
        state: RunState,
        base_url: Optional[str] = None,
        started_at: Optional[datetime] = None,
        video: Optional[BestEffortOutcome] = None,
        log: Optional[BestEffortOutcome] = None,
    ) -> RunReport:
        artifacts = RunArtifacts(
            video=self.artifact_url(VIDEO_FILENAME) if video and video.ok else None,
            screenshots=[result.screenshot_path for result in results if result.screenshot_path],
            log=self.artifact_url(LOG_FILENAME) if log and log.ok else None,
        )
        report = RunReport(
            run_id=self.run_id,
            base_url=base_url,
            state=state,
            summary=RunSummary.from_results(results),
            results=list(results),
            artifacts=artifacts,
            finished_at=datetime.now(timezone.utc),
        )
        if started_at is not None:
            report.started_at = started_at
        return report

    def write_report_json(self, report: RunReport) -> Path:
        """Persist the report as ``report.json`` next to the other artifacts."""
        path = self.run_dir / REPORT_FILENAME
        path.write_text(
            json.dumps(report.to_json_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        self.logger.info("Report written", extra={"path": str(path)})
        return path
