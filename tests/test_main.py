"""
Tests for the command line entry point.
"""

import json
import logging
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from hazelpilot.config.settings import get_settings
from hazelpilot.core.types import NormalizedStep, RunReport, RunState, RunSummary, StepResult, StepStatus
from hazelpilot.error_handling.exceptions import LaunchError
from hazelpilot.main import EXIT_ERROR, EXIT_FAILED, EXIT_OK, create_parser, main


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Run the CLI from a scratch directory and undo its logging setup."""
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield tmp_path
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    get_settings.cache_clear()


@pytest.fixture
def steps_file(cli_env):
    path = cli_env / "steps.json"
    path.write_text(json.dumps({
        "baseUrl": "https://app.test",
        "steps": [{"goto": "/login"}, {"foo": "bar"}, "Click Login"],
    }), encoding="utf-8")
    return path


def make_report(failed=0, state=RunState.COMPLETED):
    results = [
        StepResult(
            index=1,
            action="goto",
            step=NormalizedStep(action="goto", target="/login"),
            status=StepStatus.ERROR if failed else StepStatus.OK,
            error="goto timed out" if failed else None,
        )
    ]
    return RunReport(
        run_id="cli-run",
        state=state,
        summary=RunSummary.from_results(results),
        results=results,
    )


class TestParser:
    """Tests for argument parsing."""

    def test_run_arguments(self):
        args = create_parser().parse_args([
            "run", "steps.json", "-u", "https://a.test", "--continue-on-failure",
            "--max-run-ms", "5000", "--headed",
        ])
        assert args.command == "run"
        assert args.steps_file == Path("steps.json")
        assert args.base_url == "https://a.test"
        assert args.continue_on_failure is True
        assert args.max_run_ms == 5000
        assert args.headed is True
        assert args.tie_breaker is False

    def test_normalize_arguments(self):
        args = create_parser().parse_args(["normalize", "plan.json"])
        assert args.command == "normalize"
        assert args.steps_file == Path("plan.json")


class TestMain:
    """Tests for command dispatch and exit codes."""

    def test_version(self):
        assert main(["--version"]) == EXIT_OK

    def test_no_command(self, cli_env):
        assert main([]) == EXIT_ERROR

    def test_normalize(self, steps_file, capsys):
        assert main(["normalize", str(steps_file)]) == EXIT_OK
        document = json.loads(capsys.readouterr().out)
        assert document == {
            "baseUrl": "https://app.test",
            "steps": [
                {"action": "goto", "target": "/login"},
                {"action": "click", "target": "Login"},
            ],
            "dropped": 1,
        }

    def test_normalize_missing_file(self, cli_env):
        assert main(["normalize", str(cli_env / "missing.json")]) == EXIT_ERROR

    def test_run_passes(self, steps_file, cli_env):
        run = AsyncMock(return_value=make_report())
        with patch("hazelpilot.main.run_web_tests", run):
            code = main(["run", str(steps_file), "--run-id", "cli-run", "--continue-on-failure"])

        assert code == EXIT_OK
        args, kwargs = run.call_args
        assert args[0] == [{"goto": "/login"}, {"foo": "bar"}, "Click Login"]
        assert kwargs["base_url"] == "https://app.test"
        assert kwargs["run_id"] == "cli-run"
        assert kwargs["stop_on_failure"] is False
        assert kwargs["headless"] is None

        report = json.loads((cli_env / "runs" / "cli-run" / "report.json").read_text(encoding="utf-8"))
        assert report["state"] == "completed"

    def test_run_base_url_flag_wins(self, steps_file):
        run = AsyncMock(return_value=make_report())
        with patch("hazelpilot.main.run_web_tests", run):
            main(["run", str(steps_file), "-u", "https://staging.test", "--run-id", "cli-run"])
        assert run.call_args.kwargs["base_url"] == "https://staging.test"

    def test_run_with_failures(self, steps_file):
        with patch("hazelpilot.main.run_web_tests", AsyncMock(return_value=make_report(failed=1))):
            assert main(["run", str(steps_file), "--run-id", "cli-run"]) == EXIT_FAILED

    def test_run_aborted(self, steps_file):
        with patch("hazelpilot.main.run_web_tests", AsyncMock(return_value=make_report(state=RunState.ABORTED))):
            assert main(["run", str(steps_file), "--run-id", "cli-run"]) == EXIT_FAILED

    def test_run_launch_error(self, steps_file):
        run = AsyncMock(side_effect=LaunchError("Executable doesn't exist"))
        with patch("hazelpilot.main.run_web_tests", run):
            assert main(["run", str(steps_file)]) == EXIT_ERROR

    def test_run_missing_file(self, cli_env):
        run = AsyncMock()
        with patch("hazelpilot.main.run_web_tests", run):
            assert main(["run", str(cli_env / "missing.json")]) == EXIT_ERROR
        run.assert_not_called()

    def test_tie_breaker_flag(self, steps_file):
        with patch("hazelpilot.main.run_web_tests", AsyncMock(return_value=make_report())):
            main(["run", str(steps_file), "--tie-breaker", "--run-id", "cli-run"])
        assert get_settings().tie_breaker_enabled is True

    def test_unexpected_errors(self):
        with patch("hazelpilot.main.async_main", Mock(side_effect=RuntimeError("boom"))):
            assert main([]) == EXIT_ERROR

    def test_keyboard_interrupt(self):
        with patch("hazelpilot.main.async_main", Mock(side_effect=KeyboardInterrupt)):
            assert main([]) == 130
