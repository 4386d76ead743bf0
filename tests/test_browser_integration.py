"""
Integration tests running steps in a real Chromium.

Require ``playwright install chromium``; run with ``pytest -m integration``.
"""

import pytest

from hazelpilot.core.types import RunState
from hazelpilot.executor.runner import run_web_tests

LOGIN_HTML = """<!doctype html>
<html><body>
  <h1>Sign in</h1>
  <label for="user">Username</label><input id="user" name="username">
  <label for="pass">Password</label><input id="pass" name="password" type="password">
  <button type="submit" onclick="location.href='dashboard.html'">Login</button>
  <a href="#">Forgot password?</a>
</body></html>
"""

DASHBOARD_HTML = """<!doctype html>
<html><body><p>Welcome back, u</p><a href="login.html">Log out</a></body></html>
"""


@pytest.fixture
def site(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    (root / "login.html").write_text(LOGIN_HTML, encoding="utf-8")
    (root / "dashboard.html").write_text(DASHBOARD_HTML, encoding="utf-8")
    return root.as_uri()


@pytest.mark.integration
class TestBrowserIntegration:
    """End-to-end runs against local pages."""

    @pytest.mark.asyncio
    async def test_login_flow(self, settings, site):
        """Test the canonical login scenario."""
        settings.record_video = True
        steps = [
            {"action": "goto", "target": "/login.html"},
            {"action": "fill", "target": "Username", "value": "u"},
            {"action": "fill", "target": "Password", "value": "p"},
            {"action": "click", "target": "Login"},
            {"action": "assertText", "pattern": "Welcome"},
            {"action": "assertUrl", "pattern": "/dashboard\\.html$/"},
        ]

        report = await run_web_tests(steps, base_url=site, run_id="it-1", settings=settings)

        assert report.state == RunState.COMPLETED
        assert report.summary.failed == 0
        assert len(report.artifacts.screenshots) == len(steps)
        assert (settings.runs_dir / "it-1" / "run.webm").exists()
        assert [p.name for p in (settings.runs_dir / "it-1").glob("*.webm")] == ["run.webm"]

    @pytest.mark.asyncio
    async def test_missing_field(self, settings, site):
        """Test that an absent target fails the step and stops the run."""
        steps = [
            {"goto": "/login.html"},
            {"fill": {"label": "Email", "value": "u@example.com"}},
            {"click": "Login"},
        ]

        report = await run_web_tests(steps, base_url=site, settings=settings)

        assert report.state == RunState.FAILED
        assert report.summary.total == 2
        assert "Email" in report.results[1].error
