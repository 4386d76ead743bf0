"""
Shared fixtures.
"""

import pytest

from hazelpilot.config.settings import Settings


@pytest.fixture
def settings(tmp_path):
    """Settings writing artifacts under a temporary directory, with no waits."""
    return Settings(
        _env_file=None,
        runs_dir=tmp_path / "runs",
        record_video=False,
        screenshot_settle_ms=0,
        resolve_wait_ms=0,
        step_timeout_ms=100,
        step_retry_delay_ms=0,
        tie_breaker_enabled=False,
        openai_api_key="",
    )
