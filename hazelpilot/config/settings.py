"""Configuration management for the hazelpilot step engine."""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BLOCKED_REQUEST_PATTERNS: List[str] = [
    r"optimizely\.com",
    r"google-analytics\.com",
    r"googletagmanager\.com",
    r"doubleclick\.net",
    r"hotjar\.com",
    r"segment\.com",
    r"mixpanel\.com",
    r"cdn\.amplitude\.com",
]


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Browser Configuration
    browser_headless: bool = Field(
        default=True, description="Run browser in headless mode"
    )
    browser_viewport_width: int = Field(
        default=1280, ge=320, description="Browser viewport width"
    )
    browser_viewport_height: int = Field(
        default=720, ge=240, description="Browser viewport height"
    )
    browser_ignore_https_errors: bool = Field(
        default=True, description="Accept self-signed certificates"
    )
    browser_launch_args: List[str] = Field(
        default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"],
        description="Extra Chromium launch arguments",
    )
    blocked_request_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_REQUEST_PATTERNS),
        description="Regexes of request URLs aborted before they leave the browser",
    )

    # Timeouts
    default_timeout_ms: int = Field(
        default=15000, ge=100, description="Default Playwright operation timeout (ms)"
    )
    navigation_timeout_ms: int = Field(
        default=20000, ge=100, description="Timeout for goto steps (ms)"
    )
    step_timeout_ms: int = Field(
        default=12000, ge=100, description="Timeout for a single element operation (ms)"
    )
    page_text_timeout_ms: int = Field(
        default=8000, ge=100, description="Timeout for reading page text (ms)"
    )
    max_run_ms: int = Field(
        default=120000, ge=1, description="Wall-clock budget for a whole run (ms)"
    )
    resolve_wait_ms: int = Field(
        default=0, ge=0, description="How long the executor keeps re-resolving a missing target (ms)"
    )

    # Execution Policy
    stop_on_failure: bool = Field(
        default=True, description="Stop the run after the first failed step"
    )
    step_max_attempts: int = Field(
        default=1, ge=1, description="Attempts per step for retryable step errors"
    )
    step_retry_delay_ms: int = Field(
        default=500, ge=0, description="Base delay between step attempts (ms)"
    )
    default_sleep_ms: int = Field(
        default=1000, ge=0, description="Duration of a sleep step without a value (ms)"
    )
    strict_actions: bool = Field(
        default=False,
        description="Drop steps with unknown verbs instead of reporting them as unknown",
    )
    resolver_generic_fallbacks: bool = Field(
        default=False,
        description="Let hinted targets fall back to any text input, submit or button-like control",
    )

    # Artifact Configuration
    runs_dir: Path = Field(
        default=Path("runs"), description="Root directory for run artifacts"
    )
    record_video: bool = Field(
        default=True, description="Record a video of every run"
    )
    screenshot_attempts: int = Field(
        default=3, ge=1, description="Attempts per post-step screenshot"
    )
    screenshot_settle_ms: int = Field(
        default=150, ge=0, description="Delay before each screenshot attempt (ms)"
    )
    artifact_save_timeout_ms: int = Field(
        default=5000, ge=100, description="Upper bound for saving video and log (ms)"
    )

    # Tie-breaker Configuration
    tie_breaker_enabled: bool = Field(
        default=False, description="Ask a language model to arbitrate ambiguous targets"
    )
    openai_api_key: str = Field(default="", description="OpenAI API key")
    tie_breaker_model: str = Field(
        default="gpt-4o-mini", description="Model used for tie-breaking"
    )
    tie_breaker_temperature: float = Field(
        default=0.0, ge=0.0, le=2.0, description="Tie-breaker sampling temperature"
    )
    tie_breaker_max_attempts: int = Field(
        default=3, ge=1, description="Attempts for transient tie-breaker failures"
    )
    tie_breaker_base_delay_ms: int = Field(
        default=500, ge=0, description="Base backoff delay for the tie-breaker (ms)"
    )
    openai_request_timeout_seconds: int = Field(
        default=30, ge=1, description="Request timeout for OpenAI API calls in seconds"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format (json or text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    sanitize_logs: bool = Field(
        default=True, description="Redact secrets from log output"
    )

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError(f"Invalid log format: {v}")
        return v

    def create_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    def run_dir(self, run_id: str) -> Path:
        """Directory holding the artifacts of one run."""
        return self.runs_dir / run_id


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    settings = Settings()
    settings.create_directories()
    return settings
