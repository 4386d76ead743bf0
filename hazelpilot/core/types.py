"""
Core data models for the hazelpilot step engine.

The canonical step IR, target descriptions, per-step results and the run
report. Wire names follow the canonical camelCase JSON contract
(``testId``, ``screenshotPath``...) through pydantic aliases.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ActionKind(str, Enum):
    """The closed set of actions the executor has handlers for."""

    GOTO = "goto"
    CLICK = "click"
    FILL = "fill"
    PRESS = "press"
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    WAIT_FOR_VISIBLE = "waitForVisible"
    ASSERT_TEXT = "assertText"
    ASSERT_VISIBLE = "assertVisible"
    ASSERT_URL = "assertUrl"
    SLEEP = "sleep"
    SCREENSHOT = "screenshot"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ActionKind"]:
        """Return the member for ``value`` or None when it is not canonical."""
        try:
            return cls(value)
        except ValueError:
            return None


class TargetSpec(BaseModel):
    """Structured description of the element a step acts on."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    role: Optional[str] = None
    name: Optional[str] = None
    label: Optional[str] = None
    text: Optional[str] = None
    placeholder: Optional[str] = None
    test_id: Optional[str] = Field(None, alias="testId")
    css: Optional[str] = None
    xpath: Optional[str] = None

    def is_resolvable(self) -> bool:
        """At least one field that a locator strategy can use is set."""
        return any(
            getattr(self, field_name)
            for field_name in ("role", "name", "label", "text", "placeholder",
                               "test_id", "css", "xpath")
        )

    def hint(self) -> Optional[str]:
        """Human-facing words describing the target, best first."""
        return self.name or self.label or self.text or self.placeholder or self.test_id

    def describe(self) -> str:
        fields = self.model_dump(by_alias=True, exclude_none=True)
        return ", ".join(f'{key}="{value}"' for key, value in fields.items())


Target = Union[str, TargetSpec]


def describe_target(target: Optional[Target]) -> str:
    if target is None:
        return "(none)"
    if isinstance(target, TargetSpec):
        return "{" + target.describe() + "}"
    return f'"{target}"'


def target_hint(target: Optional[Target]) -> Optional[str]:
    if isinstance(target, TargetSpec):
        return target.hint()
    return target or None


class NormalizedStep(BaseModel):
    """Canonical step representation consumed by the executor."""

    model_config = ConfigDict(frozen=True)

    action: str = Field(..., description="Canonical action kind or an unknown verb")
    target: Optional[Union[str, TargetSpec]] = None
    value: Optional[str] = None
    pattern: Optional[str] = None
    key: Optional[str] = None

    @property
    def kind(self) -> Optional[ActionKind]:
        return ActionKind.parse(self.action)

    def describe(self) -> str:
        """Short single-line description used in logs and tie-breaker prompts."""
        parts = [self.action]
        if self.target is not None:
            parts.append(describe_target(self.target))
        if self.pattern:
            parts.append(f"~ {self.pattern}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class StepStatus(str, Enum):
    """Outcome of one executed step."""

    OK = "ok"
    ERROR = "error"


class StepResult(BaseModel):
    """Result of one attempted step; immutable once created."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    index: int = Field(..., description="1-based position in the executed sequence")
    action: str
    step: Optional[NormalizedStep] = None
    status: StepStatus
    error: Optional[str] = None
    error_kind: Optional[str] = Field(None, alias="errorKind")
    screenshot_path: Optional[str] = Field(None, alias="screenshotPath")
    strategy: Optional[str] = None
    duration_ms: float = Field(0.0, alias="durationMs")

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.OK


class RunState(str, Enum):
    """Executor states; every state but RUNNING is terminal."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed-and-stopped"
    ABORTED = "aborted-by-deadline"


class RunSummary(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0

    @classmethod
    def from_results(cls, results: List[StepResult]) -> "RunSummary":
        passed = sum(1 for result in results if result.ok)
        return cls(total=len(results), passed=passed, failed=len(results) - passed)


class RunArtifacts(BaseModel):
    video: Optional[str] = None
    screenshots: List[str] = Field(default_factory=list)
    log: Optional[str] = None


class RunReport(BaseModel):
    """Final report of a run; produced for every run that launched a session."""

    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(..., alias="runId")
    base_url: Optional[str] = Field(None, alias="baseUrl")
    state: RunState = RunState.RUNNING
    summary: RunSummary = Field(default_factory=RunSummary)
    results: List[StepResult] = Field(default_factory=list)
    artifacts: RunArtifacts = Field(default_factory=RunArtifacts)
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), alias="startedAt"
    )
    finished_at: Optional[datetime] = Field(None, alias="finishedAt")

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


@dataclass
class Candidate:
    """A resolution strategy paired with a live locator that currently matches."""

    strategy: str
    locator: Any
