"""
Install outcome model — the result contract between installers and the dispatcher.

Every component installer returns exactly one ``InstallOutcome``.
Failures raised inside an installer are converted to outcomes by the
dispatcher, so callers above it never see exceptions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

OutcomeStatus = Literal["skipped", "succeeded", "failed-best-effort", "failed-fatal"]


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class InstallOutcome(BaseModel):
    """Result of running one component installer.

    ``skipped`` means the goal state already held and nothing was
    mutated.  ``failed-best-effort`` is recorded and the run continues;
    ``failed-fatal`` terminates the run.
    """

    component: str
    status: OutcomeStatus = "succeeded"
    message: str = ""
    step: str = ""
    retry: str | None = None        # command the operator can re-run
    warnings: list[str] = Field(default_factory=list)

    finished_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the component reached its goal state."""
        return self.status in ("skipped", "succeeded")

    @property
    def fatal(self) -> bool:
        return self.status == "failed-fatal"

    @property
    def best_effort_failure(self) -> bool:
        return self.status == "failed-best-effort"

    @classmethod
    def success(cls, component: str, message: str = "", **kwargs: Any) -> InstallOutcome:
        """Create a success outcome."""
        return cls(component=component, status="succeeded", message=message, **kwargs)

    @classmethod
    def skip(cls, component: str, reason: str = "", **kwargs: Any) -> InstallOutcome:
        """Create an already-satisfied outcome."""
        return cls(component=component, status="skipped", message=reason, **kwargs)

    @classmethod
    def best_effort(cls, component: str, error: str, **kwargs: Any) -> InstallOutcome:
        """Create a recoverable-failure outcome."""
        return cls(component=component, status="failed-best-effort", message=error, **kwargs)

    @classmethod
    def failure(cls, component: str, error: str, **kwargs: Any) -> InstallOutcome:
        """Create a fatal-failure outcome."""
        return cls(component=component, status="failed-fatal", message=error, **kwargs)
