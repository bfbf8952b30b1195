"""
Dispatcher — run the selected components in order, one outcome each.

This is the single place where installer exceptions become outcomes:

    StepFailed / FatalError in a best-effort component  →  failed-best-effort
    StepFailed / FatalError anywhere else                →  failed-fatal (stop)

Any other exception propagates; it is a bug, not an install failure.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from aiforge.core.components.registry import Component, ComponentRegistry
from aiforge.core.context import RunContext
from aiforge.core.errors import FatalError, StepFailed
from aiforge.core.models.outcome import InstallOutcome

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Result of dispatching a selection."""

    run_id: str = ""
    outcomes: list[InstallOutcome] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)
    unknown: list[str] = field(default_factory=list)

    @property
    def fatal(self) -> InstallOutcome | None:
        """The outcome that stopped the run, if any."""
        return next((o for o in self.outcomes if o.fatal), None)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "succeeded")

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "skipped")

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def status(self) -> str:
        if self.fatal is not None:
            return "failed"
        if self.failed or self.failures:
            return "partial"
        return "ok"

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
            "failures": list(self.failures),
            "unknown": list(self.unknown),
        }


def run_component(component: Component, ctx: RunContext) -> InstallOutcome:
    """Run one installer and convert its failure, if any, into an outcome."""
    logger.info("▶ %s: %s", component.key, component.label)
    start = time.monotonic()

    try:
        outcome = component.install(ctx)
    except (StepFailed, FatalError) as e:
        retry = getattr(e, "retry", None)
        if component.best_effort:
            logger.warning("%s failed (best effort): %s", component.key, e)
            ctx.recorder.record(f"{component.key}: {e} (retry: {retry})" if retry else f"{component.key}: {e}")
            outcome = InstallOutcome.best_effort(component.key, str(e), step=e.step, retry=retry)
        else:
            logger.error("%s failed: %s", component.key, e)
            detail = getattr(e, "detail", "")
            if detail:
                logger.debug("%s stderr: %s", e.step, detail)
            outcome = InstallOutcome.failure(component.key, str(e), step=e.step, retry=retry)

    outcome.duration_ms = int((time.monotonic() - start) * 1000)

    status_marker = "✓" if outcome.status == "succeeded" else "⊘" if outcome.status == "skipped" else "✗"
    logger.info("%s %s → %s %s", status_marker, component.key, outcome.status, outcome.message)
    return outcome


def dispatch(keys: list[str], registry: ComponentRegistry, ctx: RunContext) -> RunReport:
    """Run ``keys`` in registration order, stopping at the first fatal outcome.

    Args:
        keys: Normalized selection (already ordered and de-duplicated).
        registry: Component registry.
        ctx: Run context shared by every installer.
    """
    report = RunReport(run_id=generate_run_id())
    selected = set(keys)

    for component in registry:
        if component.key not in selected:
            continue
        outcome = run_component(component, ctx)
        report.outcomes.append(outcome)
        if outcome.fatal:
            break

    report.failures = ctx.recorder.summarize()
    return report


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"
