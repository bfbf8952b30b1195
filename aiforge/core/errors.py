"""
Error taxonomy for an install run.

Two kinds of failure reach the top of a run:

    - Fatal: the run cannot continue (wrong OS, no sudo, empty
      non-interactive selection, a mandatory key/repo fetch, a
      mandatory install step).
    - Best-effort: logged, recorded for the final summary, and the
      run moves on.

Installers raise these exceptions; the dispatcher turns them into
``InstallOutcome`` values and decides abort-vs-continue by kind.
"""

from __future__ import annotations


class ForgeError(Exception):
    """Base class for every error ai-forge raises on purpose."""


class ConfigError(ForgeError):
    """Raised when a configuration source is unreadable or malformed."""


class SelectionError(ForgeError):
    """Raised when the component selection cannot be resolved."""


class FatalError(ForgeError):
    """A precondition failed; the whole run must stop.

    Attributes:
        step: Human-readable name of the step that failed.
    """

    def __init__(self, message: str, *, step: str = "") -> None:
        super().__init__(message)
        self.step = step


class StepFailed(ForgeError):
    """A mandatory command inside an installer failed.

    Whether this aborts the run depends on the component: in a
    best-effort component it is recorded and the run continues.

    Attributes:
        step: Human-readable name of the step that failed.
        retry: Command the operator can re-run, when known.
        detail: Tail of stderr (or the transport error).
    """

    def __init__(
        self,
        message: str,
        *,
        step: str = "",
        retry: str | None = None,
        detail: str = "",
    ) -> None:
        super().__init__(message)
        self.step = step
        self.retry = retry
        self.detail = detail
