"""
Failure recorder — accumulates best-effort failures for the final summary.

Purely observational: nothing reads it to make control-flow decisions.
"""

from __future__ import annotations


class FailureRecorder:
    """Ordered, append-only list of failure messages for one run."""

    def __init__(self) -> None:
        self._messages: list[str] = []

    def record(self, message: str) -> None:
        self._messages.append(message)

    def summarize(self) -> list[str]:
        """Return the recorded messages verbatim, in order."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __bool__(self) -> bool:
        return bool(self._messages)
