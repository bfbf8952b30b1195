"""
Domain models — Pydantic types shared across the installer.

    from aiforge.core.models import InstallOutcome
"""

from aiforge.core.models.outcome import InstallOutcome, OutcomeStatus

__all__ = [
    "InstallOutcome",
    "OutcomeStatus",
]
