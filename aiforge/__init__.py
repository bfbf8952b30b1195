"""ai-forge — idempotent developer workstation bootstrapper for Ubuntu 24.04."""

__version__ = "0.1.0"
