"""
Command adapters — the only layer that touches subprocesses and the network.

    from aiforge.adapters import CommandRunner, MockRunner
"""

from aiforge.adapters.mock import MockRunner
from aiforge.adapters.shell.command import CommandRunner

__all__ = ["CommandRunner", "MockRunner"]
