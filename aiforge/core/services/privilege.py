"""
Privilege session keeper — acquire sudo once, keep it warm, always stop.

    with SudoSession(runner) as session:
        ...  # sudo credentials stay cached for the whole block

The refresh loop is a daemon thread that runs ``sudo -n true`` at a
fixed interval.  It touches no shared state, so it needs no locking;
``release()`` runs on every exit path of the ``with`` block.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from aiforge.core.errors import FatalError

logger = logging.getLogger(__name__)

# sudo's default credential timeout is 5 minutes.
REFRESH_INTERVAL = 60.0


class SudoSession:
    """Scoped sudo credential cache.

    Args:
        runner: Command runner.
        interval: Seconds between refreshes.
    """

    def __init__(self, runner: Any, *, interval: float = REFRESH_INTERVAL) -> None:
        self.runner = runner
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.refreshes = 0

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def acquire(self) -> None:
        """Authenticate with sudo and start the refresh loop.

        Raises:
            FatalError: If sudo is missing or authentication fails.
        """
        if self.runner.is_root:
            logger.debug("Running as root; no sudo session needed")
            return

        if not self.runner.which("sudo"):
            raise FatalError("sudo is required to run this installer.", step="sudo check")

        result = self.runner.run(["sudo", "-v"], capture=False)
        if not result["ok"]:
            raise FatalError("Could not authenticate with sudo.", step="sudo -v")

        self._stop.clear()
        self._thread = threading.Thread(
            target=self._refresh_loop,
            name="ai-forge-sudo-keepalive",
            daemon=True,
        )
        self._thread.start()
        logger.debug("sudo keep-alive started (every %.0fs)", self.interval)

    def release(self) -> None:
        """Stop the refresh loop.  Safe to call more than once."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
            logger.debug("sudo keep-alive stopped")

    def _refresh_loop(self) -> None:
        while not self._stop.wait(self.interval):
            self.runner.run(["sudo", "-n", "true"], probe=True)
            self.refreshes += 1

    def __enter__(self) -> SudoSession:
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
