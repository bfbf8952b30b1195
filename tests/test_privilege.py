"""
Tests for the sudo session keeper.
"""

import time

import pytest

from aiforge.adapters.mock import MockRunner
from aiforge.core.errors import FatalError
from aiforge.core.services.privilege import SudoSession


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestSudoSession:
    def test_root_needs_no_sudo(self):
        runner = MockRunner(root=True)
        with SudoSession(runner) as session:
            assert not session.active
        assert runner.calls == []

    def test_missing_sudo_is_fatal(self):
        runner = MockRunner(root=False)
        with pytest.raises(FatalError, match="sudo is required"):
            SudoSession(runner).acquire()

    def test_failed_authentication_is_fatal(self):
        runner = MockRunner(root=False, available={"sudo"})
        runner.set_failure("sudo -v")
        with pytest.raises(FatalError):
            SudoSession(runner).acquire()

    def test_refresh_loop_runs_and_stops(self):
        runner = MockRunner(root=False, available={"sudo"})
        session = SudoSession(runner, interval=0.01)
        session.acquire()
        try:
            assert session.active
            assert _wait_for(lambda: session.refreshes >= 2)
        finally:
            session.release()
        assert not session.active
        count = session.refreshes
        time.sleep(0.05)
        assert session.refreshes == count
        assert runner.calls[0]["cmd"] == ["sudo", "-v"]
        assert all(c["cmd"] == ["sudo", "-n", "true"] and c["probe"] for c in runner.calls[1:])

    def test_released_on_exception(self):
        runner = MockRunner(root=False, available={"sudo"})
        session = SudoSession(runner, interval=0.01)
        with pytest.raises(KeyboardInterrupt):
            with session:
                raise KeyboardInterrupt
        assert not session.active

    def test_release_is_idempotent(self):
        session = SudoSession(MockRunner(root=False, available={"sudo"}), interval=0.01)
        session.acquire()
        session.release()
        session.release()
        assert not session.active
