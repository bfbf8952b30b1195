"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from aiforge.adapters.mock import MockRunner
from aiforge.core.config.defaults import load_settings
from aiforge.core.context import RunContext


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """Return an empty home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def apt_dirs(tmp_path: Path) -> tuple[Path, Path]:
    """Return (sources_dir, keyrings_dir) stand-ins for /etc/apt."""
    sources = tmp_path / "sources.list.d"
    keyrings = tmp_path / "keyrings"
    sources.mkdir()
    keyrings.mkdir()
    return sources, keyrings


@pytest.fixture
def os_release(tmp_path: Path) -> Path:
    """Return an os-release file describing Ubuntu 24.04."""
    path = tmp_path / "os-release"
    path.write_text('NAME="Ubuntu"\nID=ubuntu\nVERSION_ID="24.04"\nVERSION_CODENAME=noble\n')
    return path


@pytest.fixture
def runner() -> MockRunner:
    """Return a MockRunner on an amd64 noble host, running as root."""
    mock = MockRunner()
    mock.set_response("dpkg --print-architecture", stdout="amd64\n")
    mock.set_response("lsb_release -cs", stdout="noble\n")
    return mock


@pytest.fixture
def make_ctx(runner: MockRunner, home: Path, apt_dirs: tuple[Path, Path]):
    """Factory for a RunContext with optional setting overrides."""

    def _make(**overrides: str) -> RunContext:
        sources, keyrings = apt_dirs
        return RunContext(
            runner=runner,
            settings=load_settings(answers=overrides, environ={}),
            home=home,
            sources_dir=sources,
            keyrings_dir=keyrings,
        )

    return _make


@pytest.fixture(autouse=True)
def _invoking_user(monkeypatch):
    """Pin the invoking user so detection does not depend on the test host."""
    monkeypatch.delenv("SUDO_USER", raising=False)
    monkeypatch.setenv("USER", "dev")
