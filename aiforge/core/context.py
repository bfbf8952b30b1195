"""
Run context — everything an installer needs, threaded explicitly.

One ``RunContext`` is built per run by the install use case and passed
to every component installer.  It owns the per-run mutable state (the
apt index staleness flag, the failure list) so nothing lives in module
globals.

Installers call ``ctx.run`` for mandatory steps (raises ``StepFailed``)
and ``ctx.try_run`` for best-effort steps (logs, records, continues).
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from aiforge.core.config.defaults import Settings
from aiforge.core.errors import StepFailed
from aiforge.core.services.failures import FailureRecorder
from aiforge.core.services.packages import PackageIndex, PackageInstaller
from aiforge.core.services.repositories import KEYRINGS_DIR, SOURCES_DIR, RepositoryRegistrar

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Per-run state and helpers for component installers."""

    runner: Any
    settings: Settings
    home: Path = field(default_factory=Path.home)
    recorder: FailureRecorder = field(default_factory=FailureRecorder)
    index: PackageIndex = field(default_factory=PackageIndex)
    sources_dir: Path = SOURCES_DIR
    keyrings_dir: Path = KEYRINGS_DIR
    interactive: bool = False

    packages: PackageInstaller = field(init=False)
    repos: RepositoryRegistrar = field(init=False)

    def __post_init__(self) -> None:
        self.packages = PackageInstaller(self.runner, self.recorder, self.index)
        self.repos = RepositoryRegistrar(
            self.runner,
            self.index,
            self.recorder,
            sources_dir=self.sources_dir,
            keyrings_dir=self.keyrings_dir,
        )

    # ── Paths ───────────────────────────────────────────────────

    def expand(self, value: str) -> Path:
        """Expand ``~`` and ``$HOME`` against this run's home directory."""
        if value == "~" or value.startswith("~/"):
            return self.home / value[2:]
        if value.startswith("$HOME/"):
            return self.home / value[len("$HOME/"):]
        return Path(value)

    def user_bin_dirs(self) -> list[Path]:
        """Per-user tool directories that may not be on PATH yet."""
        return [
            self.home / ".cargo" / "bin",
            self.home / ".asdf" / "shims",
            self.home / ".asdf" / "bin",
            self.home / ".local" / "bin",
            Path("/usr/local/go/bin"),
        ]

    def user_env(self) -> dict[str, str]:
        """Environment for user-scope tools installed earlier in this run."""
        dirs = ":".join(str(d) for d in self.user_bin_dirs())
        return {"PATH": f"{dirs}:$PATH", "ASDF_DIR": str(self.home / ".asdf")}

    def which(self, name: str) -> str | None:
        """Find ``name`` on PATH or in the per-user tool directories."""
        dirs = ":".join(str(d) for d in self.user_bin_dirs())
        return self.runner.which(name, path=f"{dirs}:{os.environ.get('PATH', '')}")

    # ── Commands ────────────────────────────────────────────────

    def probe(self, cmd: list[str], *, env: dict[str, str] | None = None) -> dict[str, Any]:
        """Run a read-only query."""
        return self.runner.run(cmd, probe=True, env=env)

    def run(
        self,
        cmd: list[str],
        *,
        step: str,
        sudo: bool = False,
        env: dict[str, str] | None = None,
        cwd: str | Path | None = None,
        retry: str | None = None,
        capture: bool = True,
    ) -> dict[str, Any]:
        """Run a mandatory step.

        Raises:
            StepFailed: If the command fails.
        """
        result = self.runner.run(cmd, sudo=sudo, env=env, cwd=cwd, capture=capture)
        if not result["ok"]:
            raise StepFailed(
                f"{step} failed ({result.get('error', 'unknown error')})",
                step=step,
                retry=retry,
                detail=result.get("stderr", ""),
            )
        return result

    def try_run(
        self,
        cmd: list[str],
        *,
        step: str,
        retry: str | None = None,
        **kwargs: Any,
    ) -> bool:
        """Run a best-effort step; record and continue on failure."""
        try:
            self.run(cmd, step=step, retry=retry, **kwargs)
        except StepFailed as e:
            self.record_failure(str(e), retry=retry)
            return False
        return True

    def record_failure(self, message: str, *, retry: str | None = None) -> None:
        """Log a warning and add it to the end-of-run summary."""
        logger.warning("%s", message)
        self.recorder.record(f"{message} (retry: {retry})" if retry else message)

    def download(self, url: str, dest: Path, *, step: str) -> Path:
        """Download a mandatory artifact.

        Raises:
            StepFailed: On transport errors or an empty download.
        """
        result = self.runner.download(url, dest)
        if not result["ok"]:
            raise StepFailed(result["error"], step=step, retry=f"curl -fsSLO {url}")
        return dest

    def run_upstream_script(
        self,
        url: str,
        *,
        step: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        retry: str | None = None,
    ) -> None:
        """Fetch an upstream installer to a temp file, then run it with ``sh``.

        Replaces ``curl ... | sh`` so a transport error can never feed a
        truncated script to the shell.
        """
        with tempfile.TemporaryDirectory(prefix="ai-forge-") as tmp:
            script = self.download(url, Path(tmp) / "install.sh", step=f"{step} (download)")
            self.run(
                ["sh", str(script), *(args or [])],
                step=step,
                env={**self.user_env(), **(env or {})},
                retry=retry or f"curl -fsSL {url} | sh",
            )
