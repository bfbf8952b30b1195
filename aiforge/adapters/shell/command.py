"""
Command runner — the SINGLE PLACE where subprocesses and downloads happen.

Every installer talks to the host through a runner so that
security, logging, dry-run and error handling are centralised, and
tests can swap in ``MockRunner``.

Results are plain dicts and the runner NEVER raises for command
failures::

    {"ok": True, "stdout": "...", "stderr": "", "returncode": 0, "elapsed_ms": N}
    {"ok": False, "error": "Command failed (exit 100)", "stderr": "...", ...}

``probe=True`` marks read-only queries (version checks, dpkg-query,
``snap list``).  Probes always execute, even in dry-run mode.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_PROBE_TIMEOUT = 30
_OUTPUT_TAIL = 2000
_USER_AGENT = "ai-forge/0.1"


class CommandRunner:
    """Run host commands with optional sudo and environment overrides.

    Args:
        dry_run: Log mutating commands and downloads instead of
            executing them.  Probes still run.
    """

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run

    @property
    def is_root(self) -> bool:
        return os.geteuid() == 0

    def which(self, name: str, path: str | None = None) -> str | None:
        """Locate an executable on PATH (or on ``path`` when given)."""
        return shutil.which(name, path=path)

    # ── Commands ────────────────────────────────────────────────

    def build_command(
        self,
        cmd: list[str],
        *,
        sudo: bool = False,
        env: dict[str, str] | None = None,
    ) -> list[str]:
        """Return the argv actually executed.

        ``sudo`` resets the environment, so overrides are passed as
        ``VAR=value`` arguments the way ``sudo DEBIAN_FRONTEND=... apt-get``
        is written by hand.
        """
        if not sudo or self.is_root:
            return list(cmd)
        assignments = [f"{k}={v}" for k, v in (env or {}).items()]
        return ["sudo", *assignments, *cmd]

    def run(
        self,
        cmd: list[str],
        *,
        sudo: bool = False,
        env: dict[str, str] | None = None,
        cwd: str | Path | None = None,
        input: str | None = None,
        timeout: int | None = None,
        capture: bool = True,
        probe: bool = False,
    ) -> dict[str, Any]:
        """Run a command and return a result dict.

        Args:
            cmd: Command list (never a shell string).
            sudo: Prefix with ``sudo`` unless already root.
            env: Extra environment variables; values are expanded
                with ``os.path.expandvars``.
            cwd: Working directory.
            input: Text piped to stdin.
            timeout: Seconds before giving up.  Probes default to 30s;
                installs have no timeout.
            capture: Capture output.  ``False`` lets the command talk to
                the terminal (``sudo -v``, ``chsh``).
            probe: Read-only query; executes even in dry-run mode.
        """
        argv = self.build_command(cmd, sudo=sudo, env=env)
        printable = shlex.join(argv)

        if self.dry_run and not probe:
            logger.info("[dry-run] %s", printable)
            return {"ok": True, "dry_run": True, "stdout": "", "stderr": "", "returncode": 0}

        full_env = os.environ.copy()
        for key, value in (env or {}).items():
            full_env[key] = os.path.expandvars(value)

        if timeout is None and probe:
            timeout = _PROBE_TIMEOUT

        logger.debug("Executing: %s (cwd=%s)", printable, cwd)
        start = time.monotonic()
        try:
            result = subprocess.run(
                argv,
                capture_output=capture,
                text=True,
                timeout=timeout,
                input=input,
                env=full_env,
                cwd=str(cwd) if cwd else None,
            )
        except FileNotFoundError:
            return {
                "ok": False,
                "error": f"Command not found: {argv[0]}",
                "returncode": 127,
                "stdout": "",
                "stderr": "",
            }
        except subprocess.TimeoutExpired:
            return {"ok": False, "error": f"Command timed out ({timeout}s)", "stdout": "", "stderr": ""}
        except OSError as e:
            logger.exception("Subprocess error: %s", printable)
            return {"ok": False, "error": str(e), "stdout": "", "stderr": ""}

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = (result.stdout or "")[-_OUTPUT_TAIL:]
        stderr = (result.stderr or "")[-_OUTPUT_TAIL:]

        if result.returncode == 0:
            return {
                "ok": True,
                "stdout": stdout,
                "stderr": stderr,
                "returncode": 0,
                "elapsed_ms": elapsed_ms,
            }

        return {
            "ok": False,
            "error": f"Command failed (exit {result.returncode})",
            "stdout": stdout,
            "stderr": stderr,
            "returncode": result.returncode,
            "elapsed_ms": elapsed_ms,
        }

    def spawn(self, cmd: list[str], *, env: dict[str, str] | None = None) -> subprocess.Popen | None:
        """Start a background process (e.g. a temporary ``ollama serve``).

        Returns ``None`` in dry-run mode or when the binary is missing.
        """
        if self.dry_run:
            logger.info("[dry-run] %s &", shlex.join(cmd))
            return None
        full_env = os.environ.copy()
        full_env.update(env or {})
        try:
            return subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                env=full_env,
            )
        except OSError as e:
            logger.warning("Could not start %s: %s", cmd[0], e)
            return None

    # ── Network ─────────────────────────────────────────────────

    def download(self, url: str, dest: Path, *, timeout: int = 60) -> dict[str, Any]:
        """Download ``url`` to ``dest`` and verify something arrived.

        Returns:
            ``{"ok": True, "path": "...", "size_bytes": N}`` or an error dict.
        """
        if self.dry_run:
            logger.info("[dry-run] download %s -> %s", url, dest)
            return {"ok": True, "dry_run": True, "path": str(dest), "size_bytes": 0}

        logger.debug("Downloading %s -> %s", url, dest)
        req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with urllib.request.urlopen(req, timeout=timeout) as resp, open(dest, "wb") as fh:
                shutil.copyfileobj(resp, fh)
        except (urllib.error.URLError, OSError) as e:
            return {"ok": False, "error": f"Download failed for {url}: {e}"}

        size = dest.stat().st_size
        if size == 0:
            return {"ok": False, "error": f"Download of {url} produced an empty file"}
        return {"ok": True, "path": str(dest), "size_bytes": size}
