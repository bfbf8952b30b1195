"""
Mock runner — universal test double for the command adapter.

Records every command, download and spawn without touching the host.
By default everything succeeds with empty output; responses can be
configured per command prefix (or with a predicate) and a set of
"available" executables drives ``which()``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

Matcher = str | Callable[[list[str]], bool]


class _MockProcess:
    """Stand-in for ``subprocess.Popen`` returned by ``spawn``."""

    def __init__(self, cmd: list[str]) -> None:
        self.args = cmd
        self.terminated = False

    def poll(self) -> int | None:
        return 0 if self.terminated else None

    def terminate(self) -> None:
        self.terminated = True

    def wait(self, timeout: float | None = None) -> int:
        return 0


class MockRunner:
    """Drop-in replacement for ``CommandRunner`` in tests.

    Commands are matched against the configured responses newest-first.
    A string matcher is a prefix of the space-joined command (without
    the ``sudo`` prefix); a callable receives the command list.
    """

    def __init__(
        self,
        *,
        available: set[str] | None = None,
        root: bool = True,
        dry_run: bool = False,
    ) -> None:
        self.available: set[str] = set(available or ())
        self.root = root
        self.dry_run = dry_run
        self._responses: list[tuple[Matcher, dict[str, Any]]] = []
        self._failing_urls: dict[str, str] = {}
        self.calls: list[dict[str, Any]] = []

    @property
    def is_root(self) -> bool:
        return self.root

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def mutating_calls(self) -> list[dict[str, Any]]:
        """Every recorded call that was not a read-only probe."""
        return [c for c in self.calls if not c["probe"]]

    def commands(self) -> list[str]:
        """Space-joined commands in call order (runs only)."""
        return [" ".join(c["cmd"]) for c in self.calls if c["kind"] == "run"]

    # ── Configuration ───────────────────────────────────────────

    def set_response(
        self,
        matcher: Matcher,
        *,
        ok: bool = True,
        stdout: str = "",
        stderr: str = "",
        returncode: int | None = None,
    ) -> None:
        """Configure the result for commands matching ``matcher``."""
        if returncode is None:
            returncode = 0 if ok else 1
        result: dict[str, Any] = {
            "ok": ok,
            "stdout": stdout,
            "stderr": stderr,
            "returncode": returncode,
        }
        if not ok:
            result["error"] = f"Command failed (exit {returncode})"
        self._responses.append((matcher, result))

    def set_failure(self, matcher: Matcher, stderr: str = "Mock failure") -> None:
        """Configure commands matching ``matcher`` to fail."""
        self.set_response(matcher, ok=False, stderr=stderr)

    def fail_download(self, url: str, error: str = "Mock transport error") -> None:
        self._failing_urls[url] = error

    def reset(self) -> None:
        """Clear the call log and configured responses."""
        self.calls.clear()
        self._responses.clear()
        self._failing_urls.clear()

    # ── Runner protocol ─────────────────────────────────────────

    def which(self, name: str, path: str | None = None) -> str | None:
        return f"/usr/bin/{name}" if name in self.available else None

    def build_command(
        self,
        cmd: list[str],
        *,
        sudo: bool = False,
        env: dict[str, str] | None = None,
    ) -> list[str]:
        if not sudo or self.root:
            return list(cmd)
        return ["sudo", *[f"{k}={v}" for k, v in (env or {}).items()], *cmd]

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
        self.calls.append({
            "kind": "run",
            "cmd": list(cmd),
            "sudo": sudo,
            "env": dict(env or {}),
            "cwd": str(cwd) if cwd else None,
            "input": input,
            "probe": probe,
        })
        if self.dry_run and not probe:
            return {"ok": True, "dry_run": True, "stdout": "", "stderr": "", "returncode": 0}
        return dict(self._match(cmd))

    def spawn(self, cmd: list[str], *, env: dict[str, str] | None = None) -> _MockProcess:
        self.calls.append({"kind": "spawn", "cmd": list(cmd), "sudo": False, "probe": False})
        return _MockProcess(cmd)

    def download(self, url: str, dest: Path, *, timeout: int = 60) -> dict[str, Any]:
        self.calls.append({"kind": "download", "cmd": ["download", url], "url": url,
                           "dest": str(dest), "sudo": False, "probe": False})
        if url in self._failing_urls:
            return {"ok": False, "error": f"Download failed for {url}: {self._failing_urls[url]}"}
        if dest.parent.is_dir():
            dest.write_bytes(b"mock-download")
        return {"ok": True, "path": str(dest), "size_bytes": 13}

    def _match(self, cmd: list[str]) -> dict[str, Any]:
        joined = " ".join(cmd)
        for matcher, result in reversed(self._responses):
            if callable(matcher):
                if matcher(cmd):
                    return result
            elif joined.startswith(matcher):
                return result
        return {"ok": True, "stdout": "", "stderr": "", "returncode": 0}
