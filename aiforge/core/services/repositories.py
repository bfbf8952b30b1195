"""
Package repository registrar — third-party apt sources, added once.

A repository is "registered" when its ``sources.list.d`` file exists.
Registering downloads the signing key into the keyrings directory,
writes the source list and marks the apt index stale so the next
install refreshes it.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from aiforge.core.errors import FatalError
from aiforge.core.services.failures import FailureRecorder
from aiforge.core.services.packages import PackageIndex

logger = logging.getLogger(__name__)

SOURCES_DIR = Path("/etc/apt/sources.list.d")
KEYRINGS_DIR = Path("/etc/apt/keyrings")


@dataclass(frozen=True)
class RepoSpec:
    """A known apt repository.

    ``source_line`` placeholders: ``{arch}``, ``{codename}``, ``{key}``
    plus any keyword passed to ``ensure_known`` (e.g. ``{node_major}``).
    """

    repo_id: str
    label: str
    key_url: str
    key_name: str
    source_line: str
    dearmor: bool = False


REPOSITORIES: dict[str, RepoSpec] = {
    "github-cli": RepoSpec(
        repo_id="github-cli",
        label="GitHub CLI",
        key_url="https://cli.github.com/packages/githubcli-archive-keyring.gpg",
        key_name="githubcli.gpg",
        source_line="deb [arch={arch} signed-by={key}] https://cli.github.com/packages stable main",
    ),
    "pgdg": RepoSpec(
        repo_id="pgdg",
        label="PGDG (PostgreSQL 17)",
        key_url="https://www.postgresql.org/media/keys/ACCC4CF8.asc",
        key_name="postgresql.asc",
        source_line="deb [signed-by={key}] https://apt.postgresql.org/pub/repos/apt {codename}-pgdg main",
    ),
    "nodesource": RepoSpec(
        repo_id="nodesource",
        label="NodeSource (Node {node_major}.x)",
        key_url="https://deb.nodesource.com/gpgkey/nodesource-repo.gpg.key",
        key_name="nodesource.gpg",
        source_line="deb [signed-by={key}] https://deb.nodesource.com/node_{node_major}.x nodistro main",
        dearmor=True,
    ),
    "docker": RepoSpec(
        repo_id="docker",
        label="Docker CE",
        key_url="https://download.docker.com/linux/ubuntu/gpg",
        key_name="docker.asc",
        source_line="deb [arch={arch} signed-by={key}] https://download.docker.com/linux/ubuntu {codename} stable",
    ),
}


class RepositoryRegistrar:
    """Idempotently register apt repositories."""

    def __init__(
        self,
        runner: Any,
        index: PackageIndex,
        recorder: FailureRecorder,
        *,
        sources_dir: Path = SOURCES_DIR,
        keyrings_dir: Path = KEYRINGS_DIR,
    ) -> None:
        self.runner = runner
        self.index = index
        self.recorder = recorder
        self.sources_dir = sources_dir
        self.keyrings_dir = keyrings_dir

    def source_path(self, repo_id: str) -> Path:
        return self.sources_dir / f"{repo_id}.list"

    def is_registered(self, repo_id: str) -> bool:
        return self.source_path(repo_id).exists()

    def ensure_known(self, repo_id: str, *, best_effort: bool = False, **fmt: str) -> bool:
        """Register one of the ``REPOSITORIES`` entries."""
        spec = REPOSITORIES[repo_id]
        return self.ensure_repo(
            spec.repo_id,
            spec.key_url,
            spec.source_line,
            key_name=spec.key_name,
            dearmor=spec.dearmor,
            label=spec.label.format(**fmt) if fmt else spec.label,
            best_effort=best_effort,
            **fmt,
        )

    def ensure_repo(
        self,
        repo_id: str,
        signing_key_url: str,
        source_line: str,
        *,
        key_name: str | None = None,
        dearmor: bool = False,
        label: str = "",
        best_effort: bool = False,
        **fmt: str,
    ) -> bool:
        """Add a repository unless its source list already exists.

        Returns:
            True if the repository is registered after the call.

        Raises:
            FatalError: If the key or source list cannot be written and
                the call site is not best-effort.
        """
        list_path = self.source_path(repo_id)
        if list_path.exists():
            logger.debug("Repository already registered: %s", repo_id)
            return True

        logger.info("Adding apt repository: %s", label or repo_id)
        key_path = self.keyrings_dir / (key_name or f"{repo_id}.gpg")

        try:
            self._install_key(repo_id, signing_key_url, key_path, dearmor=dearmor)
            line = source_line.format(
                arch=self._arch(),
                codename=self._codename(),
                key=key_path,
                **fmt,
            )
            self._write_root_file(list_path, line + "\n", step=f"write {list_path}")
        except FatalError as e:
            if not best_effort:
                raise
            logger.warning("%s", e)
            self.recorder.record(f"Could not add repository {repo_id}: {e}")
            return False

        self.index.mark_stale()
        return True

    # ── Steps ───────────────────────────────────────────────────

    def _install_key(self, repo_id: str, url: str, key_path: Path, *, dearmor: bool) -> None:
        self._run_root(
            ["install", "-d", "-m", "0755", str(key_path.parent)],
            step=f"create {key_path.parent}",
        )
        with tempfile.TemporaryDirectory(prefix="ai-forge-") as tmp:
            download = Path(tmp) / f"{repo_id}.key"
            result = self.runner.download(url, download)
            if not result["ok"]:
                raise FatalError(result["error"], step=f"fetch signing key for {repo_id}")
            if dearmor:
                cmd = ["gpg", "--dearmor", "--yes", "-o", str(key_path), str(download)]
            else:
                cmd = ["install", "-m", "0644", str(download), str(key_path)]
            self._run_root(cmd, step=f"store signing key {key_path}")

    def _write_root_file(self, path: Path, content: str, *, step: str) -> None:
        with tempfile.TemporaryDirectory(prefix="ai-forge-") as tmp:
            staged = Path(tmp) / path.name
            staged.write_text(content, encoding="utf-8")
            self._run_root(["install", "-m", "0644", str(staged), str(path)], step=step)

    def _run_root(self, cmd: list[str], *, step: str) -> None:
        result = self.runner.run(cmd, sudo=True)
        if not result["ok"]:
            detail = result.get("stderr") or result.get("error", "")
            raise FatalError(f"{step} failed: {detail}".strip(), step=step)

    def _arch(self) -> str:
        result = self.runner.run(["dpkg", "--print-architecture"], probe=True)
        return result.get("stdout", "").strip() or "amd64"

    def _codename(self) -> str:
        result = self.runner.run(["lsb_release", "-cs"], probe=True)
        return result.get("stdout", "").strip() or "noble"
