"""
Package installer — apt wrapper with a debounced index refresh.

``install`` is all-or-nothing; ``install_best_effort`` degrades from a
bulk install to per-package installs and records what still fails.
Both are safe to call repeatedly with overlapping package sets: apt
itself skips what is already installed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from aiforge.core.errors import FatalError, StepFailed
from aiforge.core.services.failures import FailureRecorder

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
APT_INSTALL = ["apt-get", "install", "-y", "--no-install-recommends"]

# Stage 0: a fresh Ubuntu does not guarantee any of these.
BOOTSTRAP_PACKAGES = ["ca-certificates", "curl", "wget", "gnupg", "lsb-release"]


@dataclass
class PackageIndex:
    """Process-local apt index state.

    ``updated`` — the index was refreshed at least once this run.
    ``stale`` — a repository was added since the last refresh.
    """

    updated: bool = False
    stale: bool = False

    @property
    def needs_refresh(self) -> bool:
        return not self.updated or self.stale

    def mark_stale(self) -> None:
        self.stale = True

    def mark_refreshed(self) -> None:
        self.updated = True
        self.stale = False


class PackageInstaller:
    """Install apt packages through a command runner."""

    def __init__(
        self,
        runner: Any,
        recorder: FailureRecorder,
        index: PackageIndex | None = None,
    ) -> None:
        self.runner = runner
        self.recorder = recorder
        self.index = index or PackageIndex()

    def update_once(self) -> None:
        """Refresh the index if stale or never refreshed this run."""
        if not self.index.needs_refresh:
            return
        logger.info("Updating apt indices")
        result = self.runner.run(["apt-get", "update", "-y"], sudo=True, env=APT_ENV)
        if not result["ok"]:
            raise StepFailed(
                "apt-get update failed",
                step="apt-get update",
                retry="sudo apt-get update",
                detail=result.get("stderr", ""),
            )
        self.index.mark_refreshed()

    def bootstrap(self) -> None:
        """Stage 0: refresh and install the tools every later step relies on.

        Raises:
            FatalError: If either the refresh or the install fails.
        """
        try:
            self.install(BOOTSTRAP_PACKAGES)
        except StepFailed as e:
            raise FatalError(f"Bootstrap failed: {e}", step=e.step) from e

    def install(self, packages: list[str]) -> None:
        """Install all ``packages`` in one apt transaction.

        Raises:
            StepFailed: If the refresh or the install fails.
        """
        if not packages:
            return
        self.update_once()
        logger.info("Installing packages: %s", " ".join(packages))
        result = self._apt_install(packages)
        if not result["ok"]:
            raise StepFailed(
                f"apt-get install failed for: {' '.join(packages)}",
                step="apt-get install",
                retry=f"sudo apt-get install -y {' '.join(packages)}",
                detail=result.get("stderr", ""),
            )

    def install_best_effort(self, packages: list[str]) -> list[str]:
        """Install as many of ``packages`` as possible.

        Tries a single bulk install first; on failure retries each
        package on its own and records one failure per package that
        still cannot be installed.  Never raises for install failures.

        Returns:
            The packages that could not be installed.
        """
        if not packages:
            return []
        try:
            self.update_once()
        except StepFailed as e:
            logger.warning("%s; continuing with the current index", e)
            self.recorder.record(f"{e} (retry: {e.retry})")

        logger.info("Installing packages (best effort): %s", " ".join(packages))
        if self._apt_install(packages)["ok"]:
            return []

        logger.warning("Bulk install failed; retrying packages individually.")
        failed: list[str] = []
        for pkg in packages:
            if self._apt_install([pkg])["ok"]:
                continue
            logger.warning("Could not install package: %s", pkg)
            self.recorder.record(
                f"Could not install package: {pkg} (retry: sudo apt-get install -y {pkg})"
            )
            failed.append(pkg)
        return failed

    def is_installed(self, package: str) -> bool:
        """Probe dpkg for an installed package."""
        result = self.runner.run(
            ["dpkg-query", "-W", "-f=${Status}", package],
            probe=True,
        )
        return result["ok"] and "install ok installed" in result.get("stdout", "")

    def missing(self, packages: list[str]) -> list[str]:
        """Return the subset of ``packages`` that dpkg reports as absent."""
        return [p for p in packages if not self.is_installed(p)]

    def _apt_install(self, packages: list[str]) -> dict[str, Any]:
        return self.runner.run([*APT_INSTALL, *packages], sudo=True, env=APT_ENV)
