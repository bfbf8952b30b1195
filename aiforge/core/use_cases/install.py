"""
Install use case — one complete bootstrap run.

This is the top-level orchestrator: it resolves configuration and the
selection, checks the host, holds a sudo session, installs the stage-0
and core packages, writes the managed environment, and dispatches the
selected components.

Everything that can fail before the first mutation (config file,
selection, OS check) is resolved first, so a bad invocation exits
without touching the system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from aiforge.core.components.core_packages import install_core_packages
from aiforge.core.components.registry import ComponentRegistry, default_registry
from aiforge.core.config.defaults import Settings, load_settings
from aiforge.core.config.loader import default_config_path, load_config_file
from aiforge.core.context import RunContext
from aiforge.core.engine.dispatcher import RunReport, dispatch
from aiforge.core.engine.selection import Selection, collect_selection, with_prerequisites
from aiforge.core.errors import FatalError, ForgeError
from aiforge.core.services.detection import OS_RELEASE, check_supported_os
from aiforge.core.services.env_files import setup_managed_env
from aiforge.core.services.privilege import SudoSession
from aiforge.core.services.repositories import KEYRINGS_DIR, SOURCES_DIR

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of an install run."""

    report: RunReport | None = None
    settings: Settings | None = None
    selection: Selection | None = None
    failures: list[str] = field(default_factory=list)
    managed_env: dict[str, list[str]] = field(default_factory=dict)
    error: str | None = None
    step: str = ""

    @property
    def ok(self) -> bool:
        """No fatal error and no fatal component outcome."""
        if self.error:
            return False
        return self.report is None or self.report.fatal is None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"ok": self.ok}
        if self.error:
            result["error"] = self.error
            result["step"] = self.step
        if self.settings is not None:
            result["settings"] = self.settings.to_dict()
        if self.selection is not None:
            result["selection"] = list(self.selection.keys)
            result["added"] = list(self.selection.added)
            result["unknown"] = list(self.selection.unknown)
        if self.report is not None:
            result["report"] = self.report.to_dict()
        result["failures"] = list(self.failures)
        result["managed_env"] = self.managed_env
        return result


def managed_path_entries(ctx: RunContext, registry: ComponentRegistry) -> list[str]:
    """PATH entries of every component whose directory exists on disk."""
    entries: list[str] = []
    for component in registry:
        for entry in component.path_entries:
            if entry not in entries and ctx.expand(entry).is_dir():
                entries.append(entry)
    return entries


def refresh_managed_env(ctx: RunContext, registry: ComponentRegistry) -> dict[str, list[str]]:
    """Rewrite the managed fragments and ensure the include lines."""
    if ctx.runner.dry_run:
        logger.info("[dry-run] would write managed env files under %s", ctx.home / ".config" / "ai-forge")
        return {"written": [], "appended": []}
    try:
        return setup_managed_env(
            ctx.home,
            venv_dir=ctx.settings["PY_VENV_DIR"],
            extra_path_entries=managed_path_entries(ctx, registry),
        )
    except OSError as e:
        raise FatalError(f"Cannot write managed env files: {e}", step="write managed env") from e


def _merge_changes(into: dict[str, list[str]], changes: dict[str, list[str]]) -> None:
    for kind, paths in changes.items():
        bucket = into.setdefault(kind, [])
        bucket.extend(p for p in paths if p not in bucket)


def run_install(
    runner: Any,
    *,
    registry: ComponentRegistry | None = None,
    raw_selection: str | None = None,
    interactive: bool = False,
    ask: Callable[[str], str] | None = None,
    answers: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
    home: Path | None = None,
    config_path: Path | None = None,
    os_release: Path | None = None,
    sources_dir: Path | None = None,
    keyrings_dir: Path | None = None,
) -> InstallResult:
    """Run one install.

    Args:
        runner: Command runner (``CommandRunner`` or ``MockRunner``).
        registry: Component registry; defaults to the built-in set.
        raw_selection: Selection text (``INSTALL_SELECTION`` / ``--select``).
        interactive: Whether the operator can be prompted.
        ask: Menu prompt used when ``raw_selection`` selects nothing.
        answers: Interactive answers for configuration values.
        environ: Environment mapping (defaults to ``os.environ``).
        home: Target home directory.
        config_path: Explicit config file path.
        os_release: Path of the os-release file to check.
        sources_dir: apt sources directory.
        keyrings_dir: apt keyrings directory.

    Returns:
        InstallResult; ``error`` is set on any fatal failure.
    """
    registry = registry or default_registry()
    home = home or Path.home()
    result = InstallResult()

    # ── Resolve inputs (no side effects) ─────────────────────────
    try:
        if config_path is None:
            config_path = default_config_path(home, dict(environ) if environ is not None else None)
        file_values = load_config_file(config_path)
        result.settings = load_settings(answers=answers, environ=environ, file_values=file_values)

        selection = collect_selection(
            registry, raw=raw_selection, interactive=interactive, ask=ask,
        )
        result.selection = with_prerequisites(selection, registry)

        check_supported_os(os_release or OS_RELEASE)
    except ForgeError as e:
        logger.error("%s", e)
        result.error = str(e)
        result.step = getattr(e, "step", "") or type(e).__name__
        return result

    ctx = RunContext(
        runner=runner,
        settings=result.settings,
        home=home,
        sources_dir=sources_dir or SOURCES_DIR,
        keyrings_dir=keyrings_dir or KEYRINGS_DIR,
        interactive=interactive,
    )

    # ── Install ──────────────────────────────────────────────────
    try:
        with SudoSession(runner):
            ctx.packages.bootstrap()
            _merge_changes(result.managed_env, refresh_managed_env(ctx, registry))
            install_core_packages(ctx)

            report = dispatch(result.selection.keys, registry, ctx)
            report.unknown = list(result.selection.unknown)
            result.report = report

            _merge_changes(result.managed_env, refresh_managed_env(ctx, registry))
    except FatalError as e:
        logger.error("%s", e)
        result.error = str(e)
        result.step = e.step
    except ForgeError as e:
        logger.error("%s", e)
        result.error = str(e)
        result.step = getattr(e, "step", "")
    finally:
        result.failures = ctx.recorder.summarize()

    if result.report is not None and result.report.fatal is not None:
        fatal = result.report.fatal
        result.error = result.error or fatal.message
        result.step = result.step or fatal.step or fatal.component

    return result
