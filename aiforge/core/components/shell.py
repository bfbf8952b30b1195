"""
Shell components — zsh as login shell plus Oh My Zsh.

Oh My Zsh is installed non-destructively: the upstream installer runs
with ``KEEP_ZSHRC=yes`` and never launches a shell or changes the
login shell itself.
"""

from __future__ import annotations

import logging
import os

from aiforge.core.components.registry import REGISTRY
from aiforge.core.context import RunContext
from aiforge.core.models.outcome import InstallOutcome
from aiforge.core.services.detection import current_user, login_shell

logger = logging.getLogger(__name__)

OHMYZSH_URL = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"


def _same_shell(a: str | None, b: str | None) -> bool:
    """Compare shell paths after resolving symlinks (/bin -> /usr/bin)."""
    if not a or not b:
        return False
    return os.path.realpath(a) == os.path.realpath(b)


@REGISTRY.component("zsh", 1, "Zsh + Oh My Zsh (non-destructive)")
def install_zsh(ctx: RunContext) -> InstallOutcome:
    user = current_user()
    zsh = ctx.which("zsh")
    omz_dir = ctx.home / ".oh-my-zsh"
    shell = login_shell(ctx.runner, user)

    if zsh and omz_dir.is_dir() and _same_shell(shell, zsh):
        return InstallOutcome.skip("zsh", f"zsh is the login shell and Oh My Zsh is in {omz_dir}")

    if not zsh:
        ctx.packages.install(["zsh"])
        zsh = ctx.which("zsh") or "/usr/bin/zsh"

    if not _same_shell(shell, zsh):
        logger.info("Setting default shell to zsh")
        ctx.try_run(
            ["chsh", "-s", zsh, user],
            step="change login shell to zsh",
            sudo=True,
            retry=f"chsh -s {zsh}",
        )

    if omz_dir.is_dir():
        logger.info("Oh My Zsh already installed")
    else:
        logger.info("Installing Oh My Zsh (non-destructive)")
        ctx.run_upstream_script(
            OHMYZSH_URL,
            step="Oh My Zsh install",
            env={"RUNZSH": "no", "CHSH": "no", "KEEP_ZSHRC": "yes"},
        )

    return InstallOutcome.success("zsh", "zsh configured; login shell change applies at next login")
