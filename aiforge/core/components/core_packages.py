"""
Core package set — installed on every run before any selected component.

Not a selectable component: the build toolchain and language build
dependencies here are what the asdf builds, pgvector and cargo rely on.
"""

from __future__ import annotations

import logging

from aiforge.core.context import RunContext

logger = logging.getLogger(__name__)

# Stage 0 (ca-certificates curl wget gnupg lsb-release) is installed by bootstrap.
CORE_PACKAGES = [
    # tools
    "git", "gh", "build-essential", "dirmngr", "gawk", "zsh", "fonts-powerline",
    "unzip", "jq", "mpv", "libnss3-tools", "imagemagick", "ghostscript", "mkcert",
    "fzf", "ripgrep", "bat", "inotify-tools", "ffmpeg", "sqlite3", "libsqlite3-dev",
    # canvas / image libraries
    "pkg-config", "libpixman-1-dev", "libcairo2-dev", "libpango1.0-dev",
    "libjpeg-dev", "libgif-dev", "librsvg2-dev",
    # erlang build
    "autoconf", "m4", "libwxgtk3.2-dev", "libwxgtk-webview3.2-dev", "libgl1-mesa-dev",
    "libglu1-mesa-dev", "libpng-dev", "libssh-dev", "unixodbc-dev", "xsltproc", "fop",
    "libxml2-utils", "libncurses-dev", "openjdk-11-jdk",
    # ruby / python build
    "libssl-dev", "zlib1g-dev", "libbz2-dev", "libreadline-dev", "libxmlsec1-dev",
    "libffi-dev", "liblzma-dev", "libyaml-dev",
]


def link_bat(ctx: RunContext) -> bool:
    """Expose Ubuntu's ``batcat`` as ``bat`` in ``~/.local/bin``.

    Returns:
        True if a link was created.
    """
    if ctx.which("bat"):
        return False
    batcat = ctx.which("batcat")
    if not batcat:
        return False
    if ctx.runner.dry_run:
        logger.info("[dry-run] link %s -> ~/.local/bin/bat", batcat)
        return False

    link = ctx.home / ".local" / "bin" / "bat"
    link.parent.mkdir(parents=True, exist_ok=True)
    if link.is_symlink() or link.exists():
        link.unlink()
    link.symlink_to(batcat)
    logger.debug("Linked %s -> %s", link, batcat)
    return True


def install_core_packages(ctx: RunContext) -> list[str]:
    """Install the core package set.

    The GitHub CLI repository is mandatory (raises ``FatalError``);
    individual packages are best effort.

    Returns:
        Packages that could not be installed.
    """
    logger.info("📦 Installing core tools and language build dependencies")
    ctx.repos.ensure_known("github-cli")
    failed = ctx.packages.install_best_effort(CORE_PACKAGES)
    link_bat(ctx)
    return failed
