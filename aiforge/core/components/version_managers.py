"""
asdf-managed runtimes — Ruby and the BEAM stack (Erlang, Elixir, Phoenix).

asdf itself is a prerequisite tool, not a selectable component: it is
installed on demand into ``~/.asdf/bin`` from the upstream release
tarball, and its shims reach PATH through the managed fragments.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from aiforge.core.components.registry import REGISTRY
from aiforge.core.context import RunContext
from aiforge.core.models.outcome import InstallOutcome
from aiforge.core.services.detection import debian_arch

logger = logging.getLogger(__name__)

ASDF_VERSION = "0.16.0"
ASDF_RELEASE_URL = (
    "https://github.com/asdf-vm/asdf/releases/download/"
    "v{version}/asdf-v{version}-linux-{arch}.tar.gz"
)
ASDF_PATH_ENTRIES = ("$HOME/.asdf/shims", "$HOME/.asdf/bin")


def asdf_bin(ctx: RunContext) -> Path:
    return ctx.home / ".asdf" / "bin" / "asdf"


def ensure_asdf(ctx: RunContext) -> Path:
    """Install the asdf binary unless it is already present."""
    binary = asdf_bin(ctx)
    if binary.exists():
        return binary

    logger.info("Installing asdf v%s", ASDF_VERSION)
    arch = debian_arch(ctx.runner)
    url = ASDF_RELEASE_URL.format(version=ASDF_VERSION, arch=arch)
    if not ctx.runner.dry_run:
        binary.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="ai-forge-") as tmp:
        tarball = ctx.download(url, Path(tmp) / "asdf.tar.gz", step="asdf download")
        ctx.run(
            ["tar", "-C", str(binary.parent), "-xzf", str(tarball)],
            step="unpack asdf",
        )
    return binary


def asdf_installed_versions(ctx: RunContext, plugin: str) -> list[str]:
    """Versions of ``plugin`` that asdf reports as installed."""
    binary = asdf_bin(ctx)
    if not binary.exists():
        return []
    result = ctx.probe([str(binary), "list", plugin], env=ctx.user_env())
    if not result["ok"]:
        return []
    return [line.strip().lstrip("*").strip() for line in result.get("stdout", "").splitlines() if line.strip()]


def asdf_has(ctx: RunContext, plugin: str, version: str) -> bool:
    return version in asdf_installed_versions(ctx, plugin)


def asdf_install(ctx: RunContext, plugin: str, version: str) -> None:
    """Add the plugin if needed, install ``version`` and make it the user default."""
    binary = str(ensure_asdf(ctx))
    env = ctx.user_env()

    plugins = ctx.probe([binary, "plugin", "list"], env=env)
    if plugin not in plugins.get("stdout", "").split():
        ctx.run([binary, "plugin", "add", plugin], step=f"asdf plugin add {plugin}", env=env)

    if not asdf_has(ctx, plugin, version):
        logger.info("Installing %s %s via asdf", plugin, version)
        ctx.run(
            [binary, "install", plugin, version],
            step=f"asdf install {plugin} {version}",
            env=env,
            retry=f"asdf install {plugin} {version}",
        )
    ctx.run([binary, "set", "-u", plugin, version], step=f"asdf set -u {plugin} {version}", env=env)


@REGISTRY.component(
    "ruby",
    2,
    "Ruby via asdf (Bundler + Rails)",
    settings=("RUBY_VERSION",),
    path_entries=ASDF_PATH_ENTRIES,
)
def install_ruby(ctx: RunContext) -> InstallOutcome:
    version = ctx.settings["RUBY_VERSION"]
    if asdf_has(ctx, "ruby", version):
        return InstallOutcome.skip("ruby", f"Ruby {version} already installed via asdf")

    asdf_install(ctx, "ruby", version)
    ctx.try_run(
        ["gem", "install", "bundler", "rails"],
        step="gem install bundler rails",
        env=ctx.user_env(),
        retry="gem install bundler rails",
    )
    return InstallOutcome.success("ruby", f"Ruby {version} installed via asdf")


@REGISTRY.component(
    "beam",
    3,
    "Erlang + Elixir + Phoenix via asdf",
    settings=("ERLANG_VERSION", "ELIXIR_VERSION"),
    path_entries=ASDF_PATH_ENTRIES,
)
def install_beam(ctx: RunContext) -> InstallOutcome:
    erlang = ctx.settings["ERLANG_VERSION"]
    elixir = ctx.settings["ELIXIR_VERSION"]
    if asdf_has(ctx, "erlang", erlang) and asdf_has(ctx, "elixir", elixir):
        return InstallOutcome.skip("beam", f"Erlang {erlang} and Elixir {elixir} already installed")

    asdf_install(ctx, "erlang", erlang)
    asdf_install(ctx, "elixir", elixir)

    env = ctx.user_env()
    ctx.run(["mix", "local.hex", "--force"], step="mix local.hex", env=env)
    ctx.run(
        ["mix", "archive.install", "hex", "phx_new", "--force"],
        step="install Phoenix project generator",
        env=env,
        retry="mix archive.install hex phx_new --force",
    )
    return InstallOutcome.success("beam", f"Erlang {erlang}, Elixir {elixir} and Phoenix installed")
