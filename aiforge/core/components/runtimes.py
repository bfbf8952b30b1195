"""
Language runtimes — Node.js, Go, Rust (+ htmlq) and the Python virtualenv.

Version mismatch policy:
    - Go is a self-contained directory, so a different installed version
      is replaced in place.
    - Node comes from a distro package line (NodeSource major); a
      different major is left alone with a warning.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from aiforge.core.components.registry import REGISTRY
from aiforge.core.context import RunContext
from aiforge.core.errors import StepFailed
from aiforge.core.models.outcome import InstallOutcome
from aiforge.core.services.detection import debian_arch, get_tool_version, major_of

logger = logging.getLogger(__name__)

GO_ROOT = "/usr/local/go"
GO_DOWNLOAD_URL = "https://go.dev/dl/{tarball}"
RUSTUP_URL = "https://sh.rustup.rs"


# ── Node.js ─────────────────────────────────────────────────────


@REGISTRY.component("node", 4, "Node.js via NodeSource", settings=("NODE_MAJOR",))
def install_node(ctx: RunContext) -> InstallOutcome:
    requested = ctx.settings["NODE_MAJOR"]
    installed = get_tool_version(ctx.runner, "node")

    if installed:
        if major_of(installed) == requested:
            return InstallOutcome.skip("node", f"Node v{installed} already installed")
        warning = (
            f"Node v{installed} is installed but NODE_MAJOR={requested}; "
            "leaving it in place (remove nodejs and re-run to switch)"
        )
        logger.warning("%s", warning)
        return InstallOutcome.skip(
            "node",
            f"Node v{installed} already installed",
            warnings=[warning],
            metadata={"installed": installed, "requested": requested},
        )

    ctx.repos.ensure_known("nodesource", node_major=requested)
    ctx.packages.install(["nodejs"])

    if ctx.which("corepack"):
        if ctx.try_run(["corepack", "enable"], step="corepack enable", sudo=True,
                       retry="sudo corepack enable"):
            ctx.try_run(
                ["corepack", "prepare", "pnpm@latest", "--activate"],
                step="activate pnpm",
                retry="corepack prepare pnpm@latest --activate",
            )

    return InstallOutcome.success("node", f"Node {requested}.x installed")


# ── Go ──────────────────────────────────────────────────────────


@REGISTRY.component(
    "go",
    5,
    "Go to /usr/local/go",
    settings=("GO_VERSION",),
    path_entries=(f"{GO_ROOT}/bin",),
)
def install_go(ctx: RunContext) -> InstallOutcome:
    requested = ctx.settings["GO_VERSION"]
    installed = get_tool_version(ctx.runner, "go")

    if installed == requested:
        return InstallOutcome.skip("go", f"Go {installed} already installed")

    if installed:
        logger.info("Upgrading Go %s -> %s in place", installed, requested)

    arch = debian_arch(ctx.runner)
    tarball = f"go{requested}.linux-{arch}.tar.gz"
    logger.info("Installing Go %s for %s", requested, arch)

    with tempfile.TemporaryDirectory(prefix="ai-forge-") as tmp:
        archive = ctx.download(
            GO_DOWNLOAD_URL.format(tarball=tarball),
            Path(tmp) / tarball,
            step=f"Go {requested} download",
        )
        ctx.run(["rm", "-rf", GO_ROOT], step="remove previous Go", sudo=True)
        ctx.run(["tar", "-C", "/usr/local", "-xzf", str(archive)], step="unpack Go", sudo=True)

    message = f"Go upgraded {installed} -> {requested}" if installed else f"Go {requested} installed"
    return InstallOutcome.success(
        "go",
        message,
        metadata={"from_version": installed, "to_version": requested},
    )


# ── Rust ────────────────────────────────────────────────────────


@REGISTRY.component("rust", 6, "Rust via rustup", path_entries=("$HOME/.cargo/bin",))
def install_rust(ctx: RunContext) -> InstallOutcome:
    if ctx.which("rustup"):
        version = get_tool_version(ctx.runner, "rustc", path=str(ctx.home / ".cargo" / "bin"))
        return InstallOutcome.skip("rust", f"Rust already installed ({version or 'version unknown'})")

    logger.info("Installing Rust via rustup")
    ctx.run_upstream_script(RUSTUP_URL, step="rustup install", args=["-y"])
    return InstallOutcome.success("rust", "Rust installed via rustup")


@REGISTRY.component(
    "htmlq",
    7,
    "htmlq (installed via cargo)",
    requires=("rust",),
    best_effort=True,
)
def install_htmlq(ctx: RunContext) -> InstallOutcome:
    if ctx.which("htmlq"):
        return InstallOutcome.skip("htmlq", "htmlq already installed")

    cargo = ctx.which("cargo")
    if not cargo:
        raise StepFailed(
            "htmlq requires Rust (cargo); install Rust first",
            step="htmlq prerequisites",
            retry="ai-forge install --select rust,htmlq",
        )

    logger.info("Installing htmlq via cargo")
    ctx.run([cargo, "install", "htmlq"], step="cargo install htmlq", env=ctx.user_env(),
            retry="cargo install htmlq")
    return InstallOutcome.success("htmlq", "htmlq installed")


# ── Python virtualenv ───────────────────────────────────────────


@REGISTRY.component(
    "python",
    14,
    "Python virtualenv for agents",
    settings=("PY_VENV_DIR", "PIP_CONSTRAINTS"),
)
def install_python_venv(ctx: RunContext) -> InstallOutcome:
    venv = ctx.expand(ctx.settings["PY_VENV_DIR"])
    if (venv / "bin" / "python").exists():
        return InstallOutcome.skip("python", f"Virtualenv already exists at {venv}")

    ctx.packages.install(["python3-venv", "python3-pip"])
    logger.info("Creating virtualenv at %s", venv)
    ctx.run(["python3", "-m", "venv", str(venv)], step="create virtualenv")

    warnings: list[str] = []
    pip_cmd = [str(venv / "bin" / "pip"), "install", "--upgrade", "pip", "setuptools", "wheel"]
    constraints = ctx.settings.get("PIP_CONSTRAINTS")
    if constraints:
        constraints_path = ctx.expand(constraints)
        if constraints_path.is_file():
            pip_cmd += ["-c", str(constraints_path)]
        else:
            warning = f"Constraints file not found: {constraints_path}; installing without constraints"
            logger.warning("%s", warning)
            warnings.append(warning)

    ctx.try_run(pip_cmd, step="upgrade pip tooling", retry=" ".join(pip_cmd))
    return InstallOutcome.success("python", f"Virtualenv created at {venv}", warnings=warnings)
