"""
Desktop apps and services — Snap editors, Ollama (+ a model) and Docker.
"""

from __future__ import annotations

import logging
import time

from aiforge.core.components.registry import REGISTRY
from aiforge.core.context import RunContext
from aiforge.core.errors import StepFailed
from aiforge.core.models.outcome import InstallOutcome
from aiforge.core.services.detection import current_user

logger = logging.getLogger(__name__)

OLLAMA_URL = "https://ollama.com/install.sh"
SERVE_WARMUP = 2.0

DOCKER_PACKAGES = [
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
]


# ── Snap ────────────────────────────────────────────────────────


def ensure_snapd(ctx: RunContext) -> None:
    """Install snapd when the ``snap`` command is missing."""
    if ctx.which("snap"):
        return
    logger.info("Installing snapd (required for Snap installs)")
    ctx.packages.install(["snapd"])
    ctx.try_run(
        ["systemctl", "enable", "--now", "snapd.socket"],
        step="enable snapd.socket",
        sudo=True,
        retry="sudo systemctl enable --now snapd.socket",
    )


def snap_installed(ctx: RunContext, name: str) -> bool:
    if not ctx.which("snap"):
        return False
    return ctx.probe(["snap", "list", name])["ok"]


def snap_install(ctx: RunContext, key: str, name: str, *, classic: bool = False) -> InstallOutcome:
    if snap_installed(ctx, name):
        return InstallOutcome.skip(key, f"Snap already installed: {name}")

    ensure_snapd(ctx)
    cmd = ["snap", "install", name]
    if classic:
        cmd.append("--classic")
    logger.info("Installing Snap: %s%s", name, " (classic)" if classic else "")
    ctx.run(cmd, step=f"snap install {name}", sudo=True, retry=f"sudo {' '.join(cmd)}")
    return InstallOutcome.success(key, f"Snap installed: {name}")


@REGISTRY.component("vscode", 9, "VS Code (Snap, classic)")
def install_vscode(ctx: RunContext) -> InstallOutcome:
    return snap_install(ctx, "vscode", "code", classic=True)


@REGISTRY.component("obsidian", 10, "Obsidian (Snap)")
def install_obsidian(ctx: RunContext) -> InstallOutcome:
    return snap_install(ctx, "obsidian", "obsidian")


# ── Ollama ──────────────────────────────────────────────────────


@REGISTRY.component("ollama", 11, "Ollama")
def install_ollama(ctx: RunContext) -> InstallOutcome:
    if ctx.which("ollama"):
        return InstallOutcome.skip("ollama", "Ollama already installed")

    logger.info("Installing Ollama")
    ctx.run_upstream_script(OLLAMA_URL, step="Ollama install")
    return InstallOutcome.success("ollama", "Ollama installed")


def model_present(ctx: RunContext, model: str) -> bool:
    """True if ``ollama list`` already shows ``model`` (with or without a tag)."""
    result = ctx.probe(["ollama", "list"])
    if not result["ok"]:
        return False
    for line in result.get("stdout", "").splitlines()[1:]:
        name = line.split()[0] if line.split() else ""
        if name == model or name.split(":", 1)[0] == model:
            return True
    return False


@REGISTRY.component(
    "model",
    12,
    "Pull an Ollama model",
    settings=("OLLAMA_PULL_MODEL",),
    requires=("ollama",),
    best_effort=True,
)
def pull_model(ctx: RunContext) -> InstallOutcome:
    model = ctx.settings.get("OLLAMA_PULL_MODEL")
    if not model:
        logger.warning("OLLAMA_PULL_MODEL is empty; skipping pull")
        return InstallOutcome.skip("model", "No model configured")

    if not ctx.which("ollama"):
        raise StepFailed(
            "Ollama is not installed",
            step="model prerequisites",
            retry="ai-forge install --select ollama,model",
        )

    if model_present(ctx, model):
        return InstallOutcome.skip("model", f"Model already pulled: {model}")

    server = None
    if not ctx.probe(["pgrep", "-x", "ollama"])["ok"]:
        logger.info("Starting a temporary ollama server")
        server = ctx.runner.spawn(["ollama", "serve"])
        if server is not None:
            time.sleep(SERVE_WARMUP)

    try:
        logger.info("Pulling Ollama model: %s", model)
        ctx.run(["ollama", "pull", model], step=f"ollama pull {model}", retry=f"ollama pull {model}")
    finally:
        if server is not None:
            server.terminate()
            server.wait(timeout=10)

    return InstallOutcome.success("model", f"Model pulled: {model}")


# ── Docker ──────────────────────────────────────────────────────


@REGISTRY.component("docker", 13, "Docker Engine + Compose")
def install_docker(ctx: RunContext) -> InstallOutcome:
    missing = ctx.packages.missing(DOCKER_PACKAGES)
    if not missing:
        return InstallOutcome.skip("docker", "Docker Engine already installed")

    ctx.repos.ensure_known("docker")
    ctx.packages.install(DOCKER_PACKAGES)

    user = current_user()
    warnings: list[str] = []
    if user and user != "root":
        if ctx.try_run(
            ["usermod", "-aG", "docker", user],
            step=f"add {user} to the docker group",
            sudo=True,
            retry=f"sudo usermod -aG docker {user}",
        ):
            warnings.append("Docker group membership applies at next login")

    return InstallOutcome.success("docker", "Docker Engine installed", warnings=warnings)
