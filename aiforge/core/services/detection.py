"""
Host detection — read-only probes for the target OS and installed versions.

Version probes run ``--version`` style commands and parse the output
with a regex, returning ``None`` when the tool is absent or the output
is unrecognised.
"""

from __future__ import annotations

import getpass
import logging
import os
import re
from pathlib import Path
from typing import Any

from aiforge.core.errors import FatalError

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")
SUPPORTED_ID = "ubuntu"
SUPPORTED_VERSION_ID = "24.04"

VERSION_COMMANDS: dict[str, tuple[list[str], str]] = {
    "node":    (["node", "--version"],                 r"v(\d+\.\d+\.\d+)"),
    "go":      (["/usr/local/go/bin/go", "version"],   r"go(\d+\.\d+(?:\.\d+)?)"),
    "rustc":   (["rustc", "--version"],                r"rustc\s+(\d+\.\d+\.\d+)"),
    "htmlq":   (["htmlq", "--version"],                r"htmlq\s+(\d+\.\d+\.\d+)"),
    "ollama":  (["ollama", "--version"],               r"(\d+\.\d+\.\d+)"),
    "docker":  (["docker", "--version"],               r"Docker version\s+(\d+\.\d+\.\d+)"),
    "psql":    (["psql", "--version"],                 r"psql \(PostgreSQL\)\s+(\d+(?:\.\d+)?)"),
}


def parse_os_release(path: Path = OS_RELEASE) -> dict[str, str]:
    """Parse ``/etc/os-release`` into a dict (quotes stripped)."""
    info: dict[str, str] = {}
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return info
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        info[key] = value.strip().strip('"').strip("'")
    return info


def check_supported_os(path: Path = OS_RELEASE) -> dict[str, str]:
    """Ensure the host is the one supported distribution/version.

    Raises:
        FatalError: On any other OS or version.
    """
    info = parse_os_release(path)
    if info.get("ID") != SUPPORTED_ID or info.get("VERSION_ID") != SUPPORTED_VERSION_ID:
        found = f"{info.get('ID', 'unknown')} {info.get('VERSION_ID', '')}".strip()
        raise FatalError(
            f"This installer targets Ubuntu {SUPPORTED_VERSION_ID} LTS only (found: {found}).",
            step="OS check",
        )
    logger.debug("Detected OS: %s %s", info["ID"], info["VERSION_ID"])
    return info


def get_tool_version(runner: Any, tool: str, *, path: str | None = None) -> str | None:
    """Get the installed version of a tool from ``VERSION_COMMANDS``.

    Args:
        runner: Command runner.
        tool: Key into ``VERSION_COMMANDS``.
        path: Extra PATH to search (e.g. ``~/.cargo/bin``).
    """
    entry = VERSION_COMMANDS.get(tool)
    if entry is None:
        return None
    cmd, pattern = entry
    env = {"PATH": f"{path}:$PATH"} if path else None
    result = runner.run(cmd, probe=True, env=env)
    if not result["ok"]:
        return None
    output = (result.get("stdout") or "") + (result.get("stderr") or "")
    match = re.search(pattern, output)
    return match.group(1) if match else None


def major_of(version: str | None) -> str | None:
    """``"24.1.0"`` → ``"24"``."""
    if not version:
        return None
    return version.split(".", 1)[0]


def debian_arch(runner: Any) -> str:
    """Map the host architecture to the names upstream tarballs use.

    Raises:
        FatalError: On an architecture nobody ships binaries for.
    """
    result = runner.run(["dpkg", "--print-architecture"], probe=True)
    arch = result.get("stdout", "").strip()
    if not arch:
        arch = runner.run(["uname", "-m"], probe=True).get("stdout", "").strip()
    mapping = {"amd64": "amd64", "x86_64": "amd64", "arm64": "arm64", "aarch64": "arm64"}
    if arch not in mapping:
        raise FatalError(f"Unsupported architecture: {arch or 'unknown'}", step="architecture check")
    return mapping[arch]


def current_user() -> str:
    """Name of the invoking user (the one whose shell and home we configure)."""
    return os.environ.get("SUDO_USER") or os.environ.get("USER") or getpass.getuser()


def login_shell(runner: Any, user: str) -> str | None:
    """Read the user's login shell from the passwd database."""
    result = runner.run(["getent", "passwd", user], probe=True)
    if not result["ok"]:
        return None
    fields = result.get("stdout", "").strip().split(":")
    return fields[6] if len(fields) >= 7 else None
