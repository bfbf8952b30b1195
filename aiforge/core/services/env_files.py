"""
Environment file writer — managed shell fragments and guarded profile lines.

Two kinds of file:

    - Managed fragments (``~/.config/ai-forge/env.sh``, ``env.zsh``):
      owned by ai-forge and rewritten in full on every run.
    - User profiles (``~/.bashrc``, ``~/.profile``, ``~/.zshrc``):
      only ever receive one include line each, appended once.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

MANAGED_DIR = Path(".config") / "ai-forge"
FRAGMENT_HEADER = "# ai-forge env (managed by installer)"

# Always on PATH, whether or not the directories exist yet.
BASE_PATH_ENTRIES = ("$HOME/.local/bin", "$HOME/.cargo/bin", "$HOME/.bun/bin")

DIALECTS = {
    "sh": {
        "fragment": "env.sh",
        "include": '[ -f "$HOME/.config/ai-forge/env.sh" ] && . "$HOME/.config/ai-forge/env.sh"',
        "profiles": (".bashrc", ".profile"),
    },
    "zsh": {
        "fragment": "env.zsh",
        "include": '[[ -f "$HOME/.config/ai-forge/env.zsh" ]] && source "$HOME/.config/ai-forge/env.zsh"',
        "profiles": (".zshrc",),
    },
}


def write_fragment(path: Path, content: str) -> bool:
    """Overwrite a managed fragment with ``content``.

    Returns:
        True if the file content changed.
    """
    data = content.encode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.is_file() and path.read_bytes() == data:
        return False
    path.write_bytes(data)
    logger.debug("Wrote managed fragment %s", path)
    return True


def append_once(line: str, profile_path: Path) -> bool:
    """Append ``line`` to ``profile_path`` unless an identical line exists.

    Lines are compared as raw bytes; the profile encoding is never
    assumed.  Creates the file and its parent directory when absent.
    Existing lines are never reordered or removed.

    Returns:
        True if the line was appended.
    """
    encoded = line.encode("utf-8")
    profile_path.parent.mkdir(parents=True, exist_ok=True)
    existing = profile_path.read_bytes() if profile_path.exists() else b""
    if encoded in existing.splitlines():
        return False
    with open(profile_path, "ab") as fh:
        fh.write(b"\n" + encoded + b"\n")
    logger.info("Added include line to %s", profile_path)
    return True


def _home_relative(path: str, home: Path) -> str:
    """Render ``path`` with ``$HOME`` where it lives under the home directory."""
    if path.startswith("~/"):
        return "$HOME/" + path[2:]
    try:
        rel = Path(path).relative_to(home)
    except ValueError:
        return path
    return f"$HOME/{rel}"


def render_fragment(
    dialect: str,
    *,
    venv_dir: str,
    home: Path,
    extra_path_entries: Iterable[str] = (),
) -> str:
    """Build the full text of a managed fragment.

    ``extra_path_entries`` are component directories that exist on disk
    (e.g. ``/usr/local/go/bin``); they are prepended ahead of the base
    entries.  The output depends only on its inputs, so a re-run that
    skips a component still keeps its PATH entry.
    """
    if dialect not in DIALECTS:
        raise ValueError(f"Unknown shell dialect: {dialect}")
    entries = [*extra_path_entries, *BASE_PATH_ENTRIES]
    lines = [
        FRAGMENT_HEADER,
        f'export PATH="{":".join(entries)}:$PATH"',
        f'export AI_FORGE_VENV="${{AI_FORGE_VENV:-{_home_relative(venv_dir, home)}}}"',
    ]
    return "\n".join(lines) + "\n"


def setup_managed_env(
    home: Path,
    *,
    venv_dir: str,
    extra_path_entries: Iterable[str] = (),
) -> dict[str, list[str]]:
    """Write both fragments and the guarded include lines.

    Returns:
        ``{"written": [...], "appended": [...]}`` — paths that changed.
    """
    extra = list(extra_path_entries)
    managed_dir = home / MANAGED_DIR
    changes: dict[str, list[str]] = {"written": [], "appended": []}

    for dialect, spec in DIALECTS.items():
        fragment = managed_dir / spec["fragment"]
        content = render_fragment(dialect, venv_dir=venv_dir, home=home, extra_path_entries=extra)
        if write_fragment(fragment, content):
            changes["written"].append(str(fragment))
        for profile in spec["profiles"]:
            target = home / profile
            if append_once(spec["include"], target):
                changes["appended"].append(str(target))

    return changes
