"""
Selection engine — turn user input into an ordered set of component keys.

Input comes from ``INSTALL_SELECTION``, ``--select`` or the interactive
menu.  Tokens are split on commas and whitespace; ``all`` (any case)
selects everything; numbers and keys both resolve through the registry.
Output is always in registration order with no duplicates.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from aiforge.core.components.registry import ComponentRegistry
from aiforge.core.errors import SelectionError

logger = logging.getLogger(__name__)

_SPLIT = re.compile(r"[,\s]+")


@dataclass
class Selection:
    """A normalized selection.

    Attributes:
        keys: Component keys in dispatch order.
        unknown: Tokens that matched no component.
        added: Prerequisites pulled in automatically.
    """

    keys: list[str] = field(default_factory=list)
    unknown: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.keys)


def tokenize(raw: str | None) -> list[str]:
    """Split raw input on commas and whitespace, dropping empties."""
    if not raw:
        return []
    return [t for t in _SPLIT.split(raw.strip()) if t]


def normalize_selection(raw: str | None, registry: ComponentRegistry) -> Selection:
    """Normalize raw selection input against ``registry``.

    Unknown tokens are logged and reported, never fatal here.
    """
    chosen: set[str] = set()
    unknown: list[str] = []
    select_all = False
    for token in tokenize(raw):
        if token.lower() == "all":
            select_all = True
            continue
        key = registry.resolve_token(token)
        if key is None:
            logger.warning("Unknown selection: %s (ignored)", token)
            if token not in unknown:
                unknown.append(token)
            continue
        chosen.add(key)

    if select_all:
        return Selection(keys=registry.keys(), unknown=unknown)
    return Selection(keys=[k for k in registry.keys() if k in chosen], unknown=unknown)


def with_prerequisites(selection: Selection, registry: ComponentRegistry) -> Selection:
    """Add components required by the selected ones (transitively)."""
    chosen = set(selection.keys)
    added: list[str] = []
    pending = list(selection.keys)
    while pending:
        key = pending.pop()
        for dep in registry.get(key).requires:
            if dep not in chosen:
                chosen.add(dep)
                added.append(dep)
                pending.append(dep)
                logger.info("Adding %s (required by %s)", dep, key)

    return Selection(
        keys=[k for k in registry.keys() if k in chosen],
        unknown=list(selection.unknown),
        added=[k for k in registry.keys() if k in added],
    )


def render_menu(registry: ComponentRegistry) -> str:
    """Menu text listing every component by number."""
    lines = ["Select components to install (comma-separated numbers or keys, or 'all'):"]
    for c in registry:
        lines.append(f"  {c.number:>2}) {c.key:<9} {c.label}")
    return "\n".join(lines)


def collect_selection(
    registry: ComponentRegistry,
    *,
    raw: str | None,
    interactive: bool,
    ask: Callable[[str], str] | None = None,
) -> Selection:
    """Resolve the selection for this run.

    Non-interactive: ``raw`` must resolve to at least one component.
    Interactive: ``raw`` is used when it resolves; otherwise ``ask`` is
    called with the menu until the answer resolves.

    Raises:
        SelectionError: Empty selection in non-interactive mode.
    """
    selection = normalize_selection(raw, registry)
    if selection:
        return selection

    if not interactive or ask is None:
        raise SelectionError(
            "No components selected. Set INSTALL_SELECTION (e.g. 'all' or '4,5,node') "
            "or pass --select."
        )

    menu = render_menu(registry)
    while True:
        selection = normalize_selection(ask(menu), registry)
        if selection:
            return selection
        logger.warning("Nothing selected; choose at least one component.")
