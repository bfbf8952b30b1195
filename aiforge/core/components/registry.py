"""
Component registry — table-driven descriptors for every installable component.

A component is a small descriptor: identity (key + menu number), an
install procedure and a few flags.  Installer modules register their
procedures with the ``REGISTRY.component`` decorator; the registry
keeps them in menu-number order, which is also dispatch order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aiforge.core.context import RunContext
    from aiforge.core.models.outcome import InstallOutcome

InstallProcedure = Callable[["RunContext"], "InstallOutcome"]


@dataclass(frozen=True)
class Component:
    """An installable component.

    Attributes:
        key: Stable short identifier (``node``, ``go``...).
        number: Menu position; also accepted as a selection token.
        label: Human-readable description.
        install: Procedure returning an ``InstallOutcome``.
        settings: Configuration values the procedure reads.
        requires: Keys of components that must run first.
        best_effort: Failures are recorded instead of aborting the run.
        path_entries: Directories the managed fragments put on PATH once
            they exist (``$HOME/...`` or absolute).
    """

    key: str
    number: int
    label: str
    install: InstallProcedure
    settings: tuple[str, ...] = ()
    requires: tuple[str, ...] = ()
    best_effort: bool = False
    path_entries: tuple[str, ...] = ()


class ComponentRegistry:
    """Ordered lookup of components by key or menu number."""

    def __init__(self) -> None:
        self._by_key: dict[str, Component] = {}

    def register(self, component: Component) -> None:
        if component.key in self._by_key:
            raise ValueError(f"Duplicate component key: {component.key}")
        if any(c.number == component.number for c in self._by_key.values()):
            raise ValueError(f"Duplicate component number: {component.number}")
        self._by_key[component.key] = component

    def component(
        self,
        key: str,
        number: int,
        label: str,
        **kwargs: object,
    ) -> Callable[[InstallProcedure], InstallProcedure]:
        """Decorator registering an install procedure."""

        def decorator(fn: InstallProcedure) -> InstallProcedure:
            self.register(Component(key=key, number=number, label=label, install=fn, **kwargs))  # type: ignore[arg-type]
            return fn

        return decorator

    def get(self, key: str) -> Component:
        return self._by_key[key]

    def resolve_token(self, token: str) -> str | None:
        """Map a selection token (key or number) to a component key."""
        token = token.strip().lower()
        if token in self._by_key:
            return token
        if token.isdigit():
            number = int(token)
            for c in self._by_key.values():
                if c.number == number:
                    return c.key
        return None

    def keys(self) -> list[str]:
        """All keys in registration (menu) order."""
        return [c.key for c in self]

    def __iter__(self) -> Iterator[Component]:
        return iter(sorted(self._by_key.values(), key=lambda c: c.number))

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key


REGISTRY = ComponentRegistry()


def default_registry() -> ComponentRegistry:
    """Return the registry with every built-in component loaded."""
    from aiforge.core.components import (  # noqa: F401
        apps,
        database,
        runtimes,
        shell,
        version_managers,
    )

    return REGISTRY
