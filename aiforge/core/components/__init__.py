"""
Component installer set.

Each module registers its installers on ``REGISTRY`` at import time;
``default_registry()`` imports them all.

    from aiforge.core.components import default_registry
"""

from aiforge.core.components.registry import (
    REGISTRY,
    Component,
    ComponentRegistry,
    default_registry,
)

__all__ = [
    "REGISTRY",
    "Component",
    "ComponentRegistry",
    "default_registry",
]
