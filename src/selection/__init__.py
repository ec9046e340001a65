from __future__ import annotations

from typing import Dict, Type

from .interface import ElevatorSnapshot, Selector
from .nearest import NearestIdleSelector

__all__ = [
    "ElevatorSnapshot",
    "NearestIdleSelector",
    "Selector",
    "SELECTOR_REGISTRY",
    "get_selector",
]


SELECTOR_REGISTRY: Dict[str, Type[Selector]] = {
    "nearest_idle": NearestIdleSelector,
}


def get_selector(name: str, **kwargs) -> Selector:
    cls = SELECTOR_REGISTRY.get(name.lower())
    if cls is None:
        raise ValueError(f"Unknown selector '{name}'. Available: {', '.join(SELECTOR_REGISTRY)}")
    return cls(**kwargs)
