"""Process-wide configuration for an elevator bank."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from .access import DEFAULT_SECURE_FLOORS, AccessPolicy


@dataclass(frozen=True)
class BankConfig:
    """Building range, access rules and timing for one dispatcher.

    ``travel_delay`` and ``grace_period`` are in seconds of wall time; one
    simulated time unit is one second by default.
    """

    min_floor: int = 1
    max_floor: int = 12
    secure_floors: Tuple[int, ...] = field(default_factory=lambda: tuple(sorted(DEFAULT_SECURE_FLOORS)))
    travel_delay: float = 1.0
    grace_period: float = 3.0
    worker_count: int = 4
    queue_capacity: int = 16
    selector: str = "nearest_idle"

    def __post_init__(self) -> None:
        if self.max_floor < self.min_floor:
            raise ValueError("max_floor must not be below min_floor")
        for floor in self.secure_floors:
            if not self.contains_floor(floor):
                raise ValueError(f"secure floor {floor} is outside {self.min_floor}..{self.max_floor}")
        if self.travel_delay < 0:
            raise ValueError("travel_delay cannot be negative")
        if self.grace_period < 0:
            raise ValueError("grace_period cannot be negative")
        if self.worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        if self.queue_capacity < 0:
            raise ValueError("queue_capacity cannot be negative")

    def contains_floor(self, floor: int) -> bool:
        return self.min_floor <= floor <= self.max_floor

    def check_floor(self, floor: int) -> int:
        if not self.contains_floor(floor):
            raise ValueError(f"floor {floor} is outside {self.min_floor}..{self.max_floor}")
        return floor

    def access_policy(self) -> AccessPolicy:
        return AccessPolicy(frozenset(self.secure_floors))

    @property
    def max_outstanding(self) -> int:
        return self.worker_count + self.queue_capacity

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BankConfig":
        defaults = cls()
        secure = data.get("secure_floors", defaults.secure_floors)
        return cls(
            min_floor=data.get("min_floor", defaults.min_floor),
            max_floor=data.get("max_floor", defaults.max_floor),
            secure_floors=tuple(sorted(set(secure))),
            travel_delay=data.get("travel_delay", defaults.travel_delay),
            grace_period=data.get("grace_period", defaults.grace_period),
            worker_count=data.get("worker_count", defaults.worker_count),
            queue_capacity=data.get("queue_capacity", defaults.queue_capacity),
            selector=data.get("selector", defaults.selector),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_floor": self.min_floor,
            "max_floor": self.max_floor,
            "secure_floors": list(self.secure_floors),
            "travel_delay": self.travel_delay,
            "grace_period": self.grace_period,
            "worker_count": self.worker_count,
            "queue_capacity": self.queue_capacity,
            "selector": self.selector,
        }
