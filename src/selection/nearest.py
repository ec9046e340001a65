from __future__ import annotations

from typing import Optional, Sequence

from .interface import ElevatorSnapshot


class NearestIdleSelector:
    """Picks the idle elevator closest to the pickup floor."""

    def select(self, elevators: Sequence[ElevatorSnapshot], origin: int) -> Optional[int]:
        idle = [e for e in elevators if not e.busy]
        if not idle:
            return None
        # min() keeps the first minimal element, so ties go to registration order
        chosen = min(idle, key=lambda e: e.distance_to(origin))
        return chosen.elevator_id
