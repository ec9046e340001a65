from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence


@dataclass(frozen=True)
class ElevatorSnapshot:
    """Lightweight view of an elevator for selection decisions."""

    elevator_id: int
    floor: int
    busy: bool

    def distance_to(self, floor: int) -> int:
        return abs(self.floor - floor)


class Selector(Protocol):
    """Strategy interface for choosing an elevator for a ride request."""

    def select(self, elevators: Sequence[ElevatorSnapshot], origin: int) -> Optional[int]:
        """
        Return the id of the elevator that should serve a pickup at ``origin``.

        ``elevators`` is ordered by registration. Implementations return
        ``None`` when no elevator is eligible; the caller treats that as a
        dropped request.
        """
        ...
