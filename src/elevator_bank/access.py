from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet

DEFAULT_SECURE_FLOORS: FrozenSet[int] = frozenset({9, 10, 11, 12})


@dataclass(frozen=True)
class AccessPolicy:
    """Decides whether a rider may travel to a floor."""

    secure_floors: FrozenSet[int] = DEFAULT_SECURE_FLOORS

    def is_permitted(self, destination: int, has_credential: bool) -> bool:
        return has_credential or not self.is_secure(destination)

    def is_secure(self, floor: int) -> bool:
        return floor in self.secure_floors
