from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RideRequest:
    """A single rider asking to travel from ``origin`` to ``destination``."""

    request_id: int
    origin: int
    destination: int
    has_credential: bool = False

    def __str__(self) -> str:
        return f"[Rider {self.request_id}] Floor {self.origin} -> Destination: {self.destination}"
