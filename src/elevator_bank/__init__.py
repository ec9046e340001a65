"""Dispatch and concurrency core for a simulated elevator bank."""

from .access import DEFAULT_SECURE_FLOORS, AccessPolicy
from .config import BankConfig
from .dispatcher import Dispatcher, SubmitOutcome
from .elevator import Elevator, RideOutcome
from .events import BankEvent, EventCounts, EventKind, EventLog
from .request import RideRequest

__all__ = [
    "AccessPolicy",
    "BankConfig",
    "BankEvent",
    "DEFAULT_SECURE_FLOORS",
    "Dispatcher",
    "Elevator",
    "EventCounts",
    "EventKind",
    "EventLog",
    "RideOutcome",
    "RideRequest",
    "SubmitOutcome",
]
