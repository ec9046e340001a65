from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import asdict, dataclass
from enum import Enum
from typing import List, Optional


class EventKind(str, Enum):
    PICKUP = "pickup"
    ARRIVAL = "arrival"
    ACCESS_DENIED = "access_denied"
    BUSY_CLEARED = "busy_cleared"
    DISPATCHED = "dispatched"
    NO_AVAILABLE_ELEVATOR = "no_available_elevator"
    SUBMISSION_REJECTED = "submission_rejected"
    SHUTDOWN_TIMEOUT = "shutdown_timeout"
    ELEVATOR_STOPPED = "elevator_stopped"
    SHUTDOWN_COMPLETE = "shutdown_complete"


@dataclass(frozen=True)
class BankEvent:
    kind: EventKind
    timestamp: float
    elevator_id: Optional[int] = None
    request_id: Optional[int] = None
    floor: Optional[int] = None
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass
class EventCounts:
    dispatched: int
    completed: int
    denied: int
    dropped: int
    rejected: int
    timeouts: int


class EventLog:
    """Thread-safe record of everything observable the bank does."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: List[BankEvent] = []
        self._counts: Counter = Counter()

    def record(
        self,
        kind: EventKind,
        *,
        elevator_id: Optional[int] = None,
        request_id: Optional[int] = None,
        floor: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> BankEvent:
        event = BankEvent(
            kind=kind,
            timestamp=time.monotonic(),
            elevator_id=elevator_id,
            request_id=request_id,
            floor=floor,
            detail=detail,
        )
        with self._lock:
            self._events.append(event)
            self._counts[kind] += 1
        return event

    def events(self, kind: Optional[EventKind] = None) -> List[BankEvent]:
        with self._lock:
            if kind is None:
                return list(self._events)
            return [event for event in self._events if event.kind == kind]

    def count(self, kind: EventKind) -> int:
        with self._lock:
            return self._counts[kind]

    def snapshot(self) -> EventCounts:
        with self._lock:
            return EventCounts(
                dispatched=self._counts[EventKind.DISPATCHED],
                completed=self._counts[EventKind.ARRIVAL],
                denied=self._counts[EventKind.ACCESS_DENIED],
                dropped=self._counts[EventKind.NO_AVAILABLE_ELEVATOR],
                rejected=self._counts[EventKind.SUBMISSION_REJECTED],
                timeouts=self._counts[EventKind.SHUTDOWN_TIMEOUT],
            )
