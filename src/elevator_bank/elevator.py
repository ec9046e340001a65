from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from typing import Optional

from selection import ElevatorSnapshot

from .access import AccessPolicy
from .config import BankConfig
from .events import EventKind, EventLog
from .request import RideRequest
from .timer import DelayedAction

logger = logging.getLogger(__name__)


class RideOutcome(str, Enum):
    COMPLETED = "completed"
    ACCESS_DENIED = "access_denied"
    OUT_OF_SERVICE = "out_of_service"


@dataclass(eq=False)
class Elevator:
    """A single elevator unit whose floor and busy flag are guarded by its own lock.

    ``serve`` moves the car in one critical section and hands the end of the
    busy window to a private delayed action, so callers never wait out the
    travel time. The elevator accepts rides only between ``start`` and ``stop``.
    """

    elevator_id: int
    initial_floor: int
    policy: AccessPolicy = field(default_factory=AccessPolicy)
    travel_delay: float = 1.0
    grace_period: float = 3.0
    events: Optional[EventLog] = None
    _floor: int = field(init=False, repr=False)
    _busy: bool = field(init=False, default=False, repr=False)
    _trip: int = field(init=False, default=0, repr=False)
    _in_service: bool = field(init=False, default=False, repr=False)
    _stopping: bool = field(init=False, default=False, repr=False)
    _flushed: bool = field(init=False, default=True, repr=False)
    _stopped: threading.Event = field(init=False, repr=False, default_factory=threading.Event)
    _lock: threading.Lock = field(init=False, repr=False, default_factory=threading.Lock)
    _timer: DelayedAction = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._floor = self.initial_floor
        self._timer = DelayedAction(f"elevator-{self.elevator_id}")

    @classmethod
    def from_config(
        cls, elevator_id: int, initial_floor: int, config: BankConfig, events: Optional[EventLog] = None
    ) -> "Elevator":
        return cls(
            elevator_id=elevator_id,
            initial_floor=config.check_floor(initial_floor),
            policy=config.access_policy(),
            travel_delay=config.travel_delay,
            grace_period=config.grace_period,
            events=events,
        )

    @property
    def current_floor(self) -> int:
        with self._lock:
            return self._floor

    def is_busy(self) -> bool:
        with self._lock:
            return self._busy

    def in_service(self) -> bool:
        with self._lock:
            return self._in_service

    def snapshot(self) -> ElevatorSnapshot:
        with self._lock:
            return ElevatorSnapshot(elevator_id=self.elevator_id, floor=self._floor, busy=self._busy)

    def start(self) -> None:
        with self._lock:
            if self._stopping:
                raise RuntimeError(f"elevator {self.elevator_id} has been stopped")
            self._in_service = True
            self._timer.start()

    def serve(self, request: RideRequest) -> RideOutcome:
        with self._lock:
            if not self._in_service:
                logger.warning("[Elevator %s] Not in service, ignoring %s", self.elevator_id, request)
                return RideOutcome.OUT_OF_SERVICE

            if not self.policy.is_permitted(request.destination, request.has_credential):
                logger.warning("[Elevator %s] Access denied to floor %s", self.elevator_id, request.destination)
                self._record(
                    EventKind.ACCESS_DENIED,
                    elevator_id=self.elevator_id,
                    request_id=request.request_id,
                    floor=request.destination,
                )
                return RideOutcome.ACCESS_DENIED

            logger.info("[Elevator %s] Picking up %s", self.elevator_id, request)
            self._floor = request.origin
            self._record(
                EventKind.PICKUP, elevator_id=self.elevator_id, request_id=request.request_id, floor=request.origin
            )

            logger.info("[Elevator %s] Moving to destination floor %s", self.elevator_id, request.destination)
            self._floor = request.destination
            self._busy = True
            self._trip += 1
            self._record(
                EventKind.ARRIVAL,
                elevator_id=self.elevator_id,
                request_id=request.request_id,
                floor=request.destination,
            )
            self._timer.schedule(self.travel_delay, partial(self._clear_busy, self._trip))
        return RideOutcome.COMPLETED

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Stop taking rides and wind down the busy-clear timer.

        A pending busy-clear gets ``timeout`` seconds (default: the grace
        period) to fire before it is cancelled. Returns False when something
        had to be cancelled. Only the first call does any work; later calls
        wait for it to finish and return its result.
        """
        with self._lock:
            first = not self._stopping
            self._stopping = True
            self._in_service = False
        if not first:
            self._stopped.wait()
            return self._flushed

        grace = self.grace_period if timeout is None else max(0.0, timeout)
        try:
            flushed = self._timer.stop(grace)
        except KeyboardInterrupt:
            self._flushed = False
            self._record(EventKind.SHUTDOWN_TIMEOUT, elevator_id=self.elevator_id, detail="interrupted")
            self._stopped.set()
            raise
        if not flushed:
            logger.warning(
                "[Elevator %s] Busy-clear still pending after %.2fs, cancelled", self.elevator_id, grace
            )
            self._record(EventKind.SHUTDOWN_TIMEOUT, elevator_id=self.elevator_id, detail="timer")
        self._flushed = flushed
        logger.info("[Elevator %s] Shutdown completed.", self.elevator_id)
        self._record(EventKind.ELEVATOR_STOPPED, elevator_id=self.elevator_id, floor=self.current_floor)
        self._stopped.set()
        return flushed

    def _clear_busy(self, trip: int) -> None:
        with self._lock:
            # a later trip owns the busy window now
            if trip != self._trip:
                return
            self._busy = False
            floor = self._floor
        logger.debug("[Elevator %s] Idle at floor %s", self.elevator_id, floor)
        self._record(EventKind.BUSY_CLEARED, elevator_id=self.elevator_id, floor=floor)

    def _record(self, kind: EventKind, **fields) -> None:
        if self.events is not None:
            self.events.record(kind, **fields)
