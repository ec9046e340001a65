from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from selection import Selector, get_selector

from .config import BankConfig
from .elevator import Elevator, RideOutcome
from .events import EventKind, EventLog
from .request import RideRequest

logger = logging.getLogger(__name__)

# how often a submitter blocked on a saturated pool re-checks for shutdown
_SLOT_POLL_INTERVAL = 0.05


class SubmitOutcome(str, Enum):
    DISPATCHED = "dispatched"
    NO_AVAILABLE_ELEVATOR = "no_available_elevator"
    REJECTED = "rejected"


class Dispatcher:
    """Matches ride requests to elevators and runs the rides on a worker pool.

    Elevators are registered up front and the collection is not changed once
    requests start arriving, so selection reads it without locking. Requests
    that find no idle elevator are dropped and reported, never queued.
    """

    def __init__(
        self,
        config: Optional[BankConfig] = None,
        events: Optional[EventLog] = None,
        selector: Optional[Selector] = None,
    ) -> None:
        self.config = config or BankConfig()
        self.events = events if events is not None else EventLog()
        self.selector = selector or get_selector(self.config.selector)
        self._elevators: List[Elevator] = []
        self._by_id: Dict[int, Elevator] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.worker_count, thread_name_prefix="dispatch"
        )
        self._slots = threading.BoundedSemaphore(self.config.max_outstanding)
        self._state_lock = threading.Lock()
        self._inflight: Set[Future] = set()
        self._closed = False
        self._shutdown_result: Optional[bool] = None
        self._shutdown_done = threading.Event()

    @classmethod
    def from_config(
        cls,
        config: BankConfig,
        initial_floors: Iterable[int],
        events: Optional[EventLog] = None,
    ) -> "Dispatcher":
        dispatcher = cls(config=config, events=events)
        for elevator_id, floor in enumerate(initial_floors, start=1):
            dispatcher.add_elevator(Elevator.from_config(elevator_id, floor, config, dispatcher.events))
        return dispatcher

    @property
    def elevators(self) -> Tuple[Elevator, ...]:
        return tuple(self._elevators)

    @property
    def closed(self) -> bool:
        with self._state_lock:
            return self._closed

    def get_elevator(self, elevator_id: int) -> Optional[Elevator]:
        return self._by_id.get(elevator_id)

    def add_elevator(self, elevator: Elevator) -> None:
        if self.closed:
            raise RuntimeError("cannot add elevators after shutdown")
        if elevator.elevator_id in self._by_id:
            raise ValueError(f"elevator id {elevator.elevator_id} is already registered")
        if elevator.events is None:
            elevator.events = self.events
        elif elevator.events is not self.events:
            raise ValueError(f"elevator {elevator.elevator_id} records to a different event log")
        elevator.start()
        self._elevators.append(elevator)
        self._by_id[elevator.elevator_id] = elevator
        logger.info("[Dispatcher] Elevator %s registered at floor %s", elevator.elevator_id, elevator.current_floor)

    def submit(self, request: RideRequest) -> SubmitOutcome:
        if self.closed:
            return self._reject(request)

        snapshots = [elevator.snapshot() for elevator in self._elevators]
        chosen_id = self.selector.select(snapshots, request.origin)
        elevator = self._by_id.get(chosen_id) if chosen_id is not None else None
        if elevator is None:
            logger.warning("[Dispatcher] No available elevator for %s, request dropped", request)
            self.events.record(
                EventKind.NO_AVAILABLE_ELEVATOR, request_id=request.request_id, floor=request.origin
            )
            return SubmitOutcome.NO_AVAILABLE_ELEVATOR

        if not self._acquire_slot():
            return self._reject(request)

        with self._state_lock:
            if self._closed:
                self._slots.release()
                return self._reject(request)
            future = self._executor.submit(self._run_ride, elevator, request)
            self._inflight.add(future)
        future.add_done_callback(self._ride_finished)

        logger.info("[Dispatcher] Assigned %s to elevator %s", request, elevator.elevator_id)
        self.events.record(
            EventKind.DISPATCHED,
            elevator_id=elevator.elevator_id,
            request_id=request.request_id,
            floor=request.origin,
        )
        return SubmitOutcome.DISPATCHED

    def status(self) -> List[Tuple[int, int]]:
        return [(elevator.elevator_id, elevator.current_floor) for elevator in self._elevators]

    def shutdown(self) -> bool:
        """Stop accepting rides, drain the pool, then stop every elevator.

        Outstanding rides and each elevator's pending busy-clear share one
        deadline of ``config.grace_period`` seconds; whatever is left after it
        is cancelled. Returns True when nothing had to be cancelled. Later
        calls wait for the first one to finish and return its result.
        """
        with self._state_lock:
            first = not self._closed
            self._closed = True
            pending = set(self._inflight)
        if not first:
            self._shutdown_done.wait()
            return self._shutdown_result is not False

        try:
            return self._shutdown(pending)
        finally:
            self._shutdown_done.set()

    def _shutdown(self, pending: Set[Future]) -> bool:
        logger.info("[Dispatcher] Shutting down with %d ride(s) in flight", len(pending))
        deadline = time.monotonic() + self.config.grace_period
        self._executor.shutdown(wait=False)

        try:
            _, not_done = wait(pending, timeout=self.config.grace_period)
        except KeyboardInterrupt:
            self._shutdown_result = False
            self._force_cancel(pending)
            try:
                self._stop_elevators(deadline=time.monotonic())
            finally:
                logger.warning("[Dispatcher] Shutdown interrupted, pending work cancelled")
                self.events.record(EventKind.SHUTDOWN_COMPLETE, detail="interrupted")
            raise

        clean = not not_done
        if not_done:
            logger.warning(
                "[Dispatcher] %d ride(s) unfinished after %.2fs, cancelling", len(not_done), self.config.grace_period
            )
            self.events.record(EventKind.SHUTDOWN_TIMEOUT, detail=f"{len(not_done)} ride(s) cancelled")
            self._force_cancel(not_done)

        clean = self._stop_elevators(deadline) and clean
        self._shutdown_result = clean
        logger.info("[Dispatcher] Shutdown complete.")
        self.events.record(EventKind.SHUTDOWN_COMPLETE, detail="clean" if clean else "forced")
        return clean

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def _acquire_slot(self) -> bool:
        while not self._slots.acquire(timeout=_SLOT_POLL_INTERVAL):
            if self.closed:
                return False
        return True

    def _reject(self, request: RideRequest) -> SubmitOutcome:
        logger.warning("[Dispatcher] Shutting down, rejected %s", request)
        self.events.record(EventKind.SUBMISSION_REJECTED, request_id=request.request_id, floor=request.origin)
        return SubmitOutcome.REJECTED

    def _run_ride(self, elevator: Elevator, request: RideRequest) -> RideOutcome:
        return elevator.serve(request)

    def _ride_finished(self, future: Future) -> None:
        with self._state_lock:
            self._inflight.discard(future)
        self._slots.release()
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("[Dispatcher] Ride failed", exc_info=exc)

    def _force_cancel(self, futures: Iterable[Future]) -> None:
        for future in futures:
            future.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _stop_elevators(self, deadline: float) -> bool:
        clean = True
        for elevator in self._elevators:
            remaining = deadline - time.monotonic()
            clean = elevator.stop(timeout=max(0.0, remaining)) and clean
        return clean
