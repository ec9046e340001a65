import threading
import time

import pytest

from conftest import wait_until
from elevator_bank import (
    BankConfig,
    Dispatcher,
    Elevator,
    EventKind,
    EventLog,
    RideRequest,
    SubmitOutcome,
)


class GatedElevator(Elevator):
    """Holds each ride on a worker until the test opens the gate."""

    def __init__(self, *args, gate: threading.Event, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.gate = gate

    def serve(self, request):
        self.gate.wait(5.0)
        return super().serve(request)


def dispatched_to(dispatcher, request_id):
    for event in dispatcher.events.events(EventKind.DISPATCHED):
        if event.request_id == request_id:
            return event.elevator_id
    return None


class TestSelection:
    def test_nearest_idle_elevator_is_chosen(self, fast_config):
        with Dispatcher.from_config(fast_config, [2, 5, 9]) as dispatcher:
            outcome = dispatcher.submit(RideRequest(1, origin=6, destination=7))

            assert outcome is SubmitOutcome.DISPATCHED
            assert dispatched_to(dispatcher, 1) == 2
            assert wait_until(lambda: dispatcher.get_elevator(2).current_floor == 7)

    def test_busy_elevator_is_never_chosen(self):
        config = BankConfig(travel_delay=2.0, grace_period=0.2)
        with Dispatcher.from_config(config, [1, 5]) as dispatcher:
            near = dispatcher.get_elevator(2)
            near.serve(RideRequest(1, origin=5, destination=5))
            assert near.is_busy()

            dispatcher.submit(RideRequest(2, origin=5, destination=6))
            assert dispatched_to(dispatcher, 2) == 1

    def test_no_idle_elevator_drops_request(self):
        config = BankConfig(travel_delay=2.0, grace_period=0.2)
        with Dispatcher.from_config(config, [3]) as dispatcher:
            elevator = dispatcher.get_elevator(1)
            elevator.serve(RideRequest(1, origin=3, destination=4))

            outcome = dispatcher.submit(RideRequest(2, origin=1, destination=2))

            assert outcome is SubmitOutcome.NO_AVAILABLE_ELEVATOR
            assert dispatcher.events.count(EventKind.NO_AVAILABLE_ELEVATOR) == 1
            assert dispatcher.events.count(EventKind.DISPATCHED) == 0
            assert elevator.current_floor == 4
            assert dispatcher.events.count(EventKind.PICKUP) == 1

    def test_status_lists_elevators_in_registration_order(self, fast_config):
        with Dispatcher.from_config(fast_config, [4, 1, 12]) as dispatcher:
            assert dispatcher.status() == [(1, 4), (2, 1), (3, 12)]


class TestEndToEnd:
    def test_denied_request_leaves_every_elevator_idle(self, fast_config):
        with Dispatcher.from_config(fast_config, [1, 1, 1]) as dispatcher:
            dispatcher.submit(RideRequest(1, origin=1, destination=10, has_credential=False))

            assert wait_until(lambda: dispatcher.events.count(EventKind.ACCESS_DENIED) == 1)
            assert dispatcher.status() == [(1, 1), (2, 1), (3, 1)]
            assert not any(e.is_busy() for e in dispatcher.elevators)

    def test_granted_request_moves_exactly_one_elevator(self):
        config = BankConfig(travel_delay=0.3, grace_period=1.0)
        with Dispatcher.from_config(config, [1, 1, 1]) as dispatcher:
            dispatcher.submit(RideRequest(1, origin=1, destination=10, has_credential=True))

            assert wait_until(lambda: dispatcher.events.count(EventKind.ARRIVAL) == 1)
            moved = [e for e in dispatcher.elevators if e.current_floor == 10]
            assert len(moved) == 1
            assert moved[0].is_busy()
            others = [e for e in dispatcher.elevators if e is not moved[0]]
            assert all(e.current_floor == 1 and not e.is_busy() for e in others)

            assert wait_until(lambda: not moved[0].is_busy(), timeout=2.0)
            assert moved[0].current_floor == 10


class TestBackpressure:
    def test_submit_blocks_while_pool_is_saturated(self):
        config = BankConfig(travel_delay=0.05, grace_period=1.0, worker_count=1, queue_capacity=0)
        gate = threading.Event()
        dispatcher = Dispatcher(config=config)
        for elevator_id in (1, 2):
            dispatcher.add_elevator(
                GatedElevator(elevator_id, 1, travel_delay=config.travel_delay, events=dispatcher.events, gate=gate)
            )

        assert dispatcher.submit(RideRequest(1, origin=1, destination=2)) is SubmitOutcome.DISPATCHED

        results = []
        blocked = threading.Thread(
            target=lambda: results.append(dispatcher.submit(RideRequest(2, origin=1, destination=3)))
        )
        blocked.start()
        time.sleep(0.2)
        assert blocked.is_alive()

        gate.set()
        blocked.join(2.0)
        assert results == [SubmitOutcome.DISPATCHED]
        assert dispatcher.shutdown() is True

    def test_blocked_submitter_is_rejected_by_shutdown(self):
        config = BankConfig(travel_delay=0.05, grace_period=0.2, worker_count=1, queue_capacity=0)
        gate = threading.Event()
        dispatcher = Dispatcher(config=config)
        for elevator_id in (1, 2):
            dispatcher.add_elevator(
                GatedElevator(elevator_id, 1, travel_delay=config.travel_delay, events=dispatcher.events, gate=gate)
            )
        dispatcher.submit(RideRequest(1, origin=1, destination=2))

        results = []
        blocked = threading.Thread(
            target=lambda: results.append(dispatcher.submit(RideRequest(2, origin=1, destination=3)))
        )
        blocked.start()
        time.sleep(0.1)

        assert dispatcher.shutdown() is False
        blocked.join(2.0)
        gate.set()
        assert results == [SubmitOutcome.REJECTED]
        assert dispatcher.events.count(EventKind.SUBMISSION_REJECTED) == 1


class TestShutdown:
    def test_graceful_shutdown_lets_rides_finish(self, fast_config):
        dispatcher = Dispatcher.from_config(fast_config, [1, 6, 12])
        dispatcher.submit(RideRequest(1, origin=1, destination=2))
        dispatcher.submit(RideRequest(2, origin=6, destination=7))

        assert dispatcher.shutdown() is True
        assert dispatcher.events.count(EventKind.ARRIVAL) == 2
        assert not any(e.is_busy() for e in dispatcher.elevators)
        assert dispatcher.events.count(EventKind.ELEVATOR_STOPPED) == 3
        assert dispatcher.events.count(EventKind.SHUTDOWN_TIMEOUT) == 0

    def test_shutdown_is_bounded_and_freezes_busy_flags(self, slow_config):
        dispatcher = Dispatcher.from_config(slow_config, [1, 6, 12])
        dispatcher.submit(RideRequest(1, origin=1, destination=2))
        dispatcher.submit(RideRequest(2, origin=6, destination=7))
        dispatcher.submit(RideRequest(3, origin=12, destination=11, has_credential=True))
        assert wait_until(lambda: all(e.is_busy() for e in dispatcher.elevators))

        started = time.monotonic()
        assert dispatcher.shutdown() is False
        assert time.monotonic() - started < slow_config.grace_period + 0.5

        time.sleep(0.1)
        assert all(e.is_busy() for e in dispatcher.elevators)
        assert dispatcher.events.count(EventKind.BUSY_CLEARED) == 0
        assert dispatcher.events.count(EventKind.SHUTDOWN_TIMEOUT) == 3

    def test_shutdown_twice_stops_each_elevator_once(self, fast_config):
        dispatcher = Dispatcher.from_config(fast_config, [1, 2])
        assert dispatcher.shutdown() is True
        assert dispatcher.shutdown() is True

        assert dispatcher.events.count(EventKind.ELEVATOR_STOPPED) == 2
        assert dispatcher.events.count(EventKind.SHUTDOWN_COMPLETE) == 1

    def test_submit_after_shutdown_is_rejected(self, fast_config):
        dispatcher = Dispatcher.from_config(fast_config, [1])
        dispatcher.shutdown()

        outcome = dispatcher.submit(RideRequest(1, origin=1, destination=3))

        assert outcome is SubmitOutcome.REJECTED
        assert dispatcher.status() == [(1, 1)]
        assert dispatcher.events.count(EventKind.SUBMISSION_REJECTED) == 1

    def test_add_elevator_after_shutdown_fails(self, fast_config):
        dispatcher = Dispatcher.from_config(fast_config, [1])
        dispatcher.shutdown()
        with pytest.raises(RuntimeError):
            dispatcher.add_elevator(Elevator(2, 1))

    def test_duplicate_elevator_id_rejected(self, fast_config):
        with Dispatcher(config=fast_config) as dispatcher:
            dispatcher.add_elevator(Elevator(1, 1))
            with pytest.raises(ValueError):
                dispatcher.add_elevator(Elevator(1, 5))

    def test_registered_elevator_records_to_dispatcher_log(self, fast_config):
        with Dispatcher(config=fast_config) as dispatcher:
            elevator = Elevator(1, 1)
            dispatcher.add_elevator(elevator)
            assert elevator.events is dispatcher.events

            dispatcher.submit(RideRequest(1, origin=1, destination=10, has_credential=False))

            assert wait_until(lambda: dispatcher.events.count(EventKind.ACCESS_DENIED) == 1)
            assert dispatcher.events.snapshot().denied == 1

    def test_elevator_with_other_event_log_rejected(self, fast_config):
        with Dispatcher(config=fast_config) as dispatcher:
            with pytest.raises(ValueError):
                dispatcher.add_elevator(Elevator(1, 1, events=EventLog()))
            assert dispatcher.elevators == ()

    def test_interrupted_shutdown_cancels_and_reports_failure(self, slow_config, monkeypatch):
        dispatcher = Dispatcher.from_config(slow_config, [1, 6])
        dispatcher.submit(RideRequest(1, origin=1, destination=2))
        dispatcher.submit(RideRequest(2, origin=6, destination=7))
        assert wait_until(lambda: all(e.is_busy() for e in dispatcher.elevators))

        def interrupted_wait(*args, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr("elevator_bank.dispatcher.wait", interrupted_wait)
        with pytest.raises(KeyboardInterrupt):
            dispatcher.shutdown()

        assert dispatcher.shutdown() is False
        completions = dispatcher.events.events(EventKind.SHUTDOWN_COMPLETE)
        assert [event.detail for event in completions] == ["interrupted"]
        assert dispatcher.events.count(EventKind.ELEVATOR_STOPPED) == 2
        assert not any(e.in_service() for e in dispatcher.elevators)

        time.sleep(0.1)
        assert dispatcher.events.count(EventKind.BUSY_CLEARED) == 0

    def test_concurrent_shutdown_waits_for_first_result(self, slow_config):
        dispatcher = Dispatcher.from_config(slow_config, [1])
        dispatcher.submit(RideRequest(1, origin=1, destination=2))
        assert wait_until(lambda: dispatcher.get_elevator(1).is_busy())

        results = []
        first = threading.Thread(target=lambda: results.append(dispatcher.shutdown()))
        first.start()
        assert wait_until(lambda: dispatcher.closed)

        assert dispatcher.shutdown() is False
        assert dispatcher.events.count(EventKind.SHUTDOWN_COMPLETE) == 1
        first.join(2.0)
        assert results == [False]
