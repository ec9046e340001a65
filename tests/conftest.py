import time

import pytest

from elevator_bank import BankConfig


def wait_until(predicate, timeout=2.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fast_config():
    return BankConfig(travel_delay=0.05, grace_period=1.0)


@pytest.fixture
def slow_config():
    """Trips outlast the grace period, so shutdown has to cancel them."""
    return BankConfig(travel_delay=5.0, grace_period=0.3)
