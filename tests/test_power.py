from datetime import datetime, timedelta, timezone

import pytest

from cluster_monitor.services import power

T0 = datetime(2024, 5, 10, 11, 0, 0, tzinfo=timezone.utc)


def minutes(n):
    return T0 + timedelta(minutes=n)


def test_window_power_drops_oldest_sample():
    samples = [(minutes(0), 0), (minutes(10), 100), (minutes(20), 300)]
    # Only the 10 -> 20 minute span is used for elapsed time
    assert power.window_power(samples) == pytest.approx(400 / 600 / 1_000_000)


def test_window_power_without_drop_would_differ():
    samples = [(minutes(0), 6_000_000_000), (minutes(10), 6_000_000_000), (minutes(20), 12_000_000_000)]
    assert power.window_power(samples) == pytest.approx(30.0)


@pytest.mark.parametrize("count", [0, 1, 2])
def test_window_power_needs_two_remaining_samples(count):
    samples = [(minutes(10 * i), 1_000_000) for i in range(count)]
    assert power.window_power(samples) == 0.0


def test_window_power_zero_elapsed():
    samples = [(minutes(0), 5), (minutes(10), 5), (minutes(10), 5)]
    assert power.window_power(samples) == 0.0


def test_epoch_power_uses_latest_pair():
    samples = [(minutes(20), 12_000_000_000), (minutes(10), 6_000_000_000)]
    assert power.epoch_power(samples) == pytest.approx(20.0)


def test_epoch_power_order_independent():
    samples = [(minutes(10), 6_000_000_000), (minutes(20), 12_000_000_000)]
    assert power.epoch_power(samples) == pytest.approx(20.0)


def test_epoch_power_needs_two_samples():
    assert power.epoch_power([]) == 0.0
    assert power.epoch_power([(minutes(0), 100)]) == 0.0
