import pytest

from exchanger import RoundTripSample
from sync_errors import TimingAssertionError
from sync_params import build_sync_parameters
from synchronizer import (
    SyncReading,
    calc_half_round_trip,
    calculate_adjust,
    calculate_read_error,
    estimate,
    is_reading_successful,
)


@pytest.mark.parametrize('sent, received, expected', [
    (1000, 1010, 5),
    (1000, 1000, 0),
    (1469993341000, 1469993343001, 1000.5),
])
def test_calc_half_round_trip(sent, received, expected):
    assert calc_half_round_trip(sent, received) == expected


def test_calculate_adjust():
    assert calculate_adjust(10, 1469993341000, 1469993343000) == -1990


def test_is_reading_successful_boundary():
    assert is_reading_successful(51, 102) is True
    assert is_reading_successful(50.5, 102) is True
    assert is_reading_successful(51.5, 102) is False


def test_calculate_read_error_with_drift():
    error = calculate_read_error(100, 5, 0.003)
    assert error == pytest.approx(100 * 1.006 - 5)


def test_calculate_read_error_below_minimum_raises():
    with pytest.raises(TimingAssertionError) as exc_info:
        calculate_read_error(0, 1, 0)
    assert exc_info.value.error == -1
    assert exc_info.value.e_min == 0


def test_estimate_default_scenario():
    params = build_sync_parameters()
    reading = estimate(RoundTripSample(sent=1000, received=1010, remote=1050), params)
    assert reading == SyncReading(error=4, adjust=45, successful=True)
    assert reading.as_dict() == {'error': 4, 'adjust': 45, 'successful': True}


def test_estimate_slow_round_trip_still_returned():
    params = build_sync_parameters()
    reading = estimate(RoundTripSample(sent=1000, received=1200, remote=1150), params)
    assert reading.successful is False
    assert reading.error == 99
    assert reading.adjust == 50


def test_estimate_backwards_clock_raises():
    params = build_sync_parameters()
    with pytest.raises(TimingAssertionError):
        estimate(RoundTripSample(sent=1000, received=990, remote=1050), params)
