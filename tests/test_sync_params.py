import pytest

from sync_errors import ConfigurationError
from sync_params import (
    ClockEndpoint,
    SyncParameters,
    build_sync_parameters,
    calc_min_upper_bound,
    calc_upper_bound,
    parse_endpoint,
)


def test_default_parameters():
    params = build_sync_parameters()
    assert params.target_precision == 50
    assert params.min_reading_delay == 1
    assert params.clock_drift == 0
    assert params.upper_bound == 51
    assert params.min_upper_bound == 1
    assert params.timeout_delay == 102


def test_custom_parameters_timeout_delay():
    params = build_sync_parameters({'targetPrecision': 15, 'minReadingDelay': 5, 'clockDrift': 0.003})
    assert params.timeout_delay == 39.76
    assert params.timeout_delay == 2 * params.upper_bound


def test_snake_case_options_accepted():
    params = build_sync_parameters({'target_precision': 15, 'min_reading_delay': 5, 'clock_drift': 0.003})
    assert params.upper_bound == pytest.approx(19.88)
    assert params.min_upper_bound == pytest.approx(5.015)


@pytest.mark.parametrize('precision, delay, drift', [
    (50, 1, 0),
    (50, 0.2, 0.0001),
    (0, 0, 0),
    (10, 3, 0.01),
])
def test_feasible_parameters_construct(precision, delay, drift):
    params = SyncParameters(precision, delay, drift)
    assert params.upper_bound >= params.min_upper_bound
    assert params.timeout_delay == 2 * params.upper_bound


@pytest.mark.parametrize('precision, delay, drift', [
    (0, 1, 0.1),
    (0, 5, 0.5),
    (1, 10, 0.3),
])
def test_infeasible_parameters_rejected(precision, delay, drift):
    assert calc_upper_bound(precision, delay, drift) < calc_min_upper_bound(delay, drift)
    with pytest.raises(ConfigurationError) as exc_info:
        build_sync_parameters({'targetPrecision': precision, 'minReadingDelay': delay, 'clockDrift': drift})
    assert exc_info.value.upper_bound < exc_info.value.min_upper_bound


def test_explicit_zero_is_not_replaced_by_default():
    params = build_sync_parameters({'minReadingDelay': 0})
    assert params.min_reading_delay == 0
    assert params.min_upper_bound == 0


def test_none_option_uses_default():
    params = build_sync_parameters({'targetPrecision': None})
    assert params.target_precision == 50


@pytest.mark.parametrize('options', [
    {'clockDrift': -0.1},
    {'targetPrecision': 'fast'},
    {'minReadingDelay': float('nan')},
    {'targetPrecision': True},
    {'precision': 10},
])
def test_invalid_options_rejected(options):
    with pytest.raises(ConfigurationError):
        build_sync_parameters(options)


def test_parameters_are_immutable():
    params = build_sync_parameters()
    with pytest.raises(AttributeError):
        params.timeout_delay = 1


def test_parse_endpoint_with_port():
    endpoint = parse_endpoint('http://localhost:8888')
    assert endpoint == ClockEndpoint('localhost', 8888, 'http')
    assert endpoint.base_url == 'http://localhost:8888/'


def test_parse_endpoint_default_port():
    endpoint = parse_endpoint('http://localhost')
    assert endpoint.port == 5579


def test_parse_endpoint_ipv6():
    assert parse_endpoint('http://[::1]:9000').base_url == 'http://[::1]:9000/'


@pytest.mark.parametrize('url', ['', 'localhost:8888', 'ftp://example.com', 'http://', 'http://host:99999'])
def test_parse_endpoint_invalid(url):
    with pytest.raises(ConfigurationError):
        parse_endpoint(url)
