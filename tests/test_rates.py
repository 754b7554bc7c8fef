"""
Unit tests for rates module.
"""

import math

import pytest

from set_rates.config import AnalysisConfig
from set_rates.mixed_model import MixedModelBackend, ModelFit
from set_rates.preprocess import preprocess_measurements
from set_rates.rates import (
    STATUS_FAILED, compare_trend_models, estimate_site_rate, prepare_site_data
)
from set_rates.trends import INC_SIG, classify_trend


class FixedSlopeBackend(MixedModelBackend):
    """Returns a preset slope so the unit conversion can be checked exactly."""

    name = 'fixed'

    def __init__(self, slope=0.02, se=0.001):
        self.slope = slope
        self.se = se
        self.calls = []

    def fit(self, data, response, time, group, nested=None, reml=True):
        self.calls.append((time, reml))
        params = {'Intercept': 150.0}
        std_errors = {'Intercept': 1.0}
        if time:
            params[time] = self.slope
            std_errors[time] = self.se
        return ModelFit(params=params, std_errors=std_errors,
                        log_likelihood=-10.0 if time else -40.0,
                        n_params=len(params) + 2, n_obs=len(data),
                        residual_variance=0.25, reml=reml)


class BrokenBackend(MixedModelBackend):
    name = 'broken'

    def fit(self, data, response, time, group, nested=None, reml=True):
        raise ValueError("Singular matrix")


@pytest.fixture
def site_a(site_readings):
    return preprocess_measurements(site_readings(set_id='A', reserve='X', slope_per_day=0.01))


def test_prepare_site_data(site_a):
    df = site_a.copy()
    first = df['date'] == df['date'].min()
    df.loc[first, 'pin_height'] = float('nan')
    data = prepare_site_data(df)
    assert data['pin_height'].notna().all()
    # elapsed days restart at the first date with data
    assert data['days'].min() == 0.0
    assert data['date'].min() > site_a['date'].min()


def test_rate_conversion_is_exact(site_a):
    backend = FixedSlopeBackend(slope=0.02, se=0.001)
    est = estimate_site_rate(site_a, backend=backend)
    assert est.ok
    assert est.rate == pytest.approx(0.02 * 365.25)
    assert est.ci_low == pytest.approx((0.02 - 1.959964 * 0.001) * 365.25, rel=1e-6)
    assert est.ci_high == pytest.approx((0.02 + 1.959964 * 0.001) * 365.25, rel=1e-6)
    assert est.slope_per_day == 0.02
    assert est.backend == 'fixed'


def test_reported_rate_comes_from_reml_fit(site_a):
    backend = FixedSlopeBackend()
    estimate_site_rate(site_a, backend=backend)
    assert backend.calls[0] == ('days', True)
    assert set(backend.calls[1:]) == {('days', False), (None, False)}


def test_comparison_is_diagnostic_only(site_a):
    backend = FixedSlopeBackend()
    with_cmp = estimate_site_rate(site_a, backend=backend)
    without = estimate_site_rate(site_a, backend=FixedSlopeBackend(), compare_models=False)
    assert with_cmp.rate == without.rate
    assert with_cmp.preferred_model == 'trend'
    assert without.preferred_model is None
    assert math.isnan(without.aicc_trend)


def test_compare_trend_models_picks_lower_aicc(site_a):
    data = prepare_site_data(site_a)
    out = compare_trend_models(data, FixedSlopeBackend())
    assert out['aicc_trend'] < out['aicc_null']
    assert out['preferred_model'] == 'trend'

    failed = compare_trend_models(data, BrokenBackend())
    assert failed['preferred_model'] is None
    assert math.isnan(failed['aicc_trend'])


def test_fit_failure_is_isolated(site_a):
    est = estimate_site_rate(site_a, backend=BrokenBackend())
    assert est.status == STATUS_FAILED
    assert not est.ok
    assert 'Singular matrix' in est.error
    assert math.isnan(est.rate)
    assert est.set_id == 'A'
    assert est.reserve == 'X'


def test_all_heights_null(site_a):
    df = site_a.assign(pin_height=float('nan'))
    est = estimate_site_rate(df, backend=FixedSlopeBackend())
    assert est.status == STATUS_FAILED
    assert est.error == "No non-null pin heights"


def test_too_few_dates_with_data(site_a):
    dates = sorted(site_a['date'].unique())
    df = site_a.copy()
    df.loc[df['date'].isin(dates[2:]), 'pin_height'] = float('nan')
    est = estimate_site_rate(df, backend=FixedSlopeBackend())
    assert est.status == STATUS_FAILED
    assert est.n_dates == 2


def test_reserve_x_scenario(site_a):
    """0.01 mm/day over 5 years with tight noise: about 3.65 mm/yr, significant."""
    est = estimate_site_rate(site_a)
    assert est.ok, est.error
    assert est.rate == pytest.approx(3.6525, abs=0.3)
    assert est.ci_low <= est.rate <= est.ci_high
    assert est.ci_high - est.ci_low < 1.0
    assert est.n_pins == 2
    assert est.n_dates == 11
    assert est.ci_method == 'wald-z'

    trend = classify_trend(est)
    assert trend.dir_0 == INC_SIG


def test_nested_pins_within_arms(site_readings):
    df = preprocess_measurements(site_readings(
        arms=('1', '2', '3', '4'), pins=('1', '2', '3'), pin_sd=3.0, slope_per_day=0.005, seed=4))
    est = estimate_site_rate(df)
    assert est.ok, est.error
    assert est.n_pins == 12
    assert est.rate == pytest.approx(0.005 * 365.25, abs=0.3)
    assert est.preferred_model == 'trend'
    assert est.aicc_trend < est.aicc_null


def test_single_pin_site_fails_without_raising(site_readings):
    df = preprocess_measurements(site_readings(set_id='C', arms=('1',), pins=('1',)))
    est = estimate_site_rate(df)
    assert est.status == STATUS_FAILED
    assert 'At least two' in est.error


def test_ci_level_from_config(site_a):
    narrow = estimate_site_rate(site_a, config=AnalysisConfig(ci_level=0.5),
                                backend=FixedSlopeBackend())
    wide = estimate_site_rate(site_a, backend=FixedSlopeBackend())
    assert narrow.ci_level == 0.5
    assert narrow.ci_high - narrow.ci_low < wide.ci_high - wide.ci_low


def test_to_dict_has_all_fields(site_a):
    record = estimate_site_rate(site_a, backend=FixedSlopeBackend()).to_dict()
    assert record['set_id'] == 'A'
    assert record['status'] == 'ok'
    assert set(record) >= {'rate', 'ci_low', 'ci_high', 'aicc_trend', 'aicc_null', 'error'}


def test_failed_fit_keeps_data_counts(site_a):
    est = estimate_site_rate(site_a, backend=BrokenBackend())
    assert est.status == STATUS_FAILED
    assert est.n_obs == len(site_a)
    assert est.n_pins == 2
    assert est.n_dates == 11
    assert est.backend == 'broken'
