"""
Unit tests for mixed_model module.
"""

import math

import numpy as np
import pytest

from set_rates.mixed_model import ModelFit, StatsmodelsMixedLM, aic, aicc
from set_rates.preprocess import preprocess_measurements
from set_rates.rates import prepare_site_data


def _prepared(site_readings, **kwargs):
    return prepare_site_data(preprocess_measurements(site_readings(**kwargs)))


def test_aic_and_aicc():
    assert aic(-10.0, 3) == pytest.approx(26.0)
    assert aicc(-10.0, 3, 20) == pytest.approx(26.0 + 24.0 / 16.0)
    assert aicc(-10.0, 5, 6) == math.inf


def test_model_fit_conf_int():
    fit = ModelFit(params={'Intercept': 150.0, 'days': 0.01},
                   std_errors={'Intercept': 1.0, 'days': 0.001},
                   log_likelihood=-10.0, n_params=4, n_obs=30, residual_variance=0.25)
    low, high = fit.conf_int('days', level=0.95)
    assert low == pytest.approx(0.01 - 1.959964 * 0.001, rel=1e-6)
    assert high == pytest.approx(0.01 + 1.959964 * 0.001, rel=1e-6)
    narrow = fit.conf_int('days', level=0.5)
    assert narrow[1] - narrow[0] < high - low
    assert fit.aic == pytest.approx(28.0)


def test_structure_nested_pins(site_readings):
    data = _prepared(site_readings, arms=('1', '2', '3'), pins=('1', '2', '3'))
    group, re_formula, vc = StatsmodelsMixedLM()._structure(data, 'days', 'arm_position', 'pin_number')
    assert group == 'arm_position'
    assert re_formula == '1'
    assert vc == {'pin': '0 + C(pin_number)'}


def test_structure_random_slope(site_readings):
    data = _prepared(site_readings, arms=('1', '2'), pins=('1', '2'))
    _, _, vc = StatsmodelsMixedLM(random_slope=True)._structure(
        data, 'days', 'arm_position', 'pin_number')
    assert vc['pin_slope'] == '0 + C(pin_number):days'

    single_pin = _prepared(site_readings, arms=('1', '2'), pins=('1',))
    _, re_formula, vc = StatsmodelsMixedLM(random_slope=True)._structure(
        single_pin, 'days', 'arm_position', 'pin_number')
    assert re_formula == '1 + days'
    assert vc == {}

    # intercept-only model never gets a slope term
    _, re_formula, vc = StatsmodelsMixedLM(random_slope=True)._structure(
        data, None, 'arm_position', 'pin_number')
    assert 'pin_slope' not in vc


def test_structure_single_arm_groups_by_pin(site_readings):
    data = _prepared(site_readings, arms=('1',), pins=('1', '2', '3'))
    group, _, vc = StatsmodelsMixedLM()._structure(data, 'days', 'arm_position', 'pin_number')
    assert group == 'pin_number'
    assert vc == {}


def test_structure_single_pin_fails(site_readings):
    data = _prepared(site_readings, arms=('1',), pins=('1',))
    with pytest.raises(ValueError, match="At least two"):
        StatsmodelsMixedLM()._structure(data, 'days', 'arm_position', 'pin_number')


def test_fit_recovers_slope(site_readings):
    data = _prepared(site_readings, arms=('1', '2', '3', '4'), pins=('1', '2', '3'), pin_sd=3.0)
    fit = StatsmodelsMixedLM().fit(data, 'pin_height', 'days', 'arm_position', 'pin_number')
    assert fit.reml
    assert fit.params['days'] == pytest.approx(0.01, abs=0.001)
    assert fit.std_errors['days'] > 0
    assert fit.n_obs == len(data)
    # fixed effects (2) + arm variance + pin variance + residual
    assert fit.n_params == 5
    assert 'pin' in fit.variance_components
    assert np.isfinite(fit.log_likelihood)


def test_ml_and_reml_differ(site_readings):
    data = _prepared(site_readings)
    backend = StatsmodelsMixedLM()
    reml = backend.fit(data, 'pin_height', 'days', 'arm_position', 'pin_number', reml=True)
    ml = backend.fit(data, 'pin_height', 'days', 'arm_position', 'pin_number', reml=False)
    assert not ml.reml
    assert ml.log_likelihood != pytest.approx(reml.log_likelihood)
    assert ml.params['days'] == pytest.approx(reml.params['days'], rel=0.05)
