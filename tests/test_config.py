"""
Unit tests for config module.
"""

import dataclasses

import pytest

from set_rates.config import AnalysisConfig, build_config


def test_defaults():
    config = AnalysisConfig()
    assert config.min_years == 4.5
    assert config.min_events == 5
    assert config.ci_level == 0.95
    assert config.exclude_codes == frozenset()


def test_codes_are_normalized():
    config = build_config([' P1 ', 'A2', '', 'P1'])
    assert config.exclude_codes == frozenset({'P1', 'A2'})


def test_none_options_keep_defaults():
    config = build_config(None, min_years=None, workers=4)
    assert config.min_years == 4.5
    assert config.workers == 4


def test_config_is_immutable():
    with pytest.raises(dataclasses.FrozenInstanceError):
        AnalysisConfig().min_years = 1.0


@pytest.mark.parametrize('kwargs', [
    {'ci_level': 1.0},
    {'ci_level': 0.0},
    {'min_years': -1},
    {'min_events': 0},
    {'max_iter': 0},
    {'workers': -2},
])
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        AnalysisConfig(**kwargs)
