"""
Unit tests for slr module.
"""

import logging

import numpy as np
import pandas as pd
import pytest

from set_rates.slr import SlrReference, build_slr_lookup, lookup_slr


def test_lookup_exact_reserve(slr_table):
    ref = lookup_slr(slr_table, 'X')
    assert isinstance(ref, SlrReference)
    assert ref.slr_rate == 3.0
    assert ref.ci_low == pytest.approx(2.5)
    assert ref.ci_high == pytest.approx(3.5)
    assert ref.nearest_station == 'Test Harbor'


@pytest.mark.parametrize('name', ['x', 'X ', 'XX', 'Y'])
def test_lookup_requires_exact_name(slr_table, name):
    assert lookup_slr(slr_table, name) is None


def test_missing_reserve_only_warns(slr_table, caplog):
    with caplog.at_level(logging.WARNING, logger='set_rates.slr'):
        assert lookup_slr(slr_table, 'Y') is None
    assert "No SLR reference for reserve 'Y'" in caplog.text


def test_duplicate_rows_use_first(slr_table):
    table = pd.concat([slr_table, slr_table.assign(slr_rate_mm_yr=9.0)], ignore_index=True)
    assert lookup_slr(table, 'X').slr_rate == 3.0


def test_missing_ci_treated_as_zero(slr_table):
    table = slr_table.assign(ci_95_percent=np.nan)
    ref = lookup_slr(table, 'X')
    assert ref.ci_low == ref.ci_high == 3.0


def test_missing_rate_is_no_reference(slr_table):
    assert lookup_slr(slr_table.assign(slr_rate_mm_yr=np.nan), 'X') is None


def test_build_lookup(slr_table):
    lookup, warnings = build_slr_lookup(slr_table, ['X', 'Y', 'X'])
    assert set(lookup) == {'X', 'Y'}
    assert lookup['X'].slr_rate == 3.0
    assert lookup['Y'] is None
    assert warnings == ["No SLR reference for reserve 'Y'"]


def test_build_lookup_without_table():
    lookup, warnings = build_slr_lookup(None, ['X'])
    assert lookup == {'X': None}
    assert len(warnings) == 1
