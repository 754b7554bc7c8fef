"""
Unit tests for eligibility module.
"""

import pandas as pd
import pytest

from set_rates.eligibility import ELIGIBILITY_COLUMNS, compute_eligibility, filter_eligible
from set_rates.preprocess import preprocess_measurements
from set_rates.qaqc import filter_qaqc


@pytest.fixture
def two_sites(site_readings):
    long_site = site_readings(set_id='A', years=5.0, n_events=11)
    short_site = site_readings(set_id='B', years=1.0, n_events=3, seed=1)
    return preprocess_measurements(pd.concat([long_site, short_site], ignore_index=True))


def test_short_record_is_ineligible(two_sites):
    table = compute_eligibility(two_sites)
    assert list(table.columns) == ELIGIBILITY_COLUMNS
    a = table.set_index('set_id').loc['A']
    b = table.set_index('set_id').loc['B']
    assert a['eligible'] and a['sample_events'] == 11
    assert not b['eligible'] and b['sample_events'] == 3


def test_years_use_365_25_day_years(two_sites):
    table = compute_eligibility(two_sites).set_index('set_id')
    row = table.loc['A']
    expected = (row['last_sampled'] - row['first_sampled']).days / 365.25
    assert row['years_sampled'] == pytest.approx(expected)
    assert row['years_sampled'] == pytest.approx(5.0, abs=0.01)


def test_filter_keeps_only_eligible_sites(two_sites):
    out, table = filter_eligible(two_sites)
    assert set(out['set_id']) == {'A'}
    assert len(table) == 2


@pytest.mark.parametrize('min_years,min_events,expected', [
    (4.5, 5, True),
    (5.5, 5, False),     # record too short
    (4.5, 12, False),    # too few events
    (0.0, 1, True),
])
def test_thresholds(site_readings, min_years, min_events, expected):
    df = preprocess_measurements(site_readings(years=5.0, n_events=11))
    table = compute_eligibility(df, min_years=min_years, min_events=min_events)
    assert bool(table['eligible'].iloc[0]) is expected


def test_boundary_is_inclusive(site_readings):
    df = preprocess_measurements(site_readings(years=4.5, n_events=5))
    table = compute_eligibility(df)
    span = table['years_sampled'].iloc[0]
    assert bool(table['eligible'].iloc[0]) is bool(span >= 4.5)
    strict = compute_eligibility(df, min_years=span)
    assert strict['eligible'].iloc[0]


@pytest.mark.parametrize('span_days,n_events,expected', [
    (1644, 5, True),     # 4.5010 years
    (1643, 5, False),    # 4.4983 years
    (1644, 4, False),
])
def test_eligibility_edges(site_readings, span_days, n_events, expected):
    df = preprocess_measurements(site_readings(years=span_days / 365.25, n_events=n_events))
    row = compute_eligibility(df).iloc[0]
    assert row['sample_events'] == n_events
    assert (row['last_sampled'] - row['first_sampled']).days == span_days
    assert bool(row['eligible']) is expected


def test_nulled_heights_still_count_as_events(site_readings):
    df = preprocess_measurements(site_readings(years=5.0, n_events=5))
    df['qaqc_code'] = pd.array(['X'] * len(df), dtype='string')
    filtered, _ = filter_qaqc(df, {'X'})
    assert filtered['pin_height'].isna().all()
    table = compute_eligibility(filtered)
    assert table['sample_events'].iloc[0] == 5
    assert table['eligible'].iloc[0]


def test_eligibility_is_monotone_in_data(site_readings):
    df = preprocess_measurements(site_readings(years=5.0, n_events=11))
    subset = df[df['date'] <= df['date'].sort_values().unique()[4]]
    assert not compute_eligibility(subset)['eligible'].iloc[0]
    assert compute_eligibility(df)['eligible'].iloc[0]


def test_empty_input():
    empty = pd.DataFrame(columns=['set_id', 'reserve', 'date'])
    out, table = filter_eligible(empty)
    assert out.empty
    assert table.empty
    assert list(table.columns) == ELIGIBILITY_COLUMNS
