"""
Shared fixtures: synthetic SET readings with known trends.
"""

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))


def make_site_readings(
    set_id='A',
    reserve='X',
    slope_per_day=0.01,
    years=5.0,
    n_events=11,
    arms=('1', '2'),
    pins=('1',),
    arm_offsets=None,
    pin_sd=0.0,
    noise_sd=0.5,
    start='2010-06-01',
    seed=0
):
    """
    Long-format readings for one SET with a linear trend plus noise.

    Sampling dates are spread evenly over `years`; each arm gets a fixed
    offset and each pin an optional random offset.
    """
    rng = np.random.default_rng(seed)
    origin = pd.Timestamp(start)
    offsets = np.round(np.linspace(0, years * 365.25, n_events)).astype(int)
    dates = [origin + pd.Timedelta(days=int(d)) for d in offsets]
    if arm_offsets is None:
        arm_offsets = {arm: 12.0 * i for i, arm in enumerate(arms)}
    pin_offsets = {(a, p): rng.normal(0, pin_sd) if pin_sd else 0.0 for a in arms for p in pins}

    rows = []
    for date in dates:
        days = (date - origin).days
        for arm in arms:
            for pin in pins:
                height = (150.0 + arm_offsets[arm] + pin_offsets[(arm, pin)]
                          + slope_per_day * days + rng.normal(0, noise_sd))
                rows.append({
                    'reserve': reserve,
                    'set_id': set_id,
                    'arm_position': arm,
                    'pin_number': pin,
                    'year': date.year,
                    'month': date.month,
                    'day': date.day,
                    'pin_height': height,
                    'qaqc_code': None,
                    'arm_qaqc_code': None,
                })
    return pd.DataFrame(rows)


@pytest.fixture
def site_readings():
    """Factory fixture for synthetic SET readings."""
    return make_site_readings


@pytest.fixture
def slr_table():
    """SLR reference for reserve X only."""
    return pd.DataFrame({
        'reserve': ['X'],
        'slr_rate_mm_yr': [3.0],
        'ci_95_percent': [0.5],
        'nearest_station': ['Test Harbor'],
        'station_number': ['8000001'],
        'data_start': ['1950'],
        'data_end': ['2020'],
    })


@pytest.fixture
def metadata_table():
    return pd.DataFrame({
        'unique_set_id': ['A', 'B', 'C', 'D'],
        'reserve': ['X', 'X', 'Y', 'Y'],
        'latitude': [30.1, 30.2, 31.0, 31.1],
        'longitude': [-88.1, -88.2, -89.0, -89.1],
        'numerical_order': [2, 1, np.nan, 1],
        'user_friendly_set_name': ['Marsh A', None, None, 'Creek D'],
        'set_type': ['RSET'] * 4,
        'dominant_species': ['Spartina alterniflora'] * 4,
    })
