# src/set_rates/change.py
"""
Module: change.py
Responsibilities:
- Cumulative change per pin since its first reading
- Incremental change per pin between consecutive readings
- Aggregate pin change to arm means and arm means to SET means
"""
import logging
from typing import Dict

import numpy as np
import pandas as pd

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

PIN_KEYS = ['reserve', 'set_id', 'arm_position', 'pin_number']


def _summarize(df: pd.DataFrame, keys: list, value: str, prefix: str) -> pd.DataFrame:
    """Mean, standard deviation and standard error of `value` per group."""
    grouped = df.groupby(keys, sort=True)[value]
    out = grouped.agg(['mean', 'std', 'count']).reset_index()
    out['se'] = out['std'] / np.sqrt(out['count'])
    return out.rename(columns={
        'mean': f'mean_{prefix}',
        'std': f'sd_{prefix}',
        'se': f'se_{prefix}',
        'count': 'n',
    })


def _pin_readings(df: pd.DataFrame) -> pd.DataFrame:
    data = df.loc[df['pin_height'].notna(), PIN_KEYS + ['date', 'pin_height']]
    return data.sort_values(PIN_KEYS + ['date']).reset_index(drop=True)


def calc_change_cumulative(df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """
    Cumulative change from each pin's first valid reading.

    Parameters
    ----------
    df : pd.DataFrame
        Measurements (NaN heights are skipped)

    Returns
    -------
    Dict[str, pd.DataFrame]
        'pin': one row per reading with 'cumu';
        'arm': mean/sd/se of pin change per arm and date;
        'site': mean/sd/se of arm means per SET and date
    """
    pins = _pin_readings(df)
    if pins.empty:
        logger.warning("No valid pin heights for cumulative change")
        empty = pd.DataFrame()
        return {'pin': pins.assign(cumu=pd.Series(dtype=float)), 'arm': empty, 'site': empty}

    first = pins.groupby(PIN_KEYS, sort=False)['pin_height'].transform('first')
    pins['cumu'] = pins['pin_height'] - first

    arm = _summarize(pins, ['reserve', 'set_id', 'arm_position', 'date'], 'cumu', 'cumu')
    site = _summarize(arm, ['reserve', 'set_id', 'date'], 'mean_cumu', 'value')
    site = site.rename(columns={'mean_value': 'mean_cumu', 'sd_value': 'sd_cumu',
                                'se_value': 'se_cumu'})
    return {'pin': pins, 'arm': arm, 'site': site}


def calc_change_incremental(df: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """
    Change between consecutive valid readings of each pin.

    The first reading of every pin has NaN incremental change.

    Parameters
    ----------
    df : pd.DataFrame
        Measurements (NaN heights are skipped)

    Returns
    -------
    Dict[str, pd.DataFrame]
        'pin': one row per reading with 'incr';
        'arm': mean/sd/se of pin increments per arm and date;
        'site': mean/sd/se of arm means per SET and date
    """
    pins = _pin_readings(df)
    if pins.empty:
        logger.warning("No valid pin heights for incremental change")
        empty = pd.DataFrame()
        return {'pin': pins.assign(incr=pd.Series(dtype=float)), 'arm': empty, 'site': empty}

    pins['incr'] = pins.groupby(PIN_KEYS, sort=False)['pin_height'].diff()

    valid = pins.dropna(subset=['incr'])
    arm = _summarize(valid, ['reserve', 'set_id', 'arm_position', 'date'], 'incr', 'incr')
    site = _summarize(arm, ['reserve', 'set_id', 'date'], 'mean_incr', 'value')
    site = site.rename(columns={'mean_value': 'mean_incr', 'sd_value': 'sd_incr',
                                'se_value': 'se_incr'})
    return {'pin': pins, 'arm': arm, 'site': site}
