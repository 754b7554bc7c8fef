# src/set_rates/eligibility.py
"""
Module: eligibility.py
Responsibilities:
- Summarize each SET's sampling history (first/last date, years, events)
- Keep only SETs with enough sampling events over a long enough record
"""
import logging
from typing import Tuple

import pandas as pd

from set_rates.config import DAYS_PER_YEAR, MIN_EVENTS, MIN_YEARS

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

ELIGIBILITY_COLUMNS = [
    'set_id', 'reserve', 'first_sampled', 'last_sampled',
    'years_sampled', 'sample_events', 'eligible'
]


def compute_eligibility(
    df: pd.DataFrame,
    min_years: float = MIN_YEARS,
    min_events: int = MIN_EVENTS
) -> pd.DataFrame:
    """
    Compute the sampling summary and eligibility flag for every SET.

    A SET is eligible when years_sampled >= min_years and
    sample_events >= min_events, where years_sampled is the span between
    the first and last sampling date in 365.25-day years and sample_events
    is the number of distinct dates.

    Parameters
    ----------
    df : pd.DataFrame
        Measurements with 'set_id', 'reserve' and 'date'
    min_years : float, default=4.5
        Minimum record length in years
    min_events : int, default=5
        Minimum number of distinct sampling dates

    Returns
    -------
    pd.DataFrame
        One row per SET with ELIGIBILITY_COLUMNS
    """
    if df.empty:
        return pd.DataFrame(columns=ELIGIBILITY_COLUMNS)

    grouped = df.groupby('set_id', sort=True)
    summary = pd.DataFrame({
        'reserve': grouped['reserve'].first(),
        'first_sampled': grouped['date'].min(),
        'last_sampled': grouped['date'].max(),
        'sample_events': grouped['date'].nunique(),
    })
    elapsed_days = (summary['last_sampled'] - summary['first_sampled']).dt.days
    summary['years_sampled'] = elapsed_days / DAYS_PER_YEAR
    summary['eligible'] = (
        (summary['years_sampled'] >= min_years) & (summary['sample_events'] >= min_events)
    )
    summary = summary.reset_index()
    return summary[ELIGIBILITY_COLUMNS]


def filter_eligible(
    df: pd.DataFrame,
    min_years: float = MIN_YEARS,
    min_events: int = MIN_EVENTS
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Drop every SET that fails the eligibility thresholds.

    Parameters
    ----------
    df : pd.DataFrame
        Measurements (QA/QC-filtered rows still count as sampling events)
    min_years : float, default=4.5
        Minimum record length in years
    min_events : int, default=5
        Minimum number of distinct sampling dates

    Returns
    -------
    Tuple[pd.DataFrame, pd.DataFrame]
        (measurements of eligible SETs, eligibility table for all SETs)
    """
    table = compute_eligibility(df, min_years=min_years, min_events=min_events)
    if table.empty:
        logger.warning("No measurements to check for eligibility")
        return df.iloc[0:0].copy(), table

    keep = table.loc[table['eligible'], 'set_id']
    dropped = table.loc[~table['eligible']]
    for row in dropped.itertuples(index=False):
        logger.info(f"SET {row.set_id} not eligible: {row.sample_events} events over "
                    f"{row.years_sampled:.2f} years")

    out = df[df['set_id'].isin(keep)].copy()
    logger.info(f"Eligibility: {len(keep)} of {len(table)} SETs retained "
                f"(>= {min_events} events over >= {min_years} years)")
    if out.empty:
        logger.warning("No SETs meet the eligibility thresholds")
    return out, table
