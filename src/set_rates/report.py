# src/set_rates/report.py
"""
Module: report.py
Responsibilities:
- Assemble the per-SET summary record set (rates, SLR, direction labels)
- Join the summary with site metadata and apply display ordering
- Write the summary and supporting tables to CSV or JSON
"""
import json
import logging
import os
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from set_rates.rates import RateEstimate
from set_rates.slr import SlrReference
from set_rates.trends import TrendClassification

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = [
    'reserve', 'set_id', 'rate', 'CI_low', 'CI_high',
    'slr_rate', 'slr_CI_low', 'slr_CI_high', 'set_slr_ratio',
    'dir_0', 'dir_slr'
]
LABEL_COLUMNS = ['dir_0', 'dir_slr']
METADATA_FIELDS = [
    'user_friendly_set_name', 'latitude', 'longitude', 'numerical_order',
    'set_type', 'dominant_species'
]


class NumpyEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return None if np.isnan(obj) else float(obj)
        elif isinstance(obj, np.bool_):
            return bool(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, pd.Timestamp):
            return obj.isoformat()
        return super(NumpyEncoder, self).default(obj)


def summary_record(
    estimate: RateEstimate,
    trend: TrendClassification,
    slr: Optional[SlrReference]
) -> Dict:
    """Flatten one SET's results into a SUMMARY_COLUMNS record."""
    return {
        'reserve': estimate.reserve,
        'set_id': estimate.set_id,
        'rate': estimate.rate,
        'CI_low': estimate.ci_low,
        'CI_high': estimate.ci_high,
        'slr_rate': slr.slr_rate if slr is not None else np.nan,
        'slr_CI_low': slr.ci_low if slr is not None else np.nan,
        'slr_CI_high': slr.ci_high if slr is not None else np.nan,
        'set_slr_ratio': trend.set_slr_ratio if trend.set_slr_ratio is not None else np.nan,
        'dir_0': trend.dir_0,
        'dir_slr': trend.dir_slr,
    }


def build_summary(
    estimates: List[RateEstimate],
    trends: Dict[str, TrendClassification],
    slr_lookup: Dict[str, Optional[SlrReference]]
) -> pd.DataFrame:
    """
    Build the per-SET summary table.

    Parameters
    ----------
    estimates : list of RateEstimate
        One estimate per eligible SET (failed ones included with NaN rates)
    trends : dict
        set_id -> TrendClassification
    slr_lookup : dict
        reserve -> SlrReference or None

    Returns
    -------
    pd.DataFrame
        SUMMARY_COLUMNS, one row per SET, sorted by reserve and set_id
    """
    rows = [
        summary_record(est, trends.get(est.set_id, TrendClassification()),
                       slr_lookup.get(est.reserve))
        for est in estimates
    ]
    if not rows:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)
    df = pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
    # Unclassified labels stay None rather than NaN
    for col in LABEL_COLUMNS:
        df[col] = pd.Series([row[col] for row in rows], index=df.index, dtype=object)
    return df.sort_values(['reserve', 'set_id']).reset_index(drop=True)


def build_diagnostics(estimates: List[RateEstimate]) -> pd.DataFrame:
    """Model fit statistics and status for every SET."""
    if not estimates:
        return pd.DataFrame(columns=list(RateEstimate.__dataclass_fields__))
    df = pd.DataFrame([est.to_dict() for est in estimates])
    return df.sort_values(['reserve', 'set_id']).reset_index(drop=True)


def join_metadata(summary: pd.DataFrame, metadata: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    Attach site metadata and order rows for display.

    Rows are ordered by reserve, then numerical_order (missing last), then
    set_id. A 'set_name' column falls back to set_id when no user-friendly
    name is given.

    Parameters
    ----------
    summary : pd.DataFrame
        Table from build_summary
    metadata : pd.DataFrame or None
        Metadata from data_io.load_metadata

    Returns
    -------
    pd.DataFrame
    """
    df = summary.copy()
    if metadata is not None and not metadata.empty:
        fields = [f for f in METADATA_FIELDS if f in metadata.columns]
        meta = metadata[['unique_set_id'] + fields].rename(columns={'unique_set_id': 'set_id'})
        df = df.merge(meta, on='set_id', how='left')
    for field in METADATA_FIELDS:
        if field not in df.columns:
            df[field] = np.nan

    df['set_name'] = df['user_friendly_set_name'].where(
        df['user_friendly_set_name'].notna(), df['set_id'])
    df = df.sort_values(['reserve', 'numerical_order', 'set_id'], na_position='last')
    return df.reset_index(drop=True)


def write_table(df: pd.DataFrame, path: str, output_format: str = 'csv') -> str:
    """
    Write a table as CSV or JSON (records, NaN as null).

    Parameters
    ----------
    df : pd.DataFrame
        Table to write
    path : str
        Output path without extension
    output_format : str, default='csv'
        'csv' or 'json'

    Returns
    -------
    str
        Path written

    Raises
    ------
    ValueError
        If output_format is not supported
    """
    output_format = output_format.lower()
    if output_format not in ('csv', 'json'):
        raise ValueError(f"Invalid output format: {output_format}. Use 'csv' or 'json'.")

    out = f"{path}.{output_format}"
    os.makedirs(os.path.dirname(os.path.abspath(out)), exist_ok=True)
    if output_format == 'csv':
        df.to_csv(out, index=False)
    else:
        records = df.astype(object).where(df.notna(), None).to_dict(orient='records')
        with open(out, 'w') as f:
            json.dump(records, f, indent=2, cls=NumpyEncoder)
    logger.info(f"Saved {len(df)} rows to {out}")
    return out
