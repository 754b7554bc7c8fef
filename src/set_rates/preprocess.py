# src/set_rates/preprocess.py
"""
Module: preprocess.py
Responsibilities:
- Validate the raw measurement frame
- Build the observation date from year/month/day and drop invalid dates
- Convert pin heights to millimeters
- Normalize identifier and QA/QC code columns to stripped strings
"""
import logging
from typing import Tuple

import numpy as np
import pandas as pd

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Constants
ID_COLUMNS = ['reserve', 'set_id', 'arm_position', 'pin_number']
CODE_COLUMNS = ['qaqc_code', 'arm_qaqc_code']
TO_MM = {'mm': 1.0, 'cm': 10.0, 'm': 1000.0}


def validate_dataframe(df: pd.DataFrame) -> Tuple[bool, str]:
    """
    Validate that the measurement frame has the columns preprocessing needs.

    Parameters
    ----------
    df : pd.DataFrame
        Raw measurement frame

    Returns
    -------
    Tuple[bool, str]
        (is_valid, error_message)
    """
    if not isinstance(df, pd.DataFrame):
        return False, "Input must be a pandas DataFrame"

    required = ID_COLUMNS + ['pin_height']
    missing = [col for col in required if col not in df.columns]
    if 'date' not in df.columns:
        missing += [col for col in ['year', 'month', 'day'] if col not in df.columns]
    if missing:
        return False, f"Missing required columns: {', '.join(missing)}"

    if df.empty:
        return False, "DataFrame is empty"

    return True, ""


def _clean_codes(series: pd.Series) -> pd.Series:
    """Strip codes and turn blanks into NA."""
    cleaned = series.astype('string').str.strip()
    return cleaned.mask(cleaned == '', pd.NA)


def build_dates(df: pd.DataFrame) -> pd.Series:
    """
    Build observation dates from year/month/day columns.

    Combinations that don't form a calendar date (e.g. 2019-02-30) become NaT.

    Parameters
    ----------
    df : pd.DataFrame
        Frame with 'year', 'month' and 'day' columns

    Returns
    -------
    pd.Series
        datetime64 series aligned with df
    """
    parts = pd.DataFrame({
        'year': pd.to_numeric(df['year'], errors='coerce'),
        'month': pd.to_numeric(df['month'], errors='coerce'),
        'day': pd.to_numeric(df['day'], errors='coerce'),
    }, index=df.index)
    return pd.to_datetime(parts, errors='coerce')


def preprocess_measurements(df: pd.DataFrame, height_unit: str = 'mm') -> pd.DataFrame:
    """
    Clean a raw measurement frame:
    1. Validate required columns
    2. Build 'date' (from year/month/day unless a 'date' column is supplied)
    3. Drop rows without a valid calendar date
    4. Convert pin_height to float millimeters
    5. Strip identifier and QA/QC code columns

    Parameters
    ----------
    df : pd.DataFrame
        Raw measurements, one row per pin reading
    height_unit : str, default='mm'
        Unit of pin_height in the input ('mm', 'cm' or 'm')

    Returns
    -------
    pd.DataFrame
        Clean measurements sorted by set_id, date, arm_position, pin_number

    Raises
    ------
    ValueError
        If the frame is invalid or the unit is unknown
    """
    is_valid, error_msg = validate_dataframe(df)
    if not is_valid:
        raise ValueError(f"Invalid measurement DataFrame: {error_msg}")

    if height_unit not in TO_MM:
        raise ValueError(f"Unknown height unit '{height_unit}'. Valid units: {', '.join(TO_MM)}")

    df = df.copy()

    if 'date' in df.columns:
        df['date'] = pd.to_datetime(df['date'], errors='coerce')
    else:
        df['date'] = build_dates(df)

    invalid = df['date'].isna()
    if invalid.any():
        logger.warning(f"Dropping {int(invalid.sum())} readings without a valid calendar date")
        df = df[~invalid].copy()
    df['date'] = df['date'].dt.normalize()

    for col in ID_COLUMNS:
        df[col] = df[col].astype(str).str.strip()

    for col in CODE_COLUMNS:
        if col in df.columns:
            df[col] = _clean_codes(df[col])
        else:
            df[col] = pd.Series(pd.NA, index=df.index, dtype='string')

    heights = pd.to_numeric(df['pin_height'], errors='coerce').astype(float)
    n_bad = int((heights.isna() & df['pin_height'].notna()).sum())
    if n_bad:
        logger.warning(f"{n_bad} pin heights could not be parsed and were set to NaN")
    if height_unit != 'mm':
        logger.info(f"Converting pin_height from {height_unit} to mm")
    df['pin_height'] = heights * TO_MM[height_unit]

    df = df.sort_values(['set_id', 'date', 'arm_position', 'pin_number']).reset_index(drop=True)

    if np.isnan(df['pin_height'].to_numpy()).all():
        logger.warning("pin_height contains only NaN values after preprocessing")

    logger.info(f"Preprocessed {len(df)} readings across {df['set_id'].nunique()} SETs")
    return df
