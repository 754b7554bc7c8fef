# src/set_rates/data_io.py
"""
Module: data_io.py
Responsibilities:
- Validate input paths
- Resolve an input table from a file or a directory of candidates
- Load the SET measurement table, site metadata and SLR reference table
- Check required columns and report site ID mismatches between data and metadata
"""
import os
import glob
import logging
from typing import List, Optional, Tuple

import pandas as pd

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

MEASUREMENT_COLUMNS = [
    'reserve', 'set_id', 'arm_position', 'pin_number',
    'year', 'month', 'day', 'pin_height'
]
OPTIONAL_MEASUREMENT_COLUMNS = ['qaqc_code', 'arm_qaqc_code']
METADATA_COLUMNS = ['unique_set_id', 'reserve', 'latitude', 'longitude']
OPTIONAL_METADATA_COLUMNS = [
    'numerical_order', 'user_friendly_set_name', 'set_type', 'dominant_species'
]
SLR_COLUMNS = ['reserve', 'slr_rate_mm_yr', 'ci_95_percent']
OPTIONAL_SLR_COLUMNS = ['nearest_station', 'station_number', 'data_start', 'data_end']

# Identifier columns are always read as text so '01' and '1' stay distinct
_STRING_COLUMNS = {
    'reserve': str, 'set_id': str, 'arm_position': str, 'pin_number': str,
    'qaqc_code': str, 'arm_qaqc_code': str, 'unique_set_id': str,
    'user_friendly_set_name': str, 'set_type': str, 'dominant_species': str,
    'nearest_station': str, 'station_number': str,
}


def validate_paths(*paths: str) -> bool:
    """
    Ensure every input path exists and is readable.

    Parameters
    ----------
    *paths : str
        Files or directories to check

    Returns
    -------
    bool
        True if all paths are valid

    Raises
    ------
    FileNotFoundError
        If a path doesn't exist
    PermissionError
        If a path exists but isn't readable
    """
    logger.info("Verifying paths...")
    for path in paths:
        if path is None:
            continue
        if not os.path.exists(path):
            raise FileNotFoundError(f"Input not found: {path}")
        if not os.access(path, os.R_OK):
            raise PermissionError(f"Input is not readable: {path}")
        logger.info(f"  {path}")
    logger.info("  OK: paths are valid.")
    return True


def resolve_input_file(path: str, pattern: str = '*.csv') -> Tuple[str, Optional[str]]:
    """
    Resolve a table path that may be a file or a directory of candidates.

    When a directory holds several matching files, the first one in
    alphabetical order is used and a warning is returned.

    Parameters
    ----------
    path : str
        File path or directory
    pattern : str, optional
        Glob pattern applied inside a directory

    Returns
    -------
    Tuple[str, Optional[str]]
        (resolved file path, warning message or None)

    Raises
    ------
    FileNotFoundError
        If the path doesn't exist or the directory has no matching file
    """
    if os.path.isfile(path):
        return path, None
    if not os.path.isdir(path):
        raise FileNotFoundError(f"Input not found: {path}")

    matches = sorted(glob.glob(os.path.join(path, pattern)))
    if not matches:
        raise FileNotFoundError(f"No file matching '{pattern}' in {path}")

    warning = None
    if len(matches) > 1:
        names = ', '.join(os.path.basename(m) for m in matches)
        warning = (f"Multiple candidate files in {path} ({names}); "
                   f"using {os.path.basename(matches[0])}")
        logger.warning(warning)
    return matches[0], warning


def _read_table(path: str, required: List[str], label: str) -> pd.DataFrame:
    """Read a CSV table and check its required columns."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"{label} file not found: {path}")

    try:
        df = pd.read_csv(path, dtype=_STRING_COLUMNS, keep_default_na=True)
    except pd.errors.EmptyDataError:
        raise ValueError(f"{label} file is empty: {path}")
    except pd.errors.ParserError as e:
        raise ValueError(f"Error parsing {label.lower()} file: {e}")

    if df.empty:
        raise ValueError(f"{label} file contains no data: {path}")

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise KeyError(f"{label} table missing required columns: {', '.join(missing)}")
    return df


def load_measurements(path: str) -> pd.DataFrame:
    """
    Load the long-format SET measurement table.

    Parameters
    ----------
    path : str
        Path to a CSV with one row per pin reading

    Returns
    -------
    pd.DataFrame
        Raw measurements; QA/QC code columns are added empty when absent

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist
    KeyError
        If required columns are missing
    ValueError
        If the file is empty or unparseable
    """
    df = _read_table(path, MEASUREMENT_COLUMNS, 'Measurement')
    for col in OPTIONAL_MEASUREMENT_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA
    logger.info(f"Loaded {len(df)} pin readings for {df['set_id'].nunique()} SETs "
                f"from {os.path.basename(path)}")
    return df


def load_metadata(path: str) -> pd.DataFrame:
    """
    Load SET site metadata.

    Parameters
    ----------
    path : str
        Path to the metadata CSV

    Returns
    -------
    pd.DataFrame
        Metadata with 'unique_set_id' as str and optional columns filled with NA

    Raises
    ------
    KeyError
        If required columns are missing
    ValueError
        If the file is empty or unparseable
    """
    df = _read_table(path, METADATA_COLUMNS, 'Metadata')
    for col in OPTIONAL_METADATA_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA
    df['numerical_order'] = pd.to_numeric(df['numerical_order'], errors='coerce')

    dupes = df['unique_set_id'][df['unique_set_id'].duplicated()].unique().tolist()
    if dupes:
        logger.warning(f"Metadata has duplicate SET ids, keeping first: {dupes}")
        df = df.drop_duplicates(subset='unique_set_id', keep='first')

    logger.info(f"Loaded metadata: {len(df)} SETs")
    return df


def load_slr_table(path: str) -> pd.DataFrame:
    """
    Load the sea-level-rise reference table.

    Parameters
    ----------
    path : str
        Path to the SLR CSV

    Returns
    -------
    pd.DataFrame
        One row per reserve with numeric rate and CI columns

    Raises
    ------
    KeyError
        If required columns are missing
    ValueError
        If the file is empty or a rate cannot be parsed
    """
    df = _read_table(path, SLR_COLUMNS, 'SLR')
    for col in OPTIONAL_SLR_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA

    for col in ['slr_rate_mm_yr', 'ci_95_percent']:
        values = pd.to_numeric(df[col], errors='coerce')
        bad = values.isna() & df[col].notna()
        if bad.any():
            raise ValueError(f"Non-numeric values in SLR column '{col}': "
                             f"{df.loc[bad, col].tolist()}")
        df[col] = values

    logger.info(f"Loaded SLR reference for {len(df)} reserves")
    return df


def compare_site_ids(measurements: pd.DataFrame, metadata: pd.DataFrame) -> List[str]:
    """
    Report SET ids present in only one of the data and metadata tables.

    Parameters
    ----------
    measurements : pd.DataFrame
        Measurement table with 'set_id'
    metadata : pd.DataFrame
        Metadata table with 'unique_set_id'

    Returns
    -------
    List[str]
        Warning messages, empty when the id sets match
    """
    data_ids = set(measurements['set_id'].dropna().astype(str))
    meta_ids = set(metadata['unique_set_id'].dropna().astype(str))

    warnings = []
    only_data = sorted(data_ids - meta_ids)
    only_meta = sorted(meta_ids - data_ids)
    if only_data:
        warnings.append(f"SETs in data but not in metadata: {', '.join(only_data)}")
    if only_meta:
        warnings.append(f"SETs in metadata but not in data: {', '.join(only_meta)}")
    for msg in warnings:
        logger.warning(msg)
    return warnings


if __name__ == '__main__':
    import argparse
    import sys

    parser = argparse.ArgumentParser(description='Smoke-test data_io module')
    parser.add_argument('--data', required=True, help='Measurement CSV or directory')
    parser.add_argument('--metadata', required=True, help='Metadata CSV')
    parser.add_argument('--slr', required=True, help='SLR reference CSV')
    args = parser.parse_args()

    try:
        validate_paths(args.data, args.metadata, args.slr)
        data_file, _ = resolve_input_file(args.data)
        df = load_measurements(data_file)
        meta = load_metadata(args.metadata)
        slr = load_slr_table(args.slr)
        compare_site_ids(df, meta)
        print(f"✓ {len(df)} readings, {len(meta)} SETs, {len(slr)} SLR rows")
    except Exception as e:
        print(f"Error during test: {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)
