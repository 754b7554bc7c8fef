# src/set_rates/qaqc.py
"""
Module: qaqc.py
Responsibilities:
- Null out pin heights flagged by excluded QA/QC codes (per pin or per arm)
- Build and format the exclusion report
"""
import logging
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

CODE_COLUMNS = ['qaqc_code', 'arm_qaqc_code']
REPORT_COLUMNS = [
    'reserve', 'set_id', 'date', 'arm_position', 'pin_number',
    'pin_height', 'qaqc_code', 'arm_qaqc_code'
]


def _empty_report() -> pd.DataFrame:
    return pd.DataFrame(columns=REPORT_COLUMNS)


def excluded_mask(df: pd.DataFrame, exclude_codes: Iterable[str]) -> pd.Series:
    """
    Flag rows whose pin or arm QA/QC code is one of the excluded codes.

    Matching is exact: a reading coded 'P1 P2' is only excluded when
    'P1 P2' itself is in the set.

    Parameters
    ----------
    df : pd.DataFrame
        Measurement frame
    exclude_codes : iterable of str
        Codes to exclude

    Returns
    -------
    pd.Series
        Boolean mask aligned with df
    """
    codes = {str(c).strip() for c in exclude_codes}
    mask = pd.Series(False, index=df.index)
    if not codes:
        return mask
    for col in CODE_COLUMNS:
        if col in df.columns:
            values = df[col].astype('string').str.strip()
            mask |= values.isin(codes).fillna(False).astype(bool)
    return mask


def filter_qaqc(
    df: pd.DataFrame,
    exclude_codes: Optional[Iterable[str]] = None
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Set pin_height to NaN for readings flagged with an excluded code.

    Rows are kept so that sampling dates still count toward eligibility.
    The input frame is not modified.

    Parameters
    ----------
    df : pd.DataFrame
        Preprocessed measurement frame
    exclude_codes : iterable of str, optional
        QA/QC codes to exclude. None or empty means no filtering.

    Returns
    -------
    Tuple[pd.DataFrame, pd.DataFrame]
        (filtered measurements, exclusion report with original heights)
    """
    codes = {str(c).strip() for c in (exclude_codes or ()) if str(c).strip()}
    if not codes:
        return df, _empty_report()

    mask = excluded_mask(df, codes)
    report_cols = [c for c in REPORT_COLUMNS if c in df.columns]
    report = df.loc[mask, report_cols].reset_index(drop=True)

    if report.empty:
        logger.info(f"QA/QC filter: no readings carry the excluded codes {sorted(codes)}")
        return df, report

    logger.info(f"QA/QC filter excluding {len(report)} readings:\n"
                f"{format_exclusion_report(report)}")

    out = df.copy()
    out.loc[mask, 'pin_height'] = np.nan
    return out, report


def format_exclusion_report(report: pd.DataFrame) -> str:
    """
    Render the exclusion report as readable text, one line per SET and code.

    Parameters
    ----------
    report : pd.DataFrame
        Report returned by filter_qaqc

    Returns
    -------
    str
    """
    if report is None or report.empty:
        return "No readings excluded."

    df = report.copy()
    pin_codes = df['qaqc_code'].astype('string').fillna('')
    arm_codes = df['arm_qaqc_code'].astype('string').fillna('')
    df['code'] = [
        ' / '.join(part for part in (pin, f"arm {arm}" if arm else '') if part)
        for pin, arm in zip(pin_codes, arm_codes)
    ]

    lines = []
    for (set_id, code), group in df.groupby(['set_id', 'code'], sort=True):
        dates = pd.to_datetime(group['date'])
        lines.append(f"  {set_id}: {len(group)} readings coded '{code}' "
                     f"({dates.min():%Y-%m-%d} to {dates.max():%Y-%m-%d})")
    return '\n'.join(lines)
