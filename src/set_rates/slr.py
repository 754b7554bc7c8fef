# src/set_rates/slr.py
"""
Module: slr.py
Responsibilities:
- Represent a reserve's long-term sea-level-rise rate and 95% CI
- Look up the SLR reference for a reserve by exact name
- Warn (without failing) when a reserve has no reference
"""
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlrReference:
    """Local sea-level-rise rate for one reserve (mm/yr)."""

    reserve: str
    slr_rate: float
    ci_95: float
    nearest_station: Optional[str] = None
    station_number: Optional[str] = None
    data_start: Optional[str] = None
    data_end: Optional[str] = None

    @property
    def ci_low(self) -> float:
        return self.slr_rate - self.ci_95

    @property
    def ci_high(self) -> float:
        return self.slr_rate + self.ci_95


def _optional(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    return str(value)


def lookup_slr(table: pd.DataFrame, reserve: str) -> Optional[SlrReference]:
    """
    Return the SLR reference whose 'reserve' equals the given name exactly.

    Parameters
    ----------
    table : pd.DataFrame
        SLR table from data_io.load_slr_table
    reserve : str
        Reserve name

    Returns
    -------
    SlrReference or None
        None (with a warning) when the reserve is missing or its rate is NaN
    """
    rows = table[table['reserve'].astype(str) == str(reserve)]
    if rows.empty:
        logger.warning(f"No SLR reference for reserve '{reserve}'; "
                       f"SLR comparison skipped for its SETs")
        return None
    if len(rows) > 1:
        logger.warning(f"{len(rows)} SLR rows for reserve '{reserve}'; using the first")

    row = rows.iloc[0]
    rate = float(row['slr_rate_mm_yr'])
    if math.isnan(rate):
        logger.warning(f"SLR rate for reserve '{reserve}' is missing; "
                       f"SLR comparison skipped for its SETs")
        return None
    ci = float(row['ci_95_percent'])
    if math.isnan(ci):
        logger.warning(f"SLR CI for reserve '{reserve}' is missing; treating it as 0")
        ci = 0.0

    return SlrReference(
        reserve=str(reserve),
        slr_rate=rate,
        ci_95=ci,
        nearest_station=_optional(row.get('nearest_station')),
        station_number=_optional(row.get('station_number')),
        data_start=_optional(row.get('data_start')),
        data_end=_optional(row.get('data_end')),
    )


def build_slr_lookup(
    table: Optional[pd.DataFrame],
    reserves: Iterable[str]
) -> Tuple[Dict[str, Optional[SlrReference]], List[str]]:
    """
    Resolve SLR references for every reserve in a run.

    Parameters
    ----------
    table : pd.DataFrame or None
        SLR table; None means no reference is available for any reserve
    reserves : iterable of str
        Reserve names to resolve

    Returns
    -------
    Tuple[Dict[str, Optional[SlrReference]], List[str]]
        (reserve -> reference or None, warning messages)
    """
    lookup = {}
    warnings = []
    for reserve in sorted({str(r) for r in reserves}):
        ref = lookup_slr(table, reserve) if table is not None else None
        if ref is None:
            warnings.append(f"No SLR reference for reserve '{reserve}'")
        lookup[reserve] = ref
    return lookup, warnings
