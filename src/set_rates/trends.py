# src/set_rates/trends.py
"""
Module: trends.py
Responsibilities:
- Classify a SET's rate against zero (dir_0)
- Classify a SET's rate against the local SLR rate with CI overlap (dir_slr)
- Compute the SET/SLR rate ratio
"""
import math
from dataclasses import dataclass
from typing import Optional

from set_rates.rates import RateEstimate
from set_rates.slr import SlrReference

DEC_SIG = 'dec_sig'
INC_SIG = 'inc_sig'
DEC_NONSIG = 'dec_nonsig'
INC_NONSIG = 'inc_nonsig'
NONSIG = 'nonsig'
DIRECTIONS = (DEC_SIG, INC_SIG, DEC_NONSIG, INC_NONSIG, NONSIG)


@dataclass(frozen=True)
class TrendClassification:
    """Direction labels for one SET."""

    dir_0: Optional[str] = None
    dir_slr: Optional[str] = None
    set_slr_ratio: Optional[float] = None


def _finite(*values) -> bool:
    return all(v is not None and math.isfinite(v) for v in values)


def classify_direction(
    rate: float,
    ci_low: float,
    ci_high: float,
    ref_rate: float,
    ref_low: float,
    ref_high: float
) -> Optional[str]:
    """
    Compare a rate and its CI to a reference rate and its CI.

    Checks run in order and the first match wins:
    CI entirely below the reference CI -> dec_sig,
    CI entirely above it -> inc_sig,
    otherwise the sign of rate - ref_rate picks dec_nonsig / inc_nonsig,
    and an exact tie is nonsig.

    Returns
    -------
    str or None
        One of DIRECTIONS, or None if any input is missing
    """
    if not _finite(rate, ci_low, ci_high, ref_rate, ref_low, ref_high):
        return None
    if ci_high < ref_low:
        return DEC_SIG
    if ci_low > ref_high:
        return INC_SIG
    if rate < ref_rate:
        return DEC_NONSIG
    if rate > ref_rate:
        return INC_NONSIG
    return NONSIG


def classify_vs_zero(estimate: RateEstimate) -> Optional[str]:
    """dir_0: compare the rate's CI with zero."""
    return classify_direction(estimate.rate, estimate.ci_low, estimate.ci_high, 0.0, 0.0, 0.0)


def classify_vs_slr(estimate: RateEstimate, slr: Optional[SlrReference]) -> Optional[str]:
    """dir_slr: compare the rate's CI with the SLR rate's CI; None without a reference."""
    if slr is None:
        return None
    return classify_direction(estimate.rate, estimate.ci_low, estimate.ci_high,
                              slr.slr_rate, slr.ci_low, slr.ci_high)


def slr_ratio(rate: float, slr_rate: Optional[float]) -> Optional[float]:
    """rate / slr_rate, or None when the ratio is undefined."""
    if not _finite(rate, slr_rate) or slr_rate == 0:
        return None
    return rate / slr_rate


def classify_trend(estimate: RateEstimate, slr: Optional[SlrReference] = None) -> TrendClassification:
    """
    Derive all direction labels for one SET.

    A failed estimate yields an empty classification. Without an SLR
    reference only dir_0 is set.

    Parameters
    ----------
    estimate : RateEstimate
        Rate for the SET
    slr : SlrReference, optional
        Reference for the SET's reserve

    Returns
    -------
    TrendClassification
    """
    if not estimate.ok:
        return TrendClassification()
    return TrendClassification(
        dir_0=classify_vs_zero(estimate),
        dir_slr=classify_vs_slr(estimate, slr),
        set_slr_ratio=slr_ratio(estimate.rate, slr.slr_rate) if slr is not None else None,
    )
