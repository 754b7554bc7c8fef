"""
Rate visualization module.

Figures:
- Cumulative elevation change of one SET, with the fitted rate and local SLR
- Reserve-wide comparison of SET rates and CIs against the SLR band
"""
import os
import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.patches import Patch

from set_rates.change import calc_change_cumulative
from set_rates.config import DAYS_PER_YEAR
from set_rates.rates import RateEstimate
from set_rates.slr import SlrReference
from set_rates.visualization.base import (
    DIRECTION_COLORS, DIRECTION_LABELS, FIG_SIZES, save_figure, set_publication_style
)

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def plot_cumulative_change(
    site_change: pd.DataFrame,
    estimate: Optional[RateEstimate] = None,
    slr: Optional[SlrReference] = None,
    title: Optional[str] = None
) -> Optional[plt.Figure]:
    """
    Plot mean cumulative change of one SET over time.

    Parameters
    ----------
    site_change : pd.DataFrame
        SET-level rows from calc_change_cumulative()['site'] for one SET
    estimate : RateEstimate, optional
        Fitted rate, drawn as a line from zero at the first date
    slr : SlrReference, optional
        Local SLR, drawn as a dashed line from zero at the first date
    title : str, optional
        Figure title (defaults to the SET id)

    Returns
    -------
    plt.Figure or None
        None when there is nothing to plot
    """
    if site_change is None or site_change.empty:
        logger.warning("No cumulative change to plot")
        return None

    df = site_change.sort_values('date')
    dates = pd.to_datetime(df['date'])
    days = (dates - dates.min()).dt.days.to_numpy(dtype=float)

    fig, ax = plt.subplots(figsize=FIG_SIZES['small'])
    ax.errorbar(dates, df['mean_cumu'], yerr=df['se_cumu'].fillna(0), fmt='o',
                color='#252525', ecolor='#969696', capsize=3, label='Mean change (± SE)')

    if estimate is not None and estimate.ok:
        ax.plot(dates, estimate.slope_per_day * days, color='#2166AC',
                label=f'SET rate: {estimate.rate:.2f} mm/yr')
    if slr is not None:
        ax.plot(dates, slr.slr_rate / DAYS_PER_YEAR * days, color='#B2182B', linestyle='--',
                label=f'Local SLR: {slr.slr_rate:.2f} mm/yr')

    ax.axhline(0, color='black', linewidth=0.5)
    ax.set_xlabel('Date')
    ax.set_ylabel('Cumulative change (mm)')
    ax.set_title(title or str(df['set_id'].iloc[0]))
    ax.legend(loc='upper left')
    fig.autofmt_xdate()
    return fig


def plot_rate_comparison(
    summary: pd.DataFrame,
    reserve: str,
    slr: Optional[SlrReference] = None
) -> Optional[plt.Figure]:
    """
    Plot every SET's rate and CI in one reserve against its SLR band.

    Points are colored by dir_slr (dir_0 when no SLR reference exists).

    Parameters
    ----------
    summary : pd.DataFrame
        Summary joined with metadata (report.join_metadata), in display order
    reserve : str
        Reserve to plot
    slr : SlrReference, optional
        SLR reference for the reserve

    Returns
    -------
    plt.Figure or None
        None when the reserve has no fitted SET
    """
    df = summary[(summary['reserve'] == reserve) & summary['rate'].notna()]
    if df.empty:
        logger.warning(f"No fitted SETs to plot for reserve {reserve}")
        return None

    label_col = 'dir_slr' if slr is not None else 'dir_0'
    names = df['set_name'] if 'set_name' in df.columns else df['set_id']
    y = np.arange(len(df))[::-1]

    height = max(FIG_SIZES['small'][1], 0.4 * len(df) + 1.5)
    fig, ax = plt.subplots(figsize=(FIG_SIZES['medium'][0], height))

    if slr is not None:
        ax.axvspan(slr.ci_low, slr.ci_high, color='#FDDBC7', alpha=0.6, zorder=0)
        ax.axvline(slr.slr_rate, color='#B2182B', linestyle='--', linewidth=1)
    ax.axvline(0, color='black', linewidth=0.8)

    used = []
    for yi, row in zip(y, df.itertuples(index=False)):
        label = getattr(row, label_col)
        label = label if isinstance(label, str) else None
        ax.errorbar(row.rate, yi, xerr=[[row.rate - row.CI_low], [row.CI_high - row.rate]],
                    fmt='o', color=DIRECTION_COLORS[label], capsize=3)
        if label not in used:
            used.append(label)

    ax.set_yticks(y)
    ax.set_yticklabels(names)
    ax.set_xlabel('Rate of elevation change (mm/yr)')
    ax.set_title(f"{reserve}: SET rates vs {'local SLR' if slr is not None else 'zero'}")

    handles = [Patch(color=DIRECTION_COLORS[lab], label=DIRECTION_LABELS[lab]) for lab in used]
    if slr is not None:
        handles.append(Patch(color='#FDDBC7', label=f'SLR {slr.slr_rate:.2f} ± {slr.ci_95:.2f} mm/yr'))
    ax.legend(handles=handles, loc='best')
    fig.tight_layout()
    return fig


def save_all_plots(results, output_dir: str) -> List[str]:
    """
    Save a cumulative change plot per fitted SET and a comparison plot per reserve.

    Parameters
    ----------
    results : RateResults
        Output of rate_analysis.analyze_rates
    output_dir : str
        Directory for PNG files

    Returns
    -------
    List[str]
        Paths written
    """
    set_publication_style()
    os.makedirs(output_dir, exist_ok=True)
    written = []

    change = calc_change_cumulative(results.measurements)['site']
    estimates: Dict[str, RateEstimate] = {est.set_id: est for est in results.estimates}
    names = dict(zip(results.summary['set_id'], results.summary.get('set_name', results.summary['set_id'])))

    if not change.empty:
        for set_id, site_change in change.groupby('set_id', sort=True):
            est = estimates.get(set_id)
            slr = results.slr_lookup.get(est.reserve) if est is not None else None
            fig = plot_cumulative_change(site_change, est, slr, title=str(names.get(set_id, set_id)))
            if fig is not None:
                written.append(save_figure(fig, os.path.join(output_dir, f"{set_id}_cumulative_change.png")))

    for reserve in sorted(results.summary['reserve'].dropna().unique()):
        fig = plot_rate_comparison(results.summary, reserve, results.slr_lookup.get(reserve))
        if fig is not None:
            written.append(save_figure(fig, os.path.join(output_dir, f"{reserve}_rate_comparison.png")))

    logger.info(f"Saved {len(written)} figures to {output_dir}")
    return written


def slr_from_summary(summary: pd.DataFrame, reserve: str) -> Optional[SlrReference]:
    """Rebuild a reserve's SlrReference from the slr_* columns of a summary table."""
    rows = summary[(summary['reserve'] == reserve) & summary['slr_rate'].notna()]
    if rows.empty:
        return None
    row = rows.iloc[0]
    return SlrReference(
        reserve=reserve,
        slr_rate=float(row['slr_rate']),
        ci_95=float(row['slr_CI_high'] - row['slr_CI_low']) / 2,
    )


def plot_summary_file(summary_path: str, output_dir: str) -> List[str]:
    """
    Redraw the reserve comparison plots from a saved summary CSV.

    Parameters
    ----------
    summary_path : str
        set_rates_summary.csv written by a previous run
    output_dir : str
        Directory for PNG files

    Returns
    -------
    List[str]
        Paths written

    Raises
    ------
    FileNotFoundError
        If the summary file doesn't exist
    """
    if not os.path.exists(summary_path):
        raise FileNotFoundError(f"Summary file not found: {summary_path}")

    set_publication_style()
    summary = pd.read_csv(summary_path, dtype={'reserve': str, 'set_id': str})
    if 'set_name' not in summary.columns:
        summary['set_name'] = summary['set_id']

    written = []
    for reserve in sorted(summary['reserve'].dropna().unique()):
        fig = plot_rate_comparison(summary, reserve, slr_from_summary(summary, reserve))
        if fig is not None:
            written.append(save_figure(fig, os.path.join(output_dir, f"{reserve}_rate_comparison.png")))
    logger.info(f"Saved {len(written)} figures to {output_dir}")
    return written
