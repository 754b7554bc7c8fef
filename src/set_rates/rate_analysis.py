# src/set_rates/rate_analysis.py
"""
Module: rate_analysis.py
Responsibilities:
- Orchestrate a rate analysis run:
  * QA/QC filtering
  * Eligibility filtering
  * Per-SET mixed-model fits (parallel over SETs)
  * SLR lookup and trend classification
  * Summary assembly
- Keep per-SET failures isolated and report them at the end
- Read inputs and save summary, diagnostic and change tables
"""
import logging
import os
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Dict, List, Optional, Tuple

import pandas as pd
from tqdm import tqdm

from set_rates.change import calc_change_cumulative
from set_rates.config import AnalysisConfig
from set_rates.data_io import (
    compare_site_ids, load_measurements, load_metadata, load_slr_table,
    resolve_input_file, validate_paths
)
from set_rates.eligibility import filter_eligible
from set_rates.preprocess import preprocess_measurements
from set_rates.qaqc import filter_qaqc
from set_rates.rates import RateEstimate, estimate_site_rate
from set_rates.report import build_diagnostics, build_summary, join_metadata, write_table
from set_rates.slr import SlrReference, build_slr_lookup
from set_rates.trends import TrendClassification, classify_trend

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Counts and accumulated non-fatal problems of one run."""

    n_readings: int = 0
    n_excluded: int = 0
    n_sites: int = 0
    n_eligible: int = 0
    n_fitted: int = 0
    failed_sites: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def log(self) -> None:
        logger.info(f"Run complete: {self.n_readings} readings, {self.n_excluded} excluded by QA/QC, "
                    f"{self.n_eligible} of {self.n_sites} SETs eligible, "
                    f"{self.n_fitted} fitted, {len(self.failed_sites)} failed")
        for set_id, error in sorted(self.failed_sites.items()):
            logger.warning(f"  Fit failed for SET {set_id}: {error}")
        for msg in self.warnings:
            logger.warning(f"  {msg}")


@dataclass
class RateResults:
    """Everything produced by analyze_rates."""

    summary: pd.DataFrame
    estimates: List[RateEstimate]
    trends: Dict[str, TrendClassification]
    slr_lookup: Dict[str, Optional[SlrReference]]
    eligibility: pd.DataFrame
    exclusions: pd.DataFrame
    measurements: pd.DataFrame
    run: RunSummary


def _fit_one(item: Tuple[str, pd.DataFrame], config: AnalysisConfig) -> RateEstimate:
    """Top-level helper for ProcessPoolExecutor. Fits one SET."""
    set_id, site_df = item
    return estimate_site_rate(site_df, config=config)


def fit_site_rates(df: pd.DataFrame, config: AnalysisConfig) -> List[RateEstimate]:
    """
    Fit every SET in df independently, in parallel when config.workers != 1.

    Parameters
    ----------
    df : pd.DataFrame
        Measurements of eligible SETs
    config : AnalysisConfig
        Run configuration (workers=0 uses all cores)

    Returns
    -------
    List[RateEstimate]
        One estimate per SET, ordered by set_id
    """
    items = [(str(set_id), group) for set_id, group in df.groupby('set_id', sort=True)]
    if not items:
        return []

    func = partial(_fit_one, config=config)
    n_workers = config.workers if config.workers > 0 else (os.cpu_count() or 1)
    n_workers = min(n_workers, len(items))
    logger.info(f"Fitting {len(items)} SETs with {n_workers} worker(s)...")

    estimates = []
    if n_workers == 1:
        for item in tqdm(items, desc="Fitting SETs"):
            estimates.append(func(item))
    else:
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            chunk_size = max(1, len(items) // (n_workers * 4))
            for est in tqdm(executor.map(func, items, chunksize=chunk_size),
                            total=len(items), desc="Fitting SETs"):
                estimates.append(est)

    for i, est in enumerate(estimates):
        status = "[OK]  " if est.ok else "[ERR] "
        logger.info(f"[{i+1}/{len(estimates)}] {status}{est.set_id}")
    return sorted(estimates, key=lambda e: e.set_id)


def classify_sites(
    estimates: List[RateEstimate],
    slr_lookup: Dict[str, Optional[SlrReference]]
) -> Dict[str, TrendClassification]:
    """Classify every SET against zero and its reserve's SLR rate."""
    return {est.set_id: classify_trend(est, slr_lookup.get(est.reserve)) for est in estimates}


def analyze_rates(
    measurements: pd.DataFrame,
    config: Optional[AnalysisConfig] = None,
    metadata: Optional[pd.DataFrame] = None,
    slr_table: Optional[pd.DataFrame] = None,
    height_unit: str = 'mm'
) -> RateResults:
    """
    Run the full analysis on in-memory tables.

    Parameters
    ----------
    measurements : pd.DataFrame
        Raw long-format measurements
    config : AnalysisConfig, optional
        Run configuration; defaults to AnalysisConfig()
    metadata : pd.DataFrame, optional
        Site metadata for the summary join
    slr_table : pd.DataFrame, optional
        SLR reference table
    height_unit : str, default='mm'
        Unit of pin_height in the input

    Returns
    -------
    RateResults
        Empty tables (not an error) when no SET is eligible

    Raises
    ------
    ValueError
        If the measurement table has no SETs
    """
    config = config or AnalysisConfig()
    run = RunSummary()

    df = preprocess_measurements(measurements, height_unit=height_unit)
    run.n_readings = len(df)
    run.n_sites = int(df['set_id'].nunique())
    if run.n_sites == 0:
        raise ValueError("No SETs with valid readings in the measurement table")

    if metadata is not None:
        run.warnings.extend(compare_site_ids(df, metadata))

    df, exclusions = filter_qaqc(df, config.exclude_codes)
    run.n_excluded = len(exclusions)

    eligible, eligibility = filter_eligible(df, min_years=config.min_years,
                                            min_events=config.min_events)
    run.n_eligible = int(eligibility['eligible'].sum()) if not eligibility.empty else 0

    estimates = fit_site_rates(eligible, config)
    run.n_fitted = sum(1 for est in estimates if est.ok)
    run.failed_sites = {est.set_id: est.error for est in estimates if not est.ok}

    slr_lookup, slr_warnings = build_slr_lookup(slr_table, [est.reserve for est in estimates])
    run.warnings.extend(slr_warnings)

    trends = classify_sites(estimates, slr_lookup)
    summary = join_metadata(build_summary(estimates, trends, slr_lookup), metadata)

    run.log()
    return RateResults(
        summary=summary,
        estimates=estimates,
        trends=trends,
        slr_lookup=slr_lookup,
        eligibility=eligibility,
        exclusions=exclusions,
        measurements=eligible,
        run=run,
    )


def run_rates(
    data_path: str,
    output_dir: str,
    metadata_path: Optional[str] = None,
    slr_path: Optional[str] = None,
    config: Optional[AnalysisConfig] = None,
    reserve: Optional[str] = None,
    height_unit: str = 'mm',
    output_format: str = 'csv',
    make_plots: bool = False
) -> RateResults:
    """
    Read inputs, run the analysis and save all tables (and optional figures).

    Files written to output_dir:
    - set_rates_summary.<fmt>   the per-SET record set
    - set_rates_diagnostics.<fmt>   fit statistics and status
    - set_eligibility.<fmt>
    - qaqc_exclusions.<fmt>   only when readings were excluded
    - cumulative_change.<fmt>   SET-level mean cumulative change

    Parameters
    ----------
    data_path : str
        Measurement CSV, or a directory holding it
    output_dir : str
        Directory for outputs
    metadata_path : str, optional
        Site metadata CSV
    slr_path : str, optional
        SLR reference CSV
    config : AnalysisConfig, optional
        Run configuration
    reserve : str, optional
        Restrict the run to one reserve
    height_unit : str, default='mm'
        Unit of pin_height in the input
    output_format : str, default='csv'
        'csv' or 'json'
    make_plots : bool, default=False
        Also save figures under output_dir/plots

    Returns
    -------
    RateResults

    Raises
    ------
    FileNotFoundError
        If an input is missing
    ValueError
        If no SET matches, or output_format is invalid
    """
    if output_format.lower() not in ('csv', 'json'):
        raise ValueError(f"Invalid output format: {output_format}. Use 'csv' or 'json'.")

    validate_paths(data_path, metadata_path, slr_path)
    data_file, file_warning = resolve_input_file(data_path)
    measurements = load_measurements(data_file)
    metadata = load_metadata(metadata_path) if metadata_path else None
    slr_table = load_slr_table(slr_path) if slr_path else None

    if reserve is not None:
        measurements = measurements[measurements['reserve'].astype(str).str.strip() == reserve]
        if measurements.empty:
            raise ValueError(f"No SETs found for reserve '{reserve}'")
        if metadata is not None:
            metadata = metadata[metadata['reserve'].astype(str).str.strip() == reserve]

    results = analyze_rates(measurements, config=config, metadata=metadata,
                            slr_table=slr_table, height_unit=height_unit)
    if file_warning:
        results.run.warnings.insert(0, file_warning)

    os.makedirs(output_dir, exist_ok=True)
    write_table(results.summary, os.path.join(output_dir, 'set_rates_summary'), output_format)
    write_table(build_diagnostics(results.estimates),
                os.path.join(output_dir, 'set_rates_diagnostics'), output_format)
    write_table(results.eligibility, os.path.join(output_dir, 'set_eligibility'), output_format)
    if not results.exclusions.empty:
        write_table(results.exclusions, os.path.join(output_dir, 'qaqc_exclusions'), output_format)

    change = calc_change_cumulative(results.measurements)
    if not change['site'].empty:
        write_table(change['site'], os.path.join(output_dir, 'cumulative_change'), output_format)

    if make_plots and not results.summary.empty:
        from set_rates.visualization.rate_plots import save_all_plots
        save_all_plots(results, os.path.join(output_dir, 'plots'))

    return results
