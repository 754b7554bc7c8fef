# src/set_rates/rates.py
"""
Module: rates.py
Responsibilities:
- Prepare one SET's readings for model fitting (elapsed days covariate)
- Fit the trend model by REML and extract the slope and its 95% CI
- Convert the slope from mm/day to mm/yr
- Compare trend and intercept-only models by ML AICc (diagnostic only)
- Return a failed RateEstimate instead of raising when a fit breaks down
"""
import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from set_rates.config import CI_LEVEL, DAYS_PER_YEAR, MIN_FIT_DATES, AnalysisConfig
from set_rates.mixed_model import MixedModelBackend, StatsmodelsMixedLM

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

RESPONSE = 'pin_height'
TIME = 'days'
GROUP = 'arm_position'
NESTED = 'pin_number'
CI_METHOD = 'wald-z'

STATUS_OK = 'ok'
STATUS_FAILED = 'failed'


@dataclass(frozen=True)
class RateEstimate:
    """Elevation-change rate for one SET (mm/yr)."""

    set_id: str
    reserve: Optional[str] = None
    rate: float = math.nan
    ci_low: float = math.nan
    ci_high: float = math.nan
    slope_per_day: float = math.nan
    std_err_per_day: float = math.nan
    ci_level: float = CI_LEVEL
    ci_method: str = CI_METHOD
    n_obs: int = 0
    n_pins: int = 0
    n_dates: int = 0
    log_likelihood: float = math.nan
    aic: float = math.nan
    residual_variance: float = math.nan
    aicc_trend: float = math.nan
    aicc_null: float = math.nan
    preferred_model: Optional[str] = None
    backend: Optional[str] = None
    status: str = STATUS_OK
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def failed_estimate(set_id: str, reserve: Optional[str], error: str, **kwargs) -> RateEstimate:
    """Build the RateEstimate reported for a SET whose fit failed."""
    return RateEstimate(set_id=set_id, reserve=reserve, status=STATUS_FAILED, error=error, **kwargs)


def prepare_site_data(df: pd.DataFrame) -> pd.DataFrame:
    """
    Keep readings with a height and add elapsed days since the first of them.

    Parameters
    ----------
    df : pd.DataFrame
        Readings for one SET

    Returns
    -------
    pd.DataFrame
        Columns pin_height, days, arm_position, pin_number, date
    """
    data = df.loc[df[RESPONSE].notna(), ['date', GROUP, NESTED, RESPONSE]].copy()
    if data.empty:
        data[TIME] = pd.Series(dtype=float)
        return data
    origin = data['date'].min()
    data[TIME] = (data['date'] - origin).dt.days.astype(float)
    data[GROUP] = data[GROUP].astype(str)
    data[NESTED] = data[NESTED].astype(str)
    data[RESPONSE] = data[RESPONSE].astype(float)
    return data.reset_index(drop=True)


def compare_trend_models(data: pd.DataFrame, backend: MixedModelBackend) -> Dict[str, Any]:
    """
    Fit trend and intercept-only models by ML and compare AICc.

    The outcome is recorded for diagnostics; the reported rate always comes
    from the REML trend fit.

    Parameters
    ----------
    data : pd.DataFrame
        Prepared readings for one SET
    backend : MixedModelBackend
        Solver used for both fits

    Returns
    -------
    dict
        {'aicc_trend', 'aicc_null', 'preferred_model'}; NaN/None for fits that failed
    """
    out = {'aicc_trend': math.nan, 'aicc_null': math.nan, 'preferred_model': None}
    for key, time in (('aicc_trend', TIME), ('aicc_null', None)):
        try:
            fit = backend.fit(data, RESPONSE, time, GROUP, NESTED, reml=False)
            out[key] = float(fit.aicc)
        except Exception as e:
            logger.debug(f"ML fit for {key} failed: {type(e).__name__}: {e}")

    trend, null = out['aicc_trend'], out['aicc_null']
    if np.isfinite(trend) and np.isfinite(null):
        out['preferred_model'] = 'trend' if trend <= null else 'intercept_only'
    elif np.isfinite(trend):
        out['preferred_model'] = 'trend'
    elif np.isfinite(null):
        out['preferred_model'] = 'intercept_only'
    return out


def estimate_site_rate(
    df: pd.DataFrame,
    config: Optional[AnalysisConfig] = None,
    backend: Optional[MixedModelBackend] = None,
    compare_models: bool = True
) -> RateEstimate:
    """
    Estimate the elevation-change rate of one SET.

    Model: pin_height ~ days, random intercepts for arm and pin within arm,
    fit by REML. The slope and its Wald interval (slope ± z * SE) are
    converted from mm/day to mm/yr by multiplying by 365.25.

    Pins get random intercepts only unless config.random_slope is set. The
    usual SET model also gives each pin a random slope on time; that term is
    opt-in here because its variance is poorly identified on short records.

    Parameters
    ----------
    df : pd.DataFrame
        All readings for one SET (rows with NaN heights are ignored)
    config : AnalysisConfig, optional
        Run configuration; defaults to AnalysisConfig()
    backend : MixedModelBackend, optional
        Solver; defaults to StatsmodelsMixedLM built from config
    compare_models : bool, default=True
        Whether to run the ML AICc comparison

    Returns
    -------
    RateEstimate
        status 'ok', or 'failed' with an error message; never raises
    """
    config = config or AnalysisConfig()
    if backend is None:
        backend = StatsmodelsMixedLM(random_slope=config.random_slope, max_iter=config.max_iter)

    set_id = str(df['set_id'].iloc[0]) if len(df) else ''
    reserve = str(df['reserve'].iloc[0]) if len(df) and 'reserve' in df.columns else None
    counts = {'ci_level': config.ci_level, 'backend': backend.name}

    try:
        data = prepare_site_data(df)
        counts.update(
            n_obs=len(data),
            n_pins=int(data.groupby([GROUP, NESTED]).ngroups) if len(data) else 0,
            n_dates=int(data['date'].nunique()) if len(data) else 0,
        )

        if data.empty:
            return failed_estimate(set_id, reserve, "No non-null pin heights", **counts)
        if counts['n_dates'] < MIN_FIT_DATES:
            return failed_estimate(
                set_id, reserve,
                f"Only {counts['n_dates']} sampling dates with data (minimum {MIN_FIT_DATES})",
                **counts)

        fit = backend.fit(data, RESPONSE, TIME, GROUP, NESTED, reml=True)
        slope = fit.params[TIME]
        low, high = fit.conf_int(TIME, level=config.ci_level)

        comparison = compare_trend_models(data, backend) if compare_models else {}

        estimate = RateEstimate(
            set_id=set_id,
            reserve=reserve,
            rate=slope * DAYS_PER_YEAR,
            ci_low=low * DAYS_PER_YEAR,
            ci_high=high * DAYS_PER_YEAR,
            slope_per_day=slope,
            std_err_per_day=fit.std_errors[TIME],
            log_likelihood=fit.log_likelihood,
            aic=fit.aic,
            residual_variance=fit.residual_variance,
            **comparison,
            **counts,
        )
        if comparison.get('preferred_model') == 'intercept_only':
            logger.info(f"SET {set_id}: intercept-only model has lower AICc; "
                        f"reporting the trend model")
        logger.info(f"SET {set_id}: {estimate.rate:.2f} mm/yr "
                    f"[{estimate.ci_low:.2f}, {estimate.ci_high:.2f}]")
        return estimate

    except ValueError as e:
        logger.warning(f"Rate estimation failed for SET {set_id}: {e}")
        return failed_estimate(set_id, reserve, f"ValueError: {e}", **counts)
    except Exception as e:
        logger.error(f"Unexpected error fitting SET {set_id}: {type(e).__name__}: {e}")
        return failed_estimate(set_id, reserve, f"{type(e).__name__}: {e}", **counts)
