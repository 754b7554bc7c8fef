# src/set_rates/mixed_model.py
"""
Module: mixed_model.py
Responsibilities:
- Define the mixed-model backend interface used by the rate estimator
- Fit linear mixed models with nested random effects (arm, pin within arm)
  through statsmodels MixedLM, by REML or ML
- Report fixed effects, standard errors, Wald intervals and fit statistics
- Compute AIC and small-sample corrected AICc
"""
import logging
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from scipy.stats import norm
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from set_rates.config import CI_LEVEL, MAX_ITER

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def aic(log_likelihood: float, k: int) -> float:
    """Akaike Information Criterion."""
    return 2 * k - 2 * log_likelihood


def aicc(log_likelihood: float, k: int, n: int) -> float:
    """
    Small-sample corrected AIC.

    Parameters
    ----------
    log_likelihood : float
        Maximized log-likelihood
    k : int
        Number of estimated parameters (fixed effects, variance terms, residual)
    n : int
        Number of observations

    Returns
    -------
    float
        AICc, or inf when n - k - 1 <= 0
    """
    if n - k - 1 <= 0:
        return np.inf
    return aic(log_likelihood, k) + (2 * k * (k + 1)) / (n - k - 1)


@dataclass
class ModelFit:
    """Result of one mixed-model fit."""

    params: Dict[str, float]
    std_errors: Dict[str, float]
    log_likelihood: float
    n_params: int
    n_obs: int
    residual_variance: float
    variance_components: Dict[str, float] = field(default_factory=dict)
    reml: bool = True
    converged: bool = True
    formula: str = ''
    warnings: List[str] = field(default_factory=list)

    @property
    def aic(self) -> float:
        return aic(self.log_likelihood, self.n_params)

    @property
    def aicc(self) -> float:
        return aicc(self.log_likelihood, self.n_params, self.n_obs)

    def conf_int(self, term: str, level: float = CI_LEVEL) -> Tuple[float, float]:
        """
        Wald confidence interval for a fixed effect: estimate ± z * SE.

        Parameters
        ----------
        term : str
            Fixed-effect name (e.g. 'days')
        level : float, default=0.95
            Confidence level

        Returns
        -------
        Tuple[float, float]
            (lower, upper)
        """
        z = norm.ppf(0.5 + level / 2)
        est = self.params[term]
        se = self.std_errors[term]
        return est - z * se, est + z * se


class MixedModelBackend:
    """
    Interface for the numerical mixed-model solver.

    fit() receives one SET's readings and returns a ModelFit or raises
    ValueError when the model cannot be estimated.
    """

    name = 'base'

    def fit(
        self,
        data: pd.DataFrame,
        response: str,
        time: Optional[str],
        group: str,
        nested: Optional[str] = None,
        reml: bool = True
    ) -> ModelFit:
        raise NotImplementedError


class StatsmodelsMixedLM(MixedModelBackend):
    """
    Nested random-effects model via statsmodels MixedLM.

    Structure for pin_height ~ days with arms as groups:
    - random intercept per arm
    - random intercept per pin within arm (variance component)
    - optionally a random slope on time per pin within arm

    When every arm holds a single pin the pin level coincides with the
    arm level and is dropped; when a SET has a single arm, pins become the
    grouping level.
    """

    name = 'statsmodels-mixedlm'

    def __init__(self, random_slope: bool = False, max_iter: int = MAX_ITER, method: str = 'lbfgs'):
        self.random_slope = random_slope
        self.max_iter = max_iter
        self.method = method

    def _structure(
        self,
        data: pd.DataFrame,
        time: Optional[str],
        group: str,
        nested: Optional[str]
    ) -> Tuple[str, Optional[str], Dict[str, str]]:
        """Choose grouping column, re_formula and variance components."""
        n_groups = data[group].nunique()
        if nested is not None and n_groups < 2:
            group, nested = nested, None
            n_groups = data[group].nunique()
        if n_groups < 2:
            raise ValueError(f"At least two '{group}' levels are needed, found {n_groups}")

        re_formula = '1'
        vc_formula = {}
        nested_levels = data.groupby(group)[nested].nunique().max() if nested else 0
        if nested_levels > 1:
            vc_formula['pin'] = f'0 + C({nested})'
            if self.random_slope and time:
                vc_formula['pin_slope'] = f'0 + C({nested}):{time}'
        elif self.random_slope and time:
            re_formula = f'1 + {time}'
        return group, re_formula, vc_formula

    def fit(
        self,
        data: pd.DataFrame,
        response: str,
        time: Optional[str],
        group: str,
        nested: Optional[str] = None,
        reml: bool = True
    ) -> ModelFit:
        """
        Fit the model by REML (reml=True) or ML.

        Parameters
        ----------
        data : pd.DataFrame
            Readings for one SET with no missing response values
        response : str
            Response column (pin height)
        time : str or None
            Time covariate column; None fits the intercept-only model
        group : str
            Outer grouping column (arm position)
        nested : str, optional
            Column nested within group (pin number)
        reml : bool, default=True
            Restricted maximum likelihood when True, ML otherwise

        Returns
        -------
        ModelFit

        Raises
        ------
        ValueError
            If the structure can't be estimated or the optimizer fails
        """
        data = data.reset_index(drop=True)
        group, re_formula, vc_formula = self._structure(data, time, group, nested)
        formula = f"{response} ~ {time if time else '1'}"

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            try:
                model = smf.mixedlm(
                    formula,
                    data,
                    groups=data[group],
                    re_formula=re_formula,
                    vc_formula=vc_formula or None,
                )
                result = model.fit(reml=reml, method=self.method, maxiter=self.max_iter, disp=False)
            except (np.linalg.LinAlgError, ValueError) as e:
                raise ValueError(f"Failed to fit mixed model: {type(e).__name__}: {e}")

        messages = [str(w.message) for w in caught if issubclass(w.category, (ConvergenceWarning, RuntimeWarning))]
        for msg in messages:
            logger.debug(f"{formula} ({'REML' if reml else 'ML'}): {msg}")

        if not result.converged:
            raise ValueError(f"Mixed model did not converge within {self.max_iter} iterations")

        params = {str(k): float(v) for k, v in result.fe_params.items()}
        bse = np.asarray(result.bse_fe, dtype=float)
        std_errors = dict(zip(params.keys(), bse))
        scale = float(result.scale)

        if not np.all(np.isfinite(list(params.values()))) or not np.all(np.isfinite(bse)):
            raise ValueError("Non-finite fixed-effect estimates or standard errors "
                             "(singular random-effect covariance)")
        if not np.isfinite(scale) or scale <= 0:
            raise ValueError(f"Invalid residual variance: {scale}")

        components = {f'{group}': float(np.diag(np.atleast_2d(result.cov_re))[0])}
        if re_formula != '1':
            components[f'{group}:{time}'] = float(np.diag(np.atleast_2d(result.cov_re))[-1])
        vc_names = list(getattr(model.exog_vc, 'names', None) or [])
        for name, value in zip(vc_names, np.atleast_1d(result.vcomp)):
            components[name] = float(value)

        n_params = model.k_fe + model.k_re2 + model.k_vc + 1
        return ModelFit(
            params=params,
            std_errors={k: float(v) for k, v in std_errors.items()},
            log_likelihood=float(result.llf),
            n_params=int(n_params),
            n_obs=len(data),
            residual_variance=scale,
            variance_components=components,
            reml=reml,
            converged=bool(result.converged),
            formula=formula,
            warnings=messages,
        )
