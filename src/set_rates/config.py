# src/set_rates/config.py
"""
Module: config.py
Responsibilities:
- Default thresholds and constants shared by the analysis modules
- AnalysisConfig value object passed explicitly into every component
"""
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, Optional

# Eligibility thresholds
MIN_YEARS = 4.5
MIN_EVENTS = 5

# Average Gregorian year length, used for elapsed years and mm/day -> mm/yr
DAYS_PER_YEAR = 365.25

# Model fitting
CI_LEVEL = 0.95
MAX_ITER = 200
MIN_FIT_DATES = 3


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings for one analysis run."""

    exclude_codes: FrozenSet[str] = field(default_factory=frozenset)
    min_years: float = MIN_YEARS
    min_events: int = MIN_EVENTS
    ci_level: float = CI_LEVEL
    random_slope: bool = False
    max_iter: int = MAX_ITER
    workers: int = 1

    def __post_init__(self):
        if not 0 < self.ci_level < 1:
            raise ValueError(f"ci_level must be between 0 and 1, got {self.ci_level}")
        if self.min_years < 0:
            raise ValueError(f"min_years must be non-negative, got {self.min_years}")
        if self.min_events < 1:
            raise ValueError(f"min_events must be at least 1, got {self.min_events}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self.max_iter}")
        if self.workers < 0:
            raise ValueError(f"workers must be non-negative, got {self.workers}")
        # Normalize codes so membership tests are exact string matches
        codes = frozenset(str(c).strip() for c in (self.exclude_codes or ()) if str(c).strip())
        object.__setattr__(self, 'exclude_codes', codes)


def build_config(exclude_codes: Optional[Iterable[str]] = None, **kwargs) -> AnalysisConfig:
    """
    Build an AnalysisConfig, ignoring options left as None.

    Parameters
    ----------
    exclude_codes : iterable of str, optional
        QA/QC codes whose readings are excluded
    **kwargs
        Any other AnalysisConfig field

    Returns
    -------
    AnalysisConfig
    """
    config = AnalysisConfig(exclude_codes=frozenset(exclude_codes or ()))
    overrides = {k: v for k, v in kwargs.items() if v is not None}
    return replace(config, **overrides) if overrides else config
