"""
SET Elevation Rates.

Estimates long-term rates of wetland surface-elevation change from repeated
Surface Elevation Table (SET) pin readings using per-site linear mixed-effects
models, and compares each site's rate to the local sea-level-rise benchmark.
"""

__version__ = "0.1.0"
