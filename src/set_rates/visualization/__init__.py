"""
Figures for SET elevation rate results:
- Cumulative change per SET with fitted rate and local SLR
- Reserve-wide comparison of SET rates against SLR
"""

from set_rates.visualization.base import FIG_SIZES, save_figure, set_publication_style
from set_rates.visualization.rate_plots import (
    plot_cumulative_change, plot_rate_comparison, save_all_plots
)

__all__ = [
    'FIG_SIZES',
    'save_figure',
    'set_publication_style',
    'plot_cumulative_change',
    'plot_rate_comparison',
    'save_all_plots',
]
