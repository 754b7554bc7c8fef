"""
Base visualization module for SET elevation rate figures.

This module provides common settings and helpers for consistent,
publication-ready figures.
"""
import os
import logging

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import seaborn as sns

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Standard figure sizes (in inches)
FIG_SIZES = {
    'small': (6, 4),      # For single-SET plots
    'medium': (8, 6),     # For standard plots
    'wide': (12, 6),      # For reserve-wide comparisons
    'tall': (8, 10),      # For many SETs stacked vertically
}

# Direction label colors, decreasing in reds and increasing in blues
DIRECTION_COLORS = {
    'dec_sig': '#B2182B',
    'dec_nonsig': '#F4A582',
    'nonsig': '#BDBDBD',
    'inc_nonsig': '#92C5DE',
    'inc_sig': '#2166AC',
    None: '#636363',
}

DIRECTION_LABELS = {
    'dec_sig': 'Lower (significant)',
    'dec_nonsig': 'Lower (not significant)',
    'nonsig': 'No difference',
    'inc_nonsig': 'Higher (not significant)',
    'inc_sig': 'Higher (significant)',
    None: 'Not classified',
}


def set_publication_style():
    """Set matplotlib parameters for publication-quality figures."""
    sns.set_theme(style='whitegrid')
    plt.rcParams['figure.dpi'] = 150
    plt.rcParams['savefig.dpi'] = 300
    plt.rcParams['font.size'] = 11
    plt.rcParams['axes.titlesize'] = 13
    plt.rcParams['axes.labelsize'] = 11
    plt.rcParams['legend.fontsize'] = 9
    plt.rcParams['grid.linewidth'] = 0.5
    plt.rcParams['grid.alpha'] = 0.3


def save_figure(fig, filename, dpi=300, bbox_inches='tight', **kwargs):
    """
    Save a figure and close it.

    Parameters
    ----------
    fig : matplotlib.figure.Figure
        Figure to save
    filename : str
        Output filename (if no extension, .png is added)
    dpi : int, optional
        Resolution (dots per inch)
    bbox_inches : str, optional
        Bounding box setting
    **kwargs : dict
        Additional parameters to pass to savefig

    Returns
    -------
    str
        Path written
    """
    if not os.path.splitext(filename)[1]:
        filename = f"{filename}.png"

    os.makedirs(os.path.dirname(os.path.abspath(filename)), exist_ok=True)

    fig.savefig(filename, dpi=dpi, bbox_inches=bbox_inches, **kwargs)
    plt.close(fig)
    logger.info(f"Figure saved to {filename}")
    return filename
