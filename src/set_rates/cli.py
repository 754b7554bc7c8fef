# src/set_rates/cli.py

"""
CLI wrapper for the SET elevation rate toolkit.

Sub-commands:
  run : Filter readings, fit per-SET rates (parallel), classify and save tables
  plot: Redraw reserve comparison plots from a saved summary CSV
"""

import argparse
import logging
import sys

from set_rates.config import CI_LEVEL, MAX_ITER, MIN_EVENTS, MIN_YEARS, build_config
from set_rates.rate_analysis import run_rates
from set_rates.visualization.rate_plots import plot_summary_file

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def setup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='set-rates',
        description='SET elevation change rates vs local sea-level rise'
    )
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    # run sub-command
    p_run = sub.add_parser('run', help='Compute SET rates and compare with SLR')
    p_run.add_argument('--data', required=True,
                       help='Measurement CSV, or a directory holding it')
    p_run.add_argument('--metadata', default=None,
                       help='Site metadata CSV')
    p_run.add_argument('--slr', default=None,
                       help='SLR reference CSV')
    p_run.add_argument('--output-dir', default='outputs/set_rates',
                       help='Directory to save result tables')
    p_run.add_argument('--reserve', default=None,
                       help='Only analyze this reserve')
    p_run.add_argument('--exclude-codes', nargs='*', default=[],
                       help='QA/QC codes whose readings are excluded (exact match)')
    p_run.add_argument('--min-years', type=float, default=MIN_YEARS,
                       help='Minimum years between first and last sampling')
    p_run.add_argument('--min-events', type=int, default=MIN_EVENTS,
                       help='Minimum number of distinct sampling dates')
    p_run.add_argument('--ci-level', type=float, default=CI_LEVEL,
                       help='Confidence level for rate intervals')
    p_run.add_argument('--random-slope', action='store_true',
                       help='Add a random slope on time for pins within arms')
    p_run.add_argument('--max-iter', type=int, default=MAX_ITER,
                       help='Maximum optimizer iterations per fit')
    p_run.add_argument('--height-unit', choices=['mm', 'cm', 'm'], default='mm',
                       help='Unit of pin_height in the measurement table')
    p_run.add_argument('--output-format', choices=['csv', 'json'], default='csv',
                       help='Output format (csv or json)')
    p_run.add_argument('--plots', action='store_true',
                       help='Also save figures under <output-dir>/plots')
    p_run.add_argument('--workers', type=int, default=0,
                       help='Number of parallel workers (0=all cores)')

    # plot sub-command
    p_plot = sub.add_parser('plot', help='Redraw comparison plots from a summary CSV')
    p_plot.add_argument('--summary', required=True,
                        help='set_rates_summary.csv from a previous run')
    p_plot.add_argument('--output-dir', default='outputs/set_rates/plots',
                        help='Directory to save figures')
    return parser


def run_command(args: argparse.Namespace) -> int:
    config = build_config(
        exclude_codes=args.exclude_codes,
        min_years=args.min_years,
        min_events=args.min_events,
        ci_level=args.ci_level,
        random_slope=args.random_slope,
        max_iter=args.max_iter,
        workers=args.workers,
    )
    results = run_rates(
        data_path=args.data,
        output_dir=args.output_dir,
        metadata_path=args.metadata,
        slr_path=args.slr,
        config=config,
        reserve=args.reserve,
        height_unit=args.height_unit,
        output_format=args.output_format,
        make_plots=args.plots,
    )
    print(f"{results.run.n_fitted} SET rates written to {args.output_dir} "
          f"({len(results.run.failed_sites)} failed, "
          f"{results.run.n_sites - results.run.n_eligible} not eligible)")
    return 0


def plot_command(args: argparse.Namespace) -> int:
    written = plot_summary_file(args.summary, args.output_dir)
    print(f"{len(written)} figures written to {args.output_dir}")
    return 0


def main(argv=None) -> int:
    parser = setup_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger('set_rates').setLevel(logging.DEBUG)

    commands = {'run': run_command, 'plot': plot_command}
    try:
        return commands[args.command](args)
    except (FileNotFoundError, NotADirectoryError, PermissionError, KeyError, ValueError) as e:
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
