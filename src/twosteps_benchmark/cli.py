"""
Command-line interface for two-steps benchmarking.
"""

import sys
import logging
import argparse
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import pandas as pd
from tqdm import tqdm

from .core.series import PANDAS_FREQUENCIES, Series, period_at, period_index
from .core.two_steps import TwoStepsBenchmark
from .core.prais import PraisWinsten
from .core.diagnostics import summarize
from .utils.config import Config
from .utils.validation import BenchmarkError, InvalidSpecificationError


# Set up logging
logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Disaggregate a low-frequency series with high-frequency indicators (two-steps benchmark)'
    )
    parser.add_argument(
        '--hf', required=True,
        help='CSV file of high-frequency indicators, periods in the first column'
    )
    parser.add_argument(
        '--lf', required=True,
        help='CSV file holding the low-frequency series, periods in the first column'
    )
    parser.add_argument(
        '--lf-column',
        help='Column of the low-frequency file to benchmark (default: the first one)',
        default=None
    )
    parser.add_argument(
        '--output', '-o',
        help='Path to output CSV file (default: from configuration)',
        default=None
    )
    parser.add_argument(
        '--config', '-c',
        help='YAML configuration file overriding the packaged defaults',
        default=None
    )
    parser.add_argument(
        '--hf-frequency', type=int, default=None,
        help='Periods per year of the indicators: 1, 4 or 12 (default: from configuration)'
    )
    parser.add_argument(
        '--lf-frequency', type=int, default=None,
        help='Periods per year of the low-frequency series: 1, 4 or 12 (default: from configuration)'
    )
    parser.add_argument(
        '--include-rho', action='store_true', default=None,
        help='Model the regression residuals as an AR(1) process'
    )
    parser.add_argument(
        '--include-differentiation', action='store_true', default=None,
        help='Run the regression on first differences'
    )
    parser.add_argument(
        '--set-coeff', action='append', default=[], metavar='NAME=VALUE',
        help='Fix the coefficient of an indicator (can be repeated)'
    )
    parser.add_argument(
        '--set-const', type=float, default=None,
        help='Fix the value of the constant'
    )
    parser.add_argument(
        '--coeff-calc-window', nargs=2, metavar=('START', 'END'), default=None,
        help='Low-frequency periods used to estimate the coefficients, e.g. 2000 2015'
    )
    parser.add_argument(
        '--benchmark-window', nargs=2, metavar=('START', 'END'), default=None,
        help='Low-frequency periods the output must sum to'
    )
    parser.add_argument(
        '--domain-window', nargs=2, metavar=('START', 'END'), default=None,
        help='High-frequency periods of the output, e.g. 2000Q1 2016Q4'
    )
    parser.add_argument(
        '--debug', '-d',
        action='store_true',
        help='Enable debug output'
    )
    return parser.parse_args(argv)


def configure_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    config = Config()
    log_config = config.get('logging', {})

    level = logging.DEBUG if debug else getattr(logging, log_config.get('level', 'INFO'))
    format_str = log_config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # Reset the root logger
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def parse_period(text: str, frequency: int) -> Tuple[int, int]:
    """Parse a period label such as ``2005``, ``2005Q2`` or ``2005-03``."""
    alias = PANDAS_FREQUENCIES.get(frequency)
    if alias is None:
        raise InvalidSpecificationError(f"Unsupported frequency {frequency}, use 1, 4 or 12")
    try:
        period = pd.Period(text, freq=alias)
    except ValueError as e:
        raise InvalidSpecificationError(f"Cannot read period {text!r}: {e}") from e
    ordinal = period.year * frequency
    if frequency == 4:
        ordinal += period.quarter - 1
    elif frequency == 12:
        ordinal += period.month - 1
    return period_at(ordinal, frequency)


def load_series(path: str, frequency: int) -> Dict[str, Series]:
    """
    Load every column of a CSV file as a series.

    Args:
        path: CSV file with period labels in its first column
        frequency: Periods per year of the file

    Returns:
        Dictionary of column name to series
    """
    logger.info("Loading %s", path)
    df = pd.read_csv(path, index_col=0)
    if df.empty:
        raise InvalidSpecificationError(f"{path} holds no data")

    alias = PANDAS_FREQUENCIES.get(frequency)
    if alias is None:
        raise InvalidSpecificationError(f"Unsupported frequency {frequency}, use 1, 4 or 12")
    try:
        df.index = pd.PeriodIndex(df.index.astype(str), freq=alias)
    except ValueError as e:
        raise InvalidSpecificationError(f"Cannot read the periods of {path}: {e}") from e

    logger.info("Loaded %s: %d periods, columns %s", path, len(df), df.columns.tolist())
    return {str(column): Series.from_pandas(df[column], frequency) for column in df.columns}


def parse_fixed_coefficients(items: List[str]) -> Dict[str, float]:
    """Parse ``NAME=VALUE`` pairs."""
    fixed = {}
    for item in items:
        name, sep, value = item.partition('=')
        if not sep or not name:
            raise InvalidSpecificationError(f"Expected NAME=VALUE, got {item!r}")
        try:
            fixed[name] = float(value)
        except ValueError as e:
            raise InvalidSpecificationError(f"Invalid value for coefficient {name!r}: {value!r}") from e
    return fixed


def get_output_path(args: argparse.Namespace) -> Path:
    """Get the output file path from args or config."""
    output_file = args.output or Config().get('data.output_file', 'benchmark.csv')
    output_path = Path(output_file)
    output_path.parent.mkdir(exist_ok=True, parents=True)
    return output_path


def build_benchmark(args: argparse.Namespace) -> TwoStepsBenchmark:
    """Read the inputs and build an unfitted benchmark from arguments and configuration."""
    config = Config()
    hf_frequency = args.hf_frequency or config.get('data.high_frequency')
    lf_frequency = args.lf_frequency or config.get('data.low_frequency')

    indicators = load_series(args.hf, hf_frequency)
    lf_columns = load_series(args.lf, lf_frequency)
    lf_name = args.lf_column or next(iter(lf_columns))
    if lf_name not in lf_columns:
        raise InvalidSpecificationError(f"Column {lf_name!r} not found in {args.lf}")

    def window(bounds: Optional[List[str]], frequency: int):
        if bounds is None:
            return None
        start, end = (parse_period(text, frequency) for text in bounds)
        if period_index(end, frequency) < period_index(start, frequency):
            raise InvalidSpecificationError(f"Window {bounds} ends before it starts")
        return start, end

    include_rho = config.get('benchmark.include_rho') if args.include_rho is None else args.include_rho
    include_differentiation = (
        config.get('benchmark.include_differentiation')
        if args.include_differentiation is None else args.include_differentiation
    )
    estimator = PraisWinsten(
        tolerance=float(config.get('benchmark.tolerance')),
        max_iterations=int(config.get('benchmark.max_iterations')),
        max_abs_rho=float(config.get('benchmark.max_abs_rho')),
    )

    logger.info(
        "Benchmarking %r with indicators %s (include_rho=%s, include_differentiation=%s)",
        lf_name, list(indicators), include_rho, include_differentiation
    )
    return TwoStepsBenchmark(
        indicators,
        lf_columns[lf_name],
        include_differentiation=include_differentiation,
        include_rho=include_rho,
        set_coefficients=parse_fixed_coefficients(args.set_coeff),
        set_constant=args.set_const,
        coeff_calc_window=window(args.coeff_calc_window, lf_frequency),
        benchmark_window=window(args.benchmark_window, lf_frequency),
        domain_window=window(args.domain_window, hf_frequency),
        estimator=estimator,
    )


def log_summary(benchmark: TwoStepsBenchmark) -> None:
    """Log the regression summary."""
    summary = summarize(benchmark)
    if summary.include_differentiation:
        logger.info("The model includes a differentiation")
    if summary.rho != 0:
        logger.info("Autocorrelation parameter (rho): %.4f", summary.rho)
    logger.info("Coefficients:\n%s", summary.coefficients.to_string())
    logger.info(
        "Residual standard error: %.4g on %d degrees of freedom",
        summary.sigma, summary.df_residual
    )
    logger.info(
        "Multiple R-squared: %.4f, Adjusted R-squared: %.4f",
        summary.r_squared, summary.adj_r_squared
    )
    logger.info("Portmanteau:\n%s", summary.portmanteau.to_string())


def save_results(benchmark: TwoStepsBenchmark, output_path: Path) -> pd.DataFrame:
    """Save the benchmarked series, the fit and the smoothed part to CSV."""
    results_df = pd.DataFrame({
        'benchmarked': benchmark.benchmarked_series.to_pandas(),
        'fitted': benchmark.fitted_values.to_pandas(),
        'smoothed_part': benchmark.smoothed_part.to_pandas(),
    })
    results_df.to_csv(output_path)
    logger.info("Results saved to %s", output_path)
    return results_df


def main(argv: Optional[List[str]] = None) -> int:
    """Main function to benchmark a series from CSV files."""
    try:
        args = parse_arguments(argv)
        if args.config:
            Config().load(args.config)
        configure_logging(args.debug)

        logger.info("Starting two-steps benchmark")

        with tqdm(total=4, desc="Benchmarking") as pbar:
            benchmark = build_benchmark(args)
            pbar.update(1)

            benchmark.fit()
            pbar.update(1)

            log_summary(benchmark)
            pbar.update(1)

            save_results(benchmark, get_output_path(args))
            pbar.update(1)

        logger.info("Process completed successfully!")
        return 0

    except (BenchmarkError, ValueError, OSError) as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
