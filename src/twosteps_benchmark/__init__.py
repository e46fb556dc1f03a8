"""
Two-steps temporal disaggregation of low-frequency time series.

This package implements the two-steps benchmarking method used in French
national accounts: a Prais-Winsten regression of a low-frequency series on
aggregated high-frequency indicators, followed by an additive Denton
smoothing of the regression residual so that the high-frequency output
always sums back to the low-frequency observations.
"""

from .core.series import Series
from .core.prais import ModelSpecification, PraisWinsten, RegressionResult, make_specification
from .core.denton import BenchmarkResult, DentonSmoother, SmoothingConstraint
from .core.two_steps import BenchmarkState, TwoStepsBenchmark, two_steps_benchmark
from .core.accessors import (
    FittableModel,
    as_series,
    coefficients,
    covariance_matrix,
    fitted_values,
    fitted_values_decorrelated,
    model_specification,
    regression,
    residuals,
    residuals_decorrelated,
    rho,
    smoothed_part,
    standard_errors,
)
from .core.diagnostics import RegressionSummary, ljung_box, summarize

__version__ = "0.1.0"
