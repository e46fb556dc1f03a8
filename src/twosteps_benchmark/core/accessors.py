"""
Read-only interface to fitted models.

``RegressionResult`` and ``TwoStepsBenchmark`` both satisfy the
``FittableModel`` protocol; the functions below are the entry points used by
reporting and review code.
"""

from typing import Mapping, Protocol, runtime_checkable

import numpy as np

from .prais import ModelSpecification, RegressionResult
from .series import Series
from .two_steps import TwoStepsBenchmark


@runtime_checkable
class FittableModel(Protocol):
    """Accessors shared by a regression and a two-steps benchmark."""

    @property
    def coefficients(self) -> Mapping[str, float]: ...

    @property
    def standard_errors(self) -> Mapping[str, float]: ...

    @property
    def residuals(self) -> Series: ...

    @property
    def fitted_values(self) -> Series: ...

    @property
    def residuals_decorrelated(self) -> Series: ...

    @property
    def fitted_values_decorrelated(self) -> Series: ...

    @property
    def rho(self) -> float: ...

    @property
    def df_residual(self) -> int: ...

    @property
    def model_specification(self) -> ModelSpecification: ...

    def covariance_matrix(self) -> np.ndarray: ...


def coefficients(model: FittableModel) -> Mapping[str, float]:
    return model.coefficients


def standard_errors(model: FittableModel) -> Mapping[str, float]:
    """Standard errors by coefficient, NaN for coefficients set by the caller."""
    return model.standard_errors


def residuals(model: FittableModel) -> Series:
    return model.residuals


def fitted_values(model: FittableModel) -> Series:
    """
    Fitted values.

    For a regression these are on the low-frequency (possibly differenced)
    scale; for a benchmark they are the high-frequency reconstruction.
    """
    return model.fitted_values


def residuals_decorrelated(model: FittableModel) -> Series:
    return model.residuals_decorrelated


def fitted_values_decorrelated(model: FittableModel) -> Series:
    return model.fitted_values_decorrelated


def rho(model: FittableModel) -> float:
    """Autocorrelation of the residuals, 0 when it was not estimated."""
    return model.rho


def covariance_matrix(model: FittableModel) -> np.ndarray:
    return model.covariance_matrix()


def model_specification(model: FittableModel) -> ModelSpecification:
    return model.model_specification


def regression(benchmark: TwoStepsBenchmark) -> RegressionResult:
    return benchmark.regression


def smoothed_part(benchmark: TwoStepsBenchmark) -> Series:
    """Smoothed low-frequency residual of the benchmark, on the high-frequency grid."""
    return benchmark.smoothed_part


def as_series(benchmark: TwoStepsBenchmark) -> Series:
    """Final benchmarked series."""
    return benchmark.benchmarked_series
