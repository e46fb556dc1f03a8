"""
Two-steps benchmarking of a low-frequency series with high-frequency indicators.

The benchmark first regresses the low-frequency series on the aggregated
indicators (Prais-Winsten), then distributes the low-frequency residual of
that regression over the high-frequency grid with an additive Denton
smoothing, and finally adds the smoothed residual to the high-frequency
reconstruction of the regression.
"""

from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple, Union
import logging

import numpy as np

from .denton import BenchmarkResult, DentonSmoother, SmoothingConstraint
from .prais import ModelSpecification, PraisWinsten, RegressionResult, make_specification
from .series import PeriodLike, Series, period_at
from ..utils.validation import (
    AggregationMismatchError,
    BenchmarkStateError,
    InvalidSpecificationError,
    validate_finite,
    validate_fixed_coefficients,
    validate_frequencies,
    validate_same_grid,
)

logger = logging.getLogger(__name__)

Window = Tuple[Optional[PeriodLike], Optional[PeriodLike]]

CONSTANT = "constant"
DEFAULT_INDICATOR_NAME = "indicator"


class BenchmarkState(Enum):
    UNFIT = "unfit"
    REGRESSED = "regressed"
    SMOOTHED = "smoothed"
    FINAL = "final"
    FAILED = "failed"


def extrapolate_residuals(
    residuals: Series,
    start: PeriodLike,
    end: PeriodLike,
    rho: float,
    include_differentiation: bool
) -> Series:
    """
    Extend low-frequency residuals to a wider window.

    Without differentiation the residuals decay geometrically towards zero,
    ``u_{T+h} = rho^h u_T``. With differentiation the increments decay,
    ``u_{T+h} = u_{T+h-1} + rho^h (u_T - u_{T-1})``. Backward extrapolation
    mirrors the forward one.

    Args:
        residuals: Residuals without gaps
        start: First period of the extended window
        end: Last period of the extended window
        rho: Autocorrelation of the residuals
        include_differentiation: Whether the regression was run on differences

    Returns:
        The residuals over the extended window
    """
    extended = residuals.window(start, end, extend=True)
    values = np.array(extended.values)
    first = residuals.start_index - extended.start_index
    last = first + len(residuals) - 1

    if include_differentiation:
        step = values[last] - values[last - 1] if len(residuals) > 1 else 0.0
        for t in range(last + 1, len(values)):
            step *= rho
            values[t] = values[t - 1] + step
        step = values[first] - values[first + 1] if len(residuals) > 1 else 0.0
        for t in range(first - 1, -1, -1):
            step *= rho
            values[t] = values[t + 1] + step
    else:
        for t in range(last + 1, len(values)):
            values[t] = rho * values[t - 1]
        for t in range(first - 1, -1, -1):
            values[t] = rho * values[t + 1]

    return extended.with_values(values)


class TwoStepsBenchmark:
    """
    Two-steps benchmark of a low-frequency series.

    The computation goes through the states ``UNFIT``, ``REGRESSED``,
    ``SMOOTHED`` and ``FINAL``. Results are computed once by ``fit`` and
    cached; any failure moves the benchmark to ``FAILED``, after which a new
    benchmark has to be built from corrected inputs.

    Accessors fit the benchmark on first use without any locking. Call
    ``fit`` (or build it with ``two_steps_benchmark``) before sharing a
    benchmark between threads; once ``FINAL`` it is only read.

    A ``constant`` regressor is always added to the indicators. When the
    regression is differenced it is a linear drift, so that it survives the
    differencing.
    """

    def __init__(
        self,
        hfserie: Union[Series, Mapping[str, Series]],
        lfserie: Series,
        include_differentiation: bool = False,
        include_rho: bool = False,
        set_coefficients: Optional[Mapping[str, float]] = None,
        set_constant: Optional[float] = None,
        coeff_calc_window: Optional[Window] = None,
        benchmark_window: Optional[Window] = None,
        domain_window: Optional[Window] = None,
        estimator: Optional[PraisWinsten] = None,
        smoother: Optional[DentonSmoother] = None,
        tolerance: float = 1e-8
    ):
        """
        Initialize and validate the benchmark.

        Args:
            hfserie: High-frequency indicator, or mapping of name to indicator
            lfserie: Low-frequency series to disaggregate
            include_differentiation: Whether the regression is run on first differences
            include_rho: Whether the regression residuals follow an AR(1) process
            set_coefficients: Coefficients fixed by the caller, by indicator name
            set_constant: Fixed value of the constant, if any
            coeff_calc_window: Low-frequency ``(start, end)`` used to estimate the coefficients
            benchmark_window: Low-frequency ``(start, end)`` the output must sum to
            domain_window: High-frequency ``(start, end)`` of the output
            estimator: Regression estimator, a default ``PraisWinsten`` otherwise
            smoother: Residual smoother, a default ``DentonSmoother`` otherwise
            tolerance: Relative tolerance of the final aggregation check

        Raises:
            InvalidSpecificationError: If the inputs are inconsistent
            NonFiniteInputError: If an indicator is missing inside the domain
        """
        if isinstance(hfserie, Series):
            hfserie = {DEFAULT_INDICATOR_NAME: hfserie}
        if not hfserie:
            raise InvalidSpecificationError("At least one high-frequency indicator is required")
        if CONSTANT in hfserie:
            raise InvalidSpecificationError(f"{CONSTANT!r} is a reserved indicator name")
        reference = next(iter(hfserie.values()))
        validate_same_grid(reference, hfserie, what="indicator")

        self.ratio = validate_frequencies(reference.frequency, lfserie.frequency)
        self.include_differentiation = bool(include_differentiation)
        self.include_rho = bool(include_rho)
        self.tolerance = tolerance
        self.estimator = estimator or PraisWinsten()
        self.smoother = smoother or DentonSmoother()

        fixed = dict(set_coefficients or {})
        if set_constant is not None:
            fixed[CONSTANT] = float(set_constant)
        self.set_coefficients = MappingProxyType(fixed)

        if self.include_differentiation:
            constant = reference.with_values(np.arange(1, len(reference) + 1, dtype=float))
        else:
            constant = reference.with_values(np.ones(len(reference)))
        self.hfserie: Mapping[str, Series] = MappingProxyType({CONSTANT: constant, **hfserie})
        validate_fixed_coefficients(list(self.hfserie), fixed)

        self.lfserie = lfserie
        self._benchmark_lf = self._lf_window(lfserie, benchmark_window, "benchmark")
        if coeff_calc_window is None:
            self._coeff_lf = self._benchmark_lf
        else:
            self._coeff_lf = self._lf_window(lfserie, coeff_calc_window, "coefficient calculation")

        domain_start, domain_end = domain_window or (None, None)
        self._domain = {
            name: serie.window(domain_start, domain_end)
            for name, serie in self.hfserie.items()
        }
        for name, serie in self._domain.items():
            validate_finite(serie.values, f"indicator {name!r} inside the domain")

        self._state = BenchmarkState.UNFIT
        self._regression: Optional[RegressionResult] = None
        self._fitted: Optional[Series] = None
        self._smoothed_part: Optional[Series] = None
        self._result: Optional[BenchmarkResult] = None

    @staticmethod
    def _lf_window(lfserie: Series, window: Optional[Window], what: str) -> Series:
        start, end = window or (None, None)
        windowed = lfserie.window(start, end).trim()
        if np.isnan(windowed.values).any():
            raise InvalidSpecificationError(
                f"The low-frequency series has gaps inside the {what} window {windowed.start}-{windowed.end}"
            )
        return windowed

    @property
    def state(self) -> BenchmarkState:
        return self._state

    def fit(self) -> "TwoStepsBenchmark":
        """
        Run every remaining step of the benchmark.

        Returns:
            The benchmark itself

        Raises:
            BenchmarkStateError: If an earlier fit failed
        """
        if self._state is BenchmarkState.FAILED:
            raise BenchmarkStateError("This benchmark failed earlier, build a new one with corrected inputs")
        try:
            if self._state is BenchmarkState.UNFIT:
                self._regress()
                self._state = BenchmarkState.REGRESSED
            if self._state is BenchmarkState.REGRESSED:
                self._smooth()
                self._state = BenchmarkState.SMOOTHED
            if self._state is BenchmarkState.SMOOTHED:
                self._finalize()
                self._state = BenchmarkState.FINAL
        except Exception:
            logger.error("Benchmark failed in state %s", self._state.value)
            self._state = BenchmarkState.FAILED
            raise
        return self

    def _regress(self) -> None:
        """Regress the low-frequency series on the aggregated indicators."""
        lf = self._coeff_lf
        logger.info("Estimating coefficients on %s-%s", lf.start, lf.end)
        aggregated = {name: serie.aggregate(lf.frequency) for name, serie in self.hfserie.items()}
        # every indicator shares the grid of the constant
        span = aggregated[CONSTANT]
        if span.start_index > lf.start_index or span.end_index < lf.end_index:
            raise InvalidSpecificationError(
                f"The indicators span {span.start}-{span.end} and do not cover "
                f"the coefficient calculation window {lf.start}-{lf.end}"
            )
        regressors: Dict[str, Series] = {
            name: serie.window(lf.start, lf.end) for name, serie in aggregated.items()
        }

        specification = make_specification(
            lf,
            regressors,
            include_rho=self.include_rho,
            include_differentiation=self.include_differentiation,
            set_coefficients=self.set_coefficients,
        )
        self._regression = self.estimator.fit(specification)

    def _smooth(self) -> None:
        """Distribute the low-frequency residual over the high-frequency domain."""
        regression = self._regression
        fitted = regression.predict(self._domain)
        aggregated = fitted.aggregate(self.lfserie.frequency)

        lf = self._benchmark_lf
        if lf.start_index < aggregated.start_index or lf.end_index > aggregated.end_index:
            raise InvalidSpecificationError(
                f"The domain {fitted.start}-{fitted.end} does not cover the benchmark window {lf.start}-{lf.end}"
            )

        # lf - aggregate(fit) is the regression residual, integrated back when differenced
        residuals = lf - aggregated.window(lf.start, lf.end)
        extended = extrapolate_residuals(
            residuals,
            aggregated.start,
            aggregated.end,
            regression.rho,
            self.include_differentiation,
        )
        logger.info(
            "Smoothing %d low-frequency residuals (%d extrapolated) over %d periods",
            len(extended), len(extended) - len(residuals), len(fitted)
        )

        offset = aggregated.start_index * self.ratio - fitted.start_index
        constraints = [
            SmoothingConstraint(
                start=offset + j * self.ratio,
                stop=offset + (j + 1) * self.ratio,
                total=float(total),
            )
            for j, total in enumerate(extended.values)
        ]
        base = Series.constant(fitted.start, fitted.frequency, len(fitted))
        self._fitted = fitted
        self._smoothed_part = self.smoother.smooth(base, constraints).benchmarked_series

    def _finalize(self) -> None:
        """Add the smoothed residual to the fit and check the aggregation identity."""
        benchmarked = self._fitted + self._smoothed_part

        lf = self._benchmark_lf
        aggregated = benchmarked.aggregate(lf.frequency).window(lf.start, lf.end)
        scale = max(1.0, float(np.max(np.abs(lf.values))))
        deviation = np.abs(aggregated.values - lf.values)
        if not np.all(deviation <= self.tolerance * scale):
            worst = int(np.argmax(deviation))
            raise AggregationMismatchError(
                f"Benchmarked series sums to {aggregated.values[worst]!r} in "
                f"{period_at(lf.start_index + worst, lf.frequency)}, expected {lf.values[worst]!r}"
            )

        self._result = BenchmarkResult(benchmarked_series=benchmarked, smoothed_part=self._smoothed_part)
        logger.info("Benchmark of %s-%s completed", benchmarked.start, benchmarked.end)

    def _fitted_result(self) -> BenchmarkResult:
        if self._state is not BenchmarkState.FINAL:
            self.fit()
        return self._result

    @property
    def regression(self) -> RegressionResult:
        """The low-frequency Prais-Winsten regression."""
        self._fitted_result()
        return self._regression

    @property
    def result(self) -> BenchmarkResult:
        return self._fitted_result()

    @property
    def benchmarked_series(self) -> Series:
        return self._fitted_result().benchmarked_series

    @property
    def smoothed_part(self) -> Series:
        return self._fitted_result().smoothed_part

    @property
    def fitted_values(self) -> Series:
        """High-frequency reconstruction ``X beta`` over the domain."""
        self._fitted_result()
        return self._fitted

    @property
    def coefficients(self) -> Mapping[str, float]:
        return self.regression.coefficients

    @property
    def standard_errors(self) -> Mapping[str, float]:
        return self.regression.standard_errors

    @property
    def residuals(self) -> Series:
        return self.regression.residuals

    @property
    def residuals_decorrelated(self) -> Series:
        return self.regression.residuals_decorrelated

    @property
    def fitted_values_decorrelated(self) -> Series:
        return self.regression.fitted_values_decorrelated

    @property
    def rho(self) -> float:
        return self.regression.rho

    @property
    def df_residual(self) -> int:
        return self.regression.df_residual

    @property
    def model_specification(self) -> ModelSpecification:
        return self.regression.model_specification

    def covariance_matrix(self) -> np.ndarray:
        return self.regression.covariance_matrix()


def two_steps_benchmark(
    hfserie: Union[Series, Mapping[str, Series]],
    lfserie: Series,
    **kwargs
) -> TwoStepsBenchmark:
    """Build and fit a ``TwoStepsBenchmark``; keyword arguments are passed to its constructor."""
    return TwoStepsBenchmark(hfserie, lfserie, **kwargs).fit()
