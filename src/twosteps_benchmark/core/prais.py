"""
Prais-Winsten regression with AR(1) residuals.

The estimator fits ``Y = X beta + u`` where ``u`` may follow an AR(1)
process. Some coefficients can be fixed by the caller, and both sides of the
regression can be differenced before fitting.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
import logging

import numpy as np

from .linalg import (
    autocorrelation,
    difference,
    gls_quadratic_form,
    inverse_symmetric,
    least_squares,
    prais_winsten_transform,
)
from .series import Series, period_at
from ..utils.validation import (
    InsufficientDegreesOfFreedomError,
    InvalidSpecificationError,
    validate_finite,
    validate_fixed_coefficients,
    validate_same_grid,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ModelSpecification:
    """
    Evaluated inputs of a regression.

    Use ``make_specification`` to build one: it checks the invariants.

    Attributes:
        response: Series to explain
        regressors: Ordered mapping of regressor name to series, on the response grid
        include_rho: Whether residuals follow an AR(1) process
        include_differentiation: Whether both sides are differenced before fitting
        set_coefficients: Coefficients fixed by the caller, by regressor name
    """
    response: Series
    regressors: Mapping[str, Series]
    include_rho: bool
    include_differentiation: bool
    set_coefficients: Mapping[str, float]

    @property
    def names(self) -> List[str]:
        return list(self.regressors)

    @property
    def free_names(self) -> List[str]:
        return [name for name in self.regressors if name not in self.set_coefficients]

    def design(self) -> np.ndarray:
        """Regressors as a matrix, one column per regressor."""
        return np.column_stack([serie.values for serie in self.regressors.values()])

    def prepared(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Response, full design and offset-corrected response as fitted.

        Differenced when ``include_differentiation`` is set. The corrected
        response is the response minus the contribution of the fixed
        coefficients.
        """
        y = self.response.values
        X = self.design()
        if self.include_differentiation:
            y, X = difference(y), difference(X)
        offset = np.zeros(len(y))
        for j, name in enumerate(self.names):
            if name in self.set_coefficients:
                offset += self.set_coefficients[name] * X[:, j]
        return y, X, y - offset

    def free_design(self) -> np.ndarray:
        """Free regressors as fitted, differenced when required."""
        _, X, _ = self.prepared()
        free = [j for j, name in enumerate(self.names) if name not in self.set_coefficients]
        return X[:, free]


def make_specification(
    response: Series,
    regressors: Mapping[str, Series],
    include_rho: bool = False,
    include_differentiation: bool = False,
    set_coefficients: Optional[Mapping[str, float]] = None
) -> ModelSpecification:
    """
    Build a validated model specification.

    Args:
        response: Series to explain
        regressors: Ordered mapping of regressor name to series
        include_rho: Whether residuals follow an AR(1) process
        include_differentiation: Whether both sides are differenced before fitting
        set_coefficients: Coefficients fixed by the caller

    Returns:
        The specification

    Raises:
        InvalidSpecificationError: If the series are not aligned or the fixed coefficients are invalid
        NonFiniteInputError: If a value is missing or infinite
    """
    if not regressors:
        raise InvalidSpecificationError("At least one regressor is required")
    set_coefficients = {name: float(value) for name, value in (set_coefficients or {}).items()}

    validate_same_grid(response, regressors)
    validate_fixed_coefficients(list(regressors), set_coefficients)
    validate_finite(response.values, "response")
    for name, serie in regressors.items():
        validate_finite(serie.values, f"regressor {name!r}")
    if include_differentiation and len(response) < 2:
        raise InvalidSpecificationError("Differentiation needs at least two observations")

    return ModelSpecification(
        response=response,
        regressors=MappingProxyType(dict(regressors)),
        include_rho=bool(include_rho),
        include_differentiation=bool(include_differentiation),
        set_coefficients=MappingProxyType(set_coefficients),
    )


def gls_covariance(residuals: np.ndarray, X: np.ndarray, rho: float, df_residual: int) -> np.ndarray:
    """
    Covariance of GLS coefficients under AR(1) residuals.

    The innovation variance is estimated from the centred, whitened
    residuals over ``df_residual`` and scales ``(X' Omega^-1 X)^-1``.
    """
    centred = residuals - residuals.mean()
    innovations = prais_winsten_transform(centred, rho)
    variance = float(innovations @ innovations) / df_residual
    return variance * inverse_symmetric(gls_quadratic_form(X, rho))


@dataclass(frozen=True, eq=False)
class RegressionResult:
    """
    Fitted Prais-Winsten regression.

    Attributes:
        coefficients: Coefficient of every regressor, fixed ones included
        standard_errors: Standard error of every coefficient, NaN for fixed ones
        residuals: Response minus fitted values, on the fitted (possibly differenced) scale
        fitted_values: Fitted values on the fitted scale
        residuals_decorrelated: Residuals of the whitened regression
        fitted_values_decorrelated: Fitted values of the whitened regression
        rho: Autocorrelation of the residuals, 0 when not estimated
        df_residual: Residual degrees of freedom
        model_specification: Inputs of the fit
    """
    coefficients: Mapping[str, float]
    standard_errors: Mapping[str, float]
    residuals: Series
    fitted_values: Series
    residuals_decorrelated: Series
    fitted_values_decorrelated: Series
    rho: float
    df_residual: int
    model_specification: ModelSpecification

    def covariance_matrix(self) -> np.ndarray:
        """GLS covariance of the free coefficients, recomputed on each call."""
        return gls_covariance(
            self.residuals.values,
            self.model_specification.free_design(),
            self.rho,
            self.df_residual
        )

    def predict(self, regressors: Mapping[str, Series]) -> Series:
        """Linear combination of ``regressors`` with the fitted coefficients."""
        missing = set(self.coefficients) - set(regressors)
        if missing:
            raise InvalidSpecificationError(f"Missing regressors {sorted(missing)} for prediction")
        first = regressors[next(iter(self.coefficients))]
        validate_same_grid(first, {name: regressors[name] for name in self.coefficients})
        values = np.zeros(len(first))
        for name, coefficient in self.coefficients.items():
            values = values + coefficient * regressors[name].values
        return first.with_values(values)


class PraisWinsten:
    """
    Prais-Winsten estimator of a linear regression with AR(1) residuals.

    When the autocorrelation is included, it is estimated by iterating
    between the lag-1 autocorrelation of the residuals and a least squares
    fit on whitened data, until rho settles.
    """

    def __init__(self, tolerance: float = 1e-6, max_iterations: int = 50, max_abs_rho: float = 0.999):
        """
        Initialize the estimator.

        Args:
            tolerance: Convergence threshold on successive values of rho
            max_iterations: Maximum number of rho updates
            max_abs_rho: Bound applied to the absolute value of rho
        """
        if tolerance <= 0:
            raise InvalidSpecificationError("tolerance must be positive")
        if max_iterations < 1:
            raise InvalidSpecificationError("max_iterations must be at least 1")
        if not 0 < max_abs_rho < 1:
            raise InvalidSpecificationError("max_abs_rho must lie in (0, 1)")
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.max_abs_rho = max_abs_rho

    def fit(self, specification: ModelSpecification) -> RegressionResult:
        """
        Fit the regression.

        Args:
            specification: Validated model inputs

        Returns:
            The regression result

        Raises:
            InsufficientDegreesOfFreedomError: If no residual degree of freedom is left
            SingularDesignError: If the free regressors are linearly dependent
        """
        spec = specification
        y, _, y_free = spec.prepared()
        X_free = spec.free_design()
        n, p = X_free.shape

        df_residual = n - p - (1 if spec.include_rho else 0)
        if df_residual < 1:
            raise InsufficientDegreesOfFreedomError(
                f"{n} observations for {p} free coefficients"
                f"{' and rho' if spec.include_rho else ''} leave {df_residual} degrees of freedom"
            )

        logger.debug("Fitting %d observations on %d free regressors", n, p)
        beta = least_squares(X_free, y_free)
        rho = 0.0

        if spec.include_rho:
            rho, beta = self._estimate_rho(X_free, y_free, beta)

        residuals = y_free - X_free @ beta
        fitted = y - residuals
        residuals_decorrelated = (
            prais_winsten_transform(y_free, rho) - prais_winsten_transform(X_free, rho) @ beta
        )
        fitted_decorrelated = prais_winsten_transform(y, rho) - residuals_decorrelated

        free_errors = dict(zip(
            spec.free_names,
            np.sqrt(np.diag(gls_covariance(residuals, X_free, rho, df_residual)))
        ))

        start = spec.response.start
        if spec.include_differentiation:
            start = period_at(spec.response.start_index + 1, spec.response.frequency)
        frequency = spec.response.frequency

        free_beta = dict(zip(spec.free_names, beta))
        coefficients: Dict[str, float] = {}
        standard_errors: Dict[str, float] = {}
        for name in spec.names:
            if name in spec.set_coefficients:
                coefficients[name] = spec.set_coefficients[name]
                standard_errors[name] = float("nan")
            else:
                coefficients[name] = float(free_beta[name])
                standard_errors[name] = float(free_errors[name])

        result = RegressionResult(
            coefficients=MappingProxyType(coefficients),
            standard_errors=MappingProxyType(standard_errors),
            residuals=Series(start, frequency, residuals),
            fitted_values=Series(start, frequency, fitted),
            residuals_decorrelated=Series(start, frequency, residuals_decorrelated),
            fitted_values_decorrelated=Series(start, frequency, fitted_decorrelated),
            rho=float(rho),
            df_residual=int(df_residual),
            model_specification=spec,
        )

        logger.info(
            "Prais-Winsten fit: rho=%.4f, df=%d, coefficients=%s",
            result.rho, result.df_residual, coefficients
        )
        return result

    def _estimate_rho(self, X: np.ndarray, y: np.ndarray, beta: np.ndarray) -> Tuple[float, np.ndarray]:
        """Alternate rho and coefficient updates until rho converges."""
        rho = 0.0
        for iteration in range(1, self.max_iterations + 1):
            residuals = y - X @ beta
            new_rho = float(np.clip(autocorrelation(residuals), -self.max_abs_rho, self.max_abs_rho))
            beta = least_squares(prais_winsten_transform(X, new_rho), prais_winsten_transform(y, new_rho))
            change = abs(new_rho - rho)
            rho = new_rho
            logger.debug("Iteration %d: rho=%.6f (change %.2e)", iteration, rho, change)
            if change < self.tolerance:
                break
        else:
            logger.warning(
                "rho did not converge within %d iterations, last value %.6f",
                self.max_iterations, rho
            )
        return rho, beta
