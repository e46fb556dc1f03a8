"""
Error taxonomy and input validation for two-steps benchmarking.

Every check in this module runs before any numerical work, so that an
invalid input never produces a partially computed result.
"""

import numpy as np
from typing import Any, Dict, Iterable, List, Mapping, Sequence
import logging

logger = logging.getLogger(__name__)


class BenchmarkError(Exception):
    """Base class for benchmarking errors."""
    pass


class InvalidSpecificationError(BenchmarkError, ValueError):
    """Raised when inputs are malformed or mutually inconsistent."""
    pass


class InsufficientDegreesOfFreedomError(InvalidSpecificationError):
    """Raised when the regression leaves no residual degree of freedom."""
    pass


class OverlappingConstraintError(InvalidSpecificationError):
    """Raised when two smoothing windows share a period."""
    pass


class EmptyConstraintError(InvalidSpecificationError):
    """Raised when a smoothing window contains no period."""
    pass


class NonFiniteInputError(InvalidSpecificationError):
    """Raised when a value used by the computation is NaN or infinite."""
    pass


class SingularDesignError(BenchmarkError):
    """Raised when the free regressors are linearly dependent."""
    pass


class AggregationMismatchError(BenchmarkError):
    """Raised when the benchmarked series does not sum back to the low-frequency series."""
    pass


class BenchmarkStateError(BenchmarkError):
    """Raised when a benchmark is used in a state that does not allow it."""
    pass


class ConfigValidationError(BenchmarkError):
    """Raised when configuration validation fails."""
    pass


def validate_finite(values: np.ndarray, what: str) -> None:
    """
    Check that every value is finite.

    Args:
        values: Array to check
        what: Description of the array used in the error message

    Raises:
        NonFiniteInputError: If a value is NaN or infinite
    """
    values = np.asarray(values, dtype=float)
    bad = ~np.isfinite(values)
    if bad.any():
        if bad.ndim > 1:
            bad = bad.any(axis=tuple(range(1, bad.ndim)))
        positions = np.flatnonzero(bad).tolist()
        raise NonFiniteInputError(
            f"{what} contains non-finite values at positions {positions[:10]}"
        )


def validate_same_grid(reference: Any, others: Mapping[str, Any], what: str = "regressor") -> None:
    """
    Check that series share the start, frequency and length of a reference series.

    Args:
        reference: Reference series
        others: Mapping of name to series to compare with the reference
        what: Description of the compared series used in error messages

    Raises:
        InvalidSpecificationError: If a series is not on the reference grid
    """
    for name, serie in others.items():
        if serie.frequency != reference.frequency:
            raise InvalidSpecificationError(
                f"{what} {name!r} has frequency {serie.frequency}, expected {reference.frequency}"
            )
        if serie.start != reference.start or len(serie) != len(reference):
            raise InvalidSpecificationError(
                f"{what} {name!r} spans {serie.start}-{serie.end}, "
                f"expected {reference.start}-{reference.end}"
            )


def validate_fixed_coefficients(names: Sequence[str], fixed: Mapping[str, float]) -> None:
    """
    Check that fixed coefficients name existing regressors and leave one free.

    Raises:
        InvalidSpecificationError: If a name is unknown or every coefficient is fixed
    """
    unknown = set(fixed) - set(names)
    if unknown:
        raise InvalidSpecificationError(
            f"Fixed coefficients {sorted(unknown)} do not match any regressor of {list(names)}"
        )
    if len(set(names) - set(fixed)) == 0:
        raise InvalidSpecificationError("Every coefficient is fixed, nothing is left to estimate")
    validate_finite(np.array(list(fixed.values()), dtype=float), "fixed coefficients")


def validate_frequencies(high_frequency: int, low_frequency: int) -> int:
    """
    Check that the high frequency is a multiple of the low frequency.

    Returns:
        The number of high-frequency periods per low-frequency period

    Raises:
        InvalidSpecificationError: If the frequencies are not compatible
    """
    if low_frequency < 1 or high_frequency < 1:
        raise InvalidSpecificationError(
            f"Frequencies must be positive, got {high_frequency} and {low_frequency}"
        )
    if high_frequency % low_frequency != 0:
        raise InvalidSpecificationError(
            f"High frequency {high_frequency} is not a multiple of low frequency {low_frequency}"
        )
    return high_frequency // low_frequency


def validate_constraints(constraints: Iterable[Any], length: int) -> List[Any]:
    """
    Check a set of smoothing constraints against a grid of the given length.

    Args:
        constraints: Constraints with ``start``, ``stop`` and ``total`` attributes
        length: Number of periods of the grid

    Returns:
        The constraints sorted by start position

    Raises:
        InvalidSpecificationError: If there is no constraint or a window leaves the grid
        EmptyConstraintError: If a window contains no period
        OverlappingConstraintError: If two windows overlap
        NonFiniteInputError: If a total is not finite
    """
    ordered = sorted(constraints, key=lambda c: (c.start, c.stop))
    if not ordered:
        raise InvalidSpecificationError("At least one smoothing constraint is required")

    for constraint in ordered:
        if constraint.stop <= constraint.start:
            raise EmptyConstraintError(
                f"Constraint window [{constraint.start}, {constraint.stop}) is empty"
            )
        if constraint.start < 0 or constraint.stop > length:
            raise InvalidSpecificationError(
                f"Constraint window [{constraint.start}, {constraint.stop}) "
                f"lies outside the grid of {length} periods"
            )
        if not np.isfinite(constraint.total):
            raise NonFiniteInputError(
                f"Constraint window [{constraint.start}, {constraint.stop}) has a non-finite total"
            )

    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.stop:
            raise OverlappingConstraintError(
                f"Constraint windows [{previous.start}, {previous.stop}) and "
                f"[{current.start}, {current.stop}) overlap"
            )

    logger.debug("Validated %d constraints on a grid of %d periods", len(ordered), length)
    return ordered


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration dictionary.

    Args:
        config: Configuration dictionary to validate

    Raises:
        ConfigValidationError: If validation fails
    """
    required_sections = ['benchmark', 'logging']

    try:
        missing_sections = set(required_sections) - set(config.keys())
        if missing_sections:
            raise ConfigValidationError(f"Missing required config sections: {missing_sections}")

        benchmark = config['benchmark']
        for key in ('include_rho', 'include_differentiation'):
            if not isinstance(benchmark.get(key), bool):
                raise ConfigValidationError(f"benchmark.{key} must be a boolean")
        if float(benchmark.get('tolerance', 0)) <= 0:
            raise ConfigValidationError("benchmark.tolerance must be positive")
        if int(benchmark.get('max_iterations', 0)) < 1:
            raise ConfigValidationError("benchmark.max_iterations must be at least 1")

        if 'level' not in config['logging']:
            raise ConfigValidationError("Missing logging level configuration")
        if 'format' not in config['logging']:
            raise ConfigValidationError("Missing logging format configuration")

        logger.debug("Configuration validation passed")

    except ConfigValidationError:
        raise
    except Exception as e:
        raise ConfigValidationError(f"Unexpected error during config validation: {str(e)}")
