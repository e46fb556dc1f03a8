"""
Additive Denton smoothing under window-sum constraints.

Given a base series and a set of windows with target sums, the smoother
finds the adjustment with the smallest sum of squared first differences
such that ``base + adjustment`` sums to each target over its window. On a
zero base this is the Boot-Feibes-Lisman smoothing of the targets.

The first-order conditions form a symmetric indefinite system

    [ D'D  A' ] [ a      ]   [ 0       ]
    [ A    0  ] [ lambda ] = [ targets ]

where ``D`` is the first-difference operator and ``A`` sums over the
windows. Ordering each multiplier right after the last period of its window
keeps the system banded, with a half-bandwidth equal to the widest window.
"""

from dataclasses import dataclass
from typing import List, Sequence
import logging

import numpy as np

from .linalg import difference_operator, solve_banded
from .series import Series
from ..utils.validation import validate_constraints, validate_finite

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SmoothingConstraint:
    """
    Target sum over a contiguous window of the high-frequency grid.

    Attributes:
        start: Position of the first period of the window (inclusive)
        stop: Position after the last period of the window (exclusive)
        total: Sum the smoothed series must reach over the window
    """
    start: int
    stop: int
    total: float

    @property
    def length(self) -> int:
        return self.stop - self.start


@dataclass(frozen=True, eq=False)
class BenchmarkResult:
    """
    Output of a benchmarking.

    Attributes:
        benchmarked_series: Final high-frequency series
        smoothed_part: Smoothed component added to reach the targets
    """
    benchmarked_series: Series
    smoothed_part: Series


class DentonSmoother:
    """
    Additive first-difference Denton smoother.

    Periods outside every window are free: the first-difference penalty
    extends the adjustment flat beyond the first and last windows and
    linearly across the gaps between windows.
    """

    def smooth(self, base: Series, constraints: Sequence[SmoothingConstraint]) -> BenchmarkResult:
        """
        Adjust ``base`` so that it sums to each constraint over its window.

        Args:
            base: High-frequency series to adjust
            constraints: Non-overlapping windows with their target sums

        Returns:
            The adjusted series, with the adjustment as smoothed part

        Raises:
            EmptyConstraintError: If a window contains no period
            OverlappingConstraintError: If two windows overlap
            NonFiniteInputError: If the base is not finite inside a window
            InvalidSpecificationError: If there is no constraint or a window leaves the grid
        """
        ordered = validate_constraints(constraints, len(base))
        targets = []
        for constraint in ordered:
            window = base.values[constraint.start:constraint.stop]
            validate_finite(window, f"base series in window [{constraint.start}, {constraint.stop})")
            targets.append(constraint.total - window.sum())

        adjustment = self._solve(len(base), ordered, np.array(targets))
        if logger.isEnabledFor(logging.DEBUG):
            roughness = float(np.sum(np.diff(adjustment) ** 2))
            logger.debug(
                "Smoothed %d periods under %d constraints, roughness %.6g",
                len(base), len(ordered), roughness
            )

        smoothed_part = base.with_values(adjustment)
        return BenchmarkResult(benchmarked_series=base + smoothed_part, smoothed_part=smoothed_part)

    def _solve(self, n: int, constraints: List[SmoothingConstraint], targets: np.ndarray) -> np.ndarray:
        """Solve the banded first-order conditions and return the adjustment."""
        m = len(constraints)
        closing = {constraint.stop - 1: j for j, constraint in enumerate(constraints)}

        adjustment_position = np.empty(n, dtype=int)
        multiplier_position = np.empty(m, dtype=int)
        position = 0
        for t in range(n):
            adjustment_position[t] = position
            position += 1
            if t in closing:
                multiplier_position[closing[t]] = position
                position += 1

        bandwidth = max(2, max(constraint.length for constraint in constraints))
        banded = np.zeros((2 * bandwidth + 1, n + m))
        rhs = np.zeros(n + m)

        def put(i: int, j: int, value: float) -> None:
            banded[bandwidth + i - j, j] += value

        if n > 1:
            D = difference_operator(n)
            penalty = (D.T @ D).tocoo()
            for i, j, value in zip(penalty.row, penalty.col, penalty.data):
                put(adjustment_position[i], adjustment_position[j], value)

        for j, constraint in enumerate(constraints):
            row = multiplier_position[j]
            for t in range(constraint.start, constraint.stop):
                put(adjustment_position[t], row, 1.0)
                put(row, adjustment_position[t], 1.0)
            rhs[row] = targets[j]

        solution = solve_banded(bandwidth, bandwidth, banded, rhs)
        return solution[adjustment_position]
