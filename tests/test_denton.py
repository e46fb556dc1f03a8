"""Tests for the additive Denton smoother."""

import unittest
import numpy as np

from twosteps_benchmark.core.denton import DentonSmoother, SmoothingConstraint
from twosteps_benchmark.core.series import Series
from twosteps_benchmark.utils.validation import (
    EmptyConstraintError,
    InvalidSpecificationError,
    NonFiniteInputError,
    OverlappingConstraintError,
)


class TestDentonSmoother(unittest.TestCase):
    """Test cases for the DentonSmoother class."""

    def setUp(self):
        """Set up a quarterly grid of 14 periods with three windows."""
        self.smoother = DentonSmoother()
        self.base = Series((2000, 1), 4, np.linspace(1.0, 14.0, 14) ** 1.5)
        self.constraints = [
            SmoothingConstraint(start=2, stop=6, total=40.0),
            SmoothingConstraint(start=6, stop=10, total=90.0),
            SmoothingConstraint(start=11, stop=14, total=120.0),
        ]

    def test_flat_distribution(self):
        """A single total over a zero base is spread evenly."""
        base = Series.constant((2000, 1), 4, 4)
        result = self.smoother.smooth(base, [SmoothingConstraint(0, 4, 8.0)])
        np.testing.assert_allclose(result.benchmarked_series.values, [2.0, 2.0, 2.0, 2.0])

    def test_window_sums(self):
        """The smoothed series reaches every target."""
        result = self.smoother.smooth(self.base, self.constraints)
        values = result.benchmarked_series.values
        for constraint in self.constraints:
            self.assertAlmostEqual(values[constraint.start:constraint.stop].sum(), constraint.total, places=8)
        np.testing.assert_allclose(values, self.base.values + result.smoothed_part.values)

    def test_matches_dense_solution(self):
        """The banded solution equals the dense first-order conditions."""
        result = self.smoother.smooth(self.base, self.constraints)

        n, m = len(self.base), len(self.constraints)
        D = np.diff(np.eye(n), axis=0)
        A = np.zeros((m, n))
        targets = np.zeros(m)
        for j, constraint in enumerate(self.constraints):
            A[j, constraint.start:constraint.stop] = 1.0
            targets[j] = constraint.total - self.base.values[constraint.start:constraint.stop].sum()
        system = np.block([[D.T @ D, A.T], [A, np.zeros((m, m))]])
        solution = np.linalg.solve(system, np.concatenate([np.zeros(n), targets]))

        np.testing.assert_allclose(result.smoothed_part.values, solution[:n], atol=1e-8)

    def test_flat_extension(self):
        """The adjustment is flat before the first window."""
        adjustment = self.smoother.smooth(self.base, self.constraints).smoothed_part.values
        self.assertAlmostEqual(adjustment[0], adjustment[2], places=8)
        self.assertAlmostEqual(adjustment[1], adjustment[2], places=8)

    def test_linear_bridge(self):
        """Gaps between windows are bridged linearly."""
        base = Series.constant((2000, 1), 4, 5)
        constraints = [SmoothingConstraint(0, 1, 0.0), SmoothingConstraint(4, 5, 4.0)]
        result = self.smoother.smooth(base, constraints)
        np.testing.assert_allclose(result.benchmarked_series.values, [0.0, 1.0, 2.0, 3.0, 4.0], atol=1e-10)

    def test_adjustment_depends_on_window_sums_only(self):
        """Bases with the same window sums get the same adjustment."""
        values = np.array(self.base.values)
        values[2], values[3] = values[2] + 1.0, values[3] - 1.0
        values[0] += 5.0
        other = self.base.with_values(values)
        first = self.smoother.smooth(self.base, self.constraints).smoothed_part.values
        second = self.smoother.smooth(other, self.constraints).smoothed_part.values
        np.testing.assert_allclose(first, second, atol=1e-10)

    def test_unordered_constraints(self):
        """Constraints are accepted in any order."""
        ordered = self.smoother.smooth(self.base, self.constraints)
        shuffled = self.smoother.smooth(self.base, list(reversed(self.constraints)))
        np.testing.assert_allclose(
            ordered.benchmarked_series.values, shuffled.benchmarked_series.values, atol=1e-10
        )

    def test_missing_base_outside_windows(self):
        """Missing values outside the windows stay missing."""
        values = np.array(self.base.values)
        values[10] = np.nan
        result = self.smoother.smooth(self.base.with_values(values), self.constraints)
        self.assertTrue(np.isnan(result.benchmarked_series.values[10]))
        self.assertTrue(np.isfinite(result.smoothed_part.values).all())

    def test_invalid_constraints(self):
        """Invalid windows raise the matching errors."""
        with self.assertRaises(EmptyConstraintError):
            self.smoother.smooth(self.base, [SmoothingConstraint(2, 2, 1.0)])
        with self.assertRaises(OverlappingConstraintError):
            self.smoother.smooth(self.base, [SmoothingConstraint(0, 4, 1.0), SmoothingConstraint(3, 6, 1.0)])
        with self.assertRaises(InvalidSpecificationError):
            self.smoother.smooth(self.base, [SmoothingConstraint(10, 15, 1.0)])
        with self.assertRaises(InvalidSpecificationError):
            self.smoother.smooth(self.base, [])
        with self.assertRaises(NonFiniteInputError):
            self.smoother.smooth(self.base, [SmoothingConstraint(0, 4, np.inf)])

    def test_missing_base_inside_window(self):
        """Missing values inside a window are rejected."""
        values = np.array(self.base.values)
        values[3] = np.nan
        with self.assertRaises(NonFiniteInputError):
            self.smoother.smooth(self.base.with_values(values), self.constraints)


if __name__ == '__main__':
    unittest.main()
