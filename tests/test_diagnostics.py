"""Tests for the regression summary."""

import unittest
import numpy as np
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox

from twosteps_benchmark.core.diagnostics import ljung_box, summarize
from twosteps_benchmark.core.series import Series
from twosteps_benchmark.core.two_steps import two_steps_benchmark


class TestLjungBox(unittest.TestCase):
    """Test cases for the Ljung-Box statistic."""

    def test_alternating_series(self):
        """Lag-1 statistic of an alternating series."""
        statistic, p_value = ljung_box(np.array([1.0, -1.0, 1.0, -1.0]))
        self.assertAlmostEqual(statistic, 4.5)
        self.assertAlmostEqual(p_value, stats.chi2.sf(4.5, 1))

    def test_matches_library(self):
        """The statistic agrees with statsmodels on a longer series."""
        values = np.random.default_rng(9).normal(size=30)
        expected = acorr_ljungbox(values, lags=[2], return_df=True)
        statistic, p_value = ljung_box(values, lag=2)
        self.assertAlmostEqual(statistic, expected["lb_stat"].iloc[0])
        self.assertAlmostEqual(p_value, expected["lb_pvalue"].iloc[0])

    def test_invalid_lag(self):
        """The lag must be shorter than the series."""
        with self.assertRaises(ValueError):
            ljung_box(np.array([1.0, 2.0]), lag=2)


class TestSummarize(unittest.TestCase):
    """Test cases for summarize."""

    def setUp(self):
        """Set up an annual target with a quarterly indicator."""
        rng = np.random.default_rng(5)
        indicator = 50.0 + np.cumsum(rng.normal(0.5, 1.0, 48))
        self.hf = Series((2000, 1), 4, indicator)
        self.lf = Series(2000, 1, 1.5 * indicator.reshape(-1, 4).sum(axis=1) + rng.normal(0.0, 3.0, 12))

    def test_summary_without_rho(self):
        """The summary of a plain regression."""
        benchmark = two_steps_benchmark(self.hf, self.lf)
        summary = summarize(benchmark)
        self.assertEqual(list(summary.coefficients.index), ["constant", "indicator"])
        self.assertEqual(
            list(summary.coefficients.columns), ["estimate", "std_error", "t_value", "p_value"]
        )
        self.assertEqual(summary.df_residual, 10)
        self.assertEqual(summary.rho, 0.0)
        self.assertFalse(summary.include_differentiation)
        self.assertGreater(summary.r_squared, 0.9)
        self.assertLessEqual(summary.r_squared, 1.0)
        self.assertEqual(list(summary.portmanteau.index), ["u"])
        self.assertAlmostEqual(
            summary.coefficients.loc["indicator", "estimate"], benchmark.coefficients["indicator"]
        )

    def test_summary_with_rho(self):
        """Decorrelated residuals are tested when rho is estimated."""
        summary = summarize(two_steps_benchmark(self.hf, self.lf, include_rho=True))
        self.assertNotEqual(summary.rho, 0.0)
        self.assertEqual(list(summary.portmanteau.index), ["u", "epsilon"])
        self.assertEqual(summary.df_residual, 9)

    def test_summary_with_fixed_coefficient(self):
        """Fixed coefficients have no test statistic."""
        summary = summarize(two_steps_benchmark(self.hf, self.lf, set_constant=0.0))
        self.assertTrue(np.isnan(summary.coefficients.loc["constant", "std_error"]))
        self.assertTrue(np.isnan(summary.coefficients.loc["constant", "p_value"]))
        self.assertFalse(np.isnan(summary.coefficients.loc["indicator", "p_value"]))


if __name__ == '__main__':
    unittest.main()
