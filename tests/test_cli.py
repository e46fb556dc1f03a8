"""Tests for the command-line interface."""

import os
import tempfile
import unittest
from unittest.mock import patch
import numpy as np
import pandas as pd

from twosteps_benchmark.cli import main, parse_fixed_coefficients, parse_period
from twosteps_benchmark.utils.validation import InvalidSpecificationError


class TestCliHelpers(unittest.TestCase):
    """Test cases for the argument helpers."""

    def test_parse_period(self):
        """Period labels are read at the given frequency."""
        self.assertEqual(parse_period("2005Q2", 4), (2005, 2))
        self.assertEqual(parse_period("2005-03", 12), (2005, 3))
        self.assertEqual(parse_period("2005", 1), (2005, 1))
        with self.assertRaises(InvalidSpecificationError):
            parse_period("2005", 7)

    def test_parse_fixed_coefficients(self):
        """NAME=VALUE pairs become floats."""
        self.assertEqual(parse_fixed_coefficients(["indicator=2", "other=-0.5"]), {"indicator": 2.0, "other": -0.5})
        with self.assertRaises(InvalidSpecificationError):
            parse_fixed_coefficients(["indicator"])
        with self.assertRaises(InvalidSpecificationError):
            parse_fixed_coefficients(["indicator=abc"])


@patch('twosteps_benchmark.cli.configure_logging')
class TestMain(unittest.TestCase):
    """Test cases for the main entry point."""

    def setUp(self):
        """Write a quarterly indicator and an annual target to CSV files."""
        self.tmpdir = tempfile.TemporaryDirectory()
        rng = np.random.default_rng(1)
        indicator = 100.0 + np.cumsum(rng.normal(1.0, 2.0, 40))
        quarters = pd.period_range("2000Q1", periods=40, freq="Q").astype(str)
        pd.DataFrame({"indicator": indicator}, index=quarters).to_csv(self.path("hf.csv"))

        self.lf = 2.0 * indicator.reshape(-1, 4).sum(axis=1) + rng.normal(0.0, 5.0, 10)
        pd.DataFrame({"gdp": self.lf}, index=range(2000, 2010)).to_csv(self.path("lf.csv"))

    def tearDown(self):
        self.tmpdir.cleanup()

    def path(self, name):
        return os.path.join(self.tmpdir.name, name)

    def test_main(self, mock_logging):
        """The benchmarked series is written and sums to the target."""
        output = self.path("out/benchmark.csv")
        code = main(["--hf", self.path("hf.csv"), "--lf", self.path("lf.csv"), "-o", output, "--include-rho"])
        self.assertEqual(code, 0)
        mock_logging.assert_called_once_with(False)

        results = pd.read_csv(output, index_col=0)
        self.assertEqual(list(results.columns), ["benchmarked", "fitted", "smoothed_part"])
        self.assertEqual(len(results), 40)
        np.testing.assert_allclose(results["benchmarked"].to_numpy().reshape(-1, 4).sum(axis=1), self.lf, rtol=1e-8)

    def test_main_with_windows(self, mock_logging):
        """Windows and fixed coefficients are passed through."""
        output = self.path("windowed.csv")
        code = main([
            "--hf", self.path("hf.csv"), "--lf", self.path("lf.csv"), "-o", output,
            "--benchmark-window", "2002", "2009",
            "--domain-window", "2002Q1", "2009Q4",
            "--set-const", "0",
        ])
        self.assertEqual(code, 0)
        results = pd.read_csv(output, index_col=0)
        self.assertEqual(len(results), 32)
        self.assertEqual(results.index[0], "2002Q1")

    def test_missing_file(self, mock_logging):
        """A missing input file is reported with a non-zero exit code."""
        code = main(["--hf", self.path("missing.csv"), "--lf", self.path("lf.csv"), "-o", self.path("x.csv")])
        self.assertEqual(code, 1)

    def test_unknown_column(self, mock_logging):
        """An unknown low-frequency column is reported."""
        code = main([
            "--hf", self.path("hf.csv"), "--lf", self.path("lf.csv"),
            "-o", self.path("x.csv"), "--lf-column", "unknown",
        ])
        self.assertEqual(code, 1)


if __name__ == '__main__':
    unittest.main()
