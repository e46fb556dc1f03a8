"""Tests for the immutable time series."""

import unittest
import numpy as np
import pandas as pd

from twosteps_benchmark.core.series import Series, period_at, period_index
from twosteps_benchmark.utils.validation import InvalidSpecificationError


class TestPeriods(unittest.TestCase):
    """Test cases for period conversions."""

    def test_period_round_trip(self):
        """Absolute indices and (year, period) tuples convert into each other."""
        self.assertEqual(period_index((2000, 3), 4), 8002)
        self.assertEqual(period_at(8002, 4), (2000, 3))
        self.assertEqual(period_index(2000, 12, last=True), 2000 * 12 + 11)

    def test_invalid_period(self):
        """A period beyond the frequency is rejected."""
        with self.assertRaises(InvalidSpecificationError):
            period_index((2000, 5), 4)


class TestSeries(unittest.TestCase):
    """Test cases for the Series class."""

    def setUp(self):
        """Set up a quarterly series from 2000Q2 to 2002Q3."""
        self.serie = Series((2000, 2), 4, np.arange(1, 11))

    def test_construction(self):
        """Start, end and time are derived from the first period."""
        serie = Series(2000, 4, [1.0, 2.0, 3.0])
        self.assertEqual(serie.start, (2000, 1))
        self.assertEqual(serie.end, (2000, 3))
        np.testing.assert_allclose(serie.time, [2000.0, 2000.25, 2000.5])

    def test_values_are_read_only(self):
        """Values cannot be modified in place."""
        with self.assertRaises(ValueError):
            self.serie.values[0] = 10.0

    def test_values_are_copied(self):
        """Modifying the source array does not affect the series."""
        source = np.array([1.0, 2.0])
        serie = Series(2000, 1, source)
        source[0] = 5.0
        self.assertEqual(serie.values[0], 1.0)

    def test_window(self):
        """Windows keep the periods between both bounds included."""
        windowed = self.serie.window((2000, 3), (2001, 2))
        self.assertEqual(windowed.start, (2000, 3))
        np.testing.assert_array_equal(windowed.values, [2, 3, 4, 5])

    def test_window_outside(self):
        """Windows outside the series require extend."""
        with self.assertRaises(InvalidSpecificationError):
            self.serie.window((2000, 1), (2000, 4))
        extended = self.serie.window((2000, 1), (2000, 4), extend=True)
        self.assertTrue(np.isnan(extended.values[0]))
        np.testing.assert_array_equal(extended.values[1:], [1, 2, 3])

    def test_window_with_years(self):
        """Bare years select whole years."""
        windowed = self.serie.window(2001, 2001)
        np.testing.assert_array_equal(windowed.values, [4, 5, 6, 7])

    def test_trim(self):
        """Leading and trailing gaps are dropped."""
        serie = Series(2000, 1, [np.nan, 1.0, np.nan, 2.0, np.nan])
        trimmed = serie.trim()
        self.assertEqual(trimmed.start, (2001, 1))
        self.assertEqual(len(trimmed), 3)

    def test_aggregate(self):
        """Only complete low-frequency periods are aggregated."""
        annual = self.serie.aggregate(1)
        self.assertEqual(annual.start, (2001, 1))
        self.assertEqual(annual.frequency, 1)
        np.testing.assert_array_equal(annual.values, [22.0])

    def test_aggregate_incompatible(self):
        """A frequency that does not divide the series frequency is rejected."""
        with self.assertRaises(InvalidSpecificationError):
            self.serie.aggregate(3)

    def test_diff_and_cumulate(self):
        """Cumulating the differences from the first value restores the series."""
        differences = self.serie.diff()
        self.assertEqual(differences.start, (2000, 3))
        np.testing.assert_array_equal(differences.values, np.ones(9))
        self.assertTrue(differences.cumulate(self.serie.values[0]).equals(self.serie))

    def test_arithmetic(self):
        """Aligned series combine element-wise, misaligned ones are rejected."""
        doubled = self.serie + self.serie
        np.testing.assert_array_equal(doubled.values, 2 * self.serie.values)
        np.testing.assert_array_equal((self.serie - 1).values, self.serie.values - 1)
        np.testing.assert_array_equal((2 * self.serie).values, 2 * self.serie.values)
        with self.assertRaises(InvalidSpecificationError):
            self.serie + Series((2000, 1), 4, np.arange(10))

    def test_pandas_round_trip(self):
        """Quarterly series convert to and from a PeriodIndex."""
        pandas_serie = self.serie.to_pandas(name="x")
        self.assertEqual(pandas_serie.index[0], pd.Period("2000Q2", freq="Q"))
        self.assertEqual(pandas_serie.name, "x")
        self.assertTrue(Series.from_pandas(pandas_serie).equals(self.serie))

    def test_from_pandas_datetime(self):
        """Timestamps need a frequency with a pandas period alias."""
        index = pd.date_range("2000-01-01", periods=3, freq="MS")
        serie = Series.from_pandas(pd.Series([1.0, 2.0, 3.0], index=index), 12)
        self.assertEqual(serie.start, (2000, 1))
        self.assertEqual(serie.frequency, 12)
        for frequency in (None, 7):
            with self.subTest(frequency=frequency):
                with self.assertRaises(InvalidSpecificationError):
                    Series.from_pandas(pd.Series([1.0, 2.0, 3.0], index=index), frequency)

    def test_from_pandas_irregular(self):
        """Irregular indices are rejected."""
        index = pd.PeriodIndex(["2000Q1", "2000Q2", "2000Q4"], freq="Q")
        with self.assertRaises(InvalidSpecificationError):
            Series.from_pandas(pd.Series([1.0, 2.0, 3.0], index=index))


if __name__ == '__main__':
    unittest.main()
