"""
Immutable regular time series.

A series is identified by its first period, its frequency (periods per year)
and its values. Periods are addressed either as ``(year, period)`` tuples,
with ``period`` running from 1 to ``frequency``, or as absolute indices
``year * frequency + period - 1``. Missing observations are stored as NaN.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union
import logging

import numpy as np
import pandas as pd

from ..utils.validation import InvalidSpecificationError, validate_frequencies

logger = logging.getLogger(__name__)

Period = Tuple[int, int]
PeriodLike = Union[int, Tuple[int, int]]

# pandas period aliases for the frequencies that have one
PANDAS_FREQUENCIES = {1: "Y", 4: "Q", 12: "M"}


def period_at(index: int, frequency: int) -> Period:
    """Convert an absolute period index to a ``(year, period)`` tuple."""
    return int(index // frequency), int(index % frequency) + 1


def period_index(period: PeriodLike, frequency: int, last: bool = False) -> int:
    """
    Convert a period to its absolute index.

    Args:
        period: ``(year, period)`` tuple, or a bare year
        frequency: Periods per year
        last: For a bare year, whether to return its last period instead of its first

    Returns:
        The absolute index of the period
    """
    if isinstance(period, (int, np.integer)):
        year, sub = int(period), (frequency if last else 1)
    else:
        year, sub = period
    if not 1 <= sub <= frequency:
        raise InvalidSpecificationError(
            f"Period {sub} is out of range for frequency {frequency}"
        )
    return int(year) * frequency + int(sub) - 1


@dataclass(frozen=True, eq=False)
class Series:
    """
    Regular time series with read-only values.

    Attributes:
        start: First period as ``(year, period)``
        frequency: Number of periods per year
        values: Observations, NaN for unobserved periods
    """
    start: Period
    frequency: int
    values: np.ndarray

    def __post_init__(self):
        frequency = int(self.frequency)
        if frequency < 1:
            raise InvalidSpecificationError(f"Frequency must be positive, got {self.frequency}")
        start = period_at(period_index(self.start, frequency), frequency)

        values = np.array(self.values, dtype=float)
        if values.ndim != 1:
            raise InvalidSpecificationError(
                f"Series values must be one-dimensional, got shape {values.shape}"
            )
        values.setflags(write=False)

        object.__setattr__(self, "start", start)
        object.__setattr__(self, "frequency", frequency)
        object.__setattr__(self, "values", values)

    @classmethod
    def constant(cls, start: PeriodLike, frequency: int, length: int, value: float = 0.0) -> "Series":
        return cls(start, frequency, np.full(length, value, dtype=float))

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        return f"Series(start={self.start}, end={self.end}, frequency={self.frequency}, length={len(self)})"

    @property
    def start_index(self) -> int:
        return period_index(self.start, self.frequency)

    @property
    def end_index(self) -> int:
        return self.start_index + len(self) - 1

    @property
    def end(self) -> Period:
        """Last period as ``(year, period)``."""
        return period_at(self.end_index, self.frequency)

    @property
    def time(self) -> np.ndarray:
        """Time of each observation in fractional years."""
        return (self.start_index + np.arange(len(self))) / self.frequency

    def with_values(self, values: np.ndarray) -> "Series":
        """Return a series on the same grid holding other values."""
        values = np.asarray(values, dtype=float)
        if values.shape != self.values.shape:
            raise InvalidSpecificationError(
                f"Expected {len(self)} values, got shape {values.shape}"
            )
        return Series(self.start, self.frequency, values)

    def shares_grid(self, other: "Series") -> bool:
        return (
            self.frequency == other.frequency
            and self.start == other.start
            and len(self) == len(other)
        )

    def equals(self, other: "Series") -> bool:
        """Exact equality of grid and values, NaN comparing equal to NaN."""
        return self.shares_grid(other) and np.array_equal(self.values, other.values, equal_nan=True)

    def window(
        self,
        start: Optional[PeriodLike] = None,
        end: Optional[PeriodLike] = None,
        extend: bool = False
    ) -> "Series":
        """
        Restrict the series to the periods between ``start`` and ``end`` included.

        Args:
            start: First period kept, defaults to the first period of the series
            end: Last period kept, defaults to the last period of the series
            extend: Whether periods outside the series are allowed, filled with NaN

        Returns:
            The windowed series

        Raises:
            InvalidSpecificationError: If the window is empty, or leaves the series without ``extend``
        """
        first = self.start_index if start is None else period_index(start, self.frequency)
        last = self.end_index if end is None else period_index(end, self.frequency, last=True)
        if last < first:
            raise InvalidSpecificationError(
                f"Window end {period_at(last, self.frequency)} precedes "
                f"its start {period_at(first, self.frequency)}"
            )
        if not extend and (first < self.start_index or last > self.end_index):
            raise InvalidSpecificationError(
                f"Window {period_at(first, self.frequency)}-{period_at(last, self.frequency)} "
                f"is not included in {self.start}-{self.end}"
            )

        values = np.full(last - first + 1, np.nan)
        lo = max(first, self.start_index)
        hi = min(last, self.end_index)
        if lo <= hi:
            values[lo - first:hi - first + 1] = self.values[lo - self.start_index:hi - self.start_index + 1]
        return Series(period_at(first, self.frequency), self.frequency, values)

    def trim(self) -> "Series":
        """Drop the leading and trailing unobserved periods."""
        observed = np.flatnonzero(~np.isnan(self.values))
        if len(observed) == 0:
            raise InvalidSpecificationError(f"{self!r} has no observation")
        first, last = observed[0], observed[-1]
        return Series(
            period_at(self.start_index + first, self.frequency),
            self.frequency,
            self.values[first:last + 1]
        )

    def diff(self) -> "Series":
        """First differences, starting one period later."""
        if len(self) < 2:
            raise InvalidSpecificationError("At least two observations are needed to difference a series")
        return Series(period_at(self.start_index + 1, self.frequency), self.frequency, np.diff(self.values))

    def cumulate(self, initial: float) -> "Series":
        """
        Inverse of ``diff``: integrate first differences from a starting level.

        The result starts one period earlier, with ``initial`` as its first value.
        """
        levels = initial + np.concatenate(([0.0], np.cumsum(self.values)))
        return Series(period_at(self.start_index - 1, self.frequency), self.frequency, levels)

    def aggregate(self, frequency: int) -> "Series":
        """
        Sum the series over each complete period of a lower frequency.

        Incomplete low-frequency periods at either end are dropped.

        Args:
            frequency: Target frequency, which must divide the frequency of the series

        Returns:
            The aggregated series
        """
        ratio = validate_frequencies(self.frequency, frequency)
        first = -(-self.start_index // ratio) * ratio
        stop = ((self.end_index + 1) // ratio) * ratio
        if stop <= first:
            raise InvalidSpecificationError(
                f"{self!r} does not cover a complete period at frequency {frequency}"
            )
        offset = first - self.start_index
        block = self.values[offset:offset + stop - first].reshape(-1, ratio)
        return Series(period_at(first // ratio, frequency), frequency, block.sum(axis=1))

    def _aligned_values(self, other: Union["Series", float]) -> np.ndarray:
        if isinstance(other, Series):
            if not self.shares_grid(other):
                raise InvalidSpecificationError(f"{self!r} and {other!r} are not aligned")
            return other.values
        return np.asarray(other, dtype=float)

    def __add__(self, other: Union["Series", float]) -> "Series":
        return self.with_values(self.values + self._aligned_values(other))

    __radd__ = __add__

    def __sub__(self, other: Union["Series", float]) -> "Series":
        return self.with_values(self.values - self._aligned_values(other))

    def __mul__(self, other: Union["Series", float]) -> "Series":
        return self.with_values(self.values * self._aligned_values(other))

    __rmul__ = __mul__

    def to_pandas(self, name: Optional[str] = None) -> pd.Series:
        """
        Convert to a pandas series.

        Annual, quarterly and monthly series get a ``PeriodIndex``; other
        frequencies are indexed by their fractional time.
        """
        alias = PANDAS_FREQUENCIES.get(self.frequency)
        if alias is None:
            index = pd.Index(self.time, name="time")
        else:
            year, sub = self.start
            if alias == "Q":
                first = pd.Period(f"{year}Q{sub}", freq=alias)
            elif alias == "M":
                first = pd.Period(f"{year}-{sub:02d}", freq=alias)
            else:
                first = pd.Period(f"{year}", freq=alias)
            index = pd.period_range(start=first, periods=len(self), freq=alias, name="period")
        return pd.Series(np.array(self.values), index=index, name=name)

    @classmethod
    def from_pandas(cls, serie: pd.Series, frequency: Optional[int] = None) -> "Series":
        """
        Build a series from a pandas series indexed by periods or timestamps.

        Args:
            serie: pandas series with a regular ``PeriodIndex`` or ``DatetimeIndex``
            frequency: Frequency of the series, inferred from the index when omitted

        Returns:
            The converted series
        """
        index = serie.index
        if isinstance(index, pd.DatetimeIndex):
            if frequency not in PANDAS_FREQUENCIES:
                raise InvalidSpecificationError(
                    f"A DatetimeIndex needs a frequency among {sorted(PANDAS_FREQUENCIES)}, got {frequency}"
                )
            index = index.to_period(PANDAS_FREQUENCIES[frequency])
        if not isinstance(index, pd.PeriodIndex):
            raise InvalidSpecificationError(
                f"Expected a PeriodIndex or a DatetimeIndex, got {type(index).__name__}"
            )

        inferred = _frequency_of(index.freqstr)
        if frequency is not None and frequency != inferred:
            raise InvalidSpecificationError(
                f"Index frequency {index.freqstr} does not match frequency {frequency}"
            )
        if len(index) == 0:
            raise InvalidSpecificationError("Cannot build a series from an empty pandas series")

        expected = pd.period_range(start=index[0], periods=len(index), freq=index.freq)
        if not index.equals(expected):
            raise InvalidSpecificationError("The pandas index is not a regular sequence of periods")

        first = index[0]
        if inferred == 4:
            sub = first.quarter
        elif inferred == 12:
            sub = first.month
        else:
            sub = 1
        logger.debug("Read %d periods from %s at frequency %d", len(index), first, inferred)
        return cls((first.year, sub), inferred, pd.to_numeric(serie, errors="coerce").to_numpy(dtype=float))


def _frequency_of(freqstr: str) -> int:
    code = freqstr.upper()
    if code.startswith(("Y", "A")):
        return 1
    if code.startswith("Q"):
        return 4
    if code.startswith("M"):
        return 12
    raise InvalidSpecificationError(f"Unsupported pandas frequency {freqstr!r}")
