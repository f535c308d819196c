"""Compensated floating-point summation.

Every aggregation of many small per-hour quantities goes through here so the
rounding error of a year of hourly terms does not grow with the number of terms.
Uses the Kahan-Babuska (Neumaier) variant, which stays accurate when a term is
larger in magnitude than the running sum.
"""

from typing import Iterable


class CompensatedSum:
    """Running sum that tracks the low-order bits lost by each addition."""

    __slots__ = ("_sum", "_compensation")

    def __init__(self, values: Iterable[float] = ()):
        self._sum = 0.0
        self._compensation = 0.0
        self.extend(values)

    def add(self, value: float) -> None:
        value = float(value)
        t = self._sum + value
        if abs(self._sum) >= abs(value):
            self._compensation += (self._sum - t) + value
        else:
            self._compensation += (value - t) + self._sum
        self._sum = t

    def extend(self, values: Iterable[float]) -> None:
        for value in values:
            self.add(value)

    def merge(self, other: "CompensatedSum") -> None:
        """Fold another partial sum into this one, keeping both error terms."""
        self.add(other._sum)
        self.add(other._compensation)

    @property
    def value(self) -> float:
        return self._sum + self._compensation

    def __float__(self) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"CompensatedSum({self.value!r})"


def stable_sum(values: Iterable[float]) -> float:
    """Sum values with compensated summation. Empty input sums to 0.0."""
    return CompensatedSum(values).value
