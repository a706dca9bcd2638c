"""Clamped scales mapping data values and raw times onto fractional ranges."""

from collections.abc import Hashable, Sequence

import numpy as np


class LinearScale:
    """Continuous linear mapping from a domain onto a range.

    Output is always clamped to the range; a degenerate domain maps every
    input to the middle of the range.
    """

    def __init__(
        self,
        domain: Sequence[float] = (0.0, 1.0),
        range: Sequence[float] = (0.0, 1.0),
    ) -> None:
        self._domain = (float(domain[0]), float(domain[1]))
        self._range = (float(range[0]), float(range[1]))

    def __repr__(self) -> str:
        return f"LinearScale(domain={self._domain}, range={self._range})"

    def __call__(self, value: float) -> float:
        d0, d1 = self._domain
        r0, r1 = self._range
        if d0 == d1:
            return (r0 + r1) / 2
        if d0 > d1:
            d0, d1, r0, r1 = d1, d0, r1, r0
        # np.interp clamps to the end points outside [d0, d1]
        return float(np.interp(float(value), [d0, d1], [r0, r1]))

    @property
    def domain(self) -> tuple[float, float]:
        return self._domain

    @domain.setter
    def domain(self, value: Sequence[float]) -> None:
        self._domain = (float(value[0]), float(value[1]))

    @property
    def range(self) -> tuple[float, float]:
        return self._range

    @range.setter
    def range(self, value: Sequence[float]) -> None:
        self._range = (float(value[0]), float(value[1]))

    def invert(self, value: float) -> float:
        """Map a range value back onto the domain (clamped)."""
        return LinearScale(self._range, self._domain)(value)

    def copy(self) -> "LinearScale":
        return LinearScale(self._domain, self._range)


class PointScale:
    """Evenly spaced positions for an ordered list of discrete values.

    A single value sits in the middle of the range. Values outside the domain
    map to None.
    """

    def __init__(
        self,
        domain: Sequence[Hashable] = (),
        range: Sequence[float] = (0.0, 1.0),
    ) -> None:
        self._domain: list[Hashable] = list(domain)
        self._range = (float(range[0]), float(range[1]))

    def __repr__(self) -> str:
        return f"PointScale(domain={self._domain}, range={self._range})"

    def __call__(self, value: Hashable) -> float | None:
        try:
            index = self._domain.index(value)
        except ValueError:
            return None
        r0, r1 = self._range
        count = len(self._domain)
        if count == 1:
            return (r0 + r1) / 2
        return r0 + index * (r1 - r0) / (count - 1)

    @property
    def domain(self) -> list[Hashable]:
        return list(self._domain)

    @domain.setter
    def domain(self, value: Sequence[Hashable]) -> None:
        self._domain = list(value)

    @property
    def range(self) -> tuple[float, float]:
        return self._range

    @range.setter
    def range(self, value: Sequence[float]) -> None:
        self._range = (float(value[0]), float(value[1]))


Scale = LinearScale | PointScale
