# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

from __future__ import annotations
from typing import Any, overload
import numpy as np
import numpy.typing as npt
import scipy.interpolate
from numba import njit

__all__ = ["njit", "Spline", "SplineBuildError", "OutOfDomainError"]


class SplineBuildError(ValueError):
    pass


class OutOfDomainError(ValueError):
    pass


class Spline:
    """
    Akima piecewise-cubic interpolant over strictly ascending knots with optional one-sided linear extrapolation.
    Akima splines do not overshoot between the knots the way natural cubic splines do,
    which matters for the steep knee of a permeability curve.
    Fewer than three knots degrade to linear (two knots) or constant (one knot) interpolation.

    >>> s = Spline([0.0, 1.0, 2.0, 3.0], [0.0, 1.0, 4.0, 9.0], right_slope=6.0)
    >>> s(0.0), s(1.0), s(4.0)
    (0.0, 1.0, 15.0)
    >>> s([0.0, 5.0]).tolist()
    [0.0, 21.0]
    >>> s.domain
    (0.0, 3.0)

    The left extrapolation slope is missing, so the total variant yields NaN there and the strict one raises:

    >>> s(-1.0)
    nan
    >>> s.evaluate(-1.0)
    Traceback (most recent call last):
    ...
    ironfit.util.OutOfDomainError: x=-1.0 is left of the spline domain [0.0, 3.0] and no left extrapolation is set
    >>> s.evaluate(4.0)
    15.0

    Degenerate knot counts:

    >>> Spline([1.0, 3.0], [10.0, 20.0], left_slope=0.0, right_slope=1.0)([0.0, 2.0, 5.0]).tolist()
    [10.0, 15.0, 22.0]
    >>> Spline([1.0], [7.0], left_slope=0.0, right_slope=-1.0)([0.0, 1.0, 3.0]).tolist()
    [7.0, 7.0, 5.0]

    Invalid knots:

    >>> Spline([0.0, 2.0, 1.0], [0.0, 1.0, 2.0])
    Traceback (most recent call last):
    ...
    ironfit.util.SplineBuildError: The knots must be strictly ascending in x; violated after x[1]=2.0
    >>> Spline([], [])
    Traceback (most recent call last):
    ...
    ironfit.util.SplineBuildError: Cannot build a spline without knots
    """

    def __init__(
        self,
        x: npt.ArrayLike,
        y: npt.ArrayLike,
        *,
        left_slope: float | None = None,
        right_slope: float | None = None,
    ) -> None:
        self._x = np.array(x, dtype=np.float64)
        self._y = np.array(y, dtype=np.float64)
        if self._x.ndim != 1 or self._y.ndim != 1:
            raise SplineBuildError(f"The knots must be one-dimensional: x{self._x.shape}, y{self._y.shape}")
        if len(self._x) != len(self._y):
            raise SplineBuildError(f"Got {len(self._x)} x values but {len(self._y)} y values")
        if len(self._x) == 0:
            raise SplineBuildError("Cannot build a spline without knots")
        if not (np.isfinite(self._x).all() and np.isfinite(self._y).all()):
            raise SplineBuildError("The knots must be finite")
        if (bad := np.flatnonzero(np.diff(self._x) <= 0)).size > 0:
            raise SplineBuildError(
                f"The knots must be strictly ascending in x; violated after x[{bad[0]}]={self._x[bad[0]]}"
            )
        for name, slope in (("left", left_slope), ("right", right_slope)):
            if slope is not None and not np.isfinite(slope):
                raise SplineBuildError(f"The {name} extrapolation slope is not finite: {slope}")
        self._left_slope = None if left_slope is None else float(left_slope)
        self._right_slope = None if right_slope is None else float(right_slope)
        self._akima = scipy.interpolate.Akima1DInterpolator(self._x, self._y) if len(self._x) >= 3 else None
        self._x.flags.writeable = False
        self._y.flags.writeable = False

    @property
    def x(self) -> npt.NDArray[np.float64]:
        return self._x

    @property
    def y(self) -> npt.NDArray[np.float64]:
        return self._y

    @property
    def left_slope(self) -> float | None:
        return self._left_slope

    @property
    def right_slope(self) -> float | None:
        return self._right_slope

    @property
    def domain(self) -> tuple[float, float]:
        return float(self._x[0]), float(self._x[-1])

    @overload
    def __call__(self, x: float) -> float: ...
    @overload
    def __call__(self, x: npt.ArrayLike) -> npt.NDArray[np.float64]: ...
    def __call__(self, x: Any) -> Any:
        """
        The total evaluation: never raises; NaN is returned outside the domain where there is no extrapolation.
        Scalars in, scalars out.
        """
        xa = np.asarray(x, dtype=np.float64)
        x_lo, x_hi = self._x[0], self._x[-1]
        inner = np.clip(xa, x_lo, x_hi)
        if self._akima is not None:
            out = self._akima(inner)
        elif len(self._x) == 2:
            out = np.interp(inner, self._x, self._y)
        else:
            out = np.full_like(inner, self._y[0])
        left = self._y[0] + (np.nan if self._left_slope is None else self._left_slope) * (xa - x_lo)
        right = self._y[-1] + (np.nan if self._right_slope is None else self._right_slope) * (xa - x_hi)
        out = np.where(xa < x_lo, left, np.where(xa > x_hi, right, out))
        return float(out) if out.ndim == 0 else out

    evaluate_infallible = __call__

    def evaluate(self, x: float) -> float:
        """
        The strict evaluation: raises OutOfDomainError where the spline is undefined.
        """
        x_lo, x_hi = self.domain
        if x < x_lo and self._left_slope is None:
            raise OutOfDomainError(
                f"x={x} is left of the spline domain [{x_lo}, {x_hi}] and no left extrapolation is set"
            )
        if x > x_hi and self._right_slope is None:
            raise OutOfDomainError(
                f"x={x} is right of the spline domain [{x_lo}, {x_hi}] and no right extrapolation is set"
            )
        if not np.isfinite(x):
            raise OutOfDomainError(f"x={x} is not finite")
        return float(self(x))

    def to_dict(self) -> dict[str, Any]:
        """
        >>> Spline([1, 2], [3, 4], right_slope=0.5).to_dict()
        {'x': [1.0, 2.0], 'y': [3.0, 4.0], 'left_slope': None, 'right_slope': 0.5}
        """
        return {
            "x": self._x.tolist(),
            "y": self._y.tolist(),
            "left_slope": self._left_slope,
            "right_slope": self._right_slope,
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> Spline:
        """
        >>> s = Spline.from_dict({"x": [0, 1, 2], "y": [2, 1, 1], "left_slope": 0, "right_slope": -0.5})
        >>> s(-10.0), s(4.0)
        (2.0, 0.0)
        >>> Spline.from_dict(s.to_dict()) == s
        True
        >>> Spline.from_dict({"x": [0, 1], "y": [2, 1], "slope": 0})
        Traceback (most recent call last):
        ...
        ironfit.util.SplineBuildError: Unexpected spline fields: ['slope']
        """
        if extra := sorted(set(d) - {"x", "y", "left_slope", "right_slope"}):
            raise SplineBuildError(f"Unexpected spline fields: {extra}")
        try:
            return Spline(d["x"], d["y"], left_slope=d.get("left_slope"), right_slope=d.get("right_slope"))
        except KeyError as ex:
            raise SplineBuildError(f"Missing spline field: {ex}") from ex

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Spline):
            return NotImplemented
        return (
            np.array_equal(self._x, other._x)
            and np.array_equal(self._y, other._y)
            and self._left_slope == other._left_slope
            and self._right_slope == other._right_slope
        )

    __hash__ = None  # type: ignore

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(knots={len(self._x)}, domain={self.domain},"
            f" left_slope={self._left_slope}, right_slope={self._right_slope})"
        )
