# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""
Adaptive resampling of raw B(H) measurements.
"""

from __future__ import annotations
import time
from logging import getLogger
import numpy as np
import numpy.typing as npt
from .mag import mu_0, InvalidInputData, SplineError
from .util import njit, Spline, SplineBuildError

SAMPLING_STEP = 10.0
"""Step of the resampling lattice [ampere/meter]."""

SAMPLING_TOLERANCE = 0.02
"""Maximum relative change of the secant permeability B/H between adjacent samples."""


def sample(
    field_strength: npt.ArrayLike,
    flux_density: npt.ArrayLike,
    change_tolerance: float = SAMPLING_TOLERANCE,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Interpolates the raw B(H) pairs and resamples the interpolant on a lattice of fixed H-step,
    keeping only the samples where the secant permeability B/H has changed by more than the tolerance
    relative to the last kept sample. H=0 and the first lattice step are always kept.
    The lattice ends before the largest H of the input.
    Outside the measured range the interpolant continues with the slope of the vacuum permeability.

    >>> H, B = sample([0, 100, 200], [0, 1, 2], 0.02)  # Constant permeability: nothing changes along the way.
    >>> H.tolist(), B.round(6).tolist()
    ([0.0, 10.0], [0.0, 0.1])
    >>> H, B = sample([0, 10, 20, 30, 40], [0, 0.1, 0.15, 0.18, 0.2], 0.02)
    >>> H.tolist()
    [0.0, 10.0, 20.0, 30.0]
    >>> bool(np.all(np.diff(H) > 0)), bool(np.all(np.diff(B) > 0))
    (True, True)

    The pairs may be given in any order:

    >>> sample([30, 0, 20, 10, 40], [0.18, 0, 0.15, 0.1, 0.2], 0.02)[0].tolist()
    [0.0, 10.0, 20.0, 30.0]

    >>> sample([0, 10, 10], [0, 0.1, 0.2])  # doctest: +ELLIPSIS
    Traceback (most recent call last):
    ...
    ironfit.mag.SplineError: cannot interpolate the raw B(H) data: The knots must be strictly ascending in x; ...
    >>> sample([0, -10], [0, 0.1])
    Traceback (most recent call last):
    ...
    ironfit.mag.InvalidInputData: the field strength must be non-negative and finite
    """
    started_at = time.monotonic()
    H = np.asarray(field_strength, dtype=np.float64)
    B = np.asarray(flux_density, dtype=np.float64)
    if H.shape != B.shape or H.ndim != 1 or len(H) == 0:
        raise InvalidInputData(f"expected two non-empty vectors of equal length, got shapes {H.shape} and {B.shape}")
    if not np.all(np.isfinite(H) & (H >= 0)):
        raise InvalidInputData("the field strength must be non-negative and finite")
    order = np.argsort(H, kind="stable")
    H, B = H[order], B[order]
    try:
        spline = Spline(H, B, left_slope=mu_0, right_slope=mu_0)
    except SplineBuildError as ex:
        raise SplineError(f"cannot interpolate the raw B(H) data: {ex}") from ex

    lattice = np.concatenate(([0.0, SAMPLING_STEP], np.arange(2 * SAMPLING_STEP, H[-1], SAMPLING_STEP)))
    values = np.concatenate(([0.0], spline(lattice[1:])))
    keep = _select(lattice, values, float(change_tolerance))
    _logger.debug(
        "Resampled %d raw points into %d lattice points, kept %d; tolerance=%.3f; took %.0f ms",
        len(H),
        len(lattice),
        int(keep.sum()),
        change_tolerance,
        (time.monotonic() - started_at) * 1e3,
    )
    return lattice[keep], values[keep]


@njit(nogil=True)
def _select(H: npt.NDArray[np.float64], B: npt.NDArray[np.float64], change_tolerance: float) -> npt.NDArray[np.bool_]:
    keep = np.zeros(len(H), dtype=np.bool_)
    keep[: min(2, len(H))] = True
    last = 1
    for i in range(2, len(H)):
        mu_last = B[last] / H[last]
        mu = B[i] / H[i]
        if abs(mu - mu_last) > change_tolerance * abs(mu_last):
            keep[i] = True
            last = i
    return keep


_logger = getLogger(__name__)
