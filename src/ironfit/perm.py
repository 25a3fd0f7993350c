# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""
Relative permeability of soft ferromagnetic materials as a function of either the flux density or the field strength.

The model is intended for iterative nonlinear field solvers, hence the curves are shaped for stable iteration
rather than for the best fit of the measurements:

1. Both curves are monotonically non-increasing with the magnitude of B or H.
   The initial rise of the permeability at low fields is cut off; the curves start at the permeability maximum
   and continue flat towards zero.

2. Beyond the measured range the curves fall linearly towards the relative permeability of 1,
   which is reached at the full saturation flux density; the value is never less than 1.

3. The sign of B or H does not matter.
"""

from __future__ import annotations
import time
import dataclasses
from typing import Any, Iterable
from logging import getLogger
import numpy as np
import numpy.typing as npt
import pint
from .mag import mu_0, MagnetizationCurve, PolarizationCurve, FieldStrength, FluxDensity
from .mag import InvalidInputData, IronFillFactorError, UnequalLengthError, SplineError
from .util import njit, Spline, SplineBuildError
from .bh import sample, SAMPLING_TOLERANCE
from . import quantity

__all__ = [
    "FerromagneticPermeability",
    "build",
    "SATURATION_FLUX_DENSITY",
    "InvalidInputData",
    "IronFillFactorError",
    "UnequalLengthError",
    "SplineError",
]

SATURATION_FLUX_DENSITY = 100.0
"""The flux density where the relative permeability reaches 1 [tesla]. Used to define the high-field extrapolation."""


@dataclasses.dataclass(frozen=True)
class FerromagneticPermeability:
    """
    A pair of splines representing the same relative permeability curve over two different arguments.
    Instances are normally obtained from measurements via :func:`build` or the from_* factories.

    >>> from ironfit.mag import M270_50A
    >>> fp = FerromagneticPermeability.from_magnetization(M270_50A)
    >>> fp
    FerromagneticPermeability(knots=294, mu_r_max=8469.28 at B=0.639 T, H=60 A/m)
    >>> [round(fp.get(FluxDensity(b)), 2) for b in (0.1, 0.5, 0.9, 1.0, 100.0, 1e3)]
    [8469.28, 8469.28, 7647.73, 6924.84, 1.0, 1.0]
    >>> assert abs(fp.get(FluxDensity(1.5)) - 503.640) < 1e-3
    >>> assert abs(fp.get(FluxDensity(10.0)) - 8.429) < 1e-3
    >>> assert abs(fp.get(FluxDensity(90.0)) - 1.825) < 1e-3
    >>> fp.get(FluxDensity(-1.0)) == fp.get(FluxDensity(1.0))
    True
    >>> fp.get(FieldStrength(-5e3)) == fp.get(FieldStrength(5e3))
    True

    The generic interface takes a collection of physical conditions; flux density has precedence over field strength:

    >>> Q_ = quantity.Q_
    >>> fp([Q_(100.0, "Hz"), Q_(1.0, "T")]).m == fp.get(FluxDensity(1.0))
    True
    >>> fp([Q_(5, "kA/m")]).m == fp.get(FieldStrength(5e3))
    True
    >>> fp([Q_(5, "kA/m"), Q_(-1000, "mT")]).m == fp.get(FluxDensity(1.0))
    True
    >>> fp([]).m == fp.get(FluxDensity(0.0)) == fp.get(FieldStrength(0.0))
    True
    """

    from_field_strength: Spline
    """mu_r(|H|), H in [ampere/meter]"""

    from_flux_density: Spline
    """mu_r(|B|), B in [tesla]"""

    def __post_init__(self) -> None:
        for name, spline in (("field strength", self.from_field_strength), ("flux density", self.from_flux_density)):
            if spline.left_slope is None or spline.right_slope is None:
                raise SplineError(f"the {name} spline must have both extrapolation slopes set")
            if (bad := np.flatnonzero(np.diff(spline.y) > 0)).size > 0:
                raise SplineError(
                    f"the {name} spline must be non-increasing; violated after x[{bad[0]}]={spline.x[bad[0]]}"
                )

    @staticmethod
    def from_magnetization(curve: MagnetizationCurve) -> FerromagneticPermeability:
        return build(curve)

    @staticmethod
    def from_polarization(curve: PolarizationCurve) -> FerromagneticPermeability:
        """
        >>> from ironfit.mag import M270_50A
        >>> pc = PolarizationCurve(M270_50A.field_strength, M270_50A.flux_density - mu_0 * M270_50A.field_strength)
        >>> fp = FerromagneticPermeability.from_polarization(pc)
        >>> assert abs(fp.get(FluxDensity(0.5)) - 8469.282) < 1e-2
        >>> assert abs(fp.get(FluxDensity(10.0)) - 8.429) < 1e-2
        """
        return build(curve.to_magnetization())

    def get(self, x: FieldStrength | FluxDensity) -> float:
        """
        The relative permeability at the specified field strength or flux density. Never fails.
        The result is clamped between 1 and the permeability maximum, which removes the interpolation overshoot
        next to an isolated first knot. NaN in, NaN out.

        >>> from ironfit.mag import M270_50A
        >>> fp = build(M270_50A)
        >>> fp.get(FluxDensity(float("nan")))
        nan
        """
        match x:
            case FieldStrength(value):
                spline = self.from_field_strength
            case FluxDensity(value):
                spline = self.from_flux_density
            case _:
                raise TypeError(f"Expected FieldStrength or FluxDensity, got {type(x).__name__}")
        # np.minimum and np.maximum propagate NaN, unlike the builtins.
        return float(np.maximum(np.minimum(spline(abs(float(value))), spline.y[0]), 1.0))

    def __call__(self, conditions: Iterable[Any]) -> pint.Quantity:
        conditions = list(conditions)
        if (b := quantity.find(conditions, quantity.FLUX_DENSITY)) is not None:
            x: FieldStrength | FluxDensity = FluxDensity(b)
        elif (h := quantity.find(conditions, quantity.FIELD_STRENGTH)) is not None:
            x = FieldStrength(h)
        else:
            x = FluxDensity(0.0)
        return quantity.Q_(self.get(x), quantity.DIMENSIONLESS)

    def to_dict(self) -> dict[str, Any]:
        return {
            "from_field_strength": self.from_field_strength.to_dict(),
            "from_flux_density": self.from_flux_density.to_dict(),
        }

    @staticmethod
    def from_dict(d: dict[str, Any]) -> FerromagneticPermeability:
        """
        Accepts either the native form produced by :meth:`to_dict`, or the raw measurements in the form of
        a magnetization curve (field_strength, flux_density, iron_fill_factor)
        or a polarization curve (field_strength, polarization, iron_fill_factor).
        The raw forms are passed through :func:`build`.

        >>> fp = FerromagneticPermeability.from_dict(
        ...     {"field_strength": "[0, 50, 100, 1000] A/m", "flux_density": [0, 0.5, 0.8, 1.5], "iron_fill_factor": 1}
        ... )
        >>> FerromagneticPermeability.from_dict(fp.to_dict()) == fp
        True
        >>> FerromagneticPermeability.from_dict({"field_strength": [0, 1], "magnetization": [0, 1]})
        Traceback (most recent call last):
        ...
        ValueError: Unrecognized permeability fields: ['field_strength', 'magnetization']

        Both extrapolation slopes are required in the native form:

        >>> d = fp.to_dict()
        >>> d["from_flux_density"]["right_slope"] = None
        >>> FerromagneticPermeability.from_dict(d)
        Traceback (most recent call last):
        ...
        ironfit.mag.SplineError: the flux density spline must have both extrapolation slopes set
        """
        keys = set(d)
        if keys == {"from_field_strength", "from_flux_density"}:
            try:
                return FerromagneticPermeability(
                    from_field_strength=Spline.from_dict(d["from_field_strength"]),
                    from_flux_density=Spline.from_dict(d["from_flux_density"]),
                )
            except SplineBuildError as ex:
                raise SplineError(f"cannot load the permeability splines: {ex}") from ex
        H = d.get("field_strength")
        fill_factor = float(d.get("iron_fill_factor", 1.0))
        if keys - {"iron_fill_factor"} == {"field_strength", "flux_density"}:
            return build(
                MagnetizationCurve(
                    quantity.parse_vector(H, quantity.FIELD_STRENGTH, "field_strength"),
                    quantity.parse_vector(d["flux_density"], quantity.FLUX_DENSITY, "flux_density"),
                    fill_factor,
                )
            )
        if keys - {"iron_fill_factor"} == {"field_strength", "polarization"}:
            return FerromagneticPermeability.from_polarization(
                PolarizationCurve(
                    quantity.parse_vector(H, quantity.FIELD_STRENGTH, "field_strength"),
                    quantity.parse_vector(d["polarization"], quantity.FLUX_DENSITY, "polarization"),
                    fill_factor,
                )
            )
        raise ValueError(f"Unrecognized permeability fields: {sorted(keys)}")

    @property
    def maximum(self) -> tuple[float, float, float]:
        """(mu_r, B, H) at the permeability maximum, which is where both curves begin."""
        return (
            float(self.from_flux_density.y[0]),
            float(self.from_flux_density.x[0]),
            float(self.from_field_strength.x[0]),
        )

    def __repr__(self) -> str:
        mu, b, h = self.maximum
        return (
            f"{type(self).__name__}(knots={len(self.from_flux_density.x)},"
            f" mu_r_max={mu:.2f} at B={b:.3f} T, H={h:.0f} A/m)"
        )


def build(
    curve: MagnetizationCurve,
    *,
    sampling_tolerance: float = SAMPLING_TOLERANCE,
) -> FerromagneticPermeability:
    """
    Constructs the permeability model from the raw B(H) measurements; see the module docs for the curve shape.
    The measured flux density B is reduced by the iron fill factor as if the remainder of the cross-section
    were filled with vacuum: B_red = B*ff + (1-ff)*mu_0*H.

    A constant permeability has no change to sample; it collapses into a single knot at the first lattice step:

    >>> fp = build(MagnetizationCurve([0, 1e3], [0, 1000 * mu_0 * 1e3]))
    >>> mu_max, _, H_max = fp.maximum
    >>> round(mu_max, 6), H_max, len(fp.from_flux_density.x)
    (1000.0, 10.0, 1)
    >>> round(fp.get(FluxDensity(0.0)), 6), round(fp.get(FluxDensity(SATURATION_FLUX_DENSITY)), 6)
    (1000.0, 1.0)

    Non-monotonic measurements are repaired:

    >>> fp = build(MagnetizationCurve([0, 100, 200, 300, 400], [0, 0.5, 0.7, 1.2, 1.3]))
    >>> mu = [fp.get(FluxDensity(b)) for b in np.linspace(0, 3, 301)]
    >>> bool(np.all(np.diff(mu) <= 0))
    True

    >>> build(MagnetizationCurve([0, 10], [0, 1e3]))
    Traceback (most recent call last):
    ...
    ironfit.mag.InvalidInputData: the flux density 1000.0 T exceeds the saturation flux density 100.0 T
    """
    started_at = time.monotonic()
    H, B = sample(curve.field_strength, curve.flux_density, sampling_tolerance)

    # The secant permeability is undefined at H=0.
    nonzero = H != 0
    H, B = H[nonzero], B[nonzero]
    if len(H) == 0:
        raise InvalidInputData("no non-zero field strength samples")
    ff = curve.iron_fill_factor
    B = B * ff + H * mu_0 * (1.0 - ff)
    mu = B / (mu_0 * H)

    # Everything left of the maximum is the initial rise of the permeability; it is cut off.
    # Samples equal to the maximum up to the rounding error count as the same maximum.
    top = np.flatnonzero(np.isclose(mu, mu.max(), rtol=1e-9, atol=0.0))
    idx_max = int(top[0])
    if len(top) > 1:
        _logger.warning(
            "The permeability maximum mu_r=%.3f is not unique (flat top, %d samples); "
            "using the first occurrence at H=%.3f A/m",
            mu[idx_max],
            len(top),
            H[idx_max],
        )
    _logger.debug("Permeability maximum mu_r=%.3f at H=%.3f A/m; dropping %d samples", mu[idx_max], H[idx_max], idx_max)
    H, B, mu = H[idx_max:], B[idx_max:], mu[idx_max:]

    repaired = _enforce_monotonic_decrease(B, mu)
    if (n_repaired := int(np.count_nonzero(repaired != mu))) > 0:
        _logger.info("Repaired %d non-monotonic permeability samples", n_repaired)
    mu = repaired

    # The line from the last sample to mu_r=1 at the saturation defines the right extrapolation in both domains.
    B_1, mu_1 = float(B[-1]), float(mu[-1])
    if B_1 >= SATURATION_FLUX_DENSITY:
        raise InvalidInputData(
            f"the flux density {B_1} T exceeds the saturation flux density {SATURATION_FLUX_DENSITY} T"
        )
    H_1 = B_1 / (mu_0 * mu_1)
    B_2, mu_2 = SATURATION_FLUX_DENSITY, 1.0
    H_2 = B_2 / (mu_0 * mu_2)
    slope_H = (mu_2 - mu_1) / (H_2 - H_1)
    slope_B = (mu_2 - mu_1) / (B_2 - B_1)
    if mu_1 < mu_2:
        _logger.warning("The last permeability sample mu_r=%.6f is below 1; check the units of the input data", mu_1)

    try:
        out = FerromagneticPermeability(
            from_field_strength=Spline(H, mu, left_slope=0.0, right_slope=slope_H),
            from_flux_density=Spline(B, mu, left_slope=0.0, right_slope=slope_B),
        )
    except SplineBuildError as ex:
        raise SplineError(f"cannot build the permeability curve: {ex}") from ex
    _logger.debug(
        "Built %r from %d raw points with iron fill factor %.3f in %.0f ms; slopes: H %.3e m/A, B %.3e 1/T",
        out,
        len(curve),
        ff,
        (time.monotonic() - started_at) * 1e3,
        slope_H,
        slope_B,
    )
    return out


@njit(nogil=True)
def _enforce_monotonic_decrease(B: npt.NDArray[np.float64], mu: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """
    Walks from the tail towards the head; where a point is below its successor, it is replaced by extending
    the segment between the two following points backward.
    The second to last point has only one successor; it is raised to the level of the last point.

    >>> _enforce_monotonic_decrease(np.array([1.0, 2.0, 3.0, 4.0]), np.array([5.0, 4.0, 4.5, 2.0])).tolist()
    [9.5, 7.0, 4.5, 2.0]
    >>> _enforce_monotonic_decrease(np.array([1.0, 2.0, 3.0]), np.array([9.0, 6.0, 7.0])).tolist()
    [9.0, 7.0, 7.0]
    >>> _enforce_monotonic_decrease(np.array([1.0, 2.0, 3.0]), np.array([9.0, 8.0, 7.0])).tolist()
    [9.0, 8.0, 7.0]
    >>> _enforce_monotonic_decrease(np.array([1.0]), np.array([9.0])).tolist()
    [9.0]
    """
    mu = mu.copy()
    n = len(mu)
    if n >= 2 and mu[n - 2] < mu[n - 1]:
        mu[n - 2] = mu[n - 1]
    for i in range(n - 3, -1, -1):
        if mu[i] < mu[i + 1]:
            slope = (mu[i + 1] - mu[i + 2]) / (B[i + 1] - B[i + 2])
            mu[i] = mu[i + 1] + slope * (B[i + 1] - B[i + 2])
    return mu


_logger = getLogger(__name__)
