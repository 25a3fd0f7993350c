# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

from __future__ import annotations
import dataclasses
import numpy as np
import numpy.typing as npt

mu_0 = 1.2566370614359173e-6  # Vacuum permeability [henry/meter]


class InvalidInputData(ValueError):
    """
    The measurement data cannot be turned into a permeability model.
    """


class IronFillFactorError(InvalidInputData):
    def __init__(self, value: float) -> None:
        super().__init__(f"iron fill factor must be between 0 and 1 (0 % and 100 %), is {value}.")
        self.value = value


class UnequalLengthError(InvalidInputData):
    def __init__(self, field_strength: int, other: int, other_name: str) -> None:
        super().__init__(
            f"got {field_strength} values for field strength, but {other} values for {other_name} (should be equal)."
        )
        self.field_strength = field_strength
        self.other = other
        self.other_name = other_name


class SplineError(InvalidInputData):
    pass


@dataclasses.dataclass(frozen=True)
class FieldStrength:
    value: float
    """[ampere/meter]"""


@dataclasses.dataclass(frozen=True)
class FluxDensity:
    value: float
    """[tesla]"""


@dataclasses.dataclass(frozen=True)
class MagnetizationCurve:
    """
    Raw B(H) measurements of a ferromagnetic material, H ascending and non-negative.
    The iron fill factor is the ratio of iron in the cross-section of a lamination stack;
    the remainder is assumed to be insulation with the permeability of vacuum.

    >>> MagnetizationCurve([0, 10, 20], [0, 0.1, 0.2], 0.97).field_strength.tolist()
    [0.0, 10.0, 20.0]
    >>> MagnetizationCurve([0, 10, 20], [0, 0.1], 1.0)
    Traceback (most recent call last):
    ...
    ironfit.mag.UnequalLengthError: got 3 values for field strength, but 2 values for flux density (should be equal).
    >>> MagnetizationCurve([0, 10], [0, 0.1], 1.2)
    Traceback (most recent call last):
    ...
    ironfit.mag.IronFillFactorError: iron fill factor must be between 0 and 1 (0 % and 100 %), is 1.2.
    >>> MagnetizationCurve([0, -10], [0, 0.1], 1.0)
    Traceback (most recent call last):
    ...
    ironfit.mag.InvalidInputData: field strength values must be non-negative, got -10.0
    """

    field_strength: npt.NDArray[np.float64]
    flux_density: npt.NDArray[np.float64]
    iron_fill_factor: float = 1.0

    def __post_init__(self) -> None:
        _validate(self.field_strength, self.flux_density, self.iron_fill_factor, "flux density")
        object.__setattr__(self, "field_strength", _freeze(self.field_strength))
        object.__setattr__(self, "flux_density", _freeze(self.flux_density))
        object.__setattr__(self, "iron_fill_factor", float(self.iron_fill_factor))

    def __len__(self) -> int:
        return len(self.field_strength)


@dataclasses.dataclass(frozen=True)
class PolarizationCurve:
    """
    Raw J(H) measurements; J is the magnetic polarization, aka intrinsic flux density, B=J+mu_0*H.

    >>> pc = PolarizationCurve([0, 1e5], [0, 2.0], 1.0)
    >>> mc = pc.to_magnetization()
    >>> mc.flux_density.round(6).tolist(), mc.iron_fill_factor
    ([0.0, 2.125664], 1.0)
    >>> PolarizationCurve([0, 1e5], [0], 1.0)
    Traceback (most recent call last):
    ...
    ironfit.mag.UnequalLengthError: got 2 values for field strength, but 1 values for polarization (should be equal).
    """

    field_strength: npt.NDArray[np.float64]
    polarization: npt.NDArray[np.float64]
    iron_fill_factor: float = 1.0

    def __post_init__(self) -> None:
        _validate(self.field_strength, self.polarization, self.iron_fill_factor, "polarization")
        object.__setattr__(self, "field_strength", _freeze(self.field_strength))
        object.__setattr__(self, "polarization", _freeze(self.polarization))
        object.__setattr__(self, "iron_fill_factor", float(self.iron_fill_factor))

    def to_magnetization(self) -> MagnetizationCurve:
        return MagnetizationCurve(
            field_strength=self.field_strength,
            flux_density=self.polarization + mu_0 * self.field_strength,
            iron_fill_factor=self.iron_fill_factor,
        )


def _validate(H: npt.ArrayLike, X: npt.ArrayLike, fill_factor: float, x_name: str) -> None:
    H, X = np.asarray(H, dtype=np.float64), np.asarray(X, dtype=np.float64)
    if not 0.0 <= fill_factor <= 1.0:
        raise IronFillFactorError(fill_factor)
    if H.ndim != 1 or X.ndim != 1:
        raise InvalidInputData(f"the curves must be one-dimensional, got shapes {H.shape} and {X.shape}")
    if len(H) != len(X):
        raise UnequalLengthError(len(H), len(X), x_name)
    if len(H) == 0:
        raise InvalidInputData("the curve contains no data points")
    if not (np.isfinite(H).all() and np.isfinite(X).all()):
        raise InvalidInputData("the curve contains non-finite values")
    if (H < 0).any():
        raise InvalidInputData(f"field strength values must be non-negative, got {H.min()}")


def _freeze(x: npt.ArrayLike) -> npt.NDArray[np.float64]:
    out = np.array(x, dtype=np.float64)
    out.flags.writeable = False
    return out


# fmt: off
M270_50A = MagnetizationCurve(
    field_strength=[
        0.0, 11.57, 22.11, 31.71, 40.47, 48.50, 55.29, 64.02, 75.66, 89.24, 107.67, 134.83, 179.45, 276.45,
        582.98, 1583.11, 3578.65, 6665.91, 11303.32, 18871.00, 29765.16, 45905.16, 69372.42, 102918.79,
        150142.01, 215692.99, 219224.15,
    ],
    flux_density=[
        0.0, 0.0970, 0.1940, 0.2910, 0.3880, 0.4851, 0.5821, 0.6791, 0.7761, 0.8731, 0.9701, 1.0672, 1.1642,
        1.2614, 1.3588, 1.4571, 1.5566, 1.6576, 1.7606, 1.8674, 1.9674, 2.0674, 2.1674, 2.2674, 2.3674, 2.4674,
        2.4720,
    ],
    iron_fill_factor=1.0,
)
# fmt: on
"""
Virgin magnetization curve of the M270-50A electrical steel. Useful for testing and validation.
"""
