# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""
Iron losses of electrical steel according to the Jordan model, which splits the specific loss into
a hysteresis component growing linearly with the frequency and an eddy-current component growing with its square:

    p = k_h * (f/f_0) * (B/B_0)^2 + k_ec * (f/f_0)^2 * (B/B_0)^2

where f_0=50 Hz and B_0=1.5 T; B is the amplitude of the flux density.
The coefficients k_h and k_ec are found from the measured loss curves by least squares.
"""

from __future__ import annotations
import dataclasses
from typing import Any, Iterable, Sequence
from logging import getLogger
import numpy as np
import numpy.typing as npt
import pint
from .opt import fit_simplex, make_objective_function, SolverError
from . import quantity

REFERENCE_FREQUENCY = 50.0
"""[hertz]"""

REFERENCE_FLUX_DENSITY = 1.5
"""[tesla]"""

STARTING_POINTS = ((3.0, 3.0), (2.0, 1.5), (1.0, 0.5))
"""The initial simplex of the coefficient search (k_h, k_ec) [watt/kilogram]."""

TOLERANCE = 1e-4
MAX_ITERATIONS = 200


class FailedCoefficientCalculation(RuntimeError):
    def __init__(self, original_message: str | None = None) -> None:
        msg = "The calculation of the hysteresis loss coefficients failed, likely due to bad input data"
        super().__init__(f"{msg}. Original message: {original_message}." if original_message else f"{msg}.")
        self.original_message = original_message


def losses(
    flux_density: float | npt.NDArray[np.float64],
    frequency: float | npt.NDArray[np.float64],
    hysteresis_coefficient: float,
    eddy_current_coefficient: float,
) -> Any:
    """
    The specific loss [watt/kilogram] per the loss equation; works with scalars and arrays alike.

    >>> losses(1.5, 50.0, 1.0, 0.5), losses(1.5, 100.0, 1.0, 0.5), losses(-1.5, 100.0, 1.0, 0.5)
    (1.5, 4.0, 4.0)
    >>> losses(np.array([0.0, 0.75]), np.array([50.0, 50.0]), 2.0, 2.0).tolist()
    [0.0, 1.0]
    """
    f = frequency / REFERENCE_FREQUENCY
    b = (flux_density / REFERENCE_FLUX_DENSITY) ** 2
    return hysteresis_coefficient * f * b + eddy_current_coefficient * f**2 * b


@dataclasses.dataclass(frozen=True)
class FluxDensityLossPair:
    flux_density: float
    """Amplitude [tesla]"""

    specific_loss: float
    """[watt/kilogram]"""


@dataclasses.dataclass(frozen=True)
class IronLossCharacteristic:
    """
    The specific loss measured at one frequency for several flux density amplitudes.
    """

    frequency: float
    """[hertz]"""

    characteristic: tuple[FluxDensityLossPair, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "frequency", float(self.frequency))
        object.__setattr__(self, "characteristic", tuple(self.characteristic))

    @staticmethod
    def from_arrays(
        frequency: float,
        flux_density: Iterable[float],
        specific_loss: Iterable[float],
    ) -> IronLossCharacteristic:
        """
        Pairs the values up; the excess values of the longer sequence are dropped.

        >>> IronLossCharacteristic.from_arrays(50, [0.5, 0.6, 0.7], [0.4, 0.54])  # doctest: +NORMALIZE_WHITESPACE
        IronLossCharacteristic(frequency=50.0,
                               characteristic=(FluxDensityLossPair(flux_density=0.5, specific_loss=0.4),
                                               FluxDensityLossPair(flux_density=0.6, specific_loss=0.54)))
        """
        B, p = [float(x) for x in flux_density], [float(x) for x in specific_loss]
        if len(B) != len(p):
            _logger.warning(
                "%.3f Hz: got %d flux density values and %d loss values; using the first %d",
                frequency,
                len(B),
                len(p),
                min(len(B), len(p)),
            )
        return IronLossCharacteristic(
            frequency=frequency,
            characteristic=tuple(FluxDensityLossPair(b, x) for b, x in zip(B, p)),
        )

    def __len__(self) -> int:
        return len(self.characteristic)


@dataclasses.dataclass(frozen=True)
class IronLossDataset:
    """
    Loss measurements at several frequencies.

    >>> ds = IronLossDataset([
    ...     IronLossCharacteristic.from_arrays(50, [0.5, 1.0], [0.4, 1.04]),
    ...     IronLossCharacteristic.from_arrays(100, [0.5], [0.84]),
    ... ])
    >>> [x.tolist() for x in ds.flatten()]
    [[50.0, 50.0, 100.0], [0.5, 1.0, 0.5], [0.4, 1.04, 0.84]]
    >>> len(ds), IronLossDataset.from_list(ds.to_list()) == ds
    (3, True)
    """

    characteristics: tuple[IronLossCharacteristic, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "characteristics", tuple(self.characteristics))

    def flatten(self) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """
        Three parallel arrays: frequency [hertz], flux density [tesla], specific loss [watt/kilogram].
        """
        rows = [(c.frequency, x.flux_density, x.specific_loss) for c in self.characteristics for x in c.characteristic]
        m = np.array(rows, dtype=np.float64).reshape((-1, 3))
        return m[:, 0], m[:, 1], m[:, 2]

    def __len__(self) -> int:
        return sum(map(len, self.characteristics))

    def to_list(self) -> list[dict[str, Any]]:
        return [
            {
                "frequency": quantity.format_scalar(c.frequency, quantity.FREQUENCY),
                "characteristic": [
                    {
                        "flux_density": quantity.format_scalar(x.flux_density, quantity.FLUX_DENSITY),
                        "specific_loss": quantity.format_scalar(x.specific_loss, quantity.SPECIFIC_LOSS),
                    }
                    for x in c.characteristic
                ],
            }
            for c in self.characteristics
        ]

    @staticmethod
    def from_list(items: Sequence[dict[str, Any]]) -> IronLossDataset:
        out: list[IronLossCharacteristic] = []
        for item in items:
            if not isinstance(item, dict) or set(item) != {"frequency", "characteristic"}:
                raise ValueError(f"Expected a mapping with frequency and characteristic, got {item!r}")
            pairs = []
            for x in item["characteristic"]:
                if not isinstance(x, dict) or set(x) != {"flux_density", "specific_loss"}:
                    raise ValueError(f"Expected a mapping with flux_density and specific_loss, got {x!r}")
                pairs.append(
                    FluxDensityLossPair(
                        flux_density=quantity.parse(x["flux_density"], quantity.FLUX_DENSITY, "flux_density"),
                        specific_loss=quantity.parse(x["specific_loss"], quantity.SPECIFIC_LOSS, "specific_loss"),
                    )
                )
            out.append(
                IronLossCharacteristic(quantity.parse(item["frequency"], quantity.FREQUENCY, "frequency"), pairs)
            )
        return IronLossDataset(out)


@dataclasses.dataclass(frozen=True)
class JordanModel:
    """
    The coefficients are in [watt/kilogram]; the default model is lossless.

    >>> m = JordanModel(hysteresis_coefficient=1.0, eddy_current_coefficient=0.5)
    >>> Q_ = quantity.Q_
    >>> m([Q_(1.5, "T"), Q_(100, "Hz")])
    <Quantity(5.0, 'watt / kilogram')>
    >>> m([Q_(50, "Hz")]).m, m([]).m, JordanModel()([Q_(1.5, "T"), Q_(50, "Hz")]).m
    (0.0, 0.0, 0.0)
    """

    hysteresis_coefficient: float = 0.0
    eddy_current_coefficient: float = 0.0

    def losses(self, flux_density: float, frequency: float) -> float:
        """
        The specific loss [watt/kilogram] at the flux density amplitude [tesla] and frequency [hertz].
        The frequency-linear term of the loss equation is weighted with the eddy-current coefficient and
        the quadratic term with the hysteresis coefficient.

        >>> m = JordanModel(hysteresis_coefficient=1.0, eddy_current_coefficient=0.5)
        >>> m.losses(1.5, 50.0), m.losses(1.5, 100.0), m.losses(-1.5, 100.0), m.losses(0.0, 100.0)
        (1.5, 5.0, 5.0, 0.0)
        """
        return float(losses(flux_density, frequency, self.eddy_current_coefficient, self.hysteresis_coefficient))

    def __call__(self, conditions: Iterable[Any]) -> pint.Quantity:
        conditions = list(conditions)
        flux_density = quantity.find(conditions, quantity.FLUX_DENSITY)
        frequency = quantity.find(conditions, quantity.FREQUENCY)
        return quantity.Q_(self.losses(flux_density or 0.0, frequency or 0.0), quantity.SPECIFIC_LOSS)

    @staticmethod
    def from_dataset(dataset: IronLossDataset) -> JordanModel:
        return fit(dataset)

    def to_dict(self) -> dict[str, Any]:
        """
        >>> JordanModel(2.5, 0.75).to_dict()
        {'hysteresis_coefficient': '2.5 W/kg', 'eddy_current_coefficient': '0.75 W/kg'}
        """
        return {
            "hysteresis_coefficient": quantity.format_scalar(self.hysteresis_coefficient, quantity.SPECIFIC_LOSS),
            "eddy_current_coefficient": quantity.format_scalar(self.eddy_current_coefficient, quantity.SPECIFIC_LOSS),
        }

    @staticmethod
    def from_obj(obj: dict[str, Any] | list[dict[str, Any]]) -> JordanModel:
        """
        Accepts either the coefficients as produced by :meth:`to_dict`, or a loss dataset in the form produced by
        :meth:`IronLossDataset.to_list`; in the latter case the coefficients are fitted.

        >>> JordanModel.from_obj({"hysteresis_coefficient": "2500 mW/kg", "eddy_current_coefficient": 0.75})
        JordanModel(hysteresis_coefficient=2.5, eddy_current_coefficient=0.75)
        >>> JordanModel.from_obj({"hysteresis_coefficient": 1})
        Traceback (most recent call last):
        ...
        ValueError: Unrecognized Jordan model fields: ['hysteresis_coefficient']
        """
        if isinstance(obj, list):
            return fit(IronLossDataset.from_list(obj))
        if isinstance(obj, dict) and set(obj) == {"hysteresis_coefficient", "eddy_current_coefficient"}:
            return JordanModel(
                hysteresis_coefficient=quantity.parse(
                    obj["hysteresis_coefficient"], quantity.SPECIFIC_LOSS, "hysteresis_coefficient"
                ),
                eddy_current_coefficient=quantity.parse(
                    obj["eddy_current_coefficient"], quantity.SPECIFIC_LOSS, "eddy_current_coefficient"
                ),
            )
        if isinstance(obj, dict):
            raise ValueError(f"Unrecognized Jordan model fields: {sorted(obj)}")
        raise ValueError(f"Expected a mapping or a list, got {type(obj).__name__}")


def fit(
    dataset: IronLossDataset,
    *,
    starting_points: Sequence[Sequence[float]] = STARTING_POINTS,
    tolerance: float = TOLERANCE,
    max_iterations: int = MAX_ITERATIONS,
) -> JordanModel:
    """
    Finds the coefficients that minimize the sum of squared residuals between the loss equation and the dataset.

    >>> m = fit(SAMPLE_LOSS_DATASET)
    >>> round(m.hysteresis_coefficient, 2), round(m.eddy_current_coefficient, 2)
    (1.96, 0.67)

    >>> fit(IronLossDataset([]))  # doctest: +ELLIPSIS
    Traceback (most recent call last):
    ...
    ironfit.jordan.FailedCoefficientCalculation: ... Original message: the dataset is empty.
    >>> fit(IronLossDataset([IronLossCharacteristic.from_arrays(0, [0.5, 1.0], [0.1, 0.2])]))  # doctest: +ELLIPSIS
    Traceback (most recent call last):
    ...
    ironfit.jordan.FailedCoefficientCalculation: ... Original message: all frequencies are zero.
    >>> fit(SAMPLE_LOSS_DATASET, starting_points=[(1.0, 1.0)])  # doctest: +ELLIPSIS
    Traceback (most recent call last):
    ...
    ironfit.jordan.FailedCoefficientCalculation: ... Original message: Cannot start the simplex optimization: ...
    """
    f, B, p = dataset.flatten()
    if len(f) == 0:
        raise FailedCoefficientCalculation("the dataset is empty")
    if not (np.isfinite(f).all() and np.isfinite(B).all() and np.isfinite(p).all()):
        raise FailedCoefficientCalculation("the dataset contains non-finite values")
    # Either of these makes the loss equation identically zero, leaving the coefficients undetermined.
    if not np.any(f):
        raise FailedCoefficientCalculation("all frequencies are zero")
    if not np.any(B):
        raise FailedCoefficientCalculation("all flux densities are zero")

    def cost(x: npt.NDArray[np.float64]) -> float:
        return float(np.sum((p - losses(B, f, x[0], x[1])) ** 2))

    _logger.debug("Fitting the Jordan model to %d samples at frequencies %s Hz", len(f), np.unique(f).tolist())
    try:
        x = fit_simplex(
            make_objective_function(cost),
            starting_points,
            tolerance=tolerance,
            max_iterations=max_iterations,
        )
    except SolverError as ex:
        raise FailedCoefficientCalculation(str(ex)) from ex
    if x is None:
        raise FailedCoefficientCalculation()
    out = JordanModel(hysteresis_coefficient=float(x[0]), eddy_current_coefficient=float(x[1]))
    _logger.info("Fitted %s; residual sum of squares %.6f (W/kg)^2", out, cost(x))
    return out


SAMPLE_LOSS_DATASET = IronLossDataset(
    [
        IronLossCharacteristic.from_arrays(
            50.0,
            np.arange(5, 18) / 10,
            [0.4, 0.54, 0.69, 0.86, 1.04, 1.23, 1.44, 1.69, 1.99, 2.37, 2.79, 3.11, 3.38],
        ),
        IronLossCharacteristic.from_arrays(
            100.0,
            np.arange(5, 17) / 10,
            [0.84, 1.14, 1.5, 1.88, 2.32, 2.8, 3.33, 3.96, 4.68, 5.58, 6.7, 7.62],
        ),
        IronLossCharacteristic.from_arrays(
            200.0,
            np.arange(5, 16) / 10,
            [2.22, 3.07, 4.06, 5.19, 6.45, 7.91, 9.53, 11.39, 13.52, 16.37, 19.45],
        ),
    ]
)
"""
Loss measurements of a non-oriented electrical steel at three frequencies. Useful for testing and validation.
"""


_logger = getLogger(__name__)
