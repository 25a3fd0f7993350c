# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""
A bundle of the material properties consumed by the field and thermal solvers.
Each property is either a constant, one of the models defined in this package, or an arbitrary function
of the physical conditions (a collection of pint quantities) returning a quantity.
"""

from __future__ import annotations
import dataclasses
from typing import Any, Callable, Iterable, Sequence
from logging import getLogger
import numpy as np
import pint
from .perm import FerromagneticPermeability
from .jordan import JordanModel
from . import quantity

Q_ = quantity.Q_


@dataclasses.dataclass(frozen=True)
class Constant:
    value: float
    """In the unit of the property it is assigned to."""


@dataclasses.dataclass(frozen=True)
class Function:
    fun: Callable[[Sequence[Any]], Any]


RelativePermeability = Constant | FerromagneticPermeability | Function
IronLosses = Constant | JordanModel | Function
Property = Constant | FerromagneticPermeability | JordanModel | Function

UNITS = {
    "relative_permeability": quantity.DIMENSIONLESS,
    "iron_losses": quantity.SPECIFIC_LOSS,
    "remanence": quantity.FLUX_DENSITY,
    "intrinsic_coercivity": quantity.FIELD_STRENGTH,
    "electrical_resistivity": "ohm*m",
    "mass_density": "kg/m^3",
    "heat_capacity": "J/(kg*K)",
    "thermal_conductivity": "W/(m*K)",
}


def evaluate(prop: Property, conditions: Iterable[Any], unit: str) -> pint.Quantity:
    """
    >>> evaluate(Constant(7.5), [], "kg/m^3")
    <Quantity(7.5, 'kilogram / meter ** 3')>
    >>> round(evaluate(JordanModel(1.0, 0.5), [Q_(1.5, "T"), Q_(50, "Hz")], "mW/kg").m, 9)
    1500.0
    >>> evaluate(Function(lambda c: 2.0 * c[0]), [Q_(3.0, "T")], "T")
    <Quantity(6.0, 'tesla')>
    >>> evaluate(Function(lambda c: 2.0), [], "T")
    <Quantity(2.0, 'tesla')>
    >>> evaluate(Function(lambda c: 2.0 * c[0]), [Q_(3.0, "T")], "A/m")
    Traceback (most recent call last):
    ...
    ValueError: The function returned 6.0 tesla, which cannot be expressed in A/m
    """
    match prop:
        case Constant(value):
            return Q_(value, unit)
        case FerromagneticPermeability() | JordanModel():
            return prop(conditions).to(unit)
        case Function(fun):
            out = fun(list(conditions))
            if not isinstance(out, pint.Quantity):
                return Q_(float(out), unit)
            try:
                return out.to(unit)
            except pint.errors.DimensionalityError as ex:
                raise ValueError(f"The function returned {out}, which cannot be expressed in {unit}") from ex
        case _:
            raise TypeError(f"Unsupported property type: {type(prop).__name__}")


@dataclasses.dataclass(frozen=True)
class Material:
    """
    The units of the constants are listed in :data:`UNITS`.

    >>> m = Material.from_dict({
    ...     "name": "M270-50A",
    ...     "relative_permeability": 42.0,
    ...     "iron_losses": {"JordanModel": {"hysteresis_coefficient": "1 W/kg", "eddy_current_coefficient": 0.5}},
    ...     "mass_density": "7650 kg/m^3",
    ... })
    >>> m.get("relative_permeability"), m.get("iron_losses", [Q_(1.5, "T"), Q_(50, "Hz")])
    (<Quantity(42.0, 'dimensionless')>, <Quantity(1.5, 'watt / kilogram')>)
    >>> m.get("mass_density").m, m.get("electrical_resistivity").m, m.get("remanence").m
    (7650.0, inf, 0.0)
    >>> Material.from_dict(m.to_dict()) == m
    True
    >>> Material.from_dict({"name": "x", "colour": "grey"})
    Traceback (most recent call last):
    ...
    ValueError: Unexpected material fields: ['colour']
    """

    name: str = "default_name"
    relative_permeability: RelativePermeability = Constant(1.0)
    iron_losses: IronLosses = Constant(0.0)
    remanence: Constant | Function = Constant(0.0)
    intrinsic_coercivity: Constant | Function = Constant(0.0)
    electrical_resistivity: Constant | Function = Constant(np.inf)
    mass_density: Constant | Function = Constant(1000.0)
    heat_capacity: Constant | Function = Constant(0.0)
    thermal_conductivity: Constant | Function = Constant(0.0)

    def get(self, name: str, conditions: Iterable[Any] = ()) -> pint.Quantity:
        try:
            unit = UNITS[name]
        except KeyError:
            raise KeyError(f"Unknown material property: {name!r}") from None
        return evaluate(getattr(self, name), conditions, unit)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name}
        for name, unit in UNITS.items():
            match getattr(self, name):
                case Constant(value) if unit == quantity.DIMENSIONLESS:
                    out[name] = float(value)
                case Constant(value):
                    out[name] = quantity.format_scalar(value, unit)
                case FerromagneticPermeability() as fp:
                    out[name] = {"FerromagneticPermeability": fp.to_dict()}
                case JordanModel() as jm:
                    out[name] = {"JordanModel": jm.to_dict()}
                case other:
                    raise TypeError(f"{self.name}: property {name} of type {type(other).__name__} is not serializable")
        return out

    @staticmethod
    def from_dict(d: dict[str, Any]) -> Material:
        if extra := sorted(set(d) - {"name"} - set(UNITS)):
            raise ValueError(f"Unexpected material fields: {extra}")
        kwargs: dict[str, Any] = {}
        if "name" in d:
            kwargs["name"] = str(d["name"])
        for name, unit in UNITS.items():
            if name not in d:
                continue
            value = d[name]
            match value:
                case {"FerromagneticPermeability": params} if name == "relative_permeability" and len(value) == 1:
                    kwargs[name] = FerromagneticPermeability.from_dict(params)
                case {"JordanModel": params} if name == "iron_losses" and len(value) == 1:
                    kwargs[name] = JordanModel.from_obj(params)
                case dict():
                    raise ValueError(f"{name}: unsupported model {sorted(value)}")
                case _:
                    kwargs[name] = Constant(quantity.parse(value, unit, name))
        out = Material(**kwargs)
        _logger.debug("Loaded material %r", out.name)
        return out


_logger = getLogger(__name__)
