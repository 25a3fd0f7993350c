# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""
Unit-bearing scalars shared by the models and the persistence layer.
The models operate on plain floats in SI units internally; pint is only used at the boundaries:
when a model is queried with a set of physical conditions, and when values are read from or written to text.
"""

from __future__ import annotations
import re
from typing import Any, Iterable
import numpy as np
import numpy.typing as npt
import pint

ureg = pint.UnitRegistry()
Q_ = ureg.Quantity

FIELD_STRENGTH = "A/m"
FLUX_DENSITY = "T"
FREQUENCY = "Hz"
SPECIFIC_LOSS = "W/kg"
DIMENSIONLESS = "dimensionless"

_VECTOR = re.compile(r"^\s*\[(?P<values>[^\]]*)\]\s*(?P<unit>.*?)\s*$")


def find(conditions: Iterable[Any], unit: str) -> float | None:
    """
    Returns the magnitude (in the specified unit) of the first condition whose dimensionality matches the unit,
    or None if there is no such condition. Non-quantity entries are ignored.

    >>> find([Q_(3, "Hz"), Q_(0.2, "T"), Q_(1, "T")], FLUX_DENSITY)
    0.2
    >>> find([Q_(500, "mT")], FLUX_DENSITY)
    0.5
    >>> find([Q_(2, "kA/m"), Q_(0.5, "T")], FIELD_STRENGTH)
    2000.0
    >>> find([Q_(1, "A/m"), 42], FLUX_DENSITY) is None
    True
    """
    dim = ureg.Unit(unit).dimensionality
    for c in conditions:
        if isinstance(c, pint.Quantity) and c.dimensionality == dim:
            return float(c.m_as(unit))
    return None


def parse(value: Any, unit: str, name: str = "value") -> float:
    """
    Converts a number or a string with an optional unit into the magnitude in the specified unit.
    Bare numbers are assumed to be in the specified unit already.

    >>> parse("0.5 kW/kg", SPECIFIC_LOSS)
    500.0
    >>> parse(1.5, FLUX_DENSITY), parse("1.5", FLUX_DENSITY), parse("2 kA/m", FIELD_STRENGTH)
    (1.5, 1.5, 2000.0)
    >>> parse("1 T", FIELD_STRENGTH, "coercivity")
    Traceback (most recent call last):
    ...
    ValueError: coercivity: cannot convert '1 T' into A/m
    >>> parse(None, FLUX_DENSITY, "remanence")
    Traceback (most recent call last):
    ...
    ValueError: remanence: expected a number or a quantity string, got NoneType
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"{name}: expected a number or a quantity string, got {type(value).__name__}")
    if isinstance(value, (int, float)):
        return float(value)
    try:
        q = Q_(value)
        if not isinstance(q, pint.Quantity):  # A bare number string is parsed into a plain number.
            return float(q)
        if q.dimensionless and not ureg.Unit(unit).dimensionless:
            return float(q.magnitude)
        return float(q.m_as(unit))
    except (pint.errors.PintError, TypeError, AttributeError) as ex:
        raise ValueError(f"{name}: cannot convert {value!r} into {unit}") from ex


def parse_vector(value: Any, unit: str, name: str = "value") -> npt.NDArray[np.float64]:
    """
    Accepts a list of numbers or quantity strings, or a single string of the form "[v1, v2, ...] unit".

    >>> parse_vector("[0.0, 1.5, 3] kA/m", FIELD_STRENGTH).tolist()
    [0.0, 1500.0, 3000.0]
    >>> parse_vector([0.1, "200 mT"], FLUX_DENSITY).tolist()
    [0.1, 0.2]
    >>> parse_vector("[] T", FLUX_DENSITY).tolist()
    []
    >>> parse_vector("0.1, 0.2", FLUX_DENSITY, "flux_density")
    Traceback (most recent call last):
    ...
    ValueError: flux_density: expected a list or a string like '[v1, v2, ...] unit', got '0.1, 0.2'
    """
    if isinstance(value, (list, tuple, np.ndarray)):
        return np.array([parse(x, unit, name) for x in value], dtype=np.float64)
    if not isinstance(value, str) or not (m := _VECTOR.match(value)):
        raise ValueError(f"{name}: expected a list or a string like '[v1, v2, ...] unit', got {value!r}")
    scale = parse(f"1 {m['unit']}", unit, name) if m["unit"] else 1.0
    try:
        values = [float(x) for x in m["values"].split(",") if x.strip()]
    except ValueError as ex:
        raise ValueError(f"{name}: malformed vector {value!r}") from ex
    return np.array(values, dtype=np.float64) * scale


def format_scalar(value: float, unit: str) -> str | float:
    """
    Non-finite values are returned as plain floats because pint cannot read them back from text.

    >>> format_scalar(1.25, SPECIFIC_LOSS), format_scalar(float("inf"), "ohm*m")
    ('1.25 W/kg', inf)
    """
    if not np.isfinite(value):
        return float(value)
    return f"{float(value)!r} {unit}"


def format_vector(values: npt.ArrayLike, unit: str) -> str:
    """
    >>> format_vector([0, 11.57], FIELD_STRENGTH)
    '[0.0, 11.57] A/m'
    """
    return "[" + ", ".join(repr(float(x)) for x in np.asarray(values, dtype=np.float64)) + "] " + unit
