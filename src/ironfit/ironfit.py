# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""
Magnetic material modeling tool: builds the relative permeability curves of a soft magnetic material from its
B(H) or J(H) curve, and fits the Jordan iron loss model to loss measurements.

    ironfit bh=M270-50A.tab fill=0.95 B=1.5
    ironfit losses=M270-50A.losses.tab B=1.5 f=400
    ironfit material=M270-50A.yaml B=1.5 f=100

The results are printed to stdout; the curves and the models are also saved into the current directory.
"""

from __future__ import annotations

import sys
import logging
from pathlib import Path
from typing import Callable, TypeVar, Iterable, Any, overload
import numpy as np
from .mag import MagnetizationCurve, FieldStrength, FluxDensity
from .perm import FerromagneticPermeability, build
from .jordan import IronLossDataset, JordanModel, fit
from .material import Material, UNITS
from . import io, quantity, __version__

CURVE_FILE_SUFFIX = ".ironfit.tab"
MODEL_FILE_SUFFIX = ".ironfit.yaml"

OUTPUT_SAMPLE_COUNT = 1000
OUTPUT_RANGE_MARGIN = 1.5
"""The saved curves extend beyond the last knot by this factor to show the extrapolation."""

T = TypeVar("T")


def run_permeability(curve: MagnetizationCurve, *, B: float | None, H: float | None) -> FerromagneticPermeability:
    _logger.info(
        "Building the permeability curves from %d points; iron fill factor %.3f", len(curve), curve.iron_fill_factor
    )
    fp = build(curve)
    mu_max, B_max, H_max = fp.maximum
    _logger.info("Result: %s", fp)
    print(f"mu_r_max={mu_max} B_at_mu_r_max={B_max} H_at_mu_r_max={H_max}")
    if B is not None:
        print(f"mu_r(B={B})={fp.get(FluxDensity(B))}")
    if H is not None:
        print(f"mu_r(H={H})={fp.get(FieldStrength(H))}")

    B_grid = np.linspace(0.0, fp.from_flux_density.x[-1] * OUTPUT_RANGE_MARGIN, OUTPUT_SAMPLE_COUNT)
    H_grid = np.linspace(0.0, fp.from_field_strength.x[-1] * OUTPUT_RANGE_MARGIN, OUTPUT_SAMPLE_COUNT)
    io.save_table(
        Path(f"mu(B){CURVE_FILE_SUFFIX}"),
        ("B [tesla]", "mu_r"),
        B_grid,
        [fp.get(FluxDensity(x)) for x in B_grid],
    )
    io.save_table(
        Path(f"mu(H){CURVE_FILE_SUFFIX}"),
        ("H [ampere/meter]", "mu_r"),
        H_grid,
        [fp.get(FieldStrength(x)) for x in H_grid],
    )
    io.dump_yaml(fp.to_dict(), Path(f"permeability{MODEL_FILE_SUFFIX}"))
    return fp


def run_losses(dataset: IronLossDataset, *, B: float | None, f: float | None) -> JordanModel:
    _logger.info(
        "Fitting the Jordan model to %d samples in %d characteristics", len(dataset), len(dataset.characteristics)
    )
    model = fit(dataset)
    print(
        f"hysteresis_coefficient={model.hysteresis_coefficient}",
        f"eddy_current_coefficient={model.eddy_current_coefficient}",
    )
    if B is not None and f is not None:
        print(f"p(B={B}, f={f})={model.losses(B, f)}")
    io.dump_yaml(model.to_dict(), Path(f"losses{MODEL_FILE_SUFFIX}"))
    return model


def run_material(material: Material, *, B: float | None, H: float | None, f: float | None) -> None:
    conditions: list[Any] = []
    if B is not None:
        conditions.append(quantity.Q_(B, quantity.FLUX_DENSITY))
    if H is not None:
        conditions.append(quantity.Q_(H, quantity.FIELD_STRENGTH))
    if f is not None:
        conditions.append(quantity.Q_(f, quantity.FREQUENCY))
    _logger.info("Evaluating material %r at %s", material.name, conditions)
    print(f"name={material.name}")
    for name in UNITS:
        print(f"{name}={material.get(name, conditions)}")


def main() -> None:
    try:
        _setup_logging()
        _logger.debug("ironfit v%s invoked as:\n%s", __version__, " ".join(sys.argv))
        np.seterr(divide="raise", over="raise")
        unnamed, named = _parse_args(sys.argv[1:])
        if unnamed:
            raise ValueError(f"Unexpected unnamed arguments: {unnamed}")

        sources = {k: v for k in ("bh", "jh", "losses", "material") if (v := _param(named, k, str, ""))}
        if len(sources) != 1:
            raise ValueError(f"Specify exactly one of bh=, jh=, losses=, material=; got {sorted(sources) or 'none'}")
        ((mode, file_name),) = sources.items()
        path = Path(file_name)
        match mode:
            case "bh" | "jh":
                curve = io.load_magnetization(
                    path,
                    kind="B(H)" if mode == "bh" else "J(H)",
                    iron_fill_factor=_param(named, "fill", float, 1.0),
                )
                run_permeability(curve, B=_param(named, "B", float), H=_param(named, "H", float, last=True))
            case "losses":
                run_losses(io.load_losses(path), B=_param(named, "B", float), f=_param(named, "f", float, last=True))
            case "material":
                run_material(
                    Material.from_dict(io.load_yaml(path)),
                    B=_param(named, "B", float),
                    H=_param(named, "H", float),
                    f=_param(named, "f", float, last=True),
                )
            case _:
                assert False, mode
    except KeyboardInterrupt:
        _logger.info("Interrupted")
        _logger.debug("Interruption stack trace", exc_info=True)
        exit(1)
    except Exception as ex:
        _logger.error("Failure: %s: %s", type(ex).__name__, ex)
        _logger.debug("Failure: %s", ex, exc_info=True)
        exit(1)


ParamType = Callable[[int | float | str], T]
_sentinel = object()


@overload
def _param(d: dict[str, int | float | str], name: str, ty: ParamType[T], *, last: bool = False) -> T | None: ...
@overload
def _param(d: dict[str, int | float | str], name: str, ty: ParamType[T], default: T, last: bool = False) -> T: ...
def _param(
    d: dict[str, int | float | str],
    name: str,
    ty: ParamType[T],
    default: Any = _sentinel,
    last: bool = False,
) -> T | None:
    try:
        v = d.pop(name)
    except KeyError:
        if default is _sentinel:
            return None
        return default  # type: ignore
    finally:
        if last and d:
            raise ValueError(f"Unexpected named arguments: {d}")
    return ty(v)


def _parse_args(args: Iterable[str]) -> tuple[
    list[str],
    dict[str, int | float | str],
]:
    """
    >>> _parse_args(["bh=data/B(H).tab", "fill=0.95", "B=1", "f=0x10", "-v"])
    (['-v'], {'bh': 'data/B(H).tab', 'fill': 0.95, 'B': 1, 'f': 16})
    """
    unnamed: list[str] = []
    named: dict[str, int | float | str] = {}
    for arg in args:
        if "=" in arg:
            key, value = arg.split("=", 1)
            try:
                named[key] = int(value, 0)
            except ValueError:
                try:
                    named[key] = float(value)
                except ValueError:
                    named[key] = value
        else:
            unnamed.append(arg)
    return unnamed, named


def _setup_logging() -> None:
    logging.getLogger().setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-3.3s %(name)s: %(message)s", "%H:%M:%S"))
    logging.getLogger().addHandler(console_handler)

    file_handler = logging.FileHandler("ironfit.log", mode="w", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))
    logging.getLogger().addHandler(file_handler)

    logging.getLogger("numpy").setLevel(logging.WARNING)
    logging.getLogger("scipy").setLevel(logging.WARNING)
    logging.getLogger("numba").setLevel(logging.WARNING)
    logging.getLogger("pint").setLevel(logging.WARNING)


_logger = logging.getLogger(__name__.replace("__", ""))
