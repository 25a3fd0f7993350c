# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""
Optimization utilities.
"""

import time
from typing import Callable, Sequence
from logging import getLogger
import numpy as np
import numpy.typing as npt
import scipy.optimize as opt


class SolverError(RuntimeError):
    """
    The optimizer could not be started or did not converge.
    """


CostFunction = Callable[[npt.NDArray[np.float64]], float]


def make_objective_function(cost_fn: CostFunction, *, verbose: bool = False) -> CostFunction:
    """
    Wraps the cost function with logging of every evaluation; the best-so-far evaluations are marked.
    Non-finite costs are replaced with a huge number to keep the simplex away from them.
    """
    g_epoch = 0
    g_best_loss = np.inf

    def obj_fn(x: npt.NDArray[np.float64]) -> float:
        nonlocal g_epoch, g_best_loss
        this_epoch = g_epoch
        g_epoch += 1

        started_at = time.monotonic()
        loss = float(cost_fn(x))
        elapsed = time.monotonic() - started_at

        is_best = loss < g_best_loss
        g_best_loss = loss if is_best else g_best_loss

        log_fn = _logger.info if verbose else _logger.debug
        log_fn("#%05d %s %6.3fms: %s loss=%.9f", this_epoch, "🔵💚"[is_best], elapsed * 1e3, x.tolist(), loss)
        return loss if np.isfinite(loss) else 1e100

    return obj_fn


def fit_simplex(
    obj_fn: CostFunction,
    starting_points: Sequence[Sequence[float]] | npt.NDArray[np.float64],
    *,
    tolerance: float,
    max_iterations: int,
) -> npt.NDArray[np.float64] | None:
    """
    Gradient-free Nelder-Mead minimization where the starting points make up the initial simplex,
    so there must be one more point than there are dimensions.
    Returns None if the optimizer finished without a usable result; raises SolverError if it could not
    be started or did not converge within the iteration limit.

    >>> fn = make_objective_function(lambda x: float((x[0] - 1) ** 2 + (x[1] + 2) ** 2))
    >>> fit_simplex(fn, [[0, 0], [1, 0], [0, 1]], tolerance=1e-8, max_iterations=1000).round(3).tolist()
    [1.0, -2.0]
    >>> fit_simplex(fn, [[0, 0], [1, 0], [0, 1]], tolerance=1e-8, max_iterations=3)  # doctest: +ELLIPSIS
    Traceback (most recent call last):
    ...
    ironfit.opt.SolverError: Simplex optimization failed: Maximum number of iterations has been exceeded...
    >>> fit_simplex(fn, [[0, 0], [1, 0]], tolerance=1e-8, max_iterations=1000)  # doctest: +ELLIPSIS
    Traceback (most recent call last):
    ...
    ironfit.opt.SolverError: Cannot start the simplex optimization: ...
    """
    simplex = np.asarray(starting_points, dtype=np.float64)
    _logger.info(
        "Simplex optimization: starting points %s, tolerance=%s, max_iterations=%d",
        simplex.tolist(),
        tolerance,
        max_iterations,
    )
    try:
        # https://docs.scipy.org/doc/scipy/reference/optimize.minimize-neldermead.html
        res = opt.minimize(
            obj_fn,
            simplex[0],
            method="Nelder-Mead",
            options={
                "initial_simplex": simplex,
                "maxiter": max_iterations,
                "xatol": tolerance,
                "fatol": tolerance,
            },
        )
    except (ValueError, IndexError) as ex:
        raise SolverError(f"Cannot start the simplex optimization: {ex}") from ex
    _logger.info("Simplex optimization result:\n%s", res)
    if not res.success:
        raise SolverError(f"Simplex optimization failed: {res.message}")
    if res.x is None or not np.all(np.isfinite(res.x)):
        return None
    return res.x  # type: ignore


_logger = getLogger(__name__)
