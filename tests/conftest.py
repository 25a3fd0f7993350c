# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""Pytest configuration and fixtures shared by the tests."""

import logging
from pathlib import Path
import numpy as np
import pytest
from ironfit.mag import M270_50A
from ironfit.perm import FerromagneticPermeability, build
from ironfit.jordan import IronLossCharacteristic, IronLossDataset, SAMPLE_LOSS_DATASET

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

# Loss measurements of the M800-50A electrical steel.
M800_50A_LOSSES = {
    50.0: [0.86, 1.16, 1.47, 1.82, 2.20, 2.60, 3.06, 3.57, 4.14, 4.79, 5.52, 6.37, 7.08, 7.65, 8.12],
    100.0: [1.93, 2.62, 3.38, 4.22, 5.15, 6.19, 7.34, 8.65, 10.11, 11.74, 13.56],
    200.0: [4.63, 6.37, 8.35, 10.59, 13.2, 16.15, 19.31, 23.08, 27.24, 32.42, 37.56],
}


def least_squares_coefficients(dataset: IronLossDataset) -> tuple[float, float]:
    """The exact least-squares solution for (k_h, k_ec), to compare the simplex search against."""
    f, B, p = dataset.flatten()
    b = (B / 1.5) ** 2
    a = np.column_stack([(f / 50) * b, (f / 50) ** 2 * b])
    (kh, kec), *_ = np.linalg.lstsq(a, p, rcond=None)
    return float(kh), float(kec)


@pytest.fixture(scope="session")
def m270_50a() -> FerromagneticPermeability:
    """The permeability of the M270-50A steel without the fill factor correction."""
    return build(M270_50A)


@pytest.fixture
def m800_50a_losses() -> IronLossDataset:
    return IronLossDataset(
        [
            IronLossCharacteristic.from_arrays(f, np.arange(5, 5 + len(p)) / 10, p)
            for f, p in M800_50A_LOSSES.items()
        ]
    )


@pytest.fixture
def sample_losses() -> IronLossDataset:
    return SAMPLE_LOSS_DATASET


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """
    Runs the test in an empty directory and undoes the global state changes made by the command-line entry point:
    the root logger handlers and the numpy floating point error mode.
    """
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    np_err = np.geterr()
    yield tmp_path
    for h in root.handlers[:]:
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    np.seterr(**np_err)
