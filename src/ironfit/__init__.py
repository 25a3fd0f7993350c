# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""
Models of soft magnetic materials for nonlinear field solvers:
the relative permeability curve built from B(H) measurements and the Jordan iron loss model.
"""

__version__ = "0.1.0"

from .mag import mu_0, MagnetizationCurve, PolarizationCurve, FieldStrength, FluxDensity
from .perm import FerromagneticPermeability, build, InvalidInputData
from .jordan import FluxDensityLossPair, IronLossCharacteristic, IronLossDataset, JordanModel, fit
from .jordan import FailedCoefficientCalculation
from .material import Material, Constant, Function
