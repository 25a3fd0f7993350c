# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""Pytest tests for the Jordan iron loss model and its coefficient fitting."""

import logging
import numpy as np
import pytest
from ironfit import io, jordan
from ironfit.jordan import JordanModel, IronLossDataset, IronLossCharacteristic, FailedCoefficientCalculation, fit
from ironfit.opt import SolverError
from ironfit.quantity import Q_
from conftest import least_squares_coefficients


class TestJordanModel:
    def test_reference_point(self):
        m = JordanModel(hysteresis_coefficient=1.0, eddy_current_coefficient=0.5)
        assert m.losses(1.5, 50.0) == pytest.approx(1.5)
        assert m.losses(1.5, 100.0) == pytest.approx(5.0)
        assert m([Q_(1.5, "T"), Q_(100, "Hz")]).m_as("W/kg") == pytest.approx(5.0)

    def test_conditions_in_other_units(self):
        m = JordanModel(hysteresis_coefficient=1.0, eddy_current_coefficient=0.5)
        assert m([Q_(0.1, "kHz"), Q_(1500, "mT")]).m == pytest.approx(5.0)
        assert m([Q_(20, "degC"), Q_(1.5, "T")]).m == 0.0

    def test_sign_of_flux_density_is_irrelevant(self):
        m = JordanModel(hysteresis_coefficient=2.0, eddy_current_coefficient=0.7)
        assert m.losses(-1.2, 400.0) == m.losses(1.2, 400.0)

    def test_loss_equation(self):
        f = np.array([50.0, 100.0, 200.0])
        b = np.array([1.5, 0.75, 3.0])
        np.testing.assert_allclose(jordan.losses(b, f, 2.0, 1.0), [3.0, 2.5, 96.0])

    def test_round_trip(self):
        m = JordanModel(hysteresis_coefficient=4.2568, eddy_current_coefficient=1.2615)
        assert JordanModel.from_obj(io.load_yaml(io.dump_yaml(m.to_dict()))) == m


class TestFit:
    def test_sample_dataset(self, sample_losses):
        m = fit(sample_losses)
        kh, kec = least_squares_coefficients(sample_losses)
        assert m.hysteresis_coefficient == pytest.approx(kh, abs=1e-2)
        assert m.eddy_current_coefficient == pytest.approx(kec, abs=1e-2)
        assert kh == pytest.approx(1.959, abs=1e-3)
        assert kec == pytest.approx(0.669, abs=1e-3)

    def test_m800_50a(self, m800_50a_losses):
        assert len(m800_50a_losses) == 37
        m = JordanModel.from_dataset(m800_50a_losses)
        kh, kec = least_squares_coefficients(m800_50a_losses)
        assert m.hysteresis_coefficient == pytest.approx(kh, abs=1e-2)
        assert m.eddy_current_coefficient == pytest.approx(kec, abs=1e-2)

    def test_fit_from_serialized_dataset(self, m800_50a_losses):
        obj = io.load_yaml(io.dump_yaml(m800_50a_losses.to_list()))
        assert IronLossDataset.from_list(obj) == m800_50a_losses
        assert JordanModel.from_obj(obj) == fit(m800_50a_losses)

    @pytest.mark.parametrize(
        "dataset, message",
        [
            (IronLossDataset([]), "the dataset is empty"),
            (IronLossDataset([IronLossCharacteristic(50.0, ())]), "the dataset is empty"),
            (IronLossDataset([IronLossCharacteristic.from_arrays(0, [0.5, 1.0], [0.1, 0.2])]), "frequencies are zero"),
            (IronLossDataset([IronLossCharacteristic.from_arrays(50, [0, 0], [0.1, 0.2])]), "flux densities are zero"),
            (IronLossDataset([IronLossCharacteristic.from_arrays(50, [1.0], [np.nan])]), "non-finite"),
        ],
    )
    def test_degenerate_data(self, dataset, message):
        with pytest.raises(FailedCoefficientCalculation, match=message) as ex_info:
            fit(dataset)
        assert ex_info.value.original_message is not None

    def test_solver_cannot_start(self, sample_losses):
        with pytest.raises(FailedCoefficientCalculation, match="Original message: Cannot start") as ex_info:
            fit(sample_losses, starting_points=[(1.0, 1.0)])
        assert isinstance(ex_info.value.__cause__, SolverError)

    def test_solver_does_not_converge(self, sample_losses):
        with pytest.raises(FailedCoefficientCalculation, match="Simplex optimization failed") as ex_info:
            fit(sample_losses, max_iterations=2)
        assert isinstance(ex_info.value.__cause__, SolverError)

    def test_solver_without_result(self, sample_losses, monkeypatch):
        monkeypatch.setattr(jordan, "fit_simplex", lambda *_, **__: None)
        with pytest.raises(FailedCoefficientCalculation) as ex_info:
            fit(sample_losses)
        assert ex_info.value.original_message is None
        assert "Original message" not in str(ex_info.value)


def test_characteristic_truncation(caplog):
    with caplog.at_level(logging.WARNING, logger="ironfit.jordan"):
        c = IronLossCharacteristic.from_arrays(60, [0.5, 0.6, 0.7], [0.4, 0.54])
    assert len(c) == 2
    assert c.frequency == 60.0
    assert "using the first 2" in caplog.text


def test_malformed_dataset():
    with pytest.raises(ValueError, match="frequency and characteristic"):
        IronLossDataset.from_list([{"frequency": "50 Hz"}])
    with pytest.raises(ValueError, match="flux_density and specific_loss"):
        IronLossDataset.from_list([{"frequency": "50 Hz", "characteristic": [{"flux_density": "1 T"}]}])
    with pytest.raises(ValueError, match="cannot convert"):
        IronLossDataset.from_list(
            [{"frequency": "50 T", "characteristic": [{"flux_density": "1 T", "specific_loss": "1 W/kg"}]}]
        )
