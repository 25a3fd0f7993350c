# Copyright (C) 2025 Pavel Kirienko <pavel.kirienko@zubax.com>

"""Pytest tests for the permeability curve builder and model."""

import logging
import numpy as np
import pytest
from ironfit import io
from ironfit.mag import M270_50A, mu_0, MagnetizationCurve, PolarizationCurve, FieldStrength, FluxDensity
from ironfit.mag import InvalidInputData, IronFillFactorError, UnequalLengthError, SplineError
from ironfit.bh import sample
from ironfit.material import Material
from ironfit.perm import FerromagneticPermeability, build, SATURATION_FLUX_DENSITY
from ironfit.quantity import Q_


class TestReferenceCurve:
    """The M270-50A curve without the fill factor correction."""

    @pytest.mark.parametrize(
        "b, expected",
        [
            (0.0, 8469.282),
            (0.5, 8469.282),
            (1.0, 6924.843),
            (1.5, 503.640),
            (10.0, 8.429),
            (90.0, 1.825),
        ],
    )
    def test_flux_density_reference_values(self, m270_50a, b, expected):
        assert m270_50a.get(FluxDensity(b)) == pytest.approx(expected, abs=1e-3)

    def test_maximum(self, m270_50a):
        mu, b, h = m270_50a.maximum
        assert mu == pytest.approx(8469.282, abs=1e-3)
        assert b == pytest.approx(0.6386, abs=1e-4)
        assert h == 60.0
        assert len(m270_50a.from_flux_density.x) == len(m270_50a.from_field_strength.x) == 294

    def test_reaches_one_at_saturation(self, m270_50a):
        assert m270_50a.get(FluxDensity(SATURATION_FLUX_DENSITY)) == pytest.approx(1.0, abs=1e-9)
        assert m270_50a.get(FluxDensity(1e6)) == 1.0
        assert m270_50a.get(FieldStrength(1e12)) == 1.0

    def test_non_increasing_over_flux_density(self, m270_50a):
        mu = [m270_50a.get(FluxDensity(b)) for b in np.arange(0.0, 3.0, 0.01)]
        assert np.all(np.diff(mu) <= 1e-9)

    def test_non_increasing_over_field_strength(self, m270_50a):
        mu = [m270_50a.get(FieldStrength(h)) for h in np.arange(0.0, 30000.0, 100.0)]
        assert np.all(np.diff(mu) <= 1e-9)

    def test_reconstructed_magnetization_is_non_decreasing(self, m270_50a):
        H = np.linspace(0.0, 2e5, 2001)
        B = [mu_0 * h * m270_50a.get(FieldStrength(h)) for h in H]
        assert np.all(np.diff(B) >= 0)

    def test_both_curves_share_the_knots(self, m270_50a):
        np.testing.assert_array_equal(m270_50a.from_field_strength.y, m270_50a.from_flux_density.y)
        np.testing.assert_allclose(
            m270_50a.from_flux_density.x,
            mu_0 * m270_50a.from_field_strength.y * m270_50a.from_field_strength.x,
            rtol=1e-12,
        )

    @pytest.mark.parametrize(
        "kind, grid",
        [
            (FluxDensity, np.geomspace(1e-6, 1e3, 2000)),
            (FieldStrength, np.geomspace(1e-3, 1e9, 2000)),
        ],
    )
    def test_sign_is_irrelevant(self, m270_50a, kind, grid):
        for x in grid:
            assert m270_50a.get(kind(-x)) == m270_50a.get(kind(x)) >= 1.0

    def test_nan_is_not_masked(self, m270_50a):
        assert np.isnan(m270_50a.get(FluxDensity(np.nan)))
        assert np.isnan(m270_50a.get(FieldStrength(np.nan)))

    def test_conditions(self, m270_50a):
        assert m270_50a([Q_(1.5, "T")]).m == m270_50a.get(FluxDensity(1.5))
        assert m270_50a([Q_(-1500, "mT"), Q_(20, "degC")]).m == m270_50a.get(FluxDensity(1.5))
        assert m270_50a([Q_(10, "kA/m")]).m == m270_50a.get(FieldStrength(1e4))
        assert m270_50a([Q_(20, "degC")]).m == pytest.approx(8469.282, abs=1e-3)


def test_sample_reference_curve():
    H, B = sample(M270_50A.field_strength, M270_50A.flux_density)
    assert len(H) == len(B) == 300
    assert (H[0], H[1], H[50], H[150], H[-1]) == (0.0, 10.0, 580.0, 7040.0, 217120.0)
    assert np.all(np.diff(H) > 0)
    assert B[0] == 0.0
    assert B[1] == pytest.approx(0.08330, abs=1e-4)
    assert B[50] == pytest.approx(1.35846, abs=1e-4)
    assert B[-1] == pytest.approx(2.46933, abs=1e-4)


class TestFlatTop:
    @staticmethod
    def check_shape(fp):
        mu_b = [fp.get(FluxDensity(b)) for b in np.arange(0.0, 3.0, 1e-4)]
        mu_h = [fp.get(FieldStrength(h)) for h in np.arange(0.0, 5e3, 1.0)]
        for mu in (mu_b, mu_h):
            assert np.all(np.diff(mu) <= 1e-9)
            assert min(mu) >= 1.0

    def test_plateau(self, caplog):
        """A constant permeability over several measurements collapses into the first resampled point."""
        H = np.array([0.0, 100.0, 200.0, 300.0, 400.0, 500.0, 1000.0])
        mu = np.array([1000.0, 1000.0, 1000.0, 1000.0, 1000.0, 900.0, 600.0])
        with caplog.at_level(logging.WARNING, logger="ironfit.perm"):
            fp = build(MagnetizationCurve(H, mu_0 * mu * H))
        assert "not unique" not in caplog.text
        mu_max, _, h_max = fp.maximum
        assert h_max == 10.0
        assert mu_max == pytest.approx(1000.0, rel=1e-6)
        assert fp.get(FluxDensity(0.0)) == fp.get(FluxDensity(0.1)) == mu_max
        self.check_shape(fp)

    def test_repeated_maximum(self, caplog):
        """Two resampled points share the maximum; the curve starts at the first one."""
        ratio = np.array([1.0, 0.9, 0.95, 1.0, 0.95, 0.9, 0.85, 0.8, 0.75, 0.7, 0.65])
        H = np.arange(10.0, 111.0, 10.0)
        B = ratio * H * 2**-6 / 10  # B(10 A/m) and B(40 A/m) are exact powers of two.
        with caplog.at_level(logging.WARNING, logger="ironfit.perm"):
            fp = build(MagnetizationCurve(np.concatenate(([0.0], H)), np.concatenate(([0.0], B))))
        assert "not unique (flat top, 2 samples)" in caplog.text
        assert "first occurrence at H=10.000 A/m" in caplog.text
        mu_max, b_max, h_max = fp.maximum
        assert h_max == 10.0
        assert b_max == pytest.approx(2**-6, rel=1e-12)
        # The dip between the two maxima is repaired, which lifts the head of the curve.
        assert mu_max == pytest.approx(1.15 * 2**-6 / (mu_0 * 10), rel=1e-6)
        assert len(fp.from_flux_density.x) == 10
        self.check_shape(fp)


def test_fill_factor_matches_precorrected_curve():
    ff = 0.95
    H, B = np.asarray(M270_50A.field_strength), np.asarray(M270_50A.flux_density)
    corrected = build(MagnetizationCurve(H, B, ff))
    reference = build(MagnetizationCurve(H, B * ff + (1 - ff) * mu_0 * H, 1.0))
    for b in np.arange(0.3, 2.31, 0.1):
        assert corrected.get(FluxDensity(b)) == pytest.approx(reference.get(FluxDensity(b)), rel=1e-3)
    assert corrected.get(FluxDensity(10.0)) == pytest.approx(reference.get(FluxDensity(10.0)), rel=1e-2)
    assert corrected.maximum[0] < build(M270_50A).maximum[0]


def test_polarization_matches_magnetization(m270_50a):
    H = np.asarray(M270_50A.field_strength)
    fp = FerromagneticPermeability.from_polarization(
        PolarizationCurve(H, np.asarray(M270_50A.flux_density) - mu_0 * H, 1.0)
    )
    for b in (0.5, 1.0, 1.5, 2.0, 10.0):
        assert fp.get(FluxDensity(b)) == pytest.approx(m270_50a.get(FluxDensity(b)), rel=1e-6)


def test_raw_data_with_fill_factor():
    text = """
    field_strength: '[
          0.0, 11.57, 22.11, 31.71, 40.47, 48.50, 55.29, 64.02, 75.66, 89.24, 107.67, 134.83, 179.45,
          276.45, 582.98, 1583.11, 3578.65, 6665.91, 11303.32, 18871.00, 29765.16, 45905.16,
          69372.42, 102918.79, 150142.01, 215692.99
        ] A/m'
    flux_density: '[
            0.0, 0.0970, 0.1940, 0.2910, 0.3880, 0.4851, 0.5821, 0.6791, 0.7761, 0.8731, 0.9701,
            1.0672, 1.1642, 1.2614, 1.3588, 1.4571, 1.5566, 1.6576, 1.7606, 1.8674, 1.9674, 2.0674,
            2.1674, 2.2674, 2.3674, 2.4674
        ] T'
    iron_fill_factor: 0.95
    """
    fp = FerromagneticPermeability.from_dict(io.load_yaml(text))
    assert fp([Q_(-0.5, "T")]).m == pytest.approx(8045.868, abs=1e-3)
    assert fp([Q_(1.0, "T")]).m == pytest.approx(6129.606, abs=1e-3)
    assert fp([Q_(10.0, "T")]).m == pytest.approx(8.2138, abs=1e-3)


def test_yaml_round_trip(m270_50a):
    text = io.dump_yaml(m270_50a.to_dict())
    restored = FerromagneticPermeability.from_dict(io.load_yaml(text))
    assert restored == m270_50a
    for b in (-10.0, -0.5, 0.5, 1.5):
        assert restored.get(FluxDensity(b)) == m270_50a.get(FluxDensity(b))


@pytest.mark.parametrize("spline", ["from_field_strength", "from_flux_density"])
@pytest.mark.parametrize("slope", ["left_slope", "right_slope"])
def test_native_form_without_extrapolation(m270_50a, spline, slope):
    d = m270_50a.to_dict()
    d[spline][slope] = None
    with pytest.raises(SplineError, match="must have both extrapolation slopes set"):
        FerromagneticPermeability.from_dict(d)
    with pytest.raises(SplineError, match="must have both extrapolation slopes set"):
        Material.from_dict({"relative_permeability": {"FerromagneticPermeability": d}})
    del d[spline][slope]
    with pytest.raises(SplineError, match="must have both extrapolation slopes set"):
        FerromagneticPermeability.from_dict(io.load_yaml(io.dump_yaml(d)))


def test_native_form_increasing(m270_50a):
    d = m270_50a.to_dict()
    d["from_flux_density"]["y"] = d["from_flux_density"]["y"][::-1]
    with pytest.raises(SplineError, match="flux density spline must be non-increasing"):
        FerromagneticPermeability.from_dict(d)


def test_fill_factor_out_of_range():
    with pytest.raises(IronFillFactorError, match="is 1.5"):
        MagnetizationCurve([0, 10], [0, 0.1], 1.5)
    with pytest.raises(IronFillFactorError):
        FerromagneticPermeability.from_dict(
            {"field_strength": [0, 10], "flux_density": [0, 0.1], "iron_fill_factor": -1}
        )


def test_unequal_lengths():
    with pytest.raises(UnequalLengthError, match="got 3 values for field strength, but 2 values for flux density"):
        MagnetizationCurve([0, 10, 20], [0, 0.1], 1.0)


def test_beyond_saturation():
    with pytest.raises(InvalidInputData, match="exceeds the saturation flux density"):
        build(MagnetizationCurve([0, 10, 20], [0, 120.0, 150.0]))


def test_empty_curve():
    with pytest.raises(InvalidInputData, match="no data points"):
        MagnetizationCurve([], [])


def test_unrecognized_fields():
    with pytest.raises(ValueError, match="Unrecognized permeability fields"):
        FerromagneticPermeability.from_dict({"flux_density": [0, 1]})
