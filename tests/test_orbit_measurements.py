"""Tests for the odjax.orbit_measurements module.

Tests cover:
- GNSS position measurement functions and the GnssReceiver device
- Geodetic to ECEF conversion
- GroundStation geometry: station state, range, range-rate, elevation
- Visibility against the elevation mask
- Autodiff sensitivity against the analytic partials
- Noise covariance and simulated measurements
"""

import jax
import jax.numpy as jnp
import pytest

from odjax.constants import OMEGA_EARTH, WGS84_a, WGS84_f
from odjax.orbit_measurements import (
    GnssReceiver,
    GroundStation,
    Measurement,
    MeasurementInput,
    gnss_measurement_noise,
    gnss_position_measurement,
    position_geodetic_to_ecef,
)

_ALT = 500e3
_V = 7612.0


def _overhead_state():
    """Spacecraft directly above (0 N, 0 E) at epoch 0, moving east."""
    return jnp.array([WGS84_a + _ALT, 0.0, 0.0, 0.0, _V, 0.0])


# ──────────────────────────────────────────────
# GNSS
# ──────────────────────────────────────────────

class TestGNSS:
    def test_position_measurement(self):
        state = jnp.array([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
        assert jnp.array_equal(gnss_position_measurement(state), jnp.array([1.0, 2.0, 3.0]))

    def test_measurement_noise(self):
        R = gnss_measurement_noise(5.0)
        assert R.shape == (3, 3)
        assert jnp.allclose(R, 25.0 * jnp.eye(3))

    def test_receiver_measure(self):
        rx = GnssReceiver(sigma_pos=2.0, name="onboard")
        msr = rx.measure(MeasurementInput(epoch=30.0, state=_overhead_state()))

        assert isinstance(msr, Measurement)
        assert msr.visible is True
        assert msr.device == "onboard"
        assert msr.epoch == 30.0
        assert jnp.array_equal(msr.observation, _overhead_state()[:3])
        assert jnp.array_equal(msr.sensitivity, jnp.eye(3, 6))

    def test_receiver_noise(self):
        assert jnp.allclose(GnssReceiver(sigma_pos=2.0).noise_covariance(), 4.0 * jnp.eye(3))

    def test_receiver_sensitivity_follows_state_dimension(self):
        msr = GnssReceiver().measure(MeasurementInput(epoch=0.0, state=jnp.zeros(7)))
        assert msr.sensitivity.shape == (3, 7)

    def test_invalid_sigma(self):
        with pytest.raises(ValueError):
            GnssReceiver(sigma_pos=0.0)


# ──────────────────────────────────────────────
# Geodetic coordinates
# ──────────────────────────────────────────────

class TestGeodetic:
    def test_equator(self):
        r = position_geodetic_to_ecef(0.0, 0.0, 0.0)
        assert jnp.allclose(r, jnp.array([WGS84_a, 0.0, 0.0]))

    def test_equator_with_altitude(self):
        r = position_geodetic_to_ecef(0.0, jnp.pi / 2.0, 1000.0)
        assert jnp.allclose(r, jnp.array([0.0, WGS84_a + 1000.0, 0.0]), atol=1e-6)

    def test_north_pole(self):
        """The pole lies at the semi-minor axis."""
        r = position_geodetic_to_ecef(jnp.pi / 2.0, 0.0, 0.0)
        assert float(r[2]) == pytest.approx(WGS84_a * (1.0 - WGS84_f), abs=1e-6)
        assert float(jnp.linalg.norm(r[:2])) == pytest.approx(0.0, abs=1e-6)


# ──────────────────────────────────────────────
# Ground station
# ──────────────────────────────────────────────

class TestGroundStationGeometry:
    def test_state_at_reference_epoch(self):
        gs = GroundStation("eq", latitude=0.0, longitude=0.0)
        state = gs.state_inertial(0.0)
        assert jnp.allclose(state[:3], jnp.array([WGS84_a, 0.0, 0.0]))
        assert jnp.allclose(state[3:], jnp.array([0.0, OMEGA_EARTH * WGS84_a, 0.0]))

    def test_earth_rotation(self):
        """After a quarter turn the station has moved to the +y axis."""
        gs = GroundStation("eq", latitude=0.0, longitude=0.0)
        quarter = (jnp.pi / 2.0) / OMEGA_EARTH
        state = gs.state_inertial(float(quarter))
        assert jnp.allclose(state[:3], jnp.array([0.0, WGS84_a, 0.0]), atol=1e-3)

    def test_theta0_offsets_rotation(self):
        gs = GroundStation("eq", latitude=0.0, longitude=0.0, theta0=jnp.pi)
        state = gs.state_inertial(0.0)
        assert jnp.allclose(state[:3], jnp.array([-WGS84_a, 0.0, 0.0]), atol=1e-6)

    def test_overhead_range_and_rate(self):
        gs = GroundStation("eq", latitude=0.0, longitude=0.0)
        obs = gs.observation(0.0, _overhead_state())
        assert float(obs[0]) == pytest.approx(_ALT, abs=1e-6)
        assert float(obs[1]) == pytest.approx(0.0, abs=1e-9)

    def test_receding_range_rate(self):
        gs = GroundStation("eq", latitude=0.0, longitude=0.0)
        state = _overhead_state().at[3].set(100.0)
        obs = gs.observation(0.0, state)
        assert float(obs[1]) == pytest.approx(100.0)

    def test_overhead_elevation(self):
        gs = GroundStation("eq", latitude=0.0, longitude=0.0)
        assert float(gs.elevation(0.0, _overhead_state())) == pytest.approx(jnp.pi / 2.0)


class TestGroundStationMeasure:
    def test_overhead_visible(self):
        gs = GroundStation("eq", latitude=0.0, longitude=0.0, elevation_mask=10.0)
        msr = gs.measure(MeasurementInput(epoch=0.0, state=_overhead_state()))
        assert msr.visible is True
        assert msr.device == "eq"
        assert msr.observation.shape == (2,)
        assert msr.sensitivity.shape == (2, 6)

    def test_far_side_invisible(self):
        gs = GroundStation("eq", latitude=0.0, longitude=0.0)
        state = _overhead_state().at[0].multiply(-1.0)
        msr = gs.measure(MeasurementInput(epoch=0.0, state=state))
        assert msr.visible is False

    def test_elevation_mask(self):
        """A spacecraft about 3 deg above the horizon."""
        state = jnp.array([WGS84_a + 100e3, 2000e3, 0.0, 0.0, _V, 0.0])
        meas_input = MeasurementInput(epoch=0.0, state=state)
        assert GroundStation("low", 0.0, 0.0, elevation_mask=0.0).measure(meas_input).visible is True
        assert GroundStation("high", 0.0, 0.0, elevation_mask=5.0).measure(meas_input).visible is False

    def test_sensitivity_overhead(self):
        """Analytic partials of range and range-rate directly overhead."""
        gs = GroundStation("eq", latitude=0.0, longitude=0.0)
        H = gs.measure(MeasurementInput(epoch=0.0, state=_overhead_state())).sensitivity

        assert jnp.allclose(H[0], jnp.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0]), atol=1e-12)
        v_rel = _V - OMEGA_EARTH * WGS84_a
        expected = jnp.array([0.0, v_rel / _ALT, 0.0, 1.0, 0.0, 0.0])
        assert jnp.allclose(H[1], expected, atol=1e-12)

    def test_sensitivity_matches_finite_difference(self):
        gs = GroundStation("mid", latitude=35.0, longitude=-116.0, theta0=0.3)
        state = jnp.array([-2000e3, -5500e3, 4000e3, 5000.0, -1500.0, 4500.0])
        H = gs.measure(MeasurementInput(epoch=120.0, state=state)).sensitivity

        dx = jnp.array([1.0, -2.0, 0.5, 0.01, 0.02, -0.01])
        delta = gs.observation(120.0, state + dx) - gs.observation(120.0, state)
        assert jnp.allclose(H @ dx, delta, rtol=1e-5, atol=1e-6)


class TestGroundStationNoise:
    def test_noise_covariance(self):
        gs = GroundStation("eq", 0.0, 0.0, range_noise=2.0, range_rate_noise=0.01)
        assert jnp.allclose(gs.noise_covariance(), jnp.diag(jnp.array([4.0, 1e-4])))

    def test_simulate_adds_noise(self):
        gs = GroundStation("eq", 0.0, 0.0, range_noise=5.0, range_rate_noise=0.01)
        meas_input = MeasurementInput(epoch=0.0, state=_overhead_state())
        clean = gs.measure(meas_input)
        noisy = gs.simulate(meas_input, jax.random.PRNGKey(0))

        diff = noisy.observation - clean.observation
        assert float(jnp.abs(diff[0])) > 0.0
        assert float(jnp.abs(diff[0])) < 50.0
        assert float(jnp.abs(diff[1])) < 0.1
        assert noisy.visible == clean.visible
        assert jnp.array_equal(noisy.sensitivity, clean.sensitivity)

    def test_simulate_reproducible(self):
        gs = GroundStation("eq", 0.0, 0.0)
        meas_input = MeasurementInput(epoch=0.0, state=_overhead_state())
        a = gs.simulate(meas_input, jax.random.PRNGKey(7))
        b = gs.simulate(meas_input, jax.random.PRNGKey(7))
        assert jnp.array_equal(a.observation, b.observation)


class TestGroundStationValidation:
    def test_invalid_latitude(self):
        with pytest.raises(ValueError):
            GroundStation("bad", latitude=91.0, longitude=0.0)

    def test_invalid_mask(self):
        with pytest.raises(ValueError):
            GroundStation("bad", latitude=0.0, longitude=0.0, elevation_mask=95.0)

    def test_invalid_noise(self):
        with pytest.raises(ValueError):
            GroundStation("bad", latitude=0.0, longitude=0.0, range_noise=0.0)

    def test_frozen(self):
        gs = GroundStation("eq", 0.0, 0.0)
        with pytest.raises(AttributeError):
            gs.latitude = 10.0
