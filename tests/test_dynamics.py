"""Tests for the odjax.dynamics and odjax.propagators modules.

Tests cover:
- Two-body acceleration and analytic Jacobian
- Autodiff force model Jacobian
- Variational dynamics: augmented state layout, STM equations of motion,
  per-step STM bookkeeping, observer notifications
- Propagator: STM composition over consecutive propagations, linear
  mapping of small perturbations, truth propagation without side effects
"""

import logging

import jax
import jax.numpy as jnp
import pytest

from odjax.constants import GM_EARTH, R_EARTH
from odjax.dynamics import (
    AutodiffForceModel,
    TwoBody,
    VariationalDynamics,
    accel_two_body,
    jacobian_two_body,
)
from odjax.errors import StateTransitionMatrixSingular
from odjax.integrators import AdaptiveConfig
from odjax.propagators import Propagator

_SMA = R_EARTH + 500e3
_X0 = jnp.array([_SMA, 0.0, 0.0, 0.0, float(jnp.sqrt(GM_EARTH / _SMA)), 0.0])
_TIGHT = AdaptiveConfig(abs_tol=1e-12, rel_tol=1e-13, initial_step=10.0)


def _augmented(state, cumulative):
    return jnp.concatenate([state, cumulative.reshape(-1)])


# ──────────────────────────────────────────────
# Force models
# ──────────────────────────────────────────────

class TestTwoBody:
    def test_acceleration_magnitude(self):
        a = accel_two_body(jnp.array([R_EARTH, 0.0, 0.0]))
        assert float(jnp.linalg.norm(a)) == pytest.approx(GM_EARTH / R_EARTH**2)
        assert float(a[0]) < 0.0

    def test_acceleration_accepts_full_state(self):
        a = accel_two_body(_X0)
        assert a.shape == (3,)

    def test_eom_layout(self):
        """The derivative is [v, a]."""
        xdot = TwoBody().eom(0.0, _X0)
        assert jnp.allclose(xdot[:3], _X0[3:])
        assert jnp.allclose(xdot[3:], accel_two_body(_X0))

    def test_jacobian_block_structure(self):
        A = jacobian_two_body(_X0)
        assert A.shape == (6, 6)
        assert jnp.array_equal(A[:3, :3], jnp.zeros((3, 3)))
        assert jnp.array_equal(A[:3, 3:], jnp.eye(3))
        assert jnp.array_equal(A[3:, 3:], jnp.zeros((3, 3)))

    def test_gravity_gradient_on_x_axis(self):
        """On the x axis the gradient is diag(2, -1, -1) * mu / r^3."""
        A = jacobian_two_body(_X0)
        scale = GM_EARTH / _SMA**3
        expected = jnp.diag(jnp.array([2.0, -1.0, -1.0])) * scale
        assert jnp.allclose(A[3:, :3], expected, rtol=1e-12, atol=0.0)

    def test_jacobian_matches_autodiff(self):
        model = TwoBody()
        x = jnp.array([4000e3, -3000e3, 4500e3, 1.0e3, 6.0e3, -2.0e3])
        A = model.jacobian(0.0, x)
        A_ad = jax.jacfwd(lambda s: model.eom(0.0, s))(x)
        assert jnp.allclose(A, A_ad, rtol=1e-10, atol=1e-20)

    def test_custom_gm(self):
        model = TwoBody(gm=1.0)
        a = model.acceleration(0.0, jnp.array([2.0, 0.0, 0.0]))
        assert jnp.allclose(a, jnp.array([-0.25, 0.0, 0.0]))


class TestAutodiffForceModel:
    def test_matches_analytic_two_body(self):
        model = AutodiffForceModel(lambda t, x: accel_two_body(x))
        x = jnp.array([4000e3, -3000e3, 4500e3, 1.0e3, 6.0e3, -2.0e3])
        assert jnp.allclose(model.eom(0.0, x), TwoBody().eom(0.0, x))
        assert jnp.allclose(model.jacobian(0.0, x), jacobian_two_body(x), rtol=1e-10, atol=1e-20)

    def test_drag_like_term_in_velocity_block(self):
        """A velocity-dependent acceleration fills the lower-right block."""
        model = AutodiffForceModel(lambda t, x: -0.5 * x[3:6])
        A = model.jacobian(0.0, _X0)
        assert jnp.allclose(A[3:, 3:], -0.5 * jnp.eye(3))
        assert jnp.allclose(A[3:, :3], jnp.zeros((3, 3)))


# ──────────────────────────────────────────────
# Variational dynamics
# ──────────────────────────────────────────────

class TestVariationalDynamics:
    def test_initial_stm_is_identity(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        assert jnp.array_equal(dyn.stm, jnp.eye(6))
        assert jnp.array_equal(dyn.cumulative_stm, jnp.eye(6))
        assert dyn.time == 0.0
        assert dyn.dimension == 6

    def test_augmented_state_layout(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        y = dyn.augmented_state()
        assert y.shape == (42,)
        assert jnp.array_equal(y[:6], _X0)
        assert jnp.array_equal(y[6:].reshape(6, 6), jnp.eye(6))

    def test_non_vector_state_rejected(self):
        with pytest.raises(ValueError):
            VariationalDynamics(TwoBody(), jnp.zeros((2, 3)))

    def test_eom_stm_part_is_jacobian_at_identity(self):
        """With Phi = I, dPhi/dt equals the Jacobian."""
        dyn = VariationalDynamics(TwoBody(), _X0)
        ydot = dyn.eom(0.0, dyn.augmented_state())
        assert jnp.allclose(ydot[:6], TwoBody().eom(0.0, _X0))
        assert jnp.allclose(ydot[6:].reshape(6, 6), jacobian_two_body(_X0))

    def test_eom_multiplies_jacobian_on_the_left(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        phi = jnp.arange(36.0).reshape(6, 6)
        ydot = dyn.eom(0.0, _augmented(_X0, phi))
        assert jnp.allclose(ydot[6:].reshape(6, 6), jacobian_two_body(_X0) @ phi)

    def test_gradient_delegates_to_force_model(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        assert jnp.allclose(dyn.gradient(0.0, _X0), jacobian_two_body(_X0))

    def test_set_state_computes_per_step_stm(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        dyn.set_state(10.0, _augmented(_X0, 2.0 * jnp.eye(6)))
        assert jnp.allclose(dyn.stm, 2.0 * jnp.eye(6))
        assert dyn.time == 10.0

        dyn.set_state(20.0, _augmented(_X0, 6.0 * jnp.eye(6)))
        assert jnp.allclose(dyn.stm, 3.0 * jnp.eye(6))
        assert jnp.allclose(dyn.cumulative_stm, 6.0 * jnp.eye(6))

    def test_set_state_updates_state(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        x1 = _X0 + 1.0
        dyn.set_state(5.0, _augmented(x1, jnp.eye(6)))
        assert jnp.array_equal(dyn.state, x1)
        assert dyn.to_measurement().epoch == 5.0
        assert jnp.array_equal(dyn.to_measurement().state, x1)

    def test_set_state_wrong_shape(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        with pytest.raises(ValueError):
            dyn.set_state(1.0, jnp.zeros(6))

    def test_singular_previous_stm_raises(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        dyn.set_state(10.0, _augmented(_X0, jnp.zeros((6, 6))))
        with pytest.raises(StateTransitionMatrixSingular) as excinfo:
            dyn.set_state(20.0, _augmented(_X0, jnp.eye(6)))
        assert excinfo.value.epoch == 20.0

    def test_set_estimated_state(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        dyn.set_estimated_state(_X0 + 5.0)
        assert jnp.array_equal(dyn.estimated_state, _X0 + 5.0)
        assert jnp.array_equal(dyn.state, _X0 + 5.0)

    def test_set_estimated_state_wrong_shape(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        with pytest.raises(ValueError):
            dyn.set_estimated_state(jnp.zeros(3))


class TestObserver:
    def test_observer_receives_state(self):
        calls = []
        dyn = VariationalDynamics(TwoBody(), _X0, observer=lambda t, x: calls.append((t, x)))
        dyn.set_state(10.0, _augmented(_X0, jnp.eye(6)))
        assert len(calls) == 1
        assert calls[0][0] == 10.0
        assert jnp.array_equal(calls[0][1], _X0)

    def test_observer_failure_is_logged(self, caplog):
        def failing(t, x):
            raise RuntimeError("channel closed")

        dyn = VariationalDynamics(TwoBody(), _X0, observer=failing)
        with caplog.at_level(logging.WARNING, logger="odjax.dynamics.variational"):
            dyn.set_state(10.0, _augmented(_X0, jnp.eye(6)))

        assert dyn.time == 10.0
        assert "channel closed" in caplog.text


# ──────────────────────────────────────────────
# Propagator
# ──────────────────────────────────────────────

class TestPropagator:
    def test_zero_duration_gives_identity_stm(self):
        prop = Propagator(VariationalDynamics(TwoBody(), _X0))
        prop.until_time_elapsed(0.0)
        assert jnp.allclose(prop.dynamics.stm, jnp.eye(6))
        assert jnp.array_equal(prop.dynamics.state, _X0)

    def test_advances_time(self):
        prop = Propagator(VariationalDynamics(TwoBody(), _X0))
        prop.until_time_elapsed(60.0)
        prop.until_time_elapsed(30.0)
        assert prop.dynamics.time == pytest.approx(90.0)

    def test_stm_composition(self):
        """Per-step STMs compose to the STM of a single propagation."""
        split = Propagator(VariationalDynamics(TwoBody(), _X0), _TIGHT)
        split.until_time_elapsed(30.0)
        stm_1 = split.dynamics.stm
        split.until_time_elapsed(30.0)
        stm_2 = split.dynamics.stm

        whole = Propagator(VariationalDynamics(TwoBody(), _X0), _TIGHT)
        whole.until_time_elapsed(60.0)

        assert jnp.allclose(stm_2 @ stm_1, whole.dynamics.stm, rtol=1e-7, atol=1e-9)
        assert jnp.allclose(split.dynamics.cumulative_stm, whole.dynamics.stm, rtol=1e-7, atol=1e-9)

    def test_stm_maps_small_perturbation(self):
        """The STM maps an initial deviation to the final deviation."""
        prop = Propagator(VariationalDynamics(TwoBody(), _X0), _TIGHT)
        prop.until_time_elapsed(120.0)
        stm = prop.dynamics.stm

        dx = jnp.array([10.0, -5.0, 3.0, 0.01, 0.02, -0.01])
        x_nom = prop.propagate(_X0, 120.0, t0=0.0)
        x_pert = prop.propagate(_X0 + dx, 120.0, t0=0.0)

        assert jnp.allclose(x_pert - x_nom, stm @ dx, atol=1e-3)

    def test_stm_determinant_is_one(self):
        """Hamiltonian dynamics preserve phase-space volume."""
        prop = Propagator(VariationalDynamics(TwoBody(), _X0), _TIGHT)
        prop.until_time_elapsed(600.0)
        assert float(jnp.linalg.det(prop.dynamics.stm)) == pytest.approx(1.0, abs=1e-6)

    def test_fixed_step_propagation(self):
        config = AdaptiveConfig(fixed_step=True, initial_step=10.0)
        prop = Propagator(VariationalDynamics(TwoBody(), _X0), config)
        prop.until_time_elapsed(95.0)
        assert prop.dynamics.time == pytest.approx(95.0)
        assert float(jnp.linalg.norm(prop.dynamics.state[:3])) == pytest.approx(_SMA, abs=1e-2)

    def test_propagate_does_not_touch_dynamics(self):
        dyn = VariationalDynamics(TwoBody(), _X0)
        prop = Propagator(dyn)
        x = prop.propagate(_X0, 300.0)
        assert x.shape == (6,)
        assert dyn.time == 0.0
        assert jnp.array_equal(dyn.state, _X0)
        assert jnp.array_equal(dyn.stm, jnp.eye(6))

    def test_backward_propagation_recovers_state(self):
        prop = Propagator(VariationalDynamics(TwoBody(), _X0), _TIGHT)
        prop.until_time_elapsed(300.0)
        prop.until_time_elapsed(-300.0)
        assert prop.dynamics.time == pytest.approx(0.0, abs=1e-9)
        assert jnp.allclose(prop.dynamics.state, _X0, atol=1e-4)
        assert jnp.allclose(prop.dynamics.cumulative_stm, jnp.eye(6), atol=1e-6)
