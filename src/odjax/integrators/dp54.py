"""Dormand-Prince 5(4) adaptive integrator (DP54).

Implements the Dormand-Prince embedded Runge-Kutta method with a 5th-order
solution for propagation and a 4th-order solution for error estimation.
Both solutions are combinations of the same 7 stage derivatives, so the
error estimate costs no extra function evaluations.

The integrator knows nothing about the meaning of the state vector: a plain
6-element orbit state and a 42-element state augmented with its state
transition matrix are integrated the same way.

Step rejection is driven from Python rather than ``jax.lax.while_loop`` so
that a step that cannot meet the tolerance, or a non-finite derivative,
raises a typed error instead of being silently accepted.

The Butcher tableau coefficients are the standard Dormand-Prince values:

- Nodes (c): [0, 1/5, 3/10, 4/5, 8/9, 1, 1]
- 5th-order weights (b_high): [35/384, 0, 500/1113, 125/192, -2187/6784, 11/84, 0]
- 4th-order weights (b_low): [5179/57600, 0, 7571/16695, 393/640, -92097/339200,
  187/2100, 1/40]
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odjax.config import get_dtype
from odjax.errors import NumericalInstability, StepSizeTooSmall
from odjax.integrators._adaptive import compute_next_step_size
from odjax.integrators._types import AdaptiveConfig, IntegrationResult, StepResult

logger = logging.getLogger(__name__)

# Order of the embedded error estimator
_ERROR_ORDER = 4.0

# Relative slack when deciding whether the next step reaches the target time
_GRID_RTOL = 1e-9

# Nodes
_C = (0.0, 1.0 / 5.0, 3.0 / 10.0, 4.0 / 5.0, 8.0 / 9.0, 1.0, 1.0)

# Coupling coefficients (lower-triangular rows)
_A1 = (1.0 / 5.0,)
_A2 = (3.0 / 40.0, 9.0 / 40.0)
_A3 = (44.0 / 45.0, -56.0 / 15.0, 32.0 / 9.0)
_A4 = (19372.0 / 6561.0, -25360.0 / 2187.0, 64448.0 / 6561.0, -212.0 / 729.0)
_A5 = (9017.0 / 3168.0, -355.0 / 33.0, 46732.0 / 5247.0, 49.0 / 176.0, -5103.0 / 18656.0)

# 5th-order weights, also the coupling row of the 7th stage
_B_HIGH = (35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0, 11.0 / 84.0, 0.0)

# 4th-order weights (error estimation)
_B_LOW = (
    5179.0 / 57600.0,
    0.0,
    7571.0 / 16695.0,
    393.0 / 640.0,
    -92097.0 / 339200.0,
    187.0 / 2100.0,
    1.0 / 40.0,
)


def dp54_stages(
    f: Callable[[ArrayLike, ArrayLike], Array],
    t: ArrayLike,
    state: ArrayLike,
    h: ArrayLike,
) -> tuple[Array, Array, Array]:
    """Compute one Dormand-Prince trial step.

    Args:
        f: ODE right-hand side ``f(t, x) -> dx/dt``.
        t: Time at the start of the step.
        state: State at the start of the step.
        h: Trial step size.

    Returns:
        tuple: ``(state_high, state_low, stages)`` where ``state_high`` is
        the 5th-order solution, ``state_low`` the embedded 4th-order
        solution, and ``stages`` the ``(7, n)`` stacked stage derivatives.
    """
    k0 = f(t, state)
    k1 = f(t + _C[1] * h, state + h * _A1[0] * k0)
    k2 = f(t + _C[2] * h, state + h * (_A2[0] * k0 + _A2[1] * k1))
    k3 = f(t + _C[3] * h, state + h * (_A3[0] * k0 + _A3[1] * k1 + _A3[2] * k2))
    k4 = f(
        t + _C[4] * h,
        state + h * (_A4[0] * k0 + _A4[1] * k1 + _A4[2] * k2 + _A4[3] * k3),
    )
    k5 = f(
        t + _C[5] * h,
        state
        + h * (_A5[0] * k0 + _A5[1] * k1 + _A5[2] * k2 + _A5[3] * k3 + _A5[4] * k4),
    )

    # _B_HIGH[1] = _B_HIGH[6] = 0
    state_high = state + h * (
        _B_HIGH[0] * k0
        + _B_HIGH[2] * k2
        + _B_HIGH[3] * k3
        + _B_HIGH[4] * k4
        + _B_HIGH[5] * k5
    )

    # The 7th stage is evaluated at the 5th-order solution (FSAL)
    k6 = f(t + _C[6] * h, state_high)

    state_low = state + h * (
        _B_LOW[0] * k0
        + _B_LOW[2] * k2
        + _B_LOW[3] * k3
        + _B_LOW[4] * k4
        + _B_LOW[5] * k5
        + _B_LOW[6] * k6
    )

    return state_high, state_low, jnp.stack([k0, k1, k2, k3, k4, k5, k6])


_dp54_stages_jit = jax.jit(dp54_stages, static_argnums=0)


def dp54_step(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    t: ArrayLike,
    state: ArrayLike,
    dt: ArrayLike,
    config: Optional[AdaptiveConfig] = None,
    control: Optional[Callable[[ArrayLike, ArrayLike], Array]] = None,
) -> StepResult:
    """Perform a single adaptive DP54 integration step.

    Advances the state from time ``t`` by up to ``dt``. If the error exceeds
    the tolerance, the step is rejected and retried with a smaller timestep.
    With ``config.fixed_step`` the step is always taken at ``dt``.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.
        state: Current state vector.
        dt: Requested timestep. May be negative for backward integration.
        config: Step-size configuration. Uses default
            :class:`AdaptiveConfig` if ``None``.
        control: Optional additive control function ``u(t, x) -> force``.
            When provided, the effective derivative is
            ``f(t, x) + u(t, x)``.

    Returns:
        StepResult: Named tuple with fields:
            - ``state``: State at ``t + dt_used``.
            - ``dt_used``: Actual timestep taken (<= ``|dt|``).
            - ``error_estimate``: Normalized error of the accepted step.
            - ``dt_next``: Suggested timestep for the next step.

    Raises:
        NumericalInstability: If a stage derivative is not finite.
        StepSizeTooSmall: If no trial step meets the tolerance within
            ``config.max_step_attempts`` attempts, or a step at
            ``config.min_step`` is still rejected.

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.integrators import dp54_step
        def harmonic(t, x):
            return jnp.array([x[1], -x[0]])
        result = dp54_step(harmonic, 0.0, jnp.array([1.0, 0.0]), 0.1)
        result.state  # ~[cos(0.1), -sin(0.1)]
        ```
    """
    if config is None:
        config = AdaptiveConfig()

    dtype = get_dtype()
    t = float(t)
    state = jnp.asarray(state, dtype=dtype)
    h = float(dt)

    if control is None:
        stages = _dp54_stages_jit
        f = dynamics
    else:
        stages = dp54_stages

        def f(ti, xi):
            return dynamics(ti, xi) + control(ti, xi)

    def attempt(h_try):
        state_high, state_low, k = stages(f, t, state, h_try)
        if not bool(jnp.all(jnp.isfinite(k))):
            raise NumericalInstability("non-finite derivative in DP54 stage", t, h_try)
        error = config.error_ctrl(
            state_high - state_low, state_high, state, config.abs_tol, config.rel_tol
        )
        return state_high, error

    if config.fixed_step:
        state_new, error = attempt(h)
        return StepResult(state=state_new, dt_used=h, error_estimate=error, dt_next=h)

    error = jnp.inf
    for _ in range(config.max_step_attempts):
        state_new, error = attempt(h)

        if float(error) <= 1.0:
            dt_next = compute_next_step_size(
                error, h, _ERROR_ORDER, config.safety_factor,
                config.min_scale_factor, config.max_scale_factor,
                config.min_step, config.max_step,
            )
            return StepResult(state=state_new, dt_used=h, error_estimate=error, dt_next=dt_next)

        if abs(h) <= config.min_step:
            break

        h = compute_next_step_size(
            error, h, _ERROR_ORDER, config.safety_factor,
            config.min_scale_factor, config.max_scale_factor,
            config.min_step, config.max_step,
        )

    raise StepSizeTooSmall(
        f"DP54 step rejected with normalized error {float(error):.3e}", t, h
    )


def dp54_integrate(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    t0: ArrayLike,
    state0: ArrayLike,
    duration: ArrayLike,
    config: Optional[AdaptiveConfig] = None,
    dt0: Optional[float] = None,
) -> IntegrationResult:
    """Integrate from ``t0`` over a signed ``duration``.

    Steps are taken with :func:`dp54_step` until ``t0 + duration`` is
    reached exactly; the last step is clipped to land on the target. In
    fixed-step mode the steps fall on the grid ``t0 + k * dt0`` (defaulting
    to ``config.initial_step``) followed by one clipped step.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t0: Initial time.
        state0: Initial state vector.
        duration: Signed integration span. Zero returns ``state0``.
        config: Step-size configuration.
        dt0: Magnitude of the first step. Defaults to
            ``config.initial_step``.

    Returns:
        IntegrationResult: Final state, time, suggested next step and the
        number of accepted steps.

    Raises:
        NumericalInstability: See :func:`dp54_step`.
        StepSizeTooSmall: See :func:`dp54_step`.
    """
    if config is None:
        config = AdaptiveConfig()

    t = float(t0)
    duration = float(duration)
    t_end = t + duration
    state = jnp.asarray(state0, dtype=get_dtype())

    h = abs(dt0 if dt0 is not None else config.initial_step)
    if duration == 0.0:
        return IntegrationResult(state=state, t=t, dt_next=h, n_steps=0)
    if duration < 0.0:
        h = -h

    n_steps = 0
    while t != t_end:
        remaining = t_end - t
        # Steps landing within rounding of the target are clipped onto it
        clipped = abs(remaining) <= abs(h) * (1.0 + _GRID_RTOL)
        h_try = remaining if clipped else h

        result = dp54_step(dynamics, t, state, h_try, config)
        state = result.state
        n_steps += 1

        if clipped and result.dt_used == h_try:
            t = t_end
        else:
            t = t + result.dt_used
            h = result.dt_next

    logger.debug("Integrated %.3f s in %d steps", duration, n_steps)

    return IntegrationResult(state=state, t=t, dt_next=h, n_steps=n_steps)
