"""Type definitions for numerical integrators.

Provides the core data types used by the integrator implementation:

- :class:`StepResult`: Output of a single step, containing the new state,
  actual timestep used, error estimate, and suggested next timestep.
- :class:`IntegrationResult`: Output of a multi-step integration to a
  target time.
- :class:`AdaptiveConfig`: Step-size control configuration.

All types are :class:`~typing.NamedTuple` instances, which JAX treats as
pytrees automatically.
"""

from __future__ import annotations

from typing import NamedTuple

from jax import Array

from odjax.integrators.error_ctrl import ErrorControl, largest_error


class StepResult(NamedTuple):
    """Result of a single integrator step.

    In fixed-step mode ``dt_next`` equals ``dt_used``.

    Attributes:
        state: State vector at time ``t + dt_used``.
        dt_used: Actual timestep taken. May be smaller in magnitude than the
            requested ``dt`` if the step was rejected and retried.
        error_estimate: Normalized error estimate. A value <= 1.0 means the
            step met the tolerance.
        dt_next: Suggested timestep for the next step.
    """

    state: Array
    dt_used: float
    error_estimate: Array
    dt_next: float


class IntegrationResult(NamedTuple):
    """Result of integrating to a target time.

    Attributes:
        state: State vector at the target time.
        t: Target time reached.
        dt_next: Step size to start the next integration with.
        n_steps: Number of accepted steps taken.
    """

    state: Array
    t: float
    dt_next: float
    n_steps: int


class AdaptiveConfig(NamedTuple):
    """Configuration for adaptive step-size control.

    Default values provide a reasonable starting point for near-Earth orbit
    determination in SI units.

    Attributes:
        abs_tol: Absolute error tolerance, applied by ``error_ctrl``.
        rel_tol: Relative error tolerance, applied by ``error_ctrl``.
        safety_factor: Multiplicative safety factor applied to step-size
            predictions. Values < 1.0 produce conservative step sizes.
        min_scale_factor: Minimum allowed ratio ``dt_next / dt_used``.
        max_scale_factor: Maximum allowed ratio ``dt_next / dt_used``.
        min_step: Absolute minimum step size. A step rejected at this size
            raises :class:`~odjax.errors.StepSizeTooSmall`.
        max_step: Absolute maximum step size.
        max_step_attempts: Maximum number of trial steps before raising
            :class:`~odjax.errors.StepSizeTooSmall`.
        initial_step: Step size used for the first step of an integration.
            In fixed-step mode this is the grid spacing.
        fixed_step: Disable adaptivity. Every step is taken at the
            requested size regardless of the error estimate.
        error_ctrl: Policy reducing the embedded error estimate to the
            scalar compared against 1. See
            :mod:`~odjax.integrators.error_ctrl`.
    """

    abs_tol: float = 1e-9
    rel_tol: float = 1e-10
    safety_factor: float = 0.9
    min_scale_factor: float = 0.2
    max_scale_factor: float = 10.0
    min_step: float = 1e-3
    max_step: float = 2700.0
    max_step_attempts: int = 50
    initial_step: float = 60.0
    fixed_step: bool = False
    error_ctrl: ErrorControl = largest_error
