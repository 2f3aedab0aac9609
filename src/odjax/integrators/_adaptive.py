"""Adaptive step-size control for embedded Runge-Kutta methods.

The normalized error of a trial step comes from the configured
:mod:`~odjax.integrators.error_ctrl` policy.  Given that error, the next
step grows or shrinks by the ratio predicted from the order of the error
estimator, within the configured bounds.
"""

from __future__ import annotations

from jax.typing import ArrayLike


def compute_next_step_size(
    error: ArrayLike,
    h: float,
    order: float,
    safety_factor: float,
    min_scale_factor: float,
    max_scale_factor: float,
    min_step: float,
    max_step: float,
) -> float:
    """Compute the next step size from the current error estimate.

    .. math::

        h_{\\text{next}} = |h| \\cdot S \\cdot
            \\left(\\frac{1}{\\text{error}}\\right)^{1/(p+1)}

    where *S* is the safety factor and *p* the order of the error
    estimator. The ratio is clamped to the scale-factor bounds, the result
    to ``[min_step, max_step]``, and the sign of ``h`` is kept for backward
    integration.

    Args:
        error: Normalized error from the error-control policy.
        h: Current step size (negative for backward integration).
        order: Order of the error estimator (4 for DP54).
        safety_factor: Multiplicative safety factor.
        min_scale_factor: Minimum allowed ratio ``|h_next| / |h|``.
        max_scale_factor: Maximum allowed ratio ``|h_next| / |h|``.
        min_step: Absolute minimum step size.
        max_step: Absolute maximum step size.

    Returns:
        float: Suggested next step size with the sign of ``h``.
    """
    error = float(error)
    if error > 0.0:
        scale = safety_factor * (1.0 / error) ** (1.0 / (order + 1.0))
    else:
        scale = max_scale_factor

    scale = min(max(scale, min_scale_factor), max_scale_factor)
    abs_h_next = min(max(abs(h) * scale, min_step), max_step)

    return abs_h_next if h >= 0.0 else -abs_h_next
