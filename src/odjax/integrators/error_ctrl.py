"""Error-control policies for the embedded Runge-Kutta step.

A policy reduces the difference between the two embedded solutions of a
trial step to one scalar.  The step is accepted when that scalar is at most
1, and the step-size controller grows or shrinks the next step from it, so
the policy decides both which steps pass and how large they are.

Every policy has the signature::

    policy(error_vec, state_new, state_old, abs_tol, rel_tol) -> scalar

and is selected with :attr:`AdaptiveConfig.error_ctrl
<odjax.integrators.AdaptiveConfig>`.  Any callable with this signature built
from ``jax.numpy`` operations can be used in place of the ones below.

- :func:`largest_error` -- worst single component against its own tolerance.
- :func:`rss_error` -- Euclidean length of the whole error vector against a
  tolerance scaled by the Euclidean length of the state.
"""

from __future__ import annotations

from typing import Callable

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odjax.config import get_dtype

ErrorControl = Callable[[ArrayLike, ArrayLike, ArrayLike, float, float], Array]


def largest_error(
    error_vec: ArrayLike,
    state_new: ArrayLike,
    state_old: ArrayLike,
    abs_tol: float,
    rel_tol: float,
) -> Array:
    """Largest component error, each against its own tolerance.

    Component ``i`` may deviate by ``abs_tol + rel_tol * m_i``, where ``m_i``
    is the larger magnitude of that component at the two ends of the step.
    Small components, such as STM entries next to positions in metres, get
    their own error budget.

    Args:
        error_vec: 5th minus 4th order solution.
        state_new: State at the end of the step.
        state_old: State at the start of the step.
        abs_tol: Absolute tolerance.
        rel_tol: Relative tolerance.

    Returns:
        jax.Array: Scalar; the step is accepted if <= 1.

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.integrators import largest_error
        largest_error(jnp.array([1e-6, 4e-6]), jnp.ones(2), jnp.ones(2), 1e-6, 1e-6)
        # 2.0
        ```
    """
    dtype = get_dtype()
    magnitude = jnp.maximum(
        jnp.abs(jnp.asarray(state_new, dtype=dtype)),
        jnp.abs(jnp.asarray(state_old, dtype=dtype)),
    )
    budget = abs_tol + rel_tol * magnitude
    return jnp.max(jnp.abs(jnp.asarray(error_vec, dtype=dtype)) / budget)


def rss_error(
    error_vec: ArrayLike,
    state_new: ArrayLike,
    state_old: ArrayLike,
    abs_tol: float,
    rel_tol: float,
) -> Array:
    """Root-sum-square error against a tolerance on the whole state.

    The budget is ``abs_tol + rel_tol * max(|state_new|, |state_old|)`` with
    Euclidean norms, so errors spread over many components add up and the
    large components set the relative scale.

    Args:
        error_vec: 5th minus 4th order solution.
        state_new: State at the end of the step.
        state_old: State at the start of the step.
        abs_tol: Absolute tolerance.
        rel_tol: Relative tolerance.

    Returns:
        jax.Array: Scalar; the step is accepted if <= 1.
    """
    dtype = get_dtype()
    magnitude = jnp.maximum(
        jnp.linalg.norm(jnp.asarray(state_new, dtype=dtype)),
        jnp.linalg.norm(jnp.asarray(state_old, dtype=dtype)),
    )
    return jnp.linalg.norm(jnp.asarray(error_vec, dtype=dtype)) / (abs_tol + rel_tol * magnitude)
