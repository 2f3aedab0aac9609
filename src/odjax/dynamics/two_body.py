"""Force models consumed by the variational dynamics.

A force model provides the equations of motion of a 6-element Cartesian
state ``[x, y, z, vx, vy, vz]`` and the Jacobian of those equations with
respect to the state.  :class:`TwoBody` implements the analytic Jacobian
of point-mass gravity; :class:`AutodiffForceModel` wraps any JAX
acceleration function and obtains the Jacobian with ``jax.jacfwd``.

All inputs and outputs use SI base units (metres, metres/second).

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, p. 56-68 and 240-247.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odjax.config import get_dtype
from odjax.constants import GM_EARTH


class ForceModel(Protocol):
    """Equations of motion and their Jacobian for a Cartesian orbit state."""

    def acceleration(self, t: ArrayLike, state: ArrayLike) -> Array:
        """Acceleration of shape ``(3,)``."""
        ...

    def eom(self, t: ArrayLike, state: ArrayLike) -> Array:
        """State derivative ``[v, a]`` of shape ``(6,)``."""
        ...

    def jacobian(self, t: ArrayLike, state: ArrayLike) -> Array:
        """Jacobian of :meth:`eom` with respect to the state, shape ``(6, 6)``."""
        ...


def accel_two_body(r_object: ArrayLike, gm: float = GM_EARTH) -> Array:
    """Acceleration due to a point-mass central body at the origin.

    Args:
        r_object: Position of the object [m]. Shape ``(3,)`` or ``(6,)``
            (only first 3 elements used).
        gm: Gravitational parameter of the central body [m^3/s^2].

    Returns:
        Acceleration vector [m/s^2], shape ``(3,)``.

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.constants import R_EARTH
        from odjax.dynamics import accel_two_body
        a = accel_two_body(jnp.array([R_EARTH, 0.0, 0.0]))
        ```
    """
    r = jnp.asarray(r_object, dtype=get_dtype())[:3]
    r_norm = jnp.linalg.norm(r)
    return -gm * r / r_norm**3


def jacobian_two_body(state: ArrayLike, gm: float = GM_EARTH) -> Array:
    """Analytic Jacobian of the two-body equations of motion.

    The ``(6, 6)`` matrix has the block structure

    .. math::

        A = \\begin{bmatrix} 0 & I_3 \\\\ G & 0 \\end{bmatrix}, \\quad
        G_{ij} = \\frac{3 \\mu x_i x_j}{r^5} - \\frac{\\mu \\delta_{ij}}{r^3}

    Args:
        state: Cartesian state ``[x, y, z, vx, vy, vz]`` [m, m/s].
        gm: Gravitational parameter [m^3/s^2].

    Returns:
        jax.Array: Jacobian of shape ``(6, 6)``.
    """
    dtype = get_dtype()
    r = jnp.asarray(state, dtype=dtype)[:3]
    r_norm = jnp.linalg.norm(r)

    gravity_gradient = 3.0 * gm * jnp.outer(r, r) / r_norm**5 - gm * jnp.eye(3, dtype=dtype) / r_norm**3

    zeros = jnp.zeros((3, 3), dtype=dtype)
    return jnp.block([
        [zeros, jnp.eye(3, dtype=dtype)],
        [gravity_gradient, zeros],
    ])


class TwoBody:
    """Keplerian point-mass dynamics with an analytic Jacobian.

    Args:
        gm: Gravitational parameter of the central body [m^3/s^2].

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.dynamics import TwoBody
        model = TwoBody()
        x = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.6, 0.0])
        model.eom(0.0, x)
        model.jacobian(0.0, x)
        ```
    """

    def __init__(self, gm: float = GM_EARTH):
        self.gm = gm

    def __repr__(self) -> str:
        return f"TwoBody(gm={self.gm!r})"

    def acceleration(self, t: ArrayLike, state: ArrayLike) -> Array:
        return accel_two_body(state, self.gm)

    def eom(self, t: ArrayLike, state: ArrayLike) -> Array:
        state = jnp.asarray(state, dtype=get_dtype())
        return jnp.concatenate([state[3:6], self.acceleration(t, state)])

    def jacobian(self, t: ArrayLike, state: ArrayLike) -> Array:
        return jacobian_two_body(state, self.gm)


class AutodiffForceModel:
    """Force model whose Jacobian is computed by forward-mode autodiff.

    Use this for acceleration models without an analytic partial
    derivative.  The acceleration function must be composed of JAX
    operations.

    Args:
        acceleration_fn: ``a(t, state) -> (3,)`` acceleration [m/s^2].

    Examples:
        ```python
        from odjax.dynamics import AutodiffForceModel, accel_two_body
        model = AutodiffForceModel(lambda t, x: accel_two_body(x))
        ```
    """

    def __init__(self, acceleration_fn: Callable[[ArrayLike, ArrayLike], Array]):
        self.acceleration_fn = acceleration_fn

    def acceleration(self, t: ArrayLike, state: ArrayLike) -> Array:
        return self.acceleration_fn(t, state)

    def eom(self, t: ArrayLike, state: ArrayLike) -> Array:
        state = jnp.asarray(state, dtype=get_dtype())
        return jnp.concatenate([state[3:6], self.acceleration_fn(t, state)])

    def jacobian(self, t: ArrayLike, state: ArrayLike) -> Array:
        state = jnp.asarray(state, dtype=get_dtype())
        return jax.jacfwd(lambda x: self.eom(t, x))(state)
