"""GNSS measurement models for orbit determination.

Provides the position-only GNSS observation model, its noise covariance
constructor, and :class:`GnssReceiver`, a measurement device that is
always visible and observes the inertial position directly.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odjax.config import get_dtype
from odjax.orbit_measurements._types import Measurement, MeasurementInput


def gnss_position_measurement(state: ArrayLike) -> Array:
    """Extract position from an orbital state vector.

    Args:
        state: State vector of shape ``(n,)`` where ``n >= 3``.

    Returns:
        jax.Array: Position vector of shape ``(3,)``.

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.orbit_measurements import gnss_position_measurement

        state = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0])
        z = gnss_position_measurement(state)  # [6878e3, 0.0, 0.0]
        ```
    """
    state = jnp.asarray(state, dtype=get_dtype())
    return state[:3]


def gnss_measurement_noise(sigma_pos: float) -> Array:
    """Construct measurement noise covariance for position-only GNSS.

    Args:
        sigma_pos: Position measurement standard deviation [m].

    Returns:
        jax.Array: Diagonal ``(3, 3)`` covariance with ``sigma_pos**2`` on
            the diagonal.
    """
    dtype = get_dtype()
    return jnp.asarray(sigma_pos**2, dtype=dtype) * jnp.eye(3, dtype=dtype)


class GnssReceiver:
    """Onboard GNSS receiver measuring inertial position.

    Args:
        sigma_pos: Position noise standard deviation [m].
        name: Device name.

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.orbit_measurements import GnssReceiver, MeasurementInput
        rx = GnssReceiver(sigma_pos=5.0)
        x = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0])
        msr = rx.measure(MeasurementInput(epoch=0.0, state=x))
        msr.sensitivity.shape  # (3, 6)
        ```
    """

    def __init__(self, sigma_pos: float = 10.0, name: str = "gnss"):
        if sigma_pos <= 0.0:
            raise ValueError(f"sigma_pos must be positive, got {sigma_pos}")
        self.sigma_pos = sigma_pos
        self.name = name

    def __repr__(self) -> str:
        return f"GnssReceiver(sigma_pos={self.sigma_pos!r}, name={self.name!r})"

    def measure(self, meas_input: MeasurementInput) -> Measurement:
        dtype = get_dtype()
        n = jnp.shape(meas_input.state)[0]
        sensitivity = jnp.eye(3, n, dtype=dtype)
        return Measurement(
            epoch=float(meas_input.epoch),
            observation=gnss_position_measurement(meas_input.state),
            visible=True,
            sensitivity=sensitivity,
            device=self.name,
        )

    def noise_covariance(self) -> Array:
        return gnss_measurement_noise(self.sigma_pos)
