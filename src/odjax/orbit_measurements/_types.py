"""Type definitions shared by measurement devices and the OD process.

- :class:`MeasurementInput`: What a device sees of the propagated
  trajectory at a measurement epoch.
- :class:`Measurement`: An observation with its visibility flag and the
  sensitivity matrix (H tilde) of the observation to the state.
- :class:`MeasurementDevice`: Protocol every device implements.
"""

from __future__ import annotations

from typing import NamedTuple, Optional, Protocol

from jax import Array


class MeasurementInput(NamedTuple):
    """Propagated trajectory state handed to measurement devices.

    Attributes:
        epoch: Seconds past the reference epoch.
        state: Cartesian state ``[x, y, z, vx, vy, vz]`` in the inertial
            frame [m, m/s].
    """

    epoch: float
    state: Array


class Measurement(NamedTuple):
    """A real or computed observation.

    Attributes:
        epoch: Seconds past the reference epoch.
        observation: Observation vector of shape ``(m,)``.
        visible: Whether the device could observe the spacecraft.
        sensitivity: Partial derivatives of the observation with respect to
            the state, shape ``(m, n)``.
        device: Name of the device that produced the observation. The OD
            process only matches a real measurement against devices of the
            same name when this is set.
    """

    epoch: float
    observation: Array
    visible: bool
    sensitivity: Array
    device: Optional[str] = None


class MeasurementDevice(Protocol):
    """A sensor able to compute an observation of a propagated state."""

    name: str

    def measure(self, meas_input: MeasurementInput) -> Measurement:
        """Compute the noiseless observation and its sensitivity."""
        ...

    def noise_covariance(self) -> Array:
        """Measurement noise covariance ``R`` of shape ``(m, m)``."""
        ...
