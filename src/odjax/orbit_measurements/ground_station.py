"""Ground station range and range-rate measurement model.

The station sits on the WGS84 ellipsoid of an Earth rotating at the
constant rate ``OMEGA_EARTH`` about the inertial z axis, with rotation
angle ``theta0`` at the reference epoch.  Precession, nutation and polar
motion are not modelled.

The observation is the instantaneous range and range-rate

.. math::

    \\rho = \\lVert r - r_s \\rVert, \\quad
    \\dot{\\rho} = \\frac{(r - r_s) \\cdot (v - v_s)}{\\rho}

and its sensitivity to the spacecraft state is obtained with
``jax.jacfwd``.  The spacecraft is visible when its elevation above the
station's local horizon is at least the elevation mask.
"""

from __future__ import annotations

from dataclasses import dataclass

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odjax.config import get_dtype
from odjax.constants import DEG2RAD, OMEGA_EARTH, WGS84_a, WGS84_f
from odjax.orbit_measurements._types import Measurement, MeasurementInput

ECC2 = WGS84_f * (2.0 - WGS84_f)


def position_geodetic_to_ecef(lat: float, lon: float, alt: float) -> Array:
    """Convert geodetic coordinates to ECEF Cartesian coordinates.

    Args:
        lat: Geodetic latitude [rad].
        lon: Longitude [rad].
        alt: Altitude above the WGS84 ellipsoid [m].

    Returns:
        jax.Array: ECEF position ``[x, y, z]`` [m].
    """
    sin_lat = jnp.sin(lat)
    cos_lat = jnp.cos(lat)

    N = WGS84_a / jnp.sqrt(1.0 - ECC2 * sin_lat * sin_lat)

    return jnp.array([
        (N + alt) * cos_lat * jnp.cos(lon),
        (N + alt) * cos_lat * jnp.sin(lon),
        ((1.0 - ECC2) * N + alt) * sin_lat,
    ], dtype=get_dtype())


@dataclass(frozen=True)
class GroundStation:
    """Range and range-rate tracking station.

    Args:
        name: Station name, matched against ``Measurement.device``.
        latitude: Geodetic latitude [deg].
        longitude: Longitude [deg].
        altitude: Altitude above the WGS84 ellipsoid [m].
        elevation_mask: Minimum elevation for visibility [deg].
        range_noise: Range noise standard deviation [m].
        range_rate_noise: Range-rate noise standard deviation [m/s].
        theta0: Earth rotation angle at the reference epoch [rad].

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.orbit_measurements import GroundStation, MeasurementInput
        gs = GroundStation("equator", latitude=0.0, longitude=0.0)
        x = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0])
        msr = gs.measure(MeasurementInput(epoch=0.0, state=x))
        msr.observation  # [~500 km range, range-rate]
        ```
    """

    name: str
    latitude: float
    longitude: float
    altitude: float = 0.0
    elevation_mask: float = 0.0
    range_noise: float = 1.0
    range_rate_noise: float = 1e-3
    theta0: float = 0.0

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude must be within [-90, 90] deg, got {self.latitude}")
        if not -90.0 <= self.elevation_mask <= 90.0:
            raise ValueError(
                f"elevation_mask must be within [-90, 90] deg, got {self.elevation_mask}"
            )
        if self.range_noise <= 0.0 or self.range_rate_noise <= 0.0:
            raise ValueError("range_noise and range_rate_noise must be positive")

    def position_ecef(self) -> Array:
        """Station position in the Earth-fixed frame [m]."""
        return position_geodetic_to_ecef(
            self.latitude * DEG2RAD, self.longitude * DEG2RAD, self.altitude
        )

    def state_inertial(self, epoch: ArrayLike) -> Array:
        """Station position and velocity in the inertial frame at ``epoch``.

        Args:
            epoch: Seconds past the reference epoch.

        Returns:
            jax.Array: ``[x, y, z, vx, vy, vz]`` [m, m/s].
        """
        theta = self.theta0 + OMEGA_EARTH * epoch
        c = jnp.cos(theta)
        s = jnp.sin(theta)
        rot = jnp.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]], dtype=get_dtype())

        r = rot @ self.position_ecef()
        omega = jnp.array([0.0, 0.0, OMEGA_EARTH], dtype=get_dtype())
        v = jnp.cross(omega, r)
        return jnp.concatenate([r, v])

    def observation(self, epoch: ArrayLike, state: ArrayLike) -> Array:
        """Noiseless ``[range, range_rate]`` of a spacecraft state."""
        state = jnp.asarray(state, dtype=get_dtype())
        station = self.state_inertial(epoch)

        rho_vec = state[:3] - station[:3]
        rho_dot_vec = state[3:6] - station[3:6]
        rho = jnp.linalg.norm(rho_vec)

        return jnp.array([rho, jnp.dot(rho_vec, rho_dot_vec) / rho])

    def elevation(self, epoch: ArrayLike, state: ArrayLike) -> Array:
        """Elevation of the spacecraft above the local horizon [rad]."""
        state = jnp.asarray(state, dtype=get_dtype())
        station = self.state_inertial(epoch)

        lat = self.latitude * DEG2RAD
        lon = self.longitude * DEG2RAD + self.theta0 + OMEGA_EARTH * epoch
        zenith = jnp.array([
            jnp.cos(lat) * jnp.cos(lon),
            jnp.cos(lat) * jnp.sin(lon),
            jnp.sin(lat),
        ])

        rho_vec = state[:3] - station[:3]
        return jnp.arcsin(jnp.dot(rho_vec, zenith) / jnp.linalg.norm(rho_vec))

    def measure(self, meas_input: MeasurementInput) -> Measurement:
        epoch = float(meas_input.epoch)
        state = jnp.asarray(meas_input.state, dtype=get_dtype())

        visible = bool(self.elevation(epoch, state) >= self.elevation_mask * DEG2RAD)
        sensitivity = jax.jacfwd(lambda x: self.observation(epoch, x))(state)

        return Measurement(
            epoch=epoch,
            observation=self.observation(epoch, state),
            visible=visible,
            sensitivity=sensitivity,
            device=self.name,
        )

    def noise_covariance(self) -> Array:
        return jnp.diag(
            jnp.array([self.range_noise**2, self.range_rate_noise**2], dtype=get_dtype())
        )

    def simulate(self, meas_input: MeasurementInput, key: Array) -> Measurement:
        """Simulate a noisy measurement of a true state.

        Args:
            meas_input: True spacecraft state and epoch.
            key: ``jax.random`` PRNG key.

        Returns:
            Measurement: Observation with Gaussian noise drawn from
            :meth:`noise_covariance` added.
        """
        msr = self.measure(meas_input)
        sigmas = jnp.array([self.range_noise, self.range_rate_noise], dtype=get_dtype())
        noise = sigmas * jax.random.normal(key, (2,), dtype=get_dtype())
        return msr._replace(observation=msr.observation + noise)
