"""Orbit measurement models for state estimation.

Provides the measurement data types, the device protocol consumed by
:class:`~odjax.estimation.ODProcess`, and reference devices.

- :class:`MeasurementInput`, :class:`Measurement`, :class:`MeasurementDevice`
- :class:`GroundStation` -- range and range-rate from a rotating-Earth station
- :class:`GnssReceiver` -- onboard position-only GNSS
- :func:`gnss_position_measurement`, :func:`gnss_measurement_noise`
"""

from odjax.orbit_measurements._types import (
    Measurement,
    MeasurementDevice,
    MeasurementInput,
)
from odjax.orbit_measurements.gnss import (
    GnssReceiver,
    gnss_measurement_noise,
    gnss_position_measurement,
)
from odjax.orbit_measurements.ground_station import (
    GroundStation,
    position_geodetic_to_ecef,
)

__all__ = [
    "Measurement",
    "MeasurementDevice",
    "MeasurementInput",
    "GnssReceiver",
    "gnss_measurement_noise",
    "gnss_position_measurement",
    "GroundStation",
    "position_geodetic_to_ecef",
]
