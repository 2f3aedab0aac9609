"""Orbit determination process: propagate, measure, filter, repeat.

:class:`ODProcess` drives one estimation run.  For every real measurement,
in chronological order, it propagates the reference trajectory and its STM
to the measurement epoch, asks each device for the computed observation
and sensitivity, runs the Kalman filter measurement update, and consults
the EKF trigger.  The estimates and residuals are kept in two parallel
logs, which :meth:`ODProcess.smooth` can later refine with a backward
pass.

The filter always receives the STM from the epoch of its latest accepted
update.  Epochs where no device is visible, or where no device matches a
named measurement, still propagate the trajectory, and their STMs are
composed into the one handed to the next accepted update.  A second device
updating at the same epoch therefore receives the identity.

Any filter or integration error aborts the pass.  The logs keep every
entry committed before the failing measurement.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Optional

import jax.numpy as jnp

from odjax.config import get_dtype
from odjax.errors import StateTransitionMatrixSingular
from odjax.estimation._types import Estimate, Residual
from odjax.estimation.kalman import KF
from odjax.estimation.triggers import CkfTrigger, EkfTrigger
from odjax.orbit_measurements._types import Measurement, MeasurementDevice
from odjax.propagators import Propagator
from odjax.utils import try_inverse

logger = logging.getLogger(__name__)


class ODProcess:
    """Sequential orbit determination over a stream of measurements.

    Args:
        propagator: Propagator of the reference trajectory and its STM.
        kf: Kalman filter, initialized at the propagator's epoch.
        devices: Measurement devices, queried in order.
        trigger: Policy for switching to EKF mode. Defaults to
            :class:`CkfTrigger`.
        simultaneous_msr: Process every visible device at an epoch instead
            of only the first one.

    Attributes:
        estimates: Estimates in chronological order, one per accepted
            measurement update.
        residuals: Residuals parallel to :attr:`estimates`.

    Examples:
        ```python
        from odjax.estimation import ODProcess, NumMsrEkfTrigger
        odp = ODProcess(prop, kf, [station], trigger=NumMsrEkfTrigger(20))
        odp.process_measurements(measurements)
        odp.smooth()
        ```
    """

    def __init__(
        self,
        propagator: Propagator,
        kf: KF,
        devices: Iterable[MeasurementDevice],
        trigger: Optional[EkfTrigger] = None,
        simultaneous_msr: bool = False,
    ):
        self.prop = propagator
        self.kf = kf
        self.devices = list(devices)
        self.ekf_trigger = trigger if trigger is not None else CkfTrigger()
        self.simultaneous_msr = simultaneous_msr
        self.estimates: list[Estimate] = []
        self.residuals: list[Residual] = []
        # STM from the epoch of the latest accepted update to the trajectory time
        self._pending_stm = jnp.eye(propagator.dynamics.dimension, dtype=get_dtype())

    @classmethod
    def ckf(
        cls,
        propagator: Propagator,
        kf: KF,
        devices: Iterable[MeasurementDevice],
        simultaneous_msr: bool = False,
    ) -> "ODProcess":
        """OD process whose filter never leaves classical mode."""
        return cls(propagator, kf, devices, CkfTrigger(), simultaneous_msr)

    @classmethod
    def ekf(
        cls,
        propagator: Propagator,
        kf: KF,
        devices: Iterable[MeasurementDevice],
        trigger: EkfTrigger,
        simultaneous_msr: bool = False,
    ) -> "ODProcess":
        """OD process switching to EKF mode when ``trigger`` fires."""
        return cls(propagator, kf, devices, trigger, simultaneous_msr)

    def __repr__(self) -> str:
        return (
            f"ODProcess(devices={len(self.devices)}, trigger={self.ekf_trigger!r}, "
            f"estimates={len(self.estimates)})"
        )

    def process_measurements(self, measurements: Sequence[tuple[float, Measurement]]) -> None:
        """Filter a chronologically ordered list of measurements.

        Args:
            measurements: ``(epoch, measurement)`` pairs, epochs in seconds
                past the reference epoch.

        Raises:
            ValueError: If an epoch precedes the current trajectory time.
            FilterError: From the filter update. The logs keep the entries
                committed before the failing measurement.
            IntegrationError: From the propagation to a measurement epoch.
        """
        logger.info("Processing %d measurements", len(measurements))

        dynamics = self.prop.dynamics
        n = dynamics.dimension

        for epoch, real_meas in measurements:
            epoch = float(epoch)
            delta_time = epoch - dynamics.time
            if delta_time < 0.0:
                raise ValueError(
                    f"measurements must be in chronological order: epoch {epoch} "
                    f"precedes the trajectory time {dynamics.time}"
                )

            self.prop.until_time_elapsed(delta_time)
            self._pending_stm = dynamics.stm @ self._pending_stm
            meas_input = dynamics.to_measurement()

            for device in self.devices:
                if real_meas.device is not None and real_meas.device != device.name:
                    continue

                computed_meas = device.measure(meas_input)
                if not computed_meas.visible:
                    continue

                self.kf.update_stm(self._pending_stm)
                self.kf.update_h_tilde(computed_meas.sensitivity)
                est, res = self.kf.measurement_update(
                    epoch,
                    real_meas.observation,
                    computed_meas.observation,
                    nominal_state=dynamics.state,
                )

                if not self.kf.ekf and self.ekf_trigger.enable_ekf(est):
                    self.kf.ekf = True
                    logger.info("EKF now enabled at epoch %.3f s", epoch)

                if self.kf.ekf:
                    dynamics.set_estimated_state(dynamics.estimated_state + est.state)
                    meas_input = dynamics.to_measurement()

                self.estimates.append(est)
                self.residuals.append(res)
                self._pending_stm = jnp.eye(n, dtype=get_dtype())

                if not self.simultaneous_msr:
                    break

    def smooth(self) -> None:
        """Fixed-interval backward smoothing of the estimate log.

        Each estimate is mapped back through the inverse of its STM:
        ``covar = Phi^-1 P Phi^-T`` and ``state = Phi^-1 x``. The log is
        replaced in one assignment once every estimate is smoothed, so a
        failure leaves it unchanged.

        Estimates obtained with process noise are not supported: the
        mapping ignores ``Q`` and the result is then undefined.

        Raises:
            StateTransitionMatrixSingular: If any estimate's STM is
                singular.
        """
        logger.info("Smoothing %d estimates", len(self.estimates))
        smoothed = []

        for estimate in reversed(self.estimates):
            stm_inv = try_inverse(estimate.stm)
            if stm_inv is None:
                raise StateTransitionMatrixSingular(epoch=estimate.epoch)
            smoothed.append(
                estimate._replace(
                    covar=stm_inv @ estimate.covar @ stm_inv.T,
                    state=stm_inv @ estimate.state,
                )
            )

        smoothed.reverse()
        self.estimates = smoothed
