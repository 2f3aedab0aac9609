"""Exception types raised by the orbit determination engine.

Two families are defined:

- :class:`FilterError` -- raised by the Kalman filter and the smoother.
  Sequencing errors (:class:`StateTransitionMatrixNotUpdated`,
  :class:`SensitivityNotUpdated`) mean the caller skipped a required step.
  Numerical errors (:class:`GainSingular`,
  :class:`StateTransitionMatrixSingular`) mean the input data is
  degenerate.
- :class:`IntegrationError` -- raised by the integrators when a
  propagation cannot be completed (:class:`StepSizeTooSmall`,
  :class:`NumericalInstability`).

None of these are retried internally.  A failing ``process_measurements``
or ``smooth`` pass aborts, leaving the entries already committed to the
estimate and residual logs intact.
"""

from __future__ import annotations


class ODError(Exception):
    """Base class for all odjax errors."""


class FilterError(ODError):
    """Base class for errors raised during filtering or smoothing.

    Attributes:
        epoch: Epoch (seconds past the reference epoch) of the failing
            operation, or ``None`` when not applicable.
    """

    default_message = "filter error"

    def __init__(self, message: str | None = None, epoch: float | None = None):
        self.epoch = epoch
        if message is None:
            message = self.default_message
        if epoch is not None:
            message = f"{message} (epoch {epoch:.6f} s)"
        super().__init__(message)


class StateTransitionMatrixNotUpdated(FilterError):
    """The STM was not supplied since the previous filter update."""

    default_message = "state transition matrix not updated since the last filter update"


class SensitivityNotUpdated(FilterError):
    """The measurement sensitivity matrix was not supplied since the previous update."""

    default_message = "sensitivity matrix (H tilde) not updated since the last filter update"


class GainSingular(FilterError):
    """The innovation covariance could not be inverted to compute the gain."""

    default_message = "innovation covariance is singular, cannot compute the Kalman gain"


class StateTransitionMatrixSingular(FilterError):
    """A state transition matrix required to be invertible is singular."""

    default_message = "state transition matrix is singular"


class IntegrationError(ODError):
    """Base class for errors raised while integrating equations of motion.

    Attributes:
        t: Time at the start of the failing step.
        dt: Step size of the last attempt.
    """

    def __init__(self, message: str, t: float, dt: float):
        self.t = t
        self.dt = dt
        super().__init__(f"{message} (t = {t:.6f} s, dt = {dt:.6g} s)")


class StepSizeTooSmall(IntegrationError):
    """The adaptive step could not meet the tolerance within the retry budget."""


class NumericalInstability(IntegrationError):
    """The equations of motion produced a non-finite derivative."""
