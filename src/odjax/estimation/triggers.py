"""Policies deciding when a classical Kalman filter switches to extended mode.

A classical filter keeps linearizing about the initial reference
trajectory, which becomes inaccurate as the deviation grows.  Once the
estimate has converged it is safe to fold the corrections into the
reference and relinearize at every update (EKF).  An :class:`EkfTrigger`
is asked after every accepted measurement, while the filter is still
classical, whether to make that switch.

New criteria are added by subclassing :class:`EkfTrigger`; neither the
filter nor the OD process needs to change.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import jax.numpy as jnp

from odjax.estimation._types import Estimate


class EkfTrigger(ABC):
    """Decides when the filter should switch to EKF mode."""

    @abstractmethod
    def enable_ekf(self, estimate: Estimate) -> bool:
        """Return ``True`` if EKF mode should be enabled after ``estimate``."""


class CkfTrigger(EkfTrigger):
    """Never switches: the filter stays classical."""

    def enable_ekf(self, estimate: Estimate) -> bool:
        return False


class NumMsrEkfTrigger(EkfTrigger):
    """Switch after a fixed number of accepted measurements.

    Args:
        num_msrs: Number of measurements after which to switch. The
            trigger returns ``False`` for the first ``num_msrs - 1`` calls
            and ``True`` from call ``num_msrs`` onward.

    Examples:
        ```python
        from odjax.estimation import NumMsrEkfTrigger
        trigger = NumMsrEkfTrigger(3)
        [trigger.enable_ekf(None) for _ in range(4)]  # [False, False, True, True]
        ```
    """

    def __init__(self, num_msrs: int):
        if num_msrs < 1:
            raise ValueError(f"num_msrs must be at least 1, got {num_msrs}")
        self.num_msrs = num_msrs
        self._cur_msrs = 0

    def __repr__(self) -> str:
        return f"NumMsrEkfTrigger(num_msrs={self.num_msrs}, processed={self._cur_msrs})"

    def enable_ekf(self, estimate: Estimate) -> bool:
        self._cur_msrs += 1
        return self._cur_msrs >= self.num_msrs


class CovarianceTraceEkfTrigger(EkfTrigger):
    """Switch once the position uncertainty has converged.

    Args:
        threshold: Trace of the position block of the covariance [m^2]
            below which EKF mode is enabled.
        position_dim: Number of leading state components that are
            positions.
    """

    def __init__(self, threshold: float, position_dim: int = 3):
        if threshold <= 0.0:
            raise ValueError(f"threshold must be positive, got {threshold}")
        self.threshold = threshold
        self.position_dim = position_dim

    def __repr__(self) -> str:
        return f"CovarianceTraceEkfTrigger(threshold={self.threshold!r})"

    def enable_ekf(self, estimate: Estimate) -> bool:
        k = self.position_dim
        return float(jnp.trace(estimate.covar[:k, :k])) < self.threshold
