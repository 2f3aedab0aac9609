"""Classical and extended Kalman filter for sequential orbit determination.

The filter estimates a deviation from a reference trajectory that is
propagated outside of it.  Every cycle the caller must supply the state
transition matrix (STM) over the latest propagation with
:meth:`KF.update_stm` and, before a measurement update, the measurement
sensitivity with :meth:`KF.update_h_tilde`.  Both are consumed by the
update and must be supplied again for the next one, so a stale
linearization can never be reused silently.

Two modes share the same covariance equations:

- **CKF** (classical): the reference trajectory is never corrected, and
  the state deviation is propagated with the STM.
- **EKF** (extended): the OD process folds each correction into the
  reference trajectory, so the a priori deviation is zero at every update.

The covariance update uses the Joseph form, which keeps the covariance
symmetric positive semi-definite for any gain.
"""

from __future__ import annotations

import logging
from typing import Optional

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odjax.config import get_dtype
from odjax.errors import GainSingular, SensitivityNotUpdated, StateTransitionMatrixNotUpdated
from odjax.estimation._types import Estimate, Residual
from odjax.utils import try_inverse

logger = logging.getLogger(__name__)


def _symmetrize(P: Array) -> Array:
    return 0.5 * (P + P.T)


class KF:
    """Kalman filter over a reference trajectory.

    Args:
        initial_estimate: A priori estimate (deviation, covariance, epoch).
        measurement_noise: Measurement noise covariance ``R`` of shape
            ``(m, m)``.
        process_noise: Optional process noise ``Q`` of shape ``(n, n)``
            added at every covariance propagation.
        ekf: Start in EKF mode.

    Attributes:
        prev_estimate: Latest estimate produced by the filter.
        ekf: Whether the filter runs in extended mode.

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.estimation import KF, Estimate
        kf = KF(Estimate.initial(jnp.eye(6)), measurement_noise=jnp.eye(3))
        kf.update_stm(jnp.eye(6))
        kf.update_h_tilde(jnp.eye(3, 6))
        est, res = kf.measurement_update(
            60.0, jnp.array([1.0, 0.0, 0.0]), jnp.zeros(3)
        )
        ```
    """

    def __init__(
        self,
        initial_estimate: Estimate,
        measurement_noise: ArrayLike,
        process_noise: Optional[ArrayLike] = None,
        ekf: bool = False,
    ):
        dtype = get_dtype()
        self.prev_estimate = initial_estimate
        self.measurement_noise = jnp.asarray(measurement_noise, dtype=dtype)
        self.process_noise = (
            None if process_noise is None else jnp.asarray(process_noise, dtype=dtype)
        )
        self.ekf = ekf

        n = jnp.shape(initial_estimate.state)[0]
        if self.process_noise is not None and self.process_noise.shape != (n, n):
            raise ValueError(
                f"process_noise must have shape {(n, n)}, got {self.process_noise.shape}"
            )

        self.stm: Optional[Array] = None
        self.h_tilde: Optional[Array] = None
        self.stm_updated = False
        self.h_tilde_updated = False

    @classmethod
    def ckf(
        cls,
        initial_estimate: Estimate,
        measurement_noise: ArrayLike,
        process_noise: Optional[ArrayLike] = None,
    ) -> "KF":
        """Filter starting in classical mode."""
        return cls(initial_estimate, measurement_noise, process_noise, ekf=False)

    @classmethod
    def extended(
        cls,
        initial_estimate: Estimate,
        measurement_noise: ArrayLike,
        process_noise: Optional[ArrayLike] = None,
    ) -> "KF":
        """Filter starting in extended mode."""
        return cls(initial_estimate, measurement_noise, process_noise, ekf=True)

    def __repr__(self) -> str:
        mode = "EKF" if self.ekf else "CKF"
        return f"KF(mode={mode}, epoch={self.prev_estimate.epoch!r})"

    @property
    def dimension(self) -> int:
        """State dimension ``n``."""
        return jnp.shape(self.prev_estimate.state)[0]

    def update_stm(self, stm: ArrayLike) -> None:
        """Supply the STM from the previous estimate's epoch to the next one."""
        stm = jnp.asarray(stm, dtype=get_dtype())
        n = self.dimension
        if stm.shape != (n, n):
            raise ValueError(f"stm must have shape {(n, n)}, got {stm.shape}")
        self.stm = stm
        self.stm_updated = True

    def update_h_tilde(self, h_tilde: ArrayLike) -> None:
        """Supply the measurement sensitivity matrix of shape ``(m, n)``."""
        h_tilde = jnp.asarray(h_tilde, dtype=get_dtype())
        if h_tilde.ndim != 2 or h_tilde.shape[1] != self.dimension:
            raise ValueError(
                f"h_tilde must have shape (m, {self.dimension}), got {h_tilde.shape}"
            )
        self.h_tilde = h_tilde
        self.h_tilde_updated = True

    def _predict(self) -> tuple[Array, Array]:
        stm = self.stm
        state_bar = (
            jnp.zeros(self.dimension, dtype=get_dtype())
            if self.ekf
            else stm @ self.prev_estimate.state
        )
        covar_bar = stm @ self.prev_estimate.covar @ stm.T
        if self.process_noise is not None:
            covar_bar = covar_bar + self.process_noise
        return state_bar, covar_bar

    def time_update(
        self,
        nominal_state: ArrayLike,
        epoch: Optional[float] = None,
    ) -> Estimate:
        """Propagate the estimate with the supplied STM.

        Args:
            nominal_state: Reference trajectory state at the new epoch.
            epoch: Seconds past the reference epoch. Defaults to the epoch
                of the previous estimate.

        Returns:
            Estimate: Predicted estimate (``predicted=True``), also stored
            as :attr:`prev_estimate`.

        Raises:
            StateTransitionMatrixNotUpdated: If no STM was supplied since
                the previous update.
        """
        if epoch is None:
            epoch = self.prev_estimate.epoch
        if not self.stm_updated:
            raise StateTransitionMatrixNotUpdated(epoch=epoch)

        state_bar, covar_bar = self._predict()
        estimate = Estimate(
            epoch=float(epoch),
            state=state_bar,
            covar=_symmetrize(covar_bar),
            stm=self.stm,
            predicted=True,
            nominal_state=jnp.asarray(nominal_state, dtype=get_dtype()),
        )

        self.stm_updated = False
        self.prev_estimate = estimate
        return estimate

    def measurement_update(
        self,
        epoch: float,
        real_obs: ArrayLike,
        computed_obs: ArrayLike,
        nominal_state: Optional[ArrayLike] = None,
    ) -> tuple[Estimate, Residual]:
        """Incorporate one observation.

        Args:
            epoch: Seconds past the reference epoch of the observation.
            real_obs: Observed values of shape ``(m,)``.
            computed_obs: Values computed from the reference trajectory,
                shape ``(m,)``.
            nominal_state: Reference trajectory state at ``epoch``, stored
                in the returned estimate.

        Returns:
            tuple: ``(estimate, residual)``. The estimate has
            ``predicted=False`` and becomes :attr:`prev_estimate`.

        Raises:
            StateTransitionMatrixNotUpdated: If no STM was supplied since
                the previous update.
            SensitivityNotUpdated: If no sensitivity matrix was supplied
                since the previous update.
            GainSingular: If the innovation covariance is singular.
        """
        if not self.stm_updated:
            raise StateTransitionMatrixNotUpdated(epoch=epoch)
        if not self.h_tilde_updated:
            raise SensitivityNotUpdated(epoch=epoch)

        dtype = get_dtype()
        real_obs = jnp.asarray(real_obs, dtype=dtype)
        computed_obs = jnp.asarray(computed_obs, dtype=dtype)
        H = self.h_tilde
        R = self.measurement_noise
        if H.shape[0] != real_obs.shape[0] or R.shape != (H.shape[0], H.shape[0]):
            raise ValueError(
                f"inconsistent measurement shapes: h_tilde {H.shape}, "
                f"observation {real_obs.shape}, measurement_noise {R.shape}"
            )

        prefit = real_obs - computed_obs
        state_bar, covar_bar = self._predict()

        S = H @ covar_bar @ H.T + R
        S_inv = try_inverse(S)
        if S_inv is None:
            raise GainSingular(epoch=epoch)

        K = covar_bar @ H.T @ S_inv

        if self.ekf:
            state_hat = K @ prefit
        else:
            state_hat = state_bar + K @ (prefit - H @ state_bar)

        postfit = prefit - H @ state_hat

        # Joseph form
        IKH = jnp.eye(self.dimension, dtype=dtype) - K @ H
        covar = IKH @ covar_bar @ IKH.T + K @ R @ K.T

        estimate = Estimate(
            epoch=float(epoch),
            state=state_hat,
            covar=_symmetrize(covar),
            stm=self.stm,
            predicted=False,
            nominal_state=(
                None if nominal_state is None else jnp.asarray(nominal_state, dtype=dtype)
            ),
        )
        residual = Residual(epoch=float(epoch), prefit=prefit, postfit=postfit)

        self.stm_updated = False
        self.h_tilde_updated = False
        self.prev_estimate = estimate

        return estimate, residual
