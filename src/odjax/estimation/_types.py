"""Type definitions for sequential orbit determination.

- :class:`Estimate`: Filter output at one epoch: state deviation,
  covariance, the STM used to reach the epoch, and whether the estimate is
  a prediction (time update) or a measurement update.
- :class:`Residual`: Prefit and postfit observation residuals of one
  accepted measurement update.

Both types are :class:`~typing.NamedTuple` instances, which JAX treats as
pytrees automatically.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

import jax.numpy as jnp
from jax import Array

from odjax.config import get_dtype


class Estimate(NamedTuple):
    """Filter estimate at one epoch.

    Attributes:
        epoch: Seconds past the reference epoch.
        state: State deviation from the reference trajectory, shape
            ``(n,)``. In EKF mode this deviation has already been folded
            into the reference by the OD process.
        covar: Error covariance of shape ``(n, n)``.
        stm: State transition matrix from the previous estimate's epoch to
            ``epoch``, shape ``(n, n)``.
        predicted: ``True`` for a time update (no measurement
            incorporated), ``False`` after a measurement update.
        nominal_state: Reference trajectory state at ``epoch``, when known.
    """

    epoch: float
    state: Array
    covar: Array
    stm: Array
    predicted: bool = True
    nominal_state: Optional[Array] = None

    @classmethod
    def zeros(cls, n: int, epoch: float = 0.0) -> "Estimate":
        """Estimate with zero state, covariance and STM, flagged predicted.

        Args:
            n: State dimension.
            epoch: Seconds past the reference epoch.

        Returns:
            Estimate: The zero estimate.
        """
        dtype = get_dtype()
        return cls(
            epoch=epoch,
            state=jnp.zeros(n, dtype=dtype),
            covar=jnp.zeros((n, n), dtype=dtype),
            stm=jnp.zeros((n, n), dtype=dtype),
            predicted=True,
        )

    @classmethod
    def initial(cls, covar: Array, epoch: float = 0.0, state: Optional[Array] = None) -> "Estimate":
        """A priori estimate: given covariance, zero deviation, identity STM.

        Args:
            covar: A priori covariance of shape ``(n, n)``.
            epoch: Seconds past the reference epoch.
            state: A priori state deviation. Defaults to zeros.

        Returns:
            Estimate: The a priori estimate.
        """
        dtype = get_dtype()
        covar = jnp.asarray(covar, dtype=dtype)
        n = covar.shape[0]
        if state is None:
            state = jnp.zeros(n, dtype=dtype)
        return cls(
            epoch=epoch,
            state=jnp.asarray(state, dtype=dtype),
            covar=covar,
            stm=jnp.eye(n, dtype=dtype),
            predicted=True,
        )


class Residual(NamedTuple):
    """Observation residuals of a measurement update.

    Attributes:
        epoch: Seconds past the reference epoch.
        prefit: Observed minus computed before the update, shape ``(m,)``.
        postfit: Observed minus computed after the update, shape ``(m,)``.
    """

    epoch: float
    prefit: Array
    postfit: Array
