"""Variational dynamics: a force model augmented with its state transition matrix.

The augmented state packs the physical state ``x`` of dimension ``n`` and
the row-major flattened state transition matrix (STM) ``Phi``:

.. math::

    y = \\begin{bmatrix} x \\\\ \\mathrm{vec}(\\Phi) \\end{bmatrix}, \\quad
    \\dot{x} = f(t, x), \\quad
    \\dot{\\Phi} = A(t, x) \\, \\Phi, \\quad
    A = \\frac{\\partial f}{\\partial x}

so any integrator in :mod:`odjax.integrators` evolves the STM alongside the
state without knowing what the vector contains.

The STM carried in the augmented vector is cumulative, from the reference
epoch to ``t``.  The filter consumes the STM of the latest propagation
only, so :meth:`VariationalDynamics.set_state` converts the cumulative STM
into the increment since the previous call:

.. math::

    \\Phi(t_k, t_{k-1}) = \\Phi(t_k, t_0) \\, \\Phi(t_{k-1}, t_0)^{-1}
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odjax.config import get_dtype
from odjax.dynamics.two_body import ForceModel
from odjax.errors import StateTransitionMatrixSingular
from odjax.orbit_measurements._types import MeasurementInput
from odjax.utils import try_inverse

logger = logging.getLogger(__name__)


class VariationalDynamics:
    """Equations of motion of a state augmented with its STM.

    The instance also holds the current reference trajectory state, the
    cumulative STM and the per-step STM of the latest propagation, which
    the OD process reads after each propagation.

    Args:
        force_model: Equations of motion and Jacobian of the physical state.
        state: Initial state of shape ``(n,)``.
        t: Initial time, seconds past the reference epoch.
        observer: Optional callable ``observer(t, state)`` invoked after
            every :meth:`set_state`. Exceptions it raises are logged as
            warnings and never interrupt the propagation.

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.dynamics import TwoBody, VariationalDynamics
        x0 = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.6, 0.0])
        dyn = VariationalDynamics(TwoBody(), x0)
        dyn.augmented_state().shape  # (42,)
        ```
    """

    def __init__(
        self,
        force_model: ForceModel,
        state: ArrayLike,
        t: float = 0.0,
        observer: Optional[Callable[[float, Array], None]] = None,
    ):
        dtype = get_dtype()
        self.force_model = force_model
        self.observer = observer

        self._state = jnp.asarray(state, dtype=dtype)
        if self._state.ndim != 1:
            raise ValueError(f"state must be a vector, got shape {self._state.shape}")

        self._time = float(t)
        self._cumulative_stm = jnp.eye(self.dimension, dtype=dtype)
        self._stm = jnp.eye(self.dimension, dtype=dtype)

        self._eom = jax.jit(self._augmented_eom)

    def __repr__(self) -> str:
        return (
            f"VariationalDynamics(force_model={self.force_model!r}, "
            f"t={self._time!r}, dimension={self.dimension})"
        )

    @property
    def dimension(self) -> int:
        """Dimension ``n`` of the physical state."""
        return self._state.shape[0]

    @property
    def time(self) -> float:
        """Time of the stored state, seconds past the reference epoch."""
        return self._time

    @property
    def state(self) -> Array:
        """Reference trajectory state at :attr:`time`."""
        return self._state

    @property
    def stm(self) -> Array:
        """STM over the latest propagation, ``Phi(t_k, t_{k-1})``."""
        return self._stm

    @property
    def cumulative_stm(self) -> Array:
        """STM from the reference epoch, ``Phi(t_k, t_0)``."""
        return self._cumulative_stm

    @property
    def estimated_state(self) -> Array:
        """Alias of :attr:`state`, the trajectory the filter linearizes about."""
        return self._state

    def set_estimated_state(self, state: ArrayLike) -> None:
        """Overwrite the reference state, e.g. with an EKF-corrected estimate.

        The STMs are left untouched: the variational equation is linear, so
        the next increment stays exact about the corrected trajectory.
        """
        state = jnp.asarray(state, dtype=get_dtype())
        if state.shape != self._state.shape:
            raise ValueError(
                f"state must have shape {self._state.shape}, got {state.shape}"
            )
        self._state = state

    def gradient(self, t: ArrayLike, state: ArrayLike) -> Array:
        """Jacobian ``A = df/dx`` of the physical equations of motion."""
        return self.force_model.jacobian(t, state)

    def _augmented_eom(self, t: ArrayLike, augmented: ArrayLike) -> Array:
        n = self.dimension
        x = augmented[:n]
        phi = augmented[n:].reshape((n, n))

        x_dot = self.force_model.eom(t, x)
        phi_dot = self.gradient(t, x) @ phi

        return jnp.concatenate([x_dot, phi_dot.reshape(-1)])

    def eom(self, t: ArrayLike, augmented: ArrayLike) -> Array:
        """Derivative of the augmented state.

        Args:
            t: Seconds past the reference epoch.
            augmented: Augmented state of shape ``(n + n*n,)``.

        Returns:
            jax.Array: ``[f(t, x), vec(A(t, x) @ Phi)]`` of shape
            ``(n + n*n,)``.
        """
        return self._eom(t, augmented)

    def augmented_state(self) -> Array:
        """Current state and cumulative STM packed into one vector."""
        return jnp.concatenate([self._state, self._cumulative_stm.reshape(-1)])

    def set_state(self, t: float, augmented: ArrayLike) -> None:
        """Store the result of a propagation.

        Unpacks the state and cumulative STM, and computes the per-step STM
        by removing the previously stored cumulative STM.

        Args:
            t: Seconds past the reference epoch.
            augmented: Augmented state of shape ``(n + n*n,)``.

        Raises:
            StateTransitionMatrixSingular: If the previously stored
                cumulative STM cannot be inverted. This means the internal
                state is corrupted; retrying does not help.
        """
        n = self.dimension
        augmented = jnp.asarray(augmented, dtype=get_dtype())
        if augmented.shape != (n + n * n,):
            raise ValueError(
                f"augmented state must have shape {(n + n * n,)}, got {augmented.shape}"
            )

        prev_inv = try_inverse(self._cumulative_stm)
        if prev_inv is None:
            raise StateTransitionMatrixSingular(
                "previous cumulative state transition matrix is singular", epoch=t
            )

        cumulative = augmented[n:].reshape((n, n))
        self._stm = cumulative @ prev_inv
        self._cumulative_stm = cumulative
        self._state = augmented[:n]
        self._time = float(t)

        self._notify()

    def to_measurement(self) -> MeasurementInput:
        """Device-facing view of the current reference state."""
        return MeasurementInput(epoch=self._time, state=self._state)

    def _notify(self) -> None:
        if self.observer is None:
            return
        try:
            self.observer(self._time, self._state)
        except Exception as exc:  # observer failures never stop the estimation
            logger.warning("Could not publish state at t = %.3f s: %s", self._time, exc)
