"""Propagator binding an integrator configuration to variational dynamics.

The propagator owns the step-size state between calls, so consecutive
propagations to measurement epochs resume with the last suggested step
instead of restarting from ``AdaptiveConfig.initial_step``.
"""

from __future__ import annotations

import logging
from typing import Optional

from jax import Array
from jax.typing import ArrayLike

from odjax.dynamics.variational import VariationalDynamics
from odjax.integrators import AdaptiveConfig, dp54_integrate

logger = logging.getLogger(__name__)


class Propagator:
    """Propagate variational dynamics with the Dormand-Prince integrator.

    Args:
        dynamics: Dynamics to propagate. Updated in place by
            :meth:`until_time_elapsed`.
        config: Integrator configuration. Defaults to
            :class:`~odjax.integrators.AdaptiveConfig`.

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.dynamics import TwoBody, VariationalDynamics
        from odjax.propagators import Propagator
        x0 = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.6, 0.0])
        prop = Propagator(VariationalDynamics(TwoBody(), x0))
        prop.until_time_elapsed(60.0)
        prop.dynamics.stm  # STM over the last 60 s
        ```
    """

    def __init__(
        self,
        dynamics: VariationalDynamics,
        config: Optional[AdaptiveConfig] = None,
    ):
        if config is None:
            config = AdaptiveConfig()
        self.dynamics = dynamics
        self.config = config
        self._dt_next = config.initial_step

    def __repr__(self) -> str:
        return f"Propagator(dynamics={self.dynamics!r}, config={self.config!r})"

    def until_time_elapsed(self, dt: float) -> Array:
        """Propagate the dynamics and its STM over a signed duration.

        Calls :meth:`VariationalDynamics.set_state` once at the end, so the
        dynamics' per-step STM covers exactly this propagation. A zero
        duration leaves the state unchanged and makes the per-step STM the
        identity.

        Args:
            dt: Signed duration [s].

        Returns:
            jax.Array: Reference state at the new time.

        Raises:
            StepSizeTooSmall: If the integrator cannot meet the tolerance.
            NumericalInstability: If the equations of motion diverge.
        """
        result = dp54_integrate(
            self.dynamics.eom,
            self.dynamics.time,
            self.dynamics.augmented_state(),
            dt,
            self.config,
            dt0=self._dt_next,
        )
        if not self.config.fixed_step:
            self._dt_next = abs(result.dt_next)

        logger.debug(
            "Propagated %.3f s to t = %.3f s in %d steps", dt, result.t, result.n_steps
        )
        self.dynamics.set_state(result.t, result.state)
        return self.dynamics.state

    def propagate(self, state: ArrayLike, dt: float, t0: Optional[float] = None) -> Array:
        """Propagate a plain state with the dynamics' force model.

        The dynamics and its STM are not modified, which makes this
        suitable for generating truth trajectories.

        Args:
            state: State at ``t0``, shape ``(n,)``.
            dt: Signed duration [s].
            t0: Start time. Defaults to the dynamics' current time.

        Returns:
            jax.Array: State after ``dt``.
        """
        result = dp54_integrate(
            self.dynamics.force_model.eom,
            self.dynamics.time if t0 is None else t0,
            state,
            dt,
            self.config,
        )
        return result.state
