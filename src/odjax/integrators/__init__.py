"""Numerical ODE integrators for orbit and variational propagation.

Provides the Dormand-Prince 5(4) embedded Runge-Kutta integrator with
adaptive or fixed step-size control.

- :func:`dp54_step` -- one adaptive (or fixed) DP54 step
- :func:`dp54_integrate` -- integrate over a signed duration
- :func:`dp54_stages` -- a single trial step exposing both embedded solutions
- :func:`largest_error`, :func:`rss_error` -- error-control policies, selected
  with ``AdaptiveConfig(error_ctrl=...)``

Step functions share the interface::

    result = dp54_step(dynamics, t, state, dt)

where ``dynamics(t, x) -> dx`` defines the ODE right-hand side, and the
result is a :class:`StepResult` named tuple.
"""

from odjax.integrators._types import AdaptiveConfig, IntegrationResult, StepResult
from odjax.integrators.dp54 import dp54_integrate, dp54_stages, dp54_step
from odjax.integrators.error_ctrl import ErrorControl, largest_error, rss_error

__all__ = [
    "AdaptiveConfig",
    "IntegrationResult",
    "StepResult",
    "dp54_stages",
    "dp54_step",
    "dp54_integrate",
    "ErrorControl",
    "largest_error",
    "rss_error",
]
