"""Equations of motion and variational equations for orbit determination.

- :class:`ForceModel` -- protocol for equations of motion with a Jacobian
- :class:`TwoBody` -- point-mass gravity with an analytic Jacobian
- :class:`AutodiffForceModel` -- Jacobian of any acceleration via ``jax.jacfwd``
- :class:`VariationalDynamics` -- state augmented with its state transition matrix
"""

from odjax.dynamics.two_body import (
    AutodiffForceModel,
    ForceModel,
    TwoBody,
    accel_two_body,
    jacobian_two_body,
)
from odjax.dynamics.variational import VariationalDynamics

__all__ = [
    "ForceModel",
    "TwoBody",
    "AutodiffForceModel",
    "accel_two_body",
    "jacobian_two_body",
    "VariationalDynamics",
]
