"""Propagators driving an integrator over variational dynamics.

- :class:`Propagator` -- advances a :class:`~odjax.dynamics.VariationalDynamics`
  with the DP54 integrator and stores the result back into it
"""

from odjax.propagators.propagator import Propagator

__all__ = ["Propagator"]
