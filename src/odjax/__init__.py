"""
odjax is a sequential orbit determination engine implemented in JAX.

Importing odjax selects float64 with :func:`~odjax.config.set_dtype`, which
turns on JAX's global ``jax_enable_x64`` flag for the whole process.  Call
``set_dtype(jnp.float32)`` afterwards to run in single precision; the flag
itself stays on.
"""

import jax.numpy as jnp

from .constants import (
    DEG2RAD,
    RAD2DEG,
    R_EARTH,
    WGS84_a,
    WGS84_f,
    GM_EARTH,
    OMEGA_EARTH,
)

from .config import set_dtype, get_dtype

set_dtype(jnp.float64)

from .errors import (
    ODError,
    FilterError,
    StateTransitionMatrixNotUpdated,
    SensitivityNotUpdated,
    GainSingular,
    StateTransitionMatrixSingular,
    IntegrationError,
    StepSizeTooSmall,
    NumericalInstability,
)

from .integrators import (
    AdaptiveConfig,
    IntegrationResult,
    StepResult,
    dp54_step,
    dp54_integrate,
    largest_error,
    rss_error,
)

from .dynamics import (
    ForceModel,
    TwoBody,
    AutodiffForceModel,
    VariationalDynamics,
)

from .propagators import Propagator

from .orbit_measurements import (
    Measurement,
    MeasurementInput,
    GroundStation,
    GnssReceiver,
)

from .estimation import (
    Estimate,
    Residual,
    KF,
    EkfTrigger,
    CkfTrigger,
    NumMsrEkfTrigger,
    CovarianceTraceEkfTrigger,
    ODProcess,
    estimates_to_dataframe,
    write_estimates_csv,
)

__all__ = [
    # Constants
    "DEG2RAD",
    "RAD2DEG",
    "R_EARTH",
    "WGS84_a",
    "WGS84_f",
    "GM_EARTH",
    "OMEGA_EARTH",
    # Config
    "set_dtype",
    "get_dtype",
    # Errors
    "ODError",
    "FilterError",
    "StateTransitionMatrixNotUpdated",
    "SensitivityNotUpdated",
    "GainSingular",
    "StateTransitionMatrixSingular",
    "IntegrationError",
    "StepSizeTooSmall",
    "NumericalInstability",
    # Integrators
    "AdaptiveConfig",
    "IntegrationResult",
    "StepResult",
    "dp54_step",
    "dp54_integrate",
    "largest_error",
    "rss_error",
    # Dynamics
    "ForceModel",
    "TwoBody",
    "AutodiffForceModel",
    "VariationalDynamics",
    # Propagators
    "Propagator",
    # Measurements
    "Measurement",
    "MeasurementInput",
    "GroundStation",
    "GnssReceiver",
    # Estimation
    "Estimate",
    "Residual",
    "KF",
    "EkfTrigger",
    "CkfTrigger",
    "NumMsrEkfTrigger",
    "CovarianceTraceEkfTrigger",
    "ODProcess",
    "estimates_to_dataframe",
    "write_estimates_csv",
]
