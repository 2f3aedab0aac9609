"""Module-wide floating-point precision configuration.

Provides ``set_dtype`` and ``get_dtype`` to control the float dtype used
throughout odjax.  Selecting ``jnp.float64`` enables JAX's 64-bit mode
(``jax_enable_x64``), a process-wide JAX setting.  The package selects
float64 once when :mod:`odjax` is imported: state transition matrix
inversion and covariance updates lose too much precision in single
precision for orbit determination.

Call ``set_dtype`` **before** any JIT compilation, just like JAX's own
``jax.config.update("jax_enable_x64", True)``.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp

_VALID_DTYPES = (jnp.float32, jnp.float64)

_dtype = jnp.float64


def set_dtype(dtype) -> None:
    """Set the module-wide float dtype for odjax.

    If *dtype* is ``jnp.float64``, JAX's 64-bit mode is enabled via
    ``jax.config.update("jax_enable_x64", True)``.

    Args:
        dtype: ``jnp.float32`` or ``jnp.float64``.

    Raises:
        ValueError: If *dtype* is not a supported float type.
    """
    global _dtype
    if dtype not in _VALID_DTYPES:
        raise ValueError(
            f"Unsupported dtype {dtype}. Must be one of: "
            f"jnp.float32, jnp.float64"
        )
    if dtype == jnp.float64:
        jax.config.update("jax_enable_x64", True)
    _dtype = dtype


def get_dtype():
    """Return the current module-wide float dtype.

    Returns:
        The active float dtype (default ``jnp.float64``).
    """
    return _dtype


def get_singularity_tolerance() -> float:
    """Return the dtype-adaptive reciprocal condition number threshold.

    Matrices whose reciprocal condition number falls below this value are
    treated as singular by the filter and smoother.

    - ``float32``: 1e-6
    - ``float64``: 1e-14

    Returns:
        float: Threshold on ``1 / cond(M)``.
    """
    if _dtype == jnp.float64:
        return 1e-14
    return 1e-6
