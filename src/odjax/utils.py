"""Linear algebra helpers shared by the dynamics, filter and smoother."""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odjax.config import get_dtype, get_singularity_tolerance


def try_inverse(matrix: ArrayLike) -> Array | None:
    """Invert a square matrix, or return ``None`` if it is singular.

    A matrix is treated as singular when its reciprocal condition number
    (2-norm) is below :func:`~odjax.config.get_singularity_tolerance` or the
    inverse is not finite.

    Args:
        matrix: Square matrix of shape ``(n, n)``.

    Returns:
        The inverse of shape ``(n, n)``, or ``None``.

    Examples:
        ```python
        import jax.numpy as jnp
        from odjax.utils import try_inverse
        try_inverse(jnp.eye(3) * 2.0)  # 0.5 * I
        try_inverse(jnp.zeros((3, 3)))  # None
        ```
    """
    matrix = jnp.asarray(matrix, dtype=get_dtype())
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {matrix.shape}")

    singular_values = jnp.linalg.svd(matrix, compute_uv=False)
    s_max = float(singular_values[0])
    s_min = float(singular_values[-1])
    if not s_max > 0.0 or s_min / s_max < get_singularity_tolerance():
        return None

    inverse = jnp.linalg.inv(matrix)
    if not bool(jnp.all(jnp.isfinite(inverse))):
        return None
    return inverse
