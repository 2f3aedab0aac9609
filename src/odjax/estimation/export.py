"""Tabular export of estimation results.

One row per estimate/residual pair, with columns in a fixed order that
downstream reporting relies on:

1. ``epoch``
2. ``state_0`` ... ``state_{n-1}`` -- state deviation
3. ``covar_0_0`` ... ``covar_{n-1}_{n-1}`` -- covariance diagonal
4. ``stm_trace``, ``stm_det`` -- STM summary
5. ``predicted``
6. ``prefit_0`` ... ``prefit_{m-1}``
7. ``postfit_0`` ... ``postfit_{m-1}``
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import jax.numpy as jnp
import numpy as np
import polars as pl

from odjax.estimation._types import Estimate, Residual

logger = logging.getLogger(__name__)


def estimates_to_dataframe(
    estimates: Sequence[Estimate],
    residuals: Sequence[Residual],
) -> pl.DataFrame:
    """Build a DataFrame of paired estimates and residuals.

    Args:
        estimates: Estimates in chronological order.
        residuals: Residuals parallel to ``estimates``.

    Returns:
        polars.DataFrame: One row per pair, columns as documented in the
        module docstring. Empty (no columns) when there are no estimates.

    Raises:
        ValueError: If the two sequences differ in length, or the state or
            observation dimension changes between rows.
    """
    if len(estimates) != len(residuals):
        raise ValueError(
            f"estimates and residuals must have the same length, "
            f"got {len(estimates)} and {len(residuals)}"
        )
    if not estimates:
        return pl.DataFrame()

    states = np.stack([np.asarray(est.state) for est in estimates])
    variances = np.stack([np.diag(np.asarray(est.covar)) for est in estimates])
    prefits = np.stack([np.asarray(res.prefit) for res in residuals])
    postfits = np.stack([np.asarray(res.postfit) for res in residuals])

    n = states.shape[1]
    m = prefits.shape[1]

    columns: dict[str, object] = {"epoch": [float(est.epoch) for est in estimates]}
    for i in range(n):
        columns[f"state_{i}"] = states[:, i]
    for i in range(n):
        columns[f"covar_{i}_{i}"] = variances[:, i]
    columns["stm_trace"] = [float(jnp.trace(est.stm)) for est in estimates]
    columns["stm_det"] = [float(jnp.linalg.det(est.stm)) for est in estimates]
    columns["predicted"] = [bool(est.predicted) for est in estimates]
    for i in range(m):
        columns[f"prefit_{i}"] = prefits[:, i]
    for i in range(m):
        columns[f"postfit_{i}"] = postfits[:, i]

    return pl.DataFrame(columns)


def write_estimates_csv(
    filepath: str | Path,
    estimates: Sequence[Estimate],
    residuals: Sequence[Residual],
) -> Path:
    """Write paired estimates and residuals to a CSV file.

    Args:
        filepath: Output path. Parent directories are created.
        estimates: Estimates in chronological order.
        residuals: Residuals parallel to ``estimates``.

    Returns:
        Path: The written file.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    df = estimates_to_dataframe(estimates, residuals)
    df.write_csv(filepath)
    logger.info("Wrote %d estimates to %s", df.height, filepath)

    return filepath
