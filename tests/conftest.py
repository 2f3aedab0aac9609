import jax.numpy as jnp
import pytest

from odjax.config import set_dtype


@pytest.fixture(autouse=True)
def _ensure_float64():
    """Set float64 precision before every test.

    Tests that switch the dtype (e.g. in test_config.py) must not leak the
    change into the rest of the session.
    """
    set_dtype(jnp.float64)
