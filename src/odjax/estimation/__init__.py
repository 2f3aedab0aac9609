"""Sequential state estimation for orbit determination.

Available components:

- :class:`Estimate`, :class:`Residual` -- filter outputs
- :class:`KF` -- classical / extended Kalman filter (Joseph form)
- :class:`EkfTrigger` -- policy deciding when to switch to EKF mode, with
  :class:`CkfTrigger`, :class:`NumMsrEkfTrigger` and
  :class:`CovarianceTraceEkfTrigger`
- :class:`ODProcess` -- propagate / measure / filter loop and smoother
- :func:`estimates_to_dataframe`, :func:`write_estimates_csv` -- export
"""

from odjax.estimation._types import Estimate, Residual
from odjax.estimation.export import estimates_to_dataframe, write_estimates_csv
from odjax.estimation.kalman import KF
from odjax.estimation.process import ODProcess
from odjax.estimation.triggers import (
    CkfTrigger,
    CovarianceTraceEkfTrigger,
    EkfTrigger,
    NumMsrEkfTrigger,
)

__all__ = [
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
