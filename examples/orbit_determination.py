# /// script
# requires-python = ">=3.11"
# dependencies = ["typer>=0.9.0", "odjax"]
#
# [tool.uv.sources]
# odjax = { path = ".." }
# ///
"""Simulated orbit determination of a LEO spacecraft from ground-station tracking.

Propagates a truth trajectory with two-body dynamics, simulates noisy
range and range-rate measurements from three ground stations, and
estimates the orbit starting from a perturbed initial guess. The filter
runs as a classical Kalman filter and switches to an extended Kalman
filter after a configurable number of measurements.

Requires odjax to be installed (``uv pip install -e .`` from the repo root).

Usage:
    uv run examples/orbit_determination.py [OPTIONS]

Examples:
    # Two orbits, EKF after 20 measurements
    uv run examples/orbit_determination.py --orbits 2 --ekf-after 20

    # Classical filter only, fixed-step integration, write results to CSV
    uv run examples/orbit_determination.py --ekf-after 0 --fixed-step \\
        --output results/od.csv

    # Also run the backward smoother
    uv run examples/orbit_determination.py --smooth
"""

import logging
import time
from typing import Annotated, Optional

import jax
import jax.numpy as jnp
import typer

from odjax import (
    AdaptiveConfig,
    Estimate,
    GroundStation,
    KF,
    MeasurementInput,
    NumMsrEkfTrigger,
    ODProcess,
    Propagator,
    TwoBody,
    VariationalDynamics,
    write_estimates_csv,
)
from odjax.constants import GM_EARTH, R_EARTH

app = typer.Typer(add_completion=False)

STATIONS = [
    GroundStation("madrid", latitude=40.427, longitude=-4.251, elevation_mask=5.0),
    GroundStation("goldstone", latitude=35.247, longitude=-116.792, elevation_mask=5.0),
    GroundStation("canberra", latitude=-35.398, longitude=148.982, elevation_mask=5.0),
]


def simulate_measurements(prop, truth0, duration, interval, seed):
    """Propagate the truth and record one measurement per visible epoch."""
    key = jax.random.PRNGKey(seed)
    measurements = []
    state = truth0
    t = 0.0
    while t < duration:
        state = prop.propagate(state, interval, t0=t)
        t += interval
        for station in STATIONS:
            key, subkey = jax.random.split(key)
            msr = station.simulate(MeasurementInput(epoch=t, state=state), subkey)
            if msr.visible:
                measurements.append((t, msr))
                break
    return measurements


@app.command()
def main(
    altitude: Annotated[float, typer.Option(help="Circular orbit altitude [km]")] = 500.0,
    inclination: Annotated[float, typer.Option(help="Inclination [deg]")] = 51.6,
    orbits: Annotated[float, typer.Option(help="Number of orbits to track")] = 2.0,
    interval: Annotated[float, typer.Option(help="Measurement interval [s]")] = 30.0,
    ekf_after: Annotated[int, typer.Option(help="Switch to EKF after N measurements (0: never)")] = 20,
    position_error: Annotated[float, typer.Option(help="Initial position error [m]")] = 500.0,
    velocity_error: Annotated[float, typer.Option(help="Initial velocity error [m/s]")] = 0.5,
    fixed_step: Annotated[bool, typer.Option(help="Integrate on a fixed 10 s grid")] = False,
    smooth: Annotated[bool, typer.Option(help="Run the backward smoother")] = False,
    seed: Annotated[int, typer.Option(help="Random seed for measurement noise")] = 42,
    output: Annotated[Optional[str], typer.Option(help="CSV output path")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    sma = R_EARTH + altitude * 1e3
    v_circ = (GM_EARTH / sma) ** 0.5
    inc = jnp.deg2rad(inclination)
    truth0 = jnp.array([sma, 0.0, 0.0, 0.0, v_circ * jnp.cos(inc), v_circ * jnp.sin(inc)])
    duration = orbits * 2.0 * jnp.pi * (sma**3 / GM_EARTH) ** 0.5

    config = AdaptiveConfig(fixed_step=fixed_step, initial_step=10.0 if fixed_step else 60.0)

    # Truth trajectory and measurements
    truth_prop = Propagator(VariationalDynamics(TwoBody(), truth0), config)
    t_start = time.perf_counter()
    measurements = simulate_measurements(truth_prop, truth0, float(duration), interval, seed)
    typer.echo(f"Simulated {len(measurements)} measurements in {time.perf_counter() - t_start:.1f} s")

    # Filter setup from a perturbed initial guess
    perturbation = jnp.array([position_error] * 3 + [velocity_error] * 3) / jnp.sqrt(3.0)
    guess0 = truth0 + perturbation
    prop = Propagator(VariationalDynamics(TwoBody(), guess0), config)
    covar0 = jnp.diag(jnp.array([position_error**2] * 3 + [velocity_error**2] * 3))
    kf = KF(Estimate.initial(covar0), measurement_noise=STATIONS[0].noise_covariance())

    if ekf_after > 0:
        odp = ODProcess.ekf(prop, kf, STATIONS, NumMsrEkfTrigger(ekf_after))
    else:
        odp = ODProcess.ckf(prop, kf, STATIONS)

    t_start = time.perf_counter()
    odp.process_measurements(measurements)
    typer.echo(f"Filtered {len(odp.estimates)} measurements in {time.perf_counter() - t_start:.1f} s")

    if smooth:
        odp.smooth()

    # Final error against the truth
    truth_final = truth_prop.propagate(truth0, prop.dynamics.time, t0=0.0)
    last = odp.estimates[-1]
    estimate_final = prop.dynamics.state if kf.ekf else prop.dynamics.state + last.state
    err = estimate_final - truth_final
    typer.echo(f"Final position error: {float(jnp.linalg.norm(err[:3])):.3f} m")
    typer.echo(f"Final velocity error: {float(jnp.linalg.norm(err[3:])):.6f} m/s")
    typer.echo(f"Final 3-sigma position: {3.0 * float(jnp.sqrt(jnp.trace(last.covar[:3, :3]))):.3f} m")

    if output is not None:
        path = write_estimates_csv(output, odp.estimates, odp.residuals)
        typer.echo(f"Wrote {path}")


if __name__ == "__main__":
    app()
