# -*- coding: utf-8 -*-
"""
Warm-started parameter sweeps.

Each point is seeded with the continuation state of the previous point, so a
smooth sweep stays close to the fixed point and the iterative fallback (when
it is needed) converges in a handful of cycles. Points along one sweep form a
chain; separate sweeps are independent.
"""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Iterable, Literal, Mapping, Optional

import numpy as np
import pandas as pd

from capsim.models.defaults import SensorInputs, SolverConfig, merge_inputs
from capsim.models.sensor import simulate_with_state
from capsim.physics.charge_transfer import ChargeState
from capsim.utils import logger

__all__ = [
    "SweepSpec",
    "SweepResult",
    "SWEEPABLE",
    "sweep_values",
    "sweep_parameter",
    "sweep_frequency",
    "sweep_position",
    "sweep_gap",
    "run_sweep",
]

SWEEPABLE = tuple(f.name for f in fields(SensorInputs))


@dataclass(frozen=True, slots=True)
class SweepSpec:
    param: str
    start: float
    stop: float
    points: int = 50
    spacing: Literal["linear", "log"] = "linear"


@dataclass(frozen=True, slots=True)
class SweepResult:
    """Per-point table plus the state of the last point (seed for the next sweep)."""
    param: str
    frame: pd.DataFrame
    state: Optional[ChargeState]


def sweep_values(start: float, stop: float, points: int, spacing: str = "linear") -> np.ndarray:
    points = int(points)
    if points < 2:
        raise ValueError("points must be >= 2")
    if spacing == "linear":
        return np.linspace(float(start), float(stop), points)
    if spacing == "log":
        if start <= 0 or stop <= 0:
            raise ValueError("log spacing needs start > 0 and stop > 0")
        return np.geomspace(float(start), float(stop), points)
    raise ValueError(f"Unknown spacing: {spacing!r} (use 'linear' or 'log')")


def sweep_parameter(
    base: Optional[Mapping[str, Any] | SensorInputs],
    param: str,
    values: Iterable[float],
    *,
    seed_state: Optional[ChargeState] = None,
    solver: Optional[Mapping[str, Any] | SolverConfig] = None,
    verbose: bool = False,
) -> SweepResult:
    if param not in SWEEPABLE:
        raise ValueError(f"Cannot sweep {param!r}; choose one of {', '.join(SWEEPABLE)}")
    base_inputs = merge_inputs(base)

    rows = []
    state = seed_state
    for x in values:
        solved = simulate_with_state(replace(base_inputs, **{param: float(x)}), state, solver)
        r = solved.result
        rows.append({
            param: float(x),
            "v_out_steady_v": r.v_out_steady_v,
            "v3_steady_v": r.v3_steady_v,
            "delta_vin_v": r.delta_vin_v,
            "ca_f": r.ca_f,
            "cb_f": r.cb_f,
            "solver_iterations": r.solver_iterations,
            "solver_converged": r.solver_converged,
            "solver_method": r.solver_method,
            "n_warnings": len(r.warnings),
        })
        state = solved.state

    frame = pd.DataFrame(rows)
    if verbose and not frame.empty:
        n_bad = int((~frame["solver_converged"]).sum())
        logger.info(f"{param}: {len(frame)} points, {n_bad} not converged", tag="sweep")
    return SweepResult(param=param, frame=frame, state=state)


def sweep_frequency(
    base=None,
    *,
    f_min_hz: float = 1e3,
    f_max_hz: float = 500e3,
    points: int = 180,
    seed_state: Optional[ChargeState] = None,
    solver=None,
) -> SweepResult:
    values = sweep_values(f_min_hz, f_max_hz, points, "log")
    return sweep_parameter(base, "freq_hz", values, seed_state=seed_state, solver=solver)


def sweep_position(
    base=None,
    *,
    points: int = 160,
    center_travel_fraction: float = 0.8,
    seed_state: Optional[ChargeState] = None,
    solver=None,
) -> SweepResult:
    """Symmetric sweep around the centre covering ``center_travel_fraction`` of the gap."""
    half_span = 0.5 * float(center_travel_fraction)
    p_min = min(1.0, max(0.0, 0.5 - half_span))
    p_max = min(1.0, max(0.0, 0.5 + half_span))
    values = sweep_values(p_min, p_max, points, "linear")
    return sweep_parameter(base, "position", values, seed_state=seed_state, solver=solver)


def sweep_gap(
    base=None,
    *,
    gap_min_mm: float = 0.4,
    gap_max_mm: float = 3.0,
    points: int = 140,
    seed_state: Optional[ChargeState] = None,
    solver=None,
) -> SweepResult:
    values = sweep_values(gap_min_mm, gap_max_mm, points, "linear")
    return sweep_parameter(base, "total_gap_mm", values, seed_state=seed_state, solver=solver)


def run_sweep(
    spec: SweepSpec,
    base=None,
    *,
    seed_state: Optional[ChargeState] = None,
    solver=None,
    verbose: bool = True,
) -> SweepResult:
    values = sweep_values(spec.start, spec.stop, spec.points, spec.spacing)
    if verbose:
        logger.info(f"{spec.param} {spec.start:g} → {spec.stop:g} ({spec.points} pts, {spec.spacing})",
                    tag="sweep")
    return sweep_parameter(base, spec.param, values, seed_state=seed_state, solver=solver,
                           verbose=verbose)
