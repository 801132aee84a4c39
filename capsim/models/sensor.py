# capsim/models/sensor.py
"""
Capacitive position sensor, end to end.

geometry -> RC sensor network -> sampled differential -> charge-transfer
steady state -> result record + continuation state.

Output polarity: the sampled C3 voltage is -(Va - Vb) and the reported output
is -v4, so moving the plate toward the right electrode raises Vout.

Run:
    capsim simulate --position 0.45
    capsim simulate --position 0.45 --trace
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from ..geometry.plates import position_from_displacement_mm, solve_geometry
from ..physics.charge_transfer import ChargeState
from ..physics.sensor_network import solve_sensor_node_voltages
from ..solver.steady_state import (
    SteadyStateResult,
    TracePoint,
    TransferStage,
    solve_periodic_steady_state,
    validate_solver,
)
from ..utils import diagnostics as diag
from ..utils import logger
from ..utils.constants import PI
from ..utils.validation import require_positive
from .defaults import SensorInputs, SolverConfig, merge_inputs, merge_solver, prepare_inputs

__all__ = [
    "SimulationResult",
    "SimulationOutput",
    "WARN_FULL_CHARGE",
    "WARN_NOT_CONVERGED",
    "WARN_CLAMP_ACTIVE",
    "WARN_NON_FINITE",
    "prepare_inputs",
    "simulate_with_state",
    "simulate",
    "sensitivity_v_per_mm",
]

WARN_FULL_CHARGE = "Full-charge assumption may be invalid at this frequency."
WARN_NOT_CONVERGED = "Steady-state solver did not converge; result may be approximate."
WARN_CLAMP_ACTIVE = "Output clamp is active; saturation limits reached."
WARN_NON_FINITE = "Numeric instability detected; check parameter ranges."

FULL_CHARGE_TAU_MULTIPLE = 5.0   # half-cycle must last >= 5 tau
CLAMP_NEAR_V = 1e-6


# -----------------------------------------------------------------------------
# Dataclasses
# -----------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class SimulationResult:
    """One operating point. Capacitances in F, voltages in V, charges in C."""
    ca_f: float
    cb_f: float
    delta_c_f: float
    d_left_m: float
    d_right_m: float
    va_node_v: float
    vb_node_v: float
    delta_vin_v: float
    network_fallback: bool
    q_packet_c: float
    q_transfer_cycle_c: float
    v_out_steady_v: float
    v3_steady_v: float
    i_bias_a: float
    delta_v_bias_per_cycle_v: float
    tau_a_s: float
    tau_b_s: float
    f_warning_threshold_hz: float
    solver_iterations: int
    solver_residual_v: float
    solver_converged: bool
    solver_method: str
    warnings: Tuple[str, ...]

    def as_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["warnings"] = list(self.warnings)
        return out


@dataclass(frozen=True, slots=True)
class SimulationOutput:
    """Result record, continuation state for warm starts, and the (possibly empty) trace."""
    result: SimulationResult
    state: ChargeState
    trace: Tuple[TracePoint, ...] = ()


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _collect_warnings(
    solved: SteadyStateResult,
    solver: SolverConfig,
    t_half_s: float,
    tau_max_s: float,
    v_out: float,
) -> Tuple[str, ...]:
    warnings = []
    if t_half_s < FULL_CHARGE_TAU_MULTIPLE * tau_max_s:
        warnings.append(WARN_FULL_CHARGE)
    if not solved.converged:
        warnings.append(WARN_NOT_CONVERGED)
    if solver.use_output_clamp:
        v4 = solved.state.v4
        if abs(v4 - solver.clamp_min_v) < CLAMP_NEAR_V or abs(v4 - solver.clamp_max_v) < CLAMP_NEAR_V:
            warnings.append(WARN_CLAMP_ACTIVE)
    if not math.isfinite(v_out):
        warnings.append(WARN_NON_FINITE)
    return tuple(warnings)


# -----------------------------------------------------------------------------
# Main solve
# -----------------------------------------------------------------------------

def simulate_with_state(
    inputs: Optional[Mapping[str, Any] | SensorInputs] = None,
    initial_state: Optional[ChargeState | Mapping[str, float]] = None,
    solver: Optional[Mapping[str, Any] | SolverConfig] = None,
) -> SimulationOutput:
    """
    Solve one operating point.

    ``initial_state`` seeds the steady-state solver (warm start); pass the
    ``state`` of a neighbouring point when sweeping a parameter.
    """
    p = prepare_inputs(inputs)
    cfg = validate_solver(merge_solver(solver))

    geom = solve_geometry(p)
    omega = 2.0 * PI * p.freq_hz
    nodes = solve_sensor_node_voltages(
        v_drive_peak_v=p.v_drive_peak_v,
        r10_ohm=p.r10_ohm,
        r11_ohm=p.r11_ohm,
        ca_f=geom.ca_f,
        cb_f=geom.cb_f,
        cc_f=p.cc_f,
        omega=omega,
    )
    if cfg.debug:
        diag.log_network_summary(va=nodes.va_node_v, vb=nodes.vb_node_v, fallback=nodes.fallback)
    delta_vin_v = nodes.va_node_v - nodes.vb_node_v
    c3_sample_v = -delta_vin_v

    period_s = 1.0 / p.freq_hz
    delta_v_bias = p.i_bias_a * period_s / p.c4_f

    solved = solve_periodic_steady_state(
        TransferStage(
            c3_f=p.c3_f,
            c4_f=p.c4_f,
            c3_sample_v=c3_sample_v,
            delta_v_bias_per_cycle_v=delta_v_bias,
        ),
        initial_state,
        cfg,
    )

    v_out = -solved.state.v4
    tau_a = p.r10_ohm * geom.ca_f
    tau_b = p.r11_ohm * geom.cb_f
    tau_max = max(tau_a, tau_b)
    warnings = _collect_warnings(solved, cfg, 0.5 * period_s, tau_max, v_out)
    if cfg.debug:
        logger.report_warnings(warnings, tag="sim")

    result = SimulationResult(
        ca_f=geom.ca_f,
        cb_f=geom.cb_f,
        delta_c_f=geom.delta_c_f,
        d_left_m=geom.d_left_m,
        d_right_m=geom.d_right_m,
        va_node_v=nodes.va_node_v,
        vb_node_v=nodes.vb_node_v,
        delta_vin_v=delta_vin_v,
        network_fallback=nodes.fallback,
        q_packet_c=p.c3_f * c3_sample_v,
        q_transfer_cycle_c=solved.q_transfer_c,
        v_out_steady_v=v_out,
        v3_steady_v=solved.state.v3,
        i_bias_a=p.i_bias_a,
        delta_v_bias_per_cycle_v=delta_v_bias,
        tau_a_s=tau_a,
        tau_b_s=tau_b,
        f_warning_threshold_hz=1.0 / (10.0 * max(tau_max, 1e-18)),
        solver_iterations=solved.iterations,
        solver_residual_v=solved.residual_v,
        solver_converged=solved.converged,
        solver_method=solved.method,
        warnings=warnings,
    )
    return SimulationOutput(result=result, state=solved.state, trace=solved.trace or ())


def simulate(
    inputs: Optional[Mapping[str, Any] | SensorInputs] = None,
    solver: Optional[Mapping[str, Any] | SolverConfig] = None,
) -> SimulationResult:
    """Cold-start solve; returns only the result record."""
    return simulate_with_state(inputs, None, solver).result


def sensitivity_v_per_mm(
    inputs: Optional[Mapping[str, Any] | SensorInputs] = None,
    *,
    dx_mm: float = 1e-3,
    solver: Optional[Mapping[str, Any] | SolverConfig] = None,
) -> float:
    """Central-difference dVout/dx [V/mm] around the centred plate."""
    dx = require_positive("dx_mm", dx_mm)
    base = merge_inputs(inputs)
    plus = replace(base, position=position_from_displacement_mm(+dx, base.total_gap_mm))
    minus = replace(base, position=position_from_displacement_mm(-dx, base.total_gap_mm))
    v_plus = simulate(plus, solver).v_out_steady_v
    v_minus = simulate(minus, solver).v_out_steady_v
    return (v_plus - v_minus) / (2.0 * dx)
