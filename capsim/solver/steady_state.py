# capsim/solver/steady_state.py
# Periodic steady-state of the charge-transfer stage.
# Closed-form affine fixed point first; bounded fixed-point iteration as fallback.

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Literal, Mapping, Optional, Tuple

from ..models.defaults import SolverConfig, merge_solver
from ..physics.charge_transfer import (
    ChargeState,
    CycleDerived,
    apply_cycle,
    clamp,
    validate_state,
)
from ..utils import diagnostics as diag
from ..utils.validation import (
    require_bool,
    require_finite,
    require_int_at_least,
    require_non_negative,
    require_ordered,
    require_positive,
)

__all__ = [
    "TransferStage",
    "TracePoint",
    "SteadyStateResult",
    "validate_solver",
    "solve_periodic_steady_state",
    "solve_periodic_steady_state_iterative",
    "solve_closed_form_steady_state",
]

DENOM_FLOOR = 1e-18
VERIFY_TOL_V = 1e-10
TRACE_MAX_CYCLES = 10000
TRACE_MIN_CYCLES = 10
TRACE_ABS_FLOOR_V = 1e-12
TRACE_REL_TOL = 1e-3
TRACE_SCALE_FLOOR_V = 1e-6
_LOG_EVERY = 1000


@dataclass(frozen=True, slots=True)
class TransferStage:
    """Operating point of the transfer stage that is fixed for a whole solve."""
    c3_f: float
    c4_f: float
    c3_sample_v: float
    delta_v_bias_per_cycle_v: float = 0.0


@dataclass(frozen=True, slots=True)
class TracePoint:
    iteration: int
    v3: float
    v4: float
    residual_v: float


@dataclass(frozen=True, slots=True)
class SteadyStateResult:
    converged: bool
    iterations: int
    residual_v: float
    state: ChargeState
    q_sensor_c: float
    q_transfer_c: float
    trace: Optional[Tuple[TracePoint, ...]]
    method: Literal["closed_form", "iterative"]


def _validate_stage(stage: TransferStage) -> None:
    if stage is None:
        raise TypeError("stage must be a TransferStage, got None")
    require_positive("c3_f", stage.c3_f)
    require_positive("c4_f", stage.c4_f)
    require_finite("c3_sample_v", stage.c3_sample_v)
    require_finite("delta_v_bias_per_cycle_v", stage.delta_v_bias_per_cycle_v)


def validate_solver(solver: SolverConfig) -> SolverConfig:
    require_non_negative("tol_v", solver.tol_v)
    require_int_at_least("max_iter", solver.max_iter, 1)
    require_finite("transfer_gain", solver.transfer_gain)
    require_bool("use_output_clamp", solver.use_output_clamp)
    require_finite("clamp_min_v", solver.clamp_min_v)
    require_finite("clamp_max_v", solver.clamp_max_v)
    require_ordered("clamp_min_v", solver.clamp_min_v, "clamp_max_v", solver.clamp_max_v)
    require_bool("collect_trace", solver.collect_trace)
    require_bool("debug", solver.debug)
    return solver


def _cycle_params(stage: TransferStage, solver: SolverConfig) -> CycleDerived:
    return CycleDerived(
        c3_f=stage.c3_f,
        c4_f=stage.c4_f,
        c3_sample_v=stage.c3_sample_v,
        delta_v_bias_per_cycle_v=stage.delta_v_bias_per_cycle_v,
        transfer_gain=solver.transfer_gain,
        use_clamp=solver.use_output_clamp,
        clamp_min_v=solver.clamp_min_v,
        clamp_max_v=solver.clamp_max_v,
    )


def _seed(initial_state) -> ChargeState:
    return ChargeState() if initial_state is None else validate_state(initial_state)


def _residual(prev: ChargeState, new: ChargeState) -> float:
    return max(abs(new.v3 - prev.v3), abs(new.v4 - prev.v4))


def _apply_affine(v4: float, a: float, b: float, solver: SolverConfig) -> float:
    v4_next = a * v4 + b
    if solver.use_output_clamp:
        v4_next = clamp(v4_next, solver.clamp_min_v, solver.clamp_max_v)
    return v4_next


# -----------------------------------------------------------------------------
# Closed form
# -----------------------------------------------------------------------------

def solve_closed_form_steady_state(
    stage: TransferStage, solver: SolverConfig
) -> Optional[SteadyStateResult]:
    """
    Fixed point of v4' = a v4 + b, or None when it does not describe the dynamics.

    a = 1 - gain*r and b = gain*r*v3_drive - ΔV_bias. The (possibly clamped)
    fixed point is pushed through the clamped map once more and rejected unless
    it maps onto itself within VERIFY_TOL_V. The returned result has no trace.
    """
    c3, c4 = stage.c3_f, stage.c4_f
    c_sum = c3 + c4
    if not math.isfinite(c_sum) or c_sum <= 0.0:
        return None

    share = c3 / c_sum
    v3_drive = share * stage.c3_sample_v
    k = solver.transfer_gain * share
    a = 1.0 - k
    b = k * v3_drive - stage.delta_v_bias_per_cycle_v
    denom = 1.0 - a
    if not math.isfinite(denom) or abs(denom) < DENOM_FLOOR:
        if solver.debug:
            diag.log_closed_form(a=a, b=b, v4_star=math.nan, accepted=False,
                                 reason="degenerate denominator")
        return None

    v4_star = b / denom
    if not math.isfinite(v4_star):
        return None
    if solver.use_output_clamp:
        v4_star = clamp(v4_star, solver.clamp_min_v, solver.clamp_max_v)

    mapped = _apply_affine(v4_star, a, b, solver)
    if not math.isfinite(mapped) or abs(mapped - v4_star) > VERIFY_TOL_V:
        if solver.debug:
            diag.log_closed_form(a=a, b=b, v4_star=v4_star, accepted=False,
                                 reason=f"re-map moved by {abs(mapped - v4_star):.3e} V")
        return None

    c_eq = (c3 * c4) / c_sum
    q_transfer = solver.transfer_gain * c_eq * (v3_drive - v4_star)
    v3_star = v3_drive - q_transfer / c3

    if solver.debug:
        diag.log_closed_form(a=a, b=b, v4_star=v4_star, accepted=True)

    return SteadyStateResult(
        converged=True,
        iterations=1,
        residual_v=0.0,
        state=ChargeState(v3=v3_star, v4=v4_star),
        q_sensor_c=c3 * stage.c3_sample_v,
        q_transfer_c=q_transfer,
        trace=None,
        method="closed_form",
    )


def _sample_transient_trace(
    stage: TransferStage,
    seed: ChargeState,
    solver: SolverConfig,
    target: ChargeState,
) -> Tuple[TracePoint, ...]:
    """Cycle-by-cycle approach from ``seed`` toward the closed-form ``target``."""
    params = _cycle_params(stage, solver)
    max_cycles = max(1, min(solver.max_iter, TRACE_MAX_CYCLES))
    abs_tol = max(solver.tol_v, TRACE_ABS_FLOOR_V)
    close_tol = max(abs_tol, TRACE_REL_TOL * max(abs(target.v4), TRACE_SCALE_FLOOR_V))

    trace = []
    state = seed
    for i in range(max_cycles):
        new = apply_cycle(state, params).state
        trace.append(TracePoint(iteration=i + 1, v3=new.v3, v4=new.v4,
                                residual_v=_residual(state, new)))
        state = new
        if i + 1 >= TRACE_MIN_CYCLES and abs(state.v4 - target.v4) <= close_tol:
            break
    return tuple(trace)


# -----------------------------------------------------------------------------
# Iteration
# -----------------------------------------------------------------------------

def _iterate(stage: TransferStage, seed: ChargeState, solver: SolverConfig) -> SteadyStateResult:
    params = _cycle_params(stage, solver)
    trace = [] if solver.collect_trace else None

    if solver.debug:
        diag.log_solver_start(solver="fixed-point", v3=seed.v3, v4=seed.v4,
                              tol_v=float(solver.tol_v), max_iter=int(solver.max_iter))

    state = seed
    residual_v = math.inf
    q_sensor = q_transfer = 0.0
    converged = False
    it = 0
    for it in range(1, int(solver.max_iter) + 1):
        step = apply_cycle(state, params)
        residual_v = _residual(state, step.state)
        state = step.state
        q_sensor, q_transfer = step.q_sensor_c, step.q_transfer_c
        if trace is not None:
            trace.append(TracePoint(iteration=it, v3=state.v3, v4=state.v4, residual_v=residual_v))

        if solver.debug and (it == 1 or it % _LOG_EVERY == 0):
            diag.log_solver_iter(solver="fixed-point", it=it, v3=state.v3, v4=state.v4,
                                 residual_v=residual_v)

        if residual_v < solver.tol_v:
            converged = True
            break

    if solver.debug:
        diag.log_convergence_summary(solver="fixed-point", converged=converged,
                                     iters=it, residual_v=residual_v)

    return SteadyStateResult(
        converged=converged,
        iterations=it,
        residual_v=residual_v,
        state=state,
        q_sensor_c=q_sensor,
        q_transfer_c=q_transfer,
        trace=None if trace is None else tuple(trace),
        method="iterative",
    )


def solve_periodic_steady_state_iterative(
    stage: TransferStage,
    initial_state: Optional[ChargeState | Mapping[str, float]] = None,
    solver: Optional[SolverConfig | Mapping[str, Any]] = None,
) -> SteadyStateResult:
    """Plain fixed-point iteration (no closed-form shortcut)."""
    _validate_stage(stage)
    cfg = validate_solver(merge_solver(solver))
    return _iterate(stage, _seed(initial_state), cfg)


def solve_periodic_steady_state(
    stage: TransferStage,
    initial_state: Optional[ChargeState | Mapping[str, float]] = None,
    solver: Optional[SolverConfig | Mapping[str, Any]] = None,
) -> SteadyStateResult:
    """
    Periodic fixed point of the charge-transfer cycle.

    Parameters
    ----------
    stage : TransferStage
        C3/C4, sampled drive and per-cycle bias droop.
    initial_state : ChargeState, optional
        Seed (warm start). Defaults to (0, 0). Never mutated.
    solver : SolverConfig or mapping, optional
        Per-call overrides merged over DEFAULT_SOLVER.

    Returns
    -------
    SteadyStateResult
        ``converged=False`` is not an error; the last state is still returned.
        With ``collect_trace`` the closed-form path attaches a simulated
        transient (diagnostic only) while the iterative path records every
        iteration.
    """
    _validate_stage(stage)
    cfg = validate_solver(merge_solver(solver))
    seed = _seed(initial_state)

    closed = solve_closed_form_steady_state(stage, cfg)
    if closed is None:
        return _iterate(stage, seed, cfg)
    if not cfg.collect_trace:
        return closed

    trace = _sample_transient_trace(stage, seed, cfg, closed.state)
    return replace(closed, trace=trace)
