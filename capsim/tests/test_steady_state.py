# -*- coding: utf-8 -*-
"""
Periodic steady-state solver: closed form, iterative fallback, traces, warm start.
"""
from __future__ import annotations

from dataclasses import replace

import pytest

from capsim.models.defaults import DEFAULT_SOLVER
from capsim.physics.charge_transfer import ChargeState
from capsim.solver.steady_state import (
    TransferStage,
    solve_closed_form_steady_state,
    solve_periodic_steady_state,
    solve_periodic_steady_state_iterative,
)

NO_CLAMP = replace(DEFAULT_SOLVER, use_output_clamp=False)
UNIT_STAGE = TransferStage(c3_f=1.0, c4_f=1.0, c3_sample_v=0.2, delta_v_bias_per_cycle_v=0.0)


def test_closed_form_matches_analytic_fixed_point():
    stage = TransferStage(c3_f=4.7e-9, c4_f=4.7e-9, c3_sample_v=0.2)
    solved = solve_periodic_steady_state(stage, None, NO_CLAMP)

    share = 0.5
    v3_drive = share * 0.2
    k = NO_CLAMP.transfer_gain * share
    assert solved.method == "closed_form"
    assert solved.converged
    assert solved.iterations == 1
    assert solved.residual_v == 0.0
    assert solved.state.v4 == pytest.approx((k * v3_drive) / k, abs=1e-12)
    assert solved.trace is None


def test_closed_form_agrees_with_iteration():
    stage = TransferStage(c3_f=1e-9, c4_f=2.2e-9, c3_sample_v=0.3, delta_v_bias_per_cycle_v=1e-4)
    cfg = replace(NO_CLAMP, tol_v=1e-14, max_iter=100000)
    closed = solve_periodic_steady_state(stage, None, cfg)
    iterated = solve_periodic_steady_state_iterative(stage, None, cfg)

    assert closed.method == "closed_form"
    assert iterated.method == "iterative" and iterated.converged
    assert iterated.state.v4 == pytest.approx(closed.state.v4, abs=1e-9)
    assert iterated.state.v3 == pytest.approx(closed.state.v3, abs=1e-9)
    assert iterated.q_transfer_c == pytest.approx(closed.q_transfer_c, abs=1e-15)
    assert iterated.q_sensor_c == pytest.approx(closed.q_sensor_c)


def test_closed_form_trace_samples_transient():
    stage = TransferStage(c3_f=4.7e-9, c4_f=4.7e-9, c3_sample_v=0.2)
    solved = solve_periodic_steady_state(stage, None, replace(NO_CLAMP, collect_trace=True))

    assert solved.method == "closed_form"
    assert len(solved.trace) >= 10
    assert solved.trace[0].iteration == 1
    assert solved.trace[-1].iteration == len(solved.trace)
    # diagnostic only: the returned result is still the closed-form one
    assert solved.iterations == 1
    assert solved.residual_v == 0.0
    assert solved.trace[-1].v4 == pytest.approx(solved.state.v4, rel=1e-3)


def test_closed_form_trace_respects_iteration_cap():
    stage = TransferStage(c3_f=4.7e-9, c4_f=4.7e-9, c3_sample_v=0.2)
    solved = solve_periodic_steady_state(stage, None, replace(NO_CLAMP, collect_trace=True, max_iter=5))
    assert len(solved.trace) == 5


def test_closed_form_trace_starts_from_seed():
    stage = TransferStage(c3_f=4.7e-9, c4_f=4.7e-9, c3_sample_v=0.2)
    cfg = replace(NO_CLAMP, collect_trace=True)
    at_target = solve_periodic_steady_state(stage, None, cfg).state
    warm = solve_periodic_steady_state(stage, at_target, cfg)
    # already on the fixed point: stops at the minimum trace length
    assert len(warm.trace) == 10


def test_zero_gain_falls_back_to_iteration():
    solved = solve_periodic_steady_state(
        UNIT_STAGE, None, replace(NO_CLAMP, transfer_gain=0.0, tol_v=1e-12, max_iter=50),
    )
    assert solved.method == "iterative"
    assert solved.converged
    assert solved.iterations >= 2


def test_non_convergence_is_reported_not_raised():
    stage = replace(UNIT_STAGE, delta_v_bias_per_cycle_v=0.01)
    solved = solve_periodic_steady_state(
        stage, None,
        replace(NO_CLAMP, transfer_gain=0.0, tol_v=1e-15, max_iter=3, collect_trace=True),
    )
    assert not solved.converged
    assert solved.iterations == 3
    assert len(solved.trace) == 3
    assert [t.iteration for t in solved.trace] == [1, 2, 3]
    assert solved.state.v4 == pytest.approx(-0.03, abs=1e-15)


def test_iterative_trace_records_every_iteration():
    stage = replace(UNIT_STAGE, delta_v_bias_per_cycle_v=0.01)
    cfg = replace(DEFAULT_SOLVER, transfer_gain=0.0, clamp_min_v=-1.0, clamp_max_v=1.0,
                  tol_v=1e-12, collect_trace=True)
    solved = solve_periodic_steady_state(stage, None, cfg)
    assert solved.converged
    assert len(solved.trace) == solved.iterations
    assert solved.trace[-1].residual_v < cfg.tol_v


@pytest.mark.parametrize("bias, bound", [(1.0, -1.0), (-1.0, 1.0)])
def test_clamp_pins_v4_at_violated_bound(bias, bound):
    stage = replace(UNIT_STAGE, delta_v_bias_per_cycle_v=bias)
    cfg = replace(DEFAULT_SOLVER, clamp_min_v=-1.0, clamp_max_v=1.0)
    solved = solve_periodic_steady_state(stage, None, cfg)
    assert solved.converged
    assert solved.state.v4 == bound


def test_closed_form_rejects_degenerate_denominator():
    assert solve_closed_form_steady_state(UNIT_STAGE, replace(NO_CLAMP, transfer_gain=0.0)) is None


def test_repeated_solves_are_identical():
    stage = TransferStage(c3_f=1e-9, c4_f=3e-9, c3_sample_v=-0.15, delta_v_bias_per_cycle_v=2e-6)
    seed = ChargeState(v3=0.01, v4=-0.02)
    for cfg in (DEFAULT_SOLVER, replace(DEFAULT_SOLVER, transfer_gain=0.0, max_iter=200)):
        assert solve_periodic_steady_state(stage, seed, cfg) == solve_periodic_steady_state(stage, seed, cfg)


def test_warm_start_needs_fewer_iterations():
    cfg = replace(DEFAULT_SOLVER, transfer_gain=0.0, clamp_min_v=-1.0, clamp_max_v=1.0, tol_v=1e-12)
    cold = solve_periodic_steady_state(replace(UNIT_STAGE, delta_v_bias_per_cycle_v=0.01), None, cfg)
    assert cold.method == "iterative" and cold.converged

    perturbed = replace(UNIT_STAGE, delta_v_bias_per_cycle_v=0.011)
    warm = solve_periodic_steady_state(perturbed, cold.state, cfg)
    fresh = solve_periodic_steady_state(perturbed, None, cfg)
    assert warm.converged
    assert warm.iterations < fresh.iterations


def test_seed_is_copied_not_aliased():
    seed = ChargeState(v3=0.3, v4=-0.4)
    solved = solve_periodic_steady_state(UNIT_STAGE, seed, DEFAULT_SOLVER)
    assert seed == ChargeState(v3=0.3, v4=-0.4)
    assert solved.state is not seed


def test_mapping_seed_matches_record_seed():
    cfg = replace(DEFAULT_SOLVER, transfer_gain=0.0, max_iter=5, tol_v=0.0)
    from_mapping = solve_periodic_steady_state(UNIT_STAGE, {"v3": 0.3, "v4": -0.4}, cfg)
    from_record = solve_periodic_steady_state(UNIT_STAGE, ChargeState(v3=0.3, v4=-0.4), cfg)
    assert from_mapping.state == from_record.state


def test_solver_accepts_mapping_overrides():
    solved = solve_periodic_steady_state(UNIT_STAGE, None, {"transfer_gain": 0.0, "max_iter": 7, "tol_v": 0.0})
    assert solved.iterations == 7


@pytest.mark.parametrize("overrides, exc", [
    ({"max_iter": 0}, ValueError),
    ({"max_iter": 2.5}, TypeError),
    ({"use_output_clamp": 1}, TypeError),
    ({"collect_trace": "no"}, TypeError),
    ({"tol_v": -1.0}, ValueError),
    ({"tol_v": float("nan")}, ValueError),
    ({"clamp_min_v": 5.0, "clamp_max_v": -5.0}, ValueError),
    ({"no_such_option": 1}, ValueError),
])
def test_rejects_bad_solver_config(overrides, exc):
    with pytest.raises(exc):
        solve_periodic_steady_state(UNIT_STAGE, None, overrides)


def test_rejects_bad_stage_and_seed():
    with pytest.raises(TypeError):
        solve_periodic_steady_state(None, None, DEFAULT_SOLVER)
    with pytest.raises(ValueError):
        solve_periodic_steady_state(replace(UNIT_STAGE, c3_f=0.0), None, DEFAULT_SOLVER)
    with pytest.raises(ValueError, match="finite"):
        solve_periodic_steady_state(UNIT_STAGE, ChargeState(v3=0.0, v4=float("nan")), DEFAULT_SOLVER)
