# -*- coding: utf-8 -*-
"""
Single-run workflow wiring config → operating point (+ optional sweep, waveform) → files.
"""
from __future__ import annotations
from dataclasses import replace
from pathlib import Path
from typing import Dict, Sequence

from capsim.io.config import (
    apply_overrides,
    build_inputs,
    build_solver,
    build_sweep,
    load_config,
    output_dir,
    waveform_options,
)
from capsim.io.results import save_waveform_npz, write_frame_csv, write_metrics
from capsim.models.sensor import simulate_with_state
from capsim.physics.sensor_network import simulate_sensor_node_waveform
from capsim.postprocess.solver_trace import trace_frame
from capsim.utils import logger
from capsim.workflows.sweep import run_sweep


def run_from_config(cfg_path: Path, overrides: Sequence[str] = ()) -> Dict[str, Path]:
    """Returns the written artifact paths keyed by kind."""
    cfg = load_config(cfg_path)
    if overrides:
        apply_overrides(cfg, overrides)
    inputs = build_inputs(cfg)
    solver = replace(build_solver(cfg), collect_trace=True)
    out_dir = output_dir(cfg)

    op = simulate_with_state(inputs, None, solver)
    logger.report_warnings(op.result.warnings, tag="run")

    written = {"metrics": write_metrics(out_dir, op.result.as_dict())}
    if op.trace:
        written["trace"] = write_frame_csv(out_dir, "trace", trace_frame(op.trace))

    spec = build_sweep(cfg)
    if spec is not None:
        sweep = run_sweep(spec, inputs, seed_state=op.state, solver=replace(solver, collect_trace=False))
        written["sweep"] = write_frame_csv(out_dir, "sweep", sweep.frame)

    wave_opts = waveform_options(cfg)
    if wave_opts is not None:
        wave = simulate_sensor_node_waveform(inputs, **wave_opts)
        written["waveform"] = save_waveform_npz(out_dir, wave)

    logger.info(
        f"Vout={op.result.v_out_steady_v:+.6f} V (converged={op.result.solver_converged}, "
        f"iters={op.result.solver_iterations}); wrote {len(written)} file(s) to {out_dir}",
        tag="run",
    )
    return written
