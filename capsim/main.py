# capsim/main.py
"""
capsim main entrypoint.

Usage examples:
    capsim simulate --position 0.45 --freq 62500
    capsim simulate --displacement-mm 0.1 --r10 20000 --r11 20000 --trace
    capsim run configs/bench.yaml --set inputs.position=0.4
    capsim sweep --param freq_hz --start 1e3 --stop 5e5 --points 180 --spacing log
    capsim waveform --png node_waveform.png
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from .geometry.plates import position_from_displacement_mm
from .io.results import write_frame_csv
from .models.defaults import DEFAULT_INPUTS, DEFAULT_SOLVER, SensorInputs, SolverConfig
from .models.sensor import simulate_with_state
from .physics.sensor_network import simulate_sensor_node_waveform
from .postprocess.solver_trace import trace_frame
from .utils import logger
from .workflows.run_single import run_from_config
from .workflows.sweep import SWEEPABLE, SweepSpec, run_sweep

__all__ = ["main"]


# ------------------------------ shared options -------------------------------


def _add_input_options(p: argparse.ArgumentParser) -> None:
    d = DEFAULT_INPUTS
    p.add_argument("--width-cm", type=float, default=d.width_cm, help="Plate width [cm]")
    p.add_argument("--height-cm", type=float, default=d.height_cm, help="Plate height [cm]")
    p.add_argument("--gap-mm", type=float, default=d.total_gap_mm, help="Total gap [mm]")
    p.add_argument("--min-gap-mm", type=float, default=d.min_gap_mm, help="Per-side gap floor [mm]")
    pos = p.add_mutually_exclusive_group()
    pos.add_argument("--position", type=float, default=None, help="Position fraction 0..1")
    pos.add_argument("--displacement-mm", type=float, default=None,
                     help="Plate displacement from centre [mm] (+ toward left)")
    p.add_argument("--freq", type=float, default=d.freq_hz, help="Drive frequency [Hz]")
    p.add_argument("--vdrive", type=float, default=d.v_drive_peak_v, help="Drive peak [V]")
    p.add_argument("--r10", type=float, default=d.r10_ohm, help="R10 [Ohm]")
    p.add_argument("--r11", type=float, default=d.r11_ohm, help="R11 [Ohm]")
    p.add_argument("--ibias", type=float, default=d.i_bias_a, help="Op-amp bias current [A]")
    p.add_argument("--c3", type=float, default=d.c3_f, help="Sampling capacitor C3 [F]")
    p.add_argument("--c4", type=float, default=d.c4_f, help="Transfer capacitor C4 [F]")
    p.add_argument("--cc", type=float, default=d.cc_f, help="Mutual coupling Cc [F]")
    p.add_argument("--epsr", type=float, default=d.epsilon_r, help="Relative permittivity")


def _add_solver_options(p: argparse.ArgumentParser) -> None:
    s = DEFAULT_SOLVER
    p.add_argument("--tol", type=float, default=s.tol_v, help="Voltage tolerance [V]")
    p.add_argument("--max-iter", type=int, default=s.max_iter, help="Iteration cap")
    p.add_argument("--gain", type=float, default=s.transfer_gain, help="Transfer gain")
    p.add_argument("--no-clamp", action="store_true", help="Disable output clamp")
    p.add_argument("--debug", action="store_true", help="Verbose solver prints")


def _inputs_from_args(ns: argparse.Namespace) -> SensorInputs:
    if ns.displacement_mm is not None:
        position = position_from_displacement_mm(ns.displacement_mm, ns.gap_mm)
    elif ns.position is not None:
        position = ns.position
    else:
        position = DEFAULT_INPUTS.position
    return SensorInputs(
        width_cm=ns.width_cm,
        height_cm=ns.height_cm,
        total_gap_mm=ns.gap_mm,
        min_gap_mm=ns.min_gap_mm,
        position=position,
        freq_hz=ns.freq,
        v_drive_peak_v=ns.vdrive,
        r10_ohm=ns.r10,
        r11_ohm=ns.r11,
        i_bias_a=ns.ibias,
        c3_f=ns.c3,
        c4_f=ns.c4,
        cc_f=ns.cc,
        epsilon_r=ns.epsr,
    )


def _solver_from_args(ns: argparse.Namespace) -> SolverConfig:
    return replace(
        DEFAULT_SOLVER,
        tol_v=ns.tol,
        max_iter=ns.max_iter,
        transfer_gain=ns.gain,
        use_output_clamp=not ns.no_clamp,
        debug=bool(ns.debug),
    )


# -------------------------------- subcommands --------------------------------


def _run_simulate(ns: argparse.Namespace) -> int:
    solver = replace(_solver_from_args(ns), collect_trace=bool(ns.trace))
    out = simulate_with_state(_inputs_from_args(ns), None, solver)
    r = out.result
    print(f"Ca = {r.ca_f * 1e12:.3f} pF   Cb = {r.cb_f * 1e12:.3f} pF   ΔC = {r.delta_c_f * 1e12:+.3f} pF")
    print(f"Va = {r.va_node_v:.6f} V   Vb = {r.vb_node_v:.6f} V   ΔVin = {r.delta_vin_v:+.6f} V")
    print(f"Vout = {r.v_out_steady_v:+.6f} V   v3 = {r.v3_steady_v:+.6f} V")
    print(f"solver: {r.solver_method}, converged={r.solver_converged}, "
          f"iters={r.solver_iterations}, residual={r.solver_residual_v:.3e} V")
    print(f"tauA = {r.tau_a_s:.3e} s   tauB = {r.tau_b_s:.3e} s   "
          f"f_max(full charge) ≈ {r.f_warning_threshold_hz:.3e} Hz")
    logger.report_warnings(r.warnings, tag="sim")
    if ns.trace and ns.trace_csv:
        path = write_frame_csv(Path(ns.trace_csv).parent, Path(ns.trace_csv).stem, trace_frame(out.trace))
        logger.info(f"wrote {path} ({len(out.trace)} rows)")
    return 0


def _run_sweep(ns: argparse.Namespace) -> int:
    spec = SweepSpec(param=ns.param, start=ns.start, stop=ns.stop, points=ns.points, spacing=ns.spacing)
    inputs, solver = _inputs_from_args(ns), _solver_from_args(ns)
    seed = simulate_with_state(inputs, None, solver).state
    sweep = run_sweep(spec, inputs, seed_state=seed, solver=solver)
    path = write_frame_csv(Path(ns.csv).parent, Path(ns.csv).stem, sweep.frame)
    logger.info(f"wrote {path}")
    if ns.png:
        from .postprocess.visualization import sweep_fig
        fig, _ax = sweep_fig(sweep.frame, spec.param)
        fig.savefig(ns.png, dpi=180)
        logger.info(f"wrote {ns.png}")
    return 0


def _run_waveform(ns: argparse.Namespace) -> int:
    wave = simulate_sensor_node_waveform(
        _inputs_from_args(ns), points_per_cycle=ns.points_per_cycle, warmup_cycles=ns.warmup,
    )
    from .postprocess.visualization import waveform_fig
    fig, _ax = waveform_fig(wave)
    fig.savefig(ns.png, dpi=180)
    logger.info(f"wrote {ns.png} (period {wave.period_s * 1e6:.3f} µs, {wave.t_s.size} samples)")
    return 0


def _run_config(ns: argparse.Namespace) -> int:
    run_from_config(Path(ns.config), overrides=ns.set or ())
    return 0


# --------------------------------- main() ------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="capsim — charge-transfer capacitive position sensor")
    sub = parser.add_subparsers(dest="cmd")

    p = sub.add_parser("simulate", help="Solve one operating point")
    _add_input_options(p)
    _add_solver_options(p)
    p.add_argument("--trace", action="store_true", help="Collect the solver trace")
    p.add_argument("--trace-csv", default="", help="Write the trace to this CSV path")
    p.set_defaults(func=_run_simulate)

    p = sub.add_parser("sweep", help="Warm-started sweep of one input")
    _add_input_options(p)
    _add_solver_options(p)
    p.add_argument("--param", choices=SWEEPABLE, default="freq_hz")
    p.add_argument("--start", type=float, default=1e3)
    p.add_argument("--stop", type=float, default=500e3)
    p.add_argument("--points", type=int, default=180)
    p.add_argument("--spacing", choices=["linear", "log"], default="log")
    p.add_argument("--csv", default="sweep.csv", help="CSV output path")
    p.add_argument("--png", default="", help="Optional PNG plot path")
    p.set_defaults(func=_run_sweep)

    p = sub.add_parser("waveform", help="Plot node voltages over one drive period")
    _add_input_options(p)
    p.add_argument("--points-per-cycle", type=int, default=360)
    p.add_argument("--warmup", type=int, default=40, help="Warm-up cycles")
    p.add_argument("--png", default="node_waveform.png", help="PNG output path")
    p.set_defaults(func=_run_waveform)

    p = sub.add_parser("run", help="Run a YAML config")
    p.add_argument("config", help="Path to YAML run file")
    p.add_argument("--set", action="append", metavar="KEY=VALUE",
                   help="Override, e.g. inputs.position=0.4 (repeatable)")
    p.set_defaults(func=_run_config)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = list(sys.argv[1:] if argv is None else argv)
    # No subcommand: solve the default operating point
    ns = parser.parse_args(args or ["simulate"])
    if not hasattr(ns, "func"):
        parser.error("Unknown command (try: simulate, sweep, waveform, run)")
    try:
        return ns.func(ns)
    except (TypeError, ValueError) as exc:
        logger.error(str(exc))
        return 2


if __name__ == "__main__":
    sys.exit(main())
