# capsim/postprocess/visualization.py
"""
Lightweight plotting helpers for node waveforms, solver traces and sweeps.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from capsim.physics.sensor_network import NodeWaveform
from capsim.postprocess.solver_trace import residual_series, trace_frame
from capsim.solver.steady_state import TracePoint

__all__ = ["waveform_fig", "trace_fig", "residual_fig", "sweep_fig"]

_AXIS_LABELS = {
    "freq_hz": "Frequency (Hz)",
    "position": "Position fraction",
    "total_gap_mm": "Total gap (mm)",
    "min_gap_mm": "Min gap (mm)",
    "cc_f": "Mutual C (F)",
    "i_bias_a": "Bias current (A)",
}


def _new_axes(ax: Optional[plt.Axes]) -> Tuple[plt.Figure, plt.Axes]:
    if ax is None:
        return plt.subplots(figsize=(6.0, 3.2), constrained_layout=True)
    return ax.figure, ax


def _finish(ax: plt.Axes, xlabel: str, ylabel: str, title: Optional[str]) -> None:
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    if title:
        ax.set_title(title)
    ax.grid(True, which="both", linestyle=":", linewidth=0.6)
    if ax.get_legend_handles_labels()[0]:
        ax.legend(frameon=False, loc="best")


def waveform_fig(
    wave: NodeWaveform,
    *,
    ax: Optional[plt.Axes] = None,
    title: Optional[str] = "Sensor node voltages (one period)",
) -> Tuple[plt.Figure, plt.Axes]:
    """Va and Vb over one drive period, time axis in µs."""
    fig, ax = _new_axes(ax)
    t_us = np.asarray(wave.t_s, dtype=np.float64) * 1e6
    ax.plot(t_us, wave.va_node_v, label=r"$V_A$", linewidth=1.6)
    ax.plot(t_us, wave.vb_node_v, label=r"$V_B$", linewidth=1.6, linestyle="--")
    ax.axvline(0.5 * wave.period_s * 1e6, color="0.6", linewidth=0.8)
    _finish(ax, "t (µs)", "Node voltage (V)", title)
    return fig, ax


def trace_fig(
    trace: Iterable[TracePoint],
    *,
    ax: Optional[plt.Axes] = None,
    title: Optional[str] = "Charge-transfer convergence",
) -> Tuple[plt.Figure, plt.Axes]:
    """v3 and Vout (= -v4) per cycle."""
    fig, ax = _new_axes(ax)
    df = trace_frame(trace)
    ax.plot(df["iteration"], df["v3"], label=r"$v_3$", linewidth=1.4)
    ax.plot(df["iteration"], df["v_out"], label=r"$V_{out}$", linewidth=1.8)
    _finish(ax, "Cycle", "Voltage (V)", title)
    return fig, ax


def residual_fig(
    trace: Iterable[TracePoint],
    *,
    scale: str = "log",
    ax: Optional[plt.Axes] = None,
    title: Optional[str] = "Solver residual",
) -> Tuple[plt.Figure, plt.Axes]:
    fig, ax = _new_axes(ax)
    s = residual_series(trace, scale)
    ax.plot(s.index, s.to_numpy(), linewidth=1.4,
            label="log10 residual" if scale == "log" else "residual")
    ylabel = "log10(Residual V)" if scale == "log" else "Residual (V)"
    _finish(ax, "Iteration", ylabel, title)
    return fig, ax


def sweep_fig(
    frame: pd.DataFrame,
    param: str,
    *,
    y: str = "v_out_steady_v",
    log_x: Optional[bool] = None,
    ax: Optional[plt.Axes] = None,
    title: Optional[str] = None,
) -> Tuple[plt.Figure, plt.Axes]:
    """One sweep column against the swept parameter; frequency defaults to log x."""
    fig, ax = _new_axes(ax)
    ax.plot(frame[param], frame[y], linewidth=1.6)
    bad = frame[~frame["solver_converged"]] if "solver_converged" in frame else frame.iloc[0:0]
    if not bad.empty:
        ax.plot(bad[param], bad[y], "x", color="tab:red", label="not converged")
    use_log = (param == "freq_hz") if log_x is None else log_x
    if use_log:
        ax.set_xscale("log")
    _finish(ax, _AXIS_LABELS.get(param, param), "Vout (V)" if y == "v_out_steady_v" else y, title)
    return fig, ax
