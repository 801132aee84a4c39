# capsim/postprocess/solver_trace.py
"""
Tabulate solver traces for plots and CSV export.
"""
from __future__ import annotations

from typing import Iterable, Literal

import numpy as np
import pandas as pd

from capsim.solver.steady_state import TracePoint

__all__ = ["trace_frame", "residual_series"]

RESIDUAL_FLOOR_V = 1e-18


def trace_frame(trace: Iterable[TracePoint]) -> pd.DataFrame:
    """iteration, v3, v4, v_out (= -v4) and residual_v per row."""
    rows = [
        {"iteration": t.iteration, "v3": t.v3, "v4": t.v4, "v_out": -t.v4, "residual_v": t.residual_v}
        for t in trace
    ]
    return pd.DataFrame(rows, columns=["iteration", "v3", "v4", "v_out", "residual_v"])


def residual_series(
    trace: Iterable[TracePoint], scale: Literal["linear", "log"] = "linear"
) -> pd.Series:
    """Residual per iteration; ``log`` gives log10 of |residual| floored at 1e-18."""
    df = trace_frame(trace)
    r = df["residual_v"].to_numpy(dtype=np.float64)
    if scale == "log":
        values = np.log10(np.maximum(np.abs(r), RESIDUAL_FLOOR_V))
        name = "log10_residual_v"
    elif scale == "linear":
        values = np.maximum(r, 0.0)
        name = "residual_v"
    else:
        raise ValueError(f"Unknown residual scale: {scale!r}")
    return pd.Series(values, index=df["iteration"].to_numpy(), name=name)
