# -*- coding: utf-8 -*-
"""
Results IO helpers.

Write:
  * metrics.json   (operating-point result record)
  * trace.csv      (solver trace)
  * sweep.csv      (one row per sweep point)
  * waveform.npz   (node voltages over one drive period)

This keeps on-disk layout stable for the viewer and post-processing.
"""
from __future__ import annotations
import json
import math
from pathlib import Path
from typing import Any, Dict

import numpy as np
import pandas as pd

from capsim.physics.sensor_network import NodeWaveform


def _jsonable(value: Any) -> Any:
    # json has no inf/nan; non-converged residuals can be inf
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def write_metrics(run_dir: Path, metrics: Dict[str, Any]) -> Path:
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / "metrics.json"
    with open(out, "w") as f:
        json.dump(_jsonable(metrics), f, indent=2, sort_keys=True)
    return out


def read_metrics(run_dir: Path) -> Dict[str, Any]:
    with open(Path(run_dir) / "metrics.json") as f:
        return json.load(f)


def write_frame_csv(run_dir: Path, name: str, frame: pd.DataFrame) -> Path:
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / f"{name}.csv"
    frame.to_csv(out, index=False)
    return out


def save_waveform_npz(run_dir: Path, wave: NodeWaveform) -> Path:
    run_dir = Path(run_dir)
    run_dir.mkdir(parents=True, exist_ok=True)
    out = run_dir / "waveform.npz"
    np.savez_compressed(
        out,
        t_s=wave.t_s,
        va_node_v=wave.va_node_v,
        vb_node_v=wave.vb_node_v,
        period_s=wave.period_s,
        geometry=np.array([wave.d_left_m, wave.d_right_m, wave.ca_f, wave.cb_f]),
    )
    return out


def load_waveform_npz(path: Path) -> NodeWaveform:
    with np.load(path) as data:
        d_left, d_right, ca, cb = (float(x) for x in data["geometry"])
        return NodeWaveform(
            t_s=data["t_s"],
            va_node_v=data["va_node_v"],
            vb_node_v=data["vb_node_v"],
            period_s=float(data["period_s"]),
            d_left_m=d_left,
            d_right_m=d_right,
            ca_f=ca,
            cb_f=cb,
        )
