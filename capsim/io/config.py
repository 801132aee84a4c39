# capsim/io/config.py
# -*- coding: utf-8 -*-
"""
YAML -> SensorInputs, SolverConfig and SweepSpec helpers.

Schema (example):

inputs:
  position: 0.4367
  freq_hz: 62500
  r10_ohm: 20000
  r11_ohm: 20000
  cc_f: 0.0
solver:
  tol_v: 1.0e-9
  max_iter: 10000
  use_output_clamp: true
sweep:
  param: freq_hz
  start: 1000
  stop: 500000
  points: 180
  spacing: log
waveform:
  points_per_cycle: 360
  warmup_cycles: 40
output:
  dir: runs/example

Only ``inputs`` is required; every field inside it falls back to DEFAULT_INPUTS.
"""
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

from capsim.models.defaults import (
    DEFAULT_SOLVER, SensorInputs, SolverConfig, merge_inputs, merge_solver,
)
from capsim.workflows.sweep import SweepSpec

__all__ = [
    "RunConfig",
    "load_config",
    "parse_config",
    "apply_overrides",
    "build_inputs",
    "build_solver",
    "build_sweep",
    "waveform_options",
    "output_dir",
]

_TOP_LEVEL_KEYS = ("inputs", "solver", "sweep", "waveform", "output")


@dataclass
class RunConfig:
    raw: dict
    path: Optional[Path]


def load_config(path: Path) -> RunConfig:
    return parse_config(Path(path).read_text(), path=Path(path))


def parse_config(text: str, path: Optional[Path] = None) -> RunConfig:
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Top-level YAML must be a mapping")
    _validate_minimum(data)
    return RunConfig(raw=data, path=path)


def apply_overrides(cfg: RunConfig, overrides: Sequence[str]) -> RunConfig:
    """
    Apply ``section.key=value`` overrides in place (values parsed as YAML scalars).

    e.g. ["inputs.position=0.42", "solver.collect_trace=true"]
    """
    for item in overrides:
        if "=" not in item:
            raise ValueError(f"Override must look like key.path=value: {item!r}")
        dotted, value_txt = item.split("=", 1)
        keys = [k.strip() for k in dotted.split(".") if k.strip()]
        if not keys:
            raise ValueError(f"Empty override key: {item!r}")
        node = cfg.raw
        for key in keys[:-1]:
            child = node.setdefault(key, {})
            if not isinstance(child, dict):
                raise ValueError(f"Override path {dotted!r} crosses a non-mapping at {key!r}")
            node = child
        node[keys[-1]] = yaml.safe_load(value_txt)
    _validate_minimum(cfg.raw)
    return cfg


def _section(cfg: RunConfig, key: str) -> dict:
    sec = cfg.raw.get(key) or {}
    if not isinstance(sec, dict):
        raise ValueError(f"{key} must be a mapping")
    return sec


def build_inputs(cfg: RunConfig) -> SensorInputs:
    return merge_inputs({k: float(v) for k, v in _section(cfg, "inputs").items()})


def build_solver(cfg: RunConfig) -> SolverConfig:
    coerced = {}
    for key, value in _section(cfg, "solver").items():
        default = getattr(DEFAULT_SOLVER, key, None)
        # YAML 1.1 reads exponents without a dot (1e-9, 1e4) as strings
        if isinstance(default, float) and isinstance(value, str):
            value = float(value)
        elif isinstance(default, int) and not isinstance(default, bool) and isinstance(value, (str, float)):
            as_float = float(value)
            if as_float.is_integer():
                value = int(as_float)
        coerced[key] = value
    return merge_solver(coerced)


def build_sweep(cfg: RunConfig) -> Optional[SweepSpec]:
    s = _section(cfg, "sweep")
    if not s:
        return None
    return SweepSpec(
        param=str(s["param"]),
        start=float(s["start"]),
        stop=float(s["stop"]),
        points=int(s.get("points", 50)),
        spacing=str(s.get("spacing", "linear")).lower(),
    )


def waveform_options(cfg: RunConfig) -> Optional[dict[str, int]]:
    w = cfg.raw.get("waveform")
    if w is None:
        return None
    if not isinstance(w, dict):
        raise ValueError("waveform must be a mapping")
    return {
        "points_per_cycle": int(w.get("points_per_cycle", 360)),
        "warmup_cycles": int(w.get("warmup_cycles", 40)),
    }


def output_dir(cfg: RunConfig, default: Path = Path("runs")) -> Path:
    out = _section(cfg, "output").get("dir")
    if out:
        return Path(out)
    stem = cfg.path.stem if cfg.path is not None else "run"
    return Path(default) / stem


def _validate_minimum(cfg: dict[str, Any]) -> None:
    if "inputs" not in cfg:
        raise ValueError("Missing top-level key: inputs")
    unknown = sorted(set(cfg) - set(_TOP_LEVEL_KEYS))
    if unknown:
        raise ValueError(f"Unknown top-level key(s): {', '.join(unknown)}")
