# capsim/models/defaults.py
"""
Immutable default records for the sensor front end and the steady-state solver.

DEFAULT_INPUTS / DEFAULT_SOLVER are built once at import and never mutated;
callers override fields through merge_inputs() / merge_solver(), which always
return a fresh record.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

from ..utils.validation import require_finite, require_non_negative, require_positive

__all__ = [
    "SensorInputs",
    "SolverConfig",
    "DEFAULT_INPUTS",
    "DEFAULT_SOLVER",
    "merge_inputs",
    "merge_solver",
    "prepare_inputs",
]


@dataclass(frozen=True, slots=True)
class SensorInputs:
    """
    Physical front-end parameters.

    Attributes
    ----------
    width_cm, height_cm : float
        Plate sides [cm].
    total_gap_mm, min_gap_mm : float
        Fixed-plate separation and per-side gap floor [mm].
    position : float
        Moving-plate position fraction, 0 = left, 1 = right, 0.5 = centred.
    freq_hz : float
        Switching / drive frequency [Hz].
    v_drive_peak_v : float
        Square-wave drive amplitude [V].
    r10_ohm, r11_ohm : float
        Source resistances into nodes A and B [Ω].
    i_bias_a : float
        Op-amp input bias current [A], signed.
    c3_f, c4_f : float
        Sampling and transfer capacitors [F].
    cc_f : float
        Mutual coupling between nodes A and B [F].
    epsilon_r : float
        Relative permittivity of the gap.
    """
    width_cm: float = math.sqrt(43.5)
    height_cm: float = math.sqrt(43.5)
    total_gap_mm: float = 1.58
    min_gap_mm: float = 0.05
    position: float = 0.5
    freq_hz: float = 62500.0
    v_drive_peak_v: float = 5.0
    r10_ohm: float = 10e3
    r11_ohm: float = 10e3
    i_bias_a: float = 50e-12      # AD706 typical input bias at 25 °C
    c3_f: float = 4700e-12
    c4_f: float = 4700e-12
    cc_f: float = 10e-12
    epsilon_r: float = 1.0006


@dataclass(frozen=True, slots=True)
class SolverConfig:
    """Steady-state solver controls. ``debug`` prints per-iteration diagnostics."""
    tol_v: float = 1e-9
    max_iter: int = 10000
    transfer_gain: float = 1.0
    use_output_clamp: bool = True
    clamp_min_v: float = -12.0   # supply rails
    clamp_max_v: float = 12.0
    collect_trace: bool = False
    debug: bool = False


DEFAULT_INPUTS = SensorInputs()
DEFAULT_SOLVER = SolverConfig()


def _merge(kind: type, base, overrides):
    if overrides is None:
        return base
    if isinstance(overrides, kind):
        return overrides
    if not isinstance(overrides, Mapping):
        raise TypeError(f"{kind.__name__} overrides must be a mapping or {kind.__name__}")
    known = {f.name for f in fields(kind)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ValueError(f"Unknown {kind.__name__} field(s): {', '.join(unknown)}")
    return replace(base, **dict(overrides))


def merge_inputs(
    overrides: Optional[Mapping[str, Any] | SensorInputs] = None,
    base: SensorInputs = DEFAULT_INPUTS,
) -> SensorInputs:
    """Return ``base`` with ``overrides`` applied (a full SensorInputs replaces it)."""
    return _merge(SensorInputs, base, overrides)


def merge_solver(
    overrides: Optional[Mapping[str, Any] | SolverConfig] = None,
    base: SolverConfig = DEFAULT_SOLVER,
) -> SolverConfig:
    return _merge(SolverConfig, base, overrides)


def prepare_inputs(inputs: Optional[Mapping[str, Any] | SensorInputs] = None) -> SensorInputs:
    """
    Merge over defaults, clamp position into [0, 1] and min gap to the total gap,
    then check every field. Raises TypeError/ValueError on contract violations.
    """
    p = merge_inputs(inputs)
    position = require_finite("position", p.position)
    total_gap_mm = require_finite("total_gap_mm", p.total_gap_mm)
    min_gap_mm = require_finite("min_gap_mm", p.min_gap_mm)
    p = replace(
        p,
        position=min(1.0, max(0.0, position)),
        min_gap_mm=min(min_gap_mm, total_gap_mm),
    )

    require_positive("freq_hz", p.freq_hz)
    require_finite("v_drive_peak_v", p.v_drive_peak_v)
    require_positive("r10_ohm", p.r10_ohm)
    require_positive("r11_ohm", p.r11_ohm)
    require_finite("i_bias_a", p.i_bias_a)
    require_positive("c3_f", p.c3_f)
    require_positive("c4_f", p.c4_f)
    require_non_negative("cc_f", p.cc_f)
    return p
