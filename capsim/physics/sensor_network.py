# capsim/physics/sensor_network.py
"""
Two-node RC sensor network: drive source -> R10/R11 -> sensing nodes A/B.

Each node is loaded by its sensor capacitance to ground (Ca, Cb) and the two
nodes are tied together by a mutual coupling capacitance Cc.

Steady (sampled) node voltages come from the linearised RC-domain nodal
equations at angular frequency ω:

    (Va - Vs)/R10 + ω Ca Va + ω Cc (Va - Vb) = 0
    (Vb - Vs)/R11 + ω Cb Vb + ω Cc (Vb - Va) = 0

which reduce to the single-pole form Vs / (1 + ω R C) when Cc = 0.

The transient waveform integrates the same network in time with forward
Euler under a ±Vs square-wave drive:

    C_mat · d[Va, Vb]/dt = [g10 (Vs - Va), g11 (Vs - Vb)]
    C_mat = [[Ca + Cc, -Cc], [-Cc, Cb + Cc]]

Forward Euler is only stable while dt·G/C stays well below 1 for both nodes
(dt = T/2 / steps_per_half). The default 180 steps per half-cycle keeps the
nominal front end far inside that region; very small capacitances at low
frequency need more steps. This is not checked.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import numpy as np

from ..geometry.plates import solve_geometry
from ..models.defaults import prepare_inputs
from ..utils.constants import TINY_CAP_F
from ..utils.validation import require_finite, require_positive, require_non_negative

__all__ = [
    "NodeVoltages",
    "NodeWaveform",
    "solve_sensor_node_voltages",
    "simulate_sensor_node_waveform",
]

DET_FLOOR = 1e-30
MIN_POINTS_PER_CYCLE = 80
MIN_STEPS_PER_HALF = 40


@dataclass(frozen=True, slots=True)
class NodeVoltages:
    """Sampled node voltages [V]; ``fallback`` marks the decoupled single-pole path."""
    va_node_v: float
    vb_node_v: float
    fallback: bool = False


@dataclass(frozen=True, slots=True)
class NodeWaveform:
    """
    One period of node voltages after warm-up.

    Arrays share the time axis t_s, which starts at 0 and ends at period_s
    (2*steps_per_half + 1 samples).
    """
    t_s: np.ndarray
    va_node_v: np.ndarray
    vb_node_v: np.ndarray
    period_s: float
    d_left_m: float
    d_right_m: float
    ca_f: float
    cb_f: float


def solve_sensor_node_voltages(
    *,
    v_drive_peak_v: float,
    r10_ohm: float,
    r11_ohm: float,
    ca_f: float,
    cb_f: float,
    cc_f: float,
    omega: float,
) -> NodeVoltages:
    """2x2 Cramer solve of the nodal equations, with single-pole fallback."""
    vs = require_finite("v_drive_peak_v", v_drive_peak_v)
    r10 = require_positive("r10_ohm", r10_ohm)
    r11 = require_positive("r11_ohm", r11_ohm)
    ca = require_non_negative("ca_f", ca_f)
    cb = require_non_negative("cb_f", cb_f)
    cc = require_non_negative("cc_f", cc_f)
    w = require_non_negative("omega", omega)

    g10 = 1.0 / r10
    g11 = 1.0 / r11
    k = w * cc

    a11 = g10 + w * ca + k
    a12 = -k
    a21 = -k
    a22 = g11 + w * cb + k
    b1 = g10 * vs
    b2 = g11 * vs

    det = a11 * a22 - a12 * a21
    if not np.isfinite(det) or abs(det) < DET_FLOOR:
        return NodeVoltages(
            va_node_v=vs / (1.0 + w * r10 * ca),
            vb_node_v=vs / (1.0 + w * r11 * cb),
            fallback=True,
        )

    va = (b1 * a22 - a12 * b2) / det
    vb = (a11 * b2 - b1 * a21) / det
    return NodeVoltages(va_node_v=float(va), vb_node_v=float(vb))


def _capacitance_inverse(ca_f: float, cb_f: float, cc_f: float) -> np.ndarray:
    cA = max(ca_f, TINY_CAP_F)
    cB = max(cb_f, TINY_CAP_F)
    cC = max(cc_f, 0.0)
    det = max(cA * cB + cC * (cA + cB), 1e-24)
    return np.array([[cB + cC, cC], [cC, cA + cC]], dtype=np.float64) / det


def simulate_sensor_node_waveform(
    inputs: Optional[Mapping[str, Any] | Any] = None,
    *,
    points_per_cycle: int = 360,
    warmup_cycles: int = 40,
) -> NodeWaveform:
    """
    Forward-Euler transient of the node network under a ±Vs square wave.

    Runs ``warmup_cycles`` full periods to settle onto the periodic attractor,
    then records one more period (+Vs half first). Inputs are clamped and
    checked the same way as for simulate().
    """
    p = prepare_inputs(inputs)
    geom = solve_geometry(p)

    period_s = 1.0 / float(p.freq_hz)
    half_period_s = 0.5 * period_s
    drive_v = float(p.v_drive_peak_v)

    points = max(MIN_POINTS_PER_CYCLE, int(round(points_per_cycle)))
    steps_per_half = max(MIN_STEPS_PER_HALF, points // 2)
    warmup = max(1, int(round(warmup_cycles)))
    dt_s = half_period_s / steps_per_half

    c_inv = _capacitance_inverse(geom.ca_f, geom.cb_f, float(p.cc_f))
    g = np.array([1.0 / p.r10_ohm, 1.0 / p.r11_ohm])

    v = np.zeros(2, dtype=np.float64)

    def _step(v_src: float) -> None:
        i_node = g * (v_src - v)
        v[:] = v + dt_s * (c_inv @ i_node)

    for _ in range(warmup):
        for v_src in (+drive_v, -drive_v):
            for _ in range(steps_per_half):
                _step(v_src)

    n = 2 * steps_per_half + 1
    t_s = np.arange(n, dtype=np.float64) * dt_s
    va = np.empty(n, dtype=np.float64)
    vb = np.empty(n, dtype=np.float64)
    va[0], vb[0] = v
    j = 1
    for v_src in (+drive_v, -drive_v):
        for _ in range(steps_per_half):
            _step(v_src)
            va[j], vb[j] = v
            j += 1
    # pin the last sample to the period exactly
    t_s[-1] = period_s

    return NodeWaveform(
        t_s=t_s,
        va_node_v=va,
        vb_node_v=vb,
        period_s=period_s,
        d_left_m=geom.d_left_m,
        d_right_m=geom.d_right_m,
        ca_f=geom.ca_f,
        cb_f=geom.cb_f,
    )
