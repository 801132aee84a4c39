# capsim/physics/charge_transfer.py
"""
One switching cycle of the charge-transfer front end.

C3 (sampling) is charged to the differential sensor voltage, shares its
charge with C4 (transfer/output) and C4 is drained by the op-amp input bias
current over the cycle:

    r      = C3 / (C3 + C4)
    v3d    = r * V_sample
    C_eq   = C3 C4 / (C3 + C4)
    q_t    = gain * C_eq * (v3d - v4)
    v3'    = v3d - q_t / C3
    v4'    = v4 + q_t / C4 - ΔV_bias
    q_s    = C3 * V_sample

v4' is clamped to [clamp_min_v, clamp_max_v] when the output clamp is on
(op-amp rail saturation).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from ..utils.constants import TINY_CAP_F
from ..utils.validation import (
    require_bool,
    require_finite,
    require_ordered,
    require_positive,
)

__all__ = [
    "ChargeState",
    "CycleDerived",
    "CycleResult",
    "clamp",
    "validate_state",
    "apply_cycle",
    "cycle_step",
]


@dataclass(frozen=True, slots=True)
class ChargeState:
    """(v3, v4) capacitor voltages [V]; the only value carried between cycles."""
    v3: float = 0.0
    v4: float = 0.0


@dataclass(frozen=True, slots=True)
class CycleDerived:
    """Per-cycle parameters of the transfer stage (SI)."""
    c3_f: float
    c4_f: float
    c3_sample_v: float
    delta_v_bias_per_cycle_v: float
    transfer_gain: float = 1.0
    use_clamp: bool = False
    clamp_min_v: float = -12.0
    clamp_max_v: float = 12.0


@dataclass(frozen=True, slots=True)
class CycleResult:
    state: ChargeState
    q_sensor_c: float
    q_transfer_c: float


def clamp(v: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, v))


def validate_state(state) -> ChargeState:
    """Accept a ChargeState, a {v3, v4} mapping or any (v3, v4)-like record; return a fresh ChargeState."""
    if state is None:
        raise TypeError("state must be a ChargeState, got None")
    if isinstance(state, Mapping):
        try:
            v3, v4 = state["v3"], state["v4"]
        except KeyError:
            raise TypeError("state mapping must provide v3 and v4") from None
    else:
        try:
            v3, v4 = state.v3, state.v4
        except AttributeError:
            raise TypeError("state must provide v3 and v4") from None
    return ChargeState(v3=require_finite("state.v3", v3), v4=require_finite("state.v4", v4))


def _validate_derived(derived: CycleDerived) -> None:
    if derived is None:
        raise TypeError("derived must be a CycleDerived, got None")
    require_positive("c3_f", derived.c3_f)
    require_positive("c4_f", derived.c4_f)
    require_finite("c3_sample_v", derived.c3_sample_v)
    require_finite("delta_v_bias_per_cycle_v", derived.delta_v_bias_per_cycle_v)
    require_finite("transfer_gain", derived.transfer_gain)
    require_bool("use_clamp", derived.use_clamp)
    require_finite("clamp_min_v", derived.clamp_min_v)
    require_finite("clamp_max_v", derived.clamp_max_v)
    require_ordered("clamp_min_v", derived.clamp_min_v, "clamp_max_v", derived.clamp_max_v)


def apply_cycle(state: ChargeState, d: CycleDerived) -> CycleResult:
    """cycle_step without the contract checks, for inner loops over pre-validated records."""
    c3, c4 = d.c3_f, d.c4_f
    c_sum = max(c3 + c4, TINY_CAP_F)
    v3_drive = (c3 / c_sum) * d.c3_sample_v
    c_eq = (c3 * c4) / c_sum

    q_transfer = d.transfer_gain * c_eq * (v3_drive - state.v4)
    v3_after = v3_drive - q_transfer / c3
    v4_after = state.v4 + q_transfer / c4 - d.delta_v_bias_per_cycle_v
    if d.use_clamp:
        v4_after = clamp(v4_after, d.clamp_min_v, d.clamp_max_v)

    return CycleResult(
        state=ChargeState(v3=v3_after, v4=v4_after),
        q_sensor_c=c3 * d.c3_sample_v,
        q_transfer_c=q_transfer,
    )


def cycle_step(state: ChargeState, derived: CycleDerived) -> CycleResult:
    """Apply one charge-transfer cycle to ``state``. Pure; validates its inputs."""
    s = validate_state(state)
    _validate_derived(derived)
    return apply_cycle(s, derived)
