# capsim/geometry/plates.py
"""
Differential plate geometry -> capacitance pair.

- A moving centre plate sits between two fixed plates separated by total_gap.
- position=0 puts the moving plate against the left plate, position=1 against
  the right one; each physical gap is floored at min_gap.
- Parallel-plate model per side: C = eps0 * eps_r * A / d.

Public API (stable):
    GeometryResult
    solve_geometry(inputs) -> GeometryResult
    position_from_displacement_mm(x_mm, total_gap_mm) -> float
    displacement_mm_from_position(position, total_gap_mm) -> float

Units follow the input record: plate sides in cm, gaps in mm. Everything
returned is SI.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..utils.constants import EPS0, TINY_GAP_M
from ..utils.validation import require_finite, require_positive, require_ordered

__all__ = [
    "GeometryResult",
    "solve_geometry",
    "position_from_displacement_mm",
    "displacement_mm_from_position",
]


@dataclass(frozen=True, slots=True)
class GeometryResult:
    """
    Geometry result (SI).

    Attributes
    ----------
    area_m2 : float
        Plate overlap area [m^2].
    total_gap_m, min_gap_m : float
        Fixed-plate separation and gap floor [m].
    d_left_m, d_right_m : float
        Physical gaps on each side after flooring [m].
    ca_f, cb_f : float
        Left/right capacitances [F].
    delta_c_f : float
        ca_f - cb_f [F].
    """
    area_m2: float
    total_gap_m: float
    min_gap_m: float
    d_left_m: float
    d_right_m: float
    ca_f: float
    cb_f: float
    delta_c_f: float


def solve_geometry(inputs) -> GeometryResult:
    """
    Map plate dimensions and position to the two capacitances.

    ``inputs`` is any object with attributes width_cm, height_cm, total_gap_mm,
    min_gap_mm, position and epsilon_r (normally a SensorInputs).
    """
    width_cm = require_positive("width_cm", inputs.width_cm)
    height_cm = require_positive("height_cm", inputs.height_cm)
    total_gap_mm = require_positive("total_gap_mm", inputs.total_gap_mm)
    min_gap_mm = require_positive("min_gap_mm", inputs.min_gap_mm)
    position = require_finite("position", inputs.position)
    epsilon_r = require_positive("epsilon_r", inputs.epsilon_r)
    if not 0.0 <= position <= 1.0:
        raise ValueError("position must be within [0, 1]")
    require_ordered("min_gap_mm", min_gap_mm, "total_gap_mm", total_gap_mm)

    area_m2 = (width_cm * 1e-2) * (height_cm * 1e-2)
    total_gap_m = total_gap_mm * 1e-3
    min_gap_m = min_gap_mm * 1e-3
    d_left_m = max(min_gap_m, position * total_gap_m)
    d_right_m = max(min_gap_m, (1.0 - position) * total_gap_m)

    eps_a = EPS0 * epsilon_r * area_m2
    ca_f = eps_a / max(d_left_m, TINY_GAP_M)
    cb_f = eps_a / max(d_right_m, TINY_GAP_M)

    return GeometryResult(
        area_m2=area_m2,
        total_gap_m=total_gap_m,
        min_gap_m=min_gap_m,
        d_left_m=d_left_m,
        d_right_m=d_right_m,
        ca_f=ca_f,
        cb_f=cb_f,
        delta_c_f=ca_f - cb_f,
    )


def position_from_displacement_mm(x_mm: float, total_gap_mm: float) -> float:
    """Positive displacement moves the plate toward the left electrode."""
    return 0.5 - x_mm / total_gap_mm


def displacement_mm_from_position(position: float, total_gap_mm: float) -> float:
    return (0.5 - position) * total_gap_mm
