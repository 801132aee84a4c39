# capsim/tests/conftest.py
from __future__ import annotations

import math
from dataclasses import replace

import matplotlib
import pytest

matplotlib.use("Agg")

from capsim.geometry.plates import position_from_displacement_mm
from capsim.models.defaults import DEFAULT_INPUTS, DEFAULT_SOLVER

DOC_GAP_MM = 1.58


@pytest.fixture
def doc_fixture():
    """Bench prototype: 43.5 cm^2 plates, 1.58 mm gap, 20 kΩ sources, 4.7 nF stage, no Cc."""
    side_cm = math.sqrt(43.5)

    def _make(**overrides):
        base = replace(
            DEFAULT_INPUTS,
            width_cm=side_cm,
            height_cm=side_cm,
            total_gap_mm=DOC_GAP_MM,
            min_gap_mm=0.05,
            position=0.5,
            freq_hz=62500.0,
            v_drive_peak_v=5.0,
            r10_ohm=20e3,
            r11_ohm=20e3,
            i_bias_a=50e-12,
            c3_f=4.7e-9,
            c4_f=4.7e-9,
            cc_f=0.0,
            epsilon_r=1.0,
        )
        return replace(base, **overrides)

    return _make


@pytest.fixture
def displaced():
    """Position for a plate displacement [mm] in the 1.58 mm bench gap."""
    return lambda x_mm: position_from_displacement_mm(x_mm, DOC_GAP_MM)


@pytest.fixture
def ten_cycle_solver():
    """Ten forced transfer cycles: no tolerance stop, unit gain, no clamp."""
    return replace(DEFAULT_SOLVER, tol_v=0.0, max_iter=10, transfer_gain=1.0,
                   use_output_clamp=False, collect_trace=False)
