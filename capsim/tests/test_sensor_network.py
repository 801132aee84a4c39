# -*- coding: utf-8 -*-
"""
Two-node RC network: Cramer solve, single-pole fallback and the Euler waveform.
"""
from __future__ import annotations

import math
from dataclasses import replace

import numpy as np
import pytest

from capsim.models.defaults import DEFAULT_INPUTS
from capsim.physics.sensor_network import (
    simulate_sensor_node_waveform,
    solve_sensor_node_voltages,
)

W_62K5 = 2 * math.pi * 62500


def _net(**overrides):
    kw = dict(v_drive_peak_v=5.0, r10_ohm=20e3, r11_ohm=20e3,
              ca_f=48e-12, cb_f=53e-12, cc_f=10e-12, omega=W_62K5)
    kw.update(overrides)
    return kw


def test_symmetric_network_gives_equal_nodes():
    out = solve_sensor_node_voltages(**_net(ca_f=50e-12, cb_f=50e-12, cc_f=50e-12))
    assert out.va_node_v == pytest.approx(out.vb_node_v, abs=1e-12)
    assert not out.fallback


def test_zero_frequency_passes_the_source():
    out = solve_sensor_node_voltages(**_net(omega=0.0))
    assert out.va_node_v == pytest.approx(5.0, abs=1e-12)
    assert out.vb_node_v == pytest.approx(5.0, abs=1e-12)


def test_uncoupled_network_matches_single_pole():
    out = solve_sensor_node_voltages(**_net(cc_f=0.0))
    assert out.va_node_v == pytest.approx(5.0 / (1 + W_62K5 * 20e3 * 48e-12), rel=1e-12)
    assert out.vb_node_v == pytest.approx(5.0 / (1 + W_62K5 * 20e3 * 53e-12), rel=1e-12)


def test_mutual_coupling_pulls_nodes_together():
    loose = solve_sensor_node_voltages(**_net(cc_f=0.0))
    tight = solve_sensor_node_voltages(**_net(cc_f=130e-12))
    assert abs(tight.va_node_v - tight.vb_node_v) < abs(loose.va_node_v - loose.vb_node_v)


def test_attenuates_with_frequency_and_stays_finite():
    low = solve_sensor_node_voltages(**_net(omega=2 * math.pi * 1e3))
    high = solve_sensor_node_voltages(**_net(omega=2 * math.pi * 5e6))
    assert abs(high.va_node_v) < abs(low.va_node_v)
    assert abs(high.vb_node_v) < abs(low.vb_node_v)
    assert math.isfinite(high.va_node_v) and math.isfinite(high.vb_node_v)


def test_tiny_determinant_uses_fallback():
    out = solve_sensor_node_voltages(**_net(
        v_drive_peak_v=1.23, r10_ohm=1e18, r11_ohm=1e18, ca_f=40e-12, cb_f=60e-12, cc_f=0.0, omega=0.0,
    ))
    assert out.fallback
    assert out.va_node_v == pytest.approx(1.23, abs=1e-12)
    assert out.vb_node_v == pytest.approx(1.23, abs=1e-12)


@pytest.mark.parametrize("key", ["v_drive_peak_v", "r10_ohm", "r11_ohm", "ca_f", "cb_f", "cc_f", "omega"])
def test_rejects_non_finite(key):
    with pytest.raises(ValueError, match="finite"):
        solve_sensor_node_voltages(**_net(**{key: float("nan")}))


@pytest.mark.parametrize("key, value", [
    ("r10_ohm", 0.0), ("r11_ohm", -1.0), ("ca_f", -1e-12), ("cb_f", -1e-12),
    ("cc_f", -1e-12), ("omega", -1.0),
])
def test_rejects_out_of_range(key, value):
    with pytest.raises(ValueError):
        solve_sensor_node_voltages(**_net(**{key: value}))


# ------------------------------- waveform -------------------------------------


def test_waveform_has_one_period_of_samples():
    inputs = replace(DEFAULT_INPUTS, position=0.52, cc_f=40e-12)
    wave = simulate_sensor_node_waveform(inputs, points_per_cycle=120, warmup_cycles=4)
    n = 1 + 2 * 60
    assert wave.t_s.shape == (n,)
    assert wave.va_node_v.shape == (n,)
    assert wave.vb_node_v.shape == (n,)
    assert wave.t_s[0] == 0.0
    assert wave.t_s[-1] == pytest.approx(wave.period_s, rel=1e-12)
    assert wave.period_s == pytest.approx(1 / inputs.freq_hz)


def test_waveform_enforces_minimum_resolution():
    wave = simulate_sensor_node_waveform(DEFAULT_INPUTS, points_per_cycle=10, warmup_cycles=1)
    assert wave.t_s.size == 1 + 2 * 40


def test_waveform_settles_to_periodic_square_response():
    wave = simulate_sensor_node_waveform({"position": 0.45}, points_per_cycle=360, warmup_cycles=40)
    half = (wave.t_s.size - 1) // 2
    # settled onto the attractor: period start and end agree
    assert wave.va_node_v[0] == pytest.approx(wave.va_node_v[-1], abs=1e-9)
    assert wave.vb_node_v[0] == pytest.approx(wave.vb_node_v[-1], abs=1e-9)
    # each half-cycle is long enough to charge fully to ±Vs
    v = DEFAULT_INPUTS.v_drive_peak_v
    assert wave.va_node_v[half] == pytest.approx(+v, abs=1e-3)
    assert wave.va_node_v[-1] == pytest.approx(-v, abs=1e-3)


def test_waveform_echoes_geometry():
    wave = simulate_sensor_node_waveform({"position": 0.3}, points_per_cycle=80, warmup_cycles=1)
    assert wave.d_left_m < wave.d_right_m
    assert wave.ca_f > wave.cb_f


def test_waveform_clamps_position_like_simulate():
    wave = simulate_sensor_node_waveform({"position": 1.2}, points_per_cycle=80, warmup_cycles=1)
    edge = simulate_sensor_node_waveform({"position": 1.0}, points_per_cycle=80, warmup_cycles=1)
    assert wave.d_right_m == pytest.approx(edge.d_right_m)
    assert wave.ca_f == pytest.approx(edge.ca_f)


def test_waveform_clamps_min_gap_to_total_gap():
    wave = simulate_sensor_node_waveform({"min_gap_mm": 2.0, "total_gap_mm": 1.0},
                                         points_per_cycle=80, warmup_cycles=1)
    assert wave.d_left_m == pytest.approx(1e-3)
    assert wave.d_right_m == pytest.approx(1e-3)
    assert np.all(np.isfinite(wave.va_node_v))


@pytest.mark.parametrize("bad", [{"r10_ohm": -1e3}, {"freq_hz": 0.0}, {"c4_f": -1.0}])
def test_waveform_rejects_invalid_front_end(bad):
    with pytest.raises(ValueError):
        simulate_sensor_node_waveform(bad, points_per_cycle=80, warmup_cycles=1)
