import streamlit as st
from dataclasses import replace
from capsim.geometry.plates import displacement_mm_from_position, position_from_displacement_mm
from capsim.models.defaults import DEFAULT_INPUTS, DEFAULT_SOLVER
from capsim.models.sensor import simulate_with_state
from capsim.physics.sensor_network import simulate_sensor_node_waveform
from capsim.postprocess.visualization import residual_fig, sweep_fig, trace_fig, waveform_fig
from capsim.workflows.sweep import sweep_frequency, sweep_gap, sweep_position

# streamlit run capsim/apps/viewer_streamlit.py
st.set_page_config(page_title="capsim Viewer", layout="wide")
d = DEFAULT_INPUTS
sb = st.sidebar

sb.header("Geometry")
width_cm = sb.slider("Plate width (cm)", 1.0, 15.0, float(d.width_cm), 0.1)
height_cm = sb.slider("Plate height (cm)", 1.0, 15.0, float(d.height_cm), 0.1)
gap_mm = sb.slider("Total gap (mm)", 0.2, 5.0, float(d.total_gap_mm), 0.01)
min_gap_mm = sb.slider("Min gap (mm)", 0.01, 0.5, float(d.min_gap_mm), 0.01)
half_travel = 0.5 * gap_mm
offset_mm = sb.slider("Displacement from centre (mm)", -half_travel, half_travel,
                      float(displacement_mm_from_position(d.position, gap_mm)), 0.001)
epsilon_r = sb.slider("εr", 1.0, 10.0, float(d.epsilon_r), 0.0001)

sb.header("Drive & front end")
freq_hz = sb.slider("Frequency (kHz)", 1.0, 500.0, d.freq_hz / 1e3, 0.5) * 1e3
v_drive = sb.slider("Drive peak (V)", 0.5, 15.0, float(d.v_drive_peak_v), 0.1)
r10 = sb.slider("R10 (kΩ)", 1.0, 100.0, d.r10_ohm / 1e3, 0.5) * 1e3
r11 = sb.slider("R11 (kΩ)", 1.0, 100.0, d.r11_ohm / 1e3, 0.5) * 1e3
i_bias = sb.slider("Bias current (pA)", -1000.0, 1000.0, d.i_bias_a * 1e12, 1.0) * 1e-12
c3 = sb.slider("C3 (pF)", 100.0, 20000.0, d.c3_f * 1e12, 100.0) * 1e-12
c4 = sb.slider("C4 (pF)", 100.0, 20000.0, d.c4_f * 1e12, 100.0) * 1e-12
cc = sb.slider("Mutual Cc (pF)", 0.0, 200.0, d.cc_f * 1e12, 1.0) * 1e-12
residual_scale = sb.radio("Residual scale", ["linear", "log"], horizontal=True)

inputs = replace(
    d,
    width_cm=width_cm, height_cm=height_cm, total_gap_mm=gap_mm, min_gap_mm=min_gap_mm,
    position=position_from_displacement_mm(offset_mm, gap_mm), epsilon_r=epsilon_r,
    freq_hz=freq_hz, v_drive_peak_v=v_drive, r10_ohm=r10, r11_ohm=r11,
    i_bias_a=i_bias, c3_f=c3, c4_f=c4, cc_f=cc,
)

st.title("Charge-transfer capacitive position sensor")
try:
    op = simulate_with_state(inputs, st.session_state.get("state"), replace(DEFAULT_SOLVER, collect_trace=True))
except (TypeError, ValueError) as exc:
    st.error(str(exc)); st.stop()
st.session_state["state"] = op.state
r = op.result

c1, c2, c3_col, c4_col = st.columns(4)
c1.metric("Ca", f"{r.ca_f * 1e12:.2f} pF")
c2.metric("Cb", f"{r.cb_f * 1e12:.2f} pF")
c3_col.metric("ΔVin", f"{r.delta_vin_v * 1e3:+.2f} mV")
c4_col.metric("Vout", f"{r.v_out_steady_v:+.4f} V")
st.caption(f"solver: {r.solver_method}, converged={r.solver_converged}, iters={r.solver_iterations} | "
           f"τA={r.tau_a_s * 1e6:.3f} µs, τB={r.tau_b_s * 1e6:.3f} µs | "
           f"full-charge limit ≈ {r.f_warning_threshold_hz / 1e3:.1f} kHz")
for w in r.warnings:
    st.warning(w)

left, right = st.columns(2)
with left:
    st.pyplot(waveform_fig(simulate_sensor_node_waveform(inputs, points_per_cycle=360, warmup_cycles=50))[0])
    if op.trace:
        st.pyplot(trace_fig(op.trace)[0])
        st.pyplot(residual_fig(op.trace, scale=residual_scale)[0])
with right:
    sweep_solver = DEFAULT_SOLVER
    st.pyplot(sweep_fig(sweep_frequency(inputs, seed_state=op.state, solver=sweep_solver).frame, "freq_hz")[0])
    st.pyplot(sweep_fig(sweep_position(inputs, seed_state=op.state, solver=sweep_solver).frame, "position")[0])
    st.pyplot(sweep_fig(sweep_gap(inputs, seed_state=op.state, solver=sweep_solver).frame, "total_gap_mm")[0])
