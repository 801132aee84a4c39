"""
capsim/utils/diagnostics.py

Targeted, low-noise diagnostics to understand how a steady-state solve went.
Solvers call these only when debug=True.
"""

from __future__ import annotations

import math


def _fmt(x: float) -> str:
    return f"{x:+.3e}" if math.isfinite(x) else "nan"


def log_solver_start(
    *,
    solver: str,
    v3: float,
    v4: float,
    tol_v: float,
    max_iter: int,
    prefix: str = "[sol]",
) -> None:
    print(
        f"{prefix} {solver} start | seed v3={_fmt(v3)} V v4={_fmt(v4)} V | "
        f"tol={tol_v:.1e} V | max_iter={max_iter}"
    )


def log_closed_form(
    *,
    a: float,
    b: float,
    v4_star: float,
    accepted: bool,
    reason: str = "",
    prefix: str = "[sol]",
) -> None:
    """One line per closed-form attempt; ``reason`` explains a rejection."""
    why = f" ({reason})" if reason else ""
    print(
        f"{prefix} closed-form | a={a:+.6f} b={_fmt(b)} V | "
        f"v4*={_fmt(v4_star)} V | accepted={accepted}{why}"
    )


def log_solver_iter(
    *,
    solver: str,
    it: int,
    v3: float,
    v4: float,
    residual_v: float,
    prefix: str = "[sol]",
) -> None:
    print(
        f"{prefix} {solver} iter {it:05d} | v3={_fmt(v3)} V | v4={_fmt(v4)} V | "
        f"|Δv|_inf={residual_v:.3e} V"
    )


def log_convergence_summary(
    *,
    solver: str,
    converged: bool,
    iters: int,
    residual_v: float,
    prefix: str = "[sol]",
) -> None:
    print(
        f"{prefix} {solver} done | converged={converged} | iters={iters} | "
        f"|Δv|_inf={residual_v:.3e} V"
    )


def log_network_summary(
    *,
    va: float,
    vb: float,
    fallback: bool,
    prefix: str = "[net]",
) -> None:
    print(
        f"{prefix} nodes | Va={_fmt(va)} V | Vb={_fmt(vb)} V | "
        f"ΔVin={_fmt(va - vb)} V | fallback={fallback}"
    )
