# capsim/utils/constants.py
from __future__ import annotations

__all__ = ["EPS0", "PI", "TINY_GAP_M", "TINY_CAP_F"]

# Fundamental constants (SI)
EPS0 = 8.8541878128e-12      # vacuum permittivity [F/m]
PI   = 3.141592653589793

# Numerical floors
TINY_GAP_M = 1e-15           # smallest gap used in C = eps*A/d [m]
TINY_CAP_F = 1e-18           # smallest capacitance used as a divisor [F]
