# capsim/utils/validation.py
"""
Contract checks shared by every solver component.

Each pure function validates its own arguments and fails loudly:
  - ValueError for non-finite numbers and out-of-range values
  - TypeError for values of the wrong kind (flags, counts, missing records)
"""
from __future__ import annotations

import math
from numbers import Integral, Real
from typing import Any

__all__ = [
    "require_finite",
    "require_positive",
    "require_non_negative",
    "require_bool",
    "require_int_at_least",
    "require_ordered",
]


def require_finite(name: str, value: Any) -> float:
    # bool is a Real subclass but never a meaningful physical quantity
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"{name} must be a real number, got {type(value).__name__}")
    x = float(value)
    if not math.isfinite(x):
        raise ValueError(f"{name} must be a finite number")
    return x


def require_positive(name: str, value: Any) -> float:
    x = require_finite(name, value)
    if x <= 0.0:
        raise ValueError(f"{name} must be > 0")
    return x


def require_non_negative(name: str, value: Any) -> float:
    x = require_finite(name, value)
    if x < 0.0:
        raise ValueError(f"{name} must be >= 0")
    return x


def require_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{name} must be a bool")
    return value


def require_int_at_least(name: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{name} must be an integer")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return int(value)


def require_ordered(lo_name: str, lo: float, hi_name: str, hi: float) -> None:
    if lo > hi:
        raise ValueError(f"{lo_name} must be <= {hi_name}")
