# capsim/utils/__init__.py
from __future__ import annotations
from .constants import EPS0, PI, TINY_GAP_M, TINY_CAP_F

__all__ = ["EPS0", "PI", "TINY_GAP_M", "TINY_CAP_F"]
