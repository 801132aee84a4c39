# -*- coding: utf-8 -*-
"""
Minimal timestamped logger for workflows, the CLI and the viewer.

Messages carry an optional bracketed tag, e.g. ``[12:00:01] [sweep] ...``.
"""
from __future__ import annotations

import sys, time
from typing import Iterable, Optional


def _line(msg: str, tag: Optional[str], level: str = "") -> str:
    stamp = time.strftime("%H:%M:%S")
    tag_txt = f" [{tag}]" if tag else ""
    level_txt = f" {level}:" if level else ""
    return f"[{stamp}]{tag_txt}{level_txt} {msg}"


def info(msg: str, *, tag: Optional[str] = None):  print(_line(msg, tag), file=sys.stdout)
def warn(msg: str, *, tag: Optional[str] = None):  print(_line(msg, tag, "WARNING"), file=sys.stderr)
def error(msg: str, *, tag: Optional[str] = None): print(_line(msg, tag, "ERROR"), file=sys.stderr)


def report_warnings(warnings: Iterable[str], *, tag: Optional[str] = None) -> int:
    """Forward each model-validity warning to ``warn``; returns how many were printed."""
    count = 0
    for w in warnings:
        warn(w, tag=tag)
        count += 1
    return count
