"""Lot size helpers for simulated fills."""

from __future__ import annotations
import math


def round_quantity(qty: float, step_size: float, min_qty: float = 0.0) -> float:
    """Round down to step size (0 = no rounding); return 0 if below min_qty."""
    if qty <= 0:
        return 0.0
    if step_size > 0:
        qty = round(math.floor(qty / step_size + 1e-9) * step_size, 12)
    if qty < min_qty or qty <= 0:
        return 0.0
    return qty
