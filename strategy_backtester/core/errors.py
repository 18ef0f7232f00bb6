"""
Engine errors. Only input problems are fatal; they are raised before any simulation starts.
"""

from __future__ import annotations
from typing import Any, Optional


class InputError(ValueError):
    """Rejected run: bad candles, risk config or strategy definition. `field` names the offending input."""

    def __init__(self, field: str, message: str, value: Optional[Any] = None):
        self.field = field
        self.value = value
        super().__init__(f"{field}: {message}")
