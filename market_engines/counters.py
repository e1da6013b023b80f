"""
market_engines.counters -- behavioral counter sanitization.

Counters come from the store and from callers.  Before any policy rule
sees them they are normalised to non-negative integers: missing,
non-numeric, NaN, infinite and negative values become 0; fractional
values are floored.  Sanitization absorbs bad input; it never raises.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any


def sanitize_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if value > 0 else 0
    if isinstance(value, Decimal):
        if not value.is_finite():
            return 0
        floored = math.floor(value)
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0
        if not math.isfinite(number):
            return 0
        floored = math.floor(number)
    return floored if floored > 0 else 0
