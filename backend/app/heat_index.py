"""Heat index (apparent temperature) via the NWS Rothfusz regression."""

from __future__ import annotations

import math
from typing import Any

from .geo import finite_float

# Rothfusz regression coefficients, Fahrenheit / percent RH.
C1 = -42.379
C2 = 2.04901523
C3 = 10.14333127
C4 = -0.22475541
C5 = -0.00683783
C6 = -0.05481717
C7 = 0.00122874
C8 = 0.00085282
C9 = -0.00000199


def c_to_f(temp_c: float) -> float:
    return temp_c * 9.0 / 5.0 + 32.0


def f_to_c(temp_f: float) -> float:
    return (temp_f - 32.0) * 5.0 / 9.0


def heat_index_f(t: float, r: float) -> float:
    hi = (
        C1
        + C2 * t
        + C3 * r
        + C4 * t * r
        + C5 * t * t
        + C6 * r * r
        + C7 * t * t * r
        + C8 * t * r * r
        + C9 * t * t * r * r
    )
    if r < 13 and 80 <= t <= 112:
        hi -= ((13 - r) / 4) * math.sqrt((17 - abs(t - 95)) / 17)
    elif r > 85 and 80 <= t <= 87:
        hi += ((r - 85) / 10) * ((87 - t) / 5)
    return hi


def heat_index_c(temp_c: Any, rh: Any) -> float | None:
    """Heat index in °C from air temperature (°C) and relative humidity (%).

    Returns ``None`` when either reading is missing or not a finite number.
    """
    temp = finite_float(temp_c)
    humidity = finite_float(rh)
    if temp is None or humidity is None:
        return None
    hi = f_to_c(heat_index_f(c_to_f(temp), humidity))
    return hi if math.isfinite(hi) else None
