from __future__ import annotations

import numpy as np


def round_half_away(values):
    """
    Round half away from zero (2.5 -> 3, -2.5 -> -3).

    NumPy and Python's `round` use banker's rounding, which breaks byte-exact
    parity on .5 ties, so every byte/integer output in vision_kit goes
    through here.
    """

    arr = np.asarray(values, dtype=np.float64)
    out = np.sign(arr) * np.floor(np.abs(arr) + 0.5)
    if out.ndim == 0:
        return float(out)
    return out


def round_int(value: float) -> int:
    return int(round_half_away(value))


def to_uint8(values) -> np.ndarray:
    return np.clip(round_half_away(values), 0, 255).astype(np.uint8)
