"""Mapping raw fuzz inputs into meaningful ranges."""

import sys

from tqdm import tqdm


def clamp(value: int, low: int, high: int, *, log_on_clamp: bool = False, label: str = "") -> int:
    """
    Fold `value` into `[low, high]`.

    In-range values come back unchanged; anything else is folded by modulo so that every raw
    input still produces an action instead of being discarded.
    """
    if low > high:
        raise ValueError(f"empty range: low={low} > high={high}")
    if low <= value <= high:
        return value

    size = high - low + 1
    if value > high:
        result = low + (value - high - 1) % size
    else:
        result = high - (low - value - 1) % size

    if log_on_clamp:
        name = f"{label} " if label else ""
        tqdm.write(f"🔧 clamp {name}{value} -> {result} (range [{low}, {high}])", file=sys.stderr)
    return result
