"""
vectorize.py - Three Ways to Build a Sequence

The same result, 1.0, 2.0, ..., n as a float64 array, built three ways:

    sequence_grow          - start empty and append one element per
                             iteration.  Every append may reallocate, so the
                             total copying cost grows quadratically in the
                             worst case and the values live as boxed Python
                             floats until the final conversion.

    sequence_preallocated  - allocate the full array once, then fill it in a
                             Python loop.  No reallocation, but still one
                             interpreter round-trip per element.

    sequence_vectorized    - a single numpy call; the loop runs in compiled
                             code over contiguous memory.

The functions are interchangeable: for any n >= 0 they return equal arrays.
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np

from efficient.core.errors import check_sample_count


def sequence_grow(n: int) -> np.ndarray:
    n = check_sample_count(n, allow_zero=True)
    values = []
    for i in range(1, n + 1):
        values.append(float(i))
    return np.array(values, dtype=np.float64)


def sequence_preallocated(n: int) -> np.ndarray:
    n = check_sample_count(n, allow_zero=True)
    out = np.empty(n, dtype=np.float64)
    for i in range(n):
        out[i] = i + 1
    return out


def sequence_vectorized(n: int) -> np.ndarray:
    n = check_sample_count(n, allow_zero=True)
    return np.arange(1, n + 1, dtype=np.float64)


STRATEGIES: Dict[str, Callable[[int], np.ndarray]] = {
    "grow": sequence_grow,
    "preallocated": sequence_preallocated,
    "vectorized": sequence_vectorized,
}
