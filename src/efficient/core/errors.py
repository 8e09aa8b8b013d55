"""
Exception types and argument validation shared across the package.

``InvalidArgumentError`` subclasses :class:`ValueError` so callers that
already guard numerical code with ``except ValueError`` keep working.
"""

from __future__ import annotations

import numbers
from typing import Any


class InvalidArgumentError(ValueError):
    """An argument is outside the domain an operation accepts."""


class PendingComputationTimeout(TimeoutError):
    """
    A caller gave up waiting for another caller's in-flight computation.

    Retryable: the computation that was being waited on keeps running and
    still stores its result when it finishes.
    """


def check_sample_count(n: Any, name: str = "n", allow_zero: bool = False) -> int:
    """
    Validate a sample count and return it as a plain ``int``.

    Accepts Python and numpy integers, and floats with an integral value
    (so ``1e6`` works).  Rejects ``bool``, fractional values, non-numbers,
    and anything below 1 (below 0 when *allow_zero* is set).
    """
    if isinstance(n, bool) or not isinstance(n, numbers.Real):
        raise InvalidArgumentError(
            f"{name} must be an integer, got {type(n).__name__}"
        )
    if not isinstance(n, numbers.Integral):
        if not float(n).is_integer():
            raise InvalidArgumentError(f"{name} must be integral, got {n!r}")
    n = int(n)
    lower = 0 if allow_zero else 1
    if n < lower:
        raise InvalidArgumentError(f"{name} must be >= {lower}, got {n}")
    return n


def check_seed(seed: Any, name: str = "seed"):
    """Validate a master seed: None (fresh entropy) or a non-negative integer."""
    if seed is None:
        return None
    return check_sample_count(seed, name=name, allow_zero=True)
