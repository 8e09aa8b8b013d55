"""
efficient - Performance-Aware Building Blocks for Numerical Python

Two independent leaf utilities, each shown in more than one execution
strategy so the strategies can be checked against each other:

    simulation.monte_carlo  - Hit-or-miss Monte Carlo estimate of the area
                              under x^2 on [0, 1], as an element-at-a-time loop
                              and a batched numpy form that read the same draws,
                              plus a multi-process form over spawned streams.

    performance.memoize     - Memoizing call cache that trades memory for
                              latency, keyed by the structural value of the
                              arguments, safe under concurrent callers.

Supporting modules:

    performance.stopwatch   - Explicit lap timer used by the command line.
    performance.vectorize   - Grow / pre-allocate / vectorise sequence builders.
    core                    - Constants, error types and argument validation.
"""

from efficient.core.errors import InvalidArgumentError, PendingComputationTimeout
from efficient.performance.memoize import Memoized, memoize, wrap
from efficient.simulation.monte_carlo import (
    estimate_iterative,
    estimate_parallel,
    estimate_vectorized,
)

__version__ = "0.1.0"

__all__ = [
    "InvalidArgumentError",
    "PendingComputationTimeout",
    "Memoized",
    "memoize",
    "wrap",
    "estimate_iterative",
    "estimate_vectorized",
    "estimate_parallel",
]
