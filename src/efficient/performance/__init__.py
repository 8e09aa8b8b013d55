"""
performance - Execution-Strategy Building Blocks

    memoize     - Memoizing call cache: results keyed by argument value,
                  at most one computation per key under concurrent callers,
                  optional LRU bound.  Trades memory for latency.

    stopwatch   - Lap timer with an injectable clock; the explicit-object form
                  of a closure that remembers when it was started.

    vectorize   - Grow, pre-allocate and vectorise strategies for building the
                  same sequence, kept interchangeable so they can be checked
                  against each other.

None of these modules depends on the others.
"""
