"""
memoize.py - Memoizing Call Cache

Trades memory for latency: the first call with a given set of argument
values runs the function and stores the result, and every later call with
equal arguments returns the stored result without running it again.

Keys
----
A key is a canonical, hashable encoding of the *values* of all arguments,
bound against the function's signature so that ``f(4)``, ``f(x=4)`` and
``f(4, power=2)`` (when ``power=2`` is the default) are the same call.
Composite arguments compare structurally:

    list / tuple      -> tagged tuple of encoded items (a list never equals a tuple)
    dict              -> tagged frozenset of encoded (key, value) pairs
    set / frozenset   -> tagged frozenset of encoded items
    numpy.ndarray     -> (dtype, shape, raw bytes)
    numpy scalar      -> the equivalent Python scalar
    float NaN         -> a single NaN marker (so NaN arguments can hit)

Anything else must be hashable and is compared with its own ``__eq__``.
Arguments that cannot be encoded bypass the cache: the function still runs,
its result is returned, and nothing is stored.

Purity
------
The cache has no invalidation.  It is only correct for functions whose
result depends on nothing but their arguments; an impure function keeps
returning its first result.

Memory
------
With ``maxsize=None`` (the default) entries are never evicted, so memory
grows with the number of distinct argument sets seen.  Pass ``maxsize`` to
bound the store with least-recently-used eviction.

Concurrency
-----------
The store is guarded by a lock, and at most one computation runs per key.
The first caller for a key registers a Future; concurrent callers with the
same key wait on it.  If the computation raises, the error reaches the first
caller and every waiter, nothing is stored, and the next call recomputes.

A computation that calls back into the same wrapper with its own key raises
RecursionError.  That check is per thread only: two threads whose keys
depend on each other (K1 needs K2 while K2 needs K1) each wait for the
other, and with ``timeout=None`` they wait forever.  Set ``timeout`` when
computations of one wrapper can depend on each other across threads.
"""

from __future__ import annotations

import functools
import inspect
import logging
import math
import numbers
import threading
from collections import OrderedDict
from collections.abc import Mapping
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple

import numpy as np

from efficient.core.errors import (
    InvalidArgumentError,
    PendingComputationTimeout,
    check_sample_count,
)

logger = logging.getLogger(__name__)


class CacheInfo(NamedTuple):
    """Snapshot of a cache's counters."""
    hits: int
    misses: int
    currsize: int
    maxsize: Optional[int]
    uncacheable: int


# Type tags.  Plain objects, so no user value can ever compare equal to one.
_LIST = object()
_TUPLE = object()
_DICT = object()
_SET = object()
_ARRAY = object()
_NAN = object()
_POSITIONAL = object()


# ------------------------------------------------------------------
# Key construction
# ------------------------------------------------------------------

def _freeze(value: Any, typed: bool) -> Any:
    """Encode *value* as a hashable structure; raises TypeError if it cannot."""
    if isinstance(value, np.ndarray):
        if value.dtype.hasobject:
            items = tuple(_freeze(v, typed) for v in value.ravel().tolist())
            return (_ARRAY, value.dtype.str, value.shape, items)
        return (_ARRAY, value.dtype.str, value.shape,
                np.ascontiguousarray(value).tobytes())
    if isinstance(value, np.generic):
        value = value.item()

    if isinstance(value, float) and math.isnan(value):
        return _NAN
    if isinstance(value, (str, bytes, numbers.Number)) or value is None:
        return (type(value), value) if typed else value

    if isinstance(value, tuple):
        return (_TUPLE, tuple(_freeze(v, typed) for v in value))
    if isinstance(value, list):
        return (_LIST, tuple(_freeze(v, typed) for v in value))
    if isinstance(value, Mapping):
        return (_DICT, frozenset(
            (_freeze(k, typed), _freeze(v, typed)) for k, v in value.items()
        ))
    if isinstance(value, (set, frozenset)):
        return (_SET, frozenset(_freeze(v, typed) for v in value))

    hash(value)
    return value


def make_key(
    args: Tuple[Any, ...],
    kwargs: Dict[str, Any],
    signature: Optional[inspect.Signature] = None,
    typed: bool = False,
) -> Any:
    """
    Build the canonical cache key for one call.

    With a *signature*, arguments are bound by parameter name and defaults
    are filled in.  Without one, positional and keyword arguments are
    encoded separately.

    Raises
    ------
    TypeError
        If an argument cannot be encoded, or the arguments do not bind to
        *signature*.
    """
    if signature is not None:
        bound = signature.bind(*args, **kwargs)
        bound.apply_defaults()
        key = tuple(
            (name, _freeze(value, typed))
            for name, value in bound.arguments.items()
        )
    else:
        key = (
            _POSITIONAL,
            tuple(_freeze(a, typed) for a in args),
            frozenset((k, _freeze(v, typed)) for k, v in kwargs.items()),
        )
    hash(key)
    return key


def _signature_of(func: Callable) -> Optional[inspect.Signature]:
    try:
        return inspect.signature(func)
    except (TypeError, ValueError):
        # Some builtins expose no signature; fall back to raw args/kwargs.
        return None


# ------------------------------------------------------------------
# Memoized callable
# ------------------------------------------------------------------

class Memoized:
    """
    A callable that caches the results of *func* by argument value.

    Each instance owns its store; two ``Memoized`` wrappers around the same
    function share nothing.  The store lives as long as the wrapper does.

    Parameters
    ----------
    func : callable
        A pure function.
    maxsize : int or None
        Maximum number of entries.  None means unbounded.
    typed : bool
        If True, arguments of different types are cached separately even
        when they compare equal (``1``, ``1.0`` and ``True``).
    timeout : float or None
        Seconds a caller will wait for another caller's in-flight
        computation of the same key before raising
        :class:`PendingComputationTimeout`.  None waits indefinitely.
    """

    def __init__(
        self,
        func: Callable,
        maxsize: Optional[int] = None,
        typed: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        if not callable(func):
            raise TypeError(f"Expected a callable, got {type(func).__name__}")
        if maxsize is not None:
            maxsize = check_sample_count(maxsize, name="maxsize")
        if timeout is not None and not timeout > 0:
            raise InvalidArgumentError(f"timeout must be positive, got {timeout!r}")

        # partial objects and other callables may lack __name__
        self.__name__ = getattr(func, "__name__", type(func).__name__)
        functools.update_wrapper(self, func)
        self.maxsize = maxsize
        self.typed = typed
        self.timeout = timeout

        self._signature = _signature_of(func)
        self._store: "OrderedDict[Any, Any]" = OrderedDict()
        self._pending: Dict[Any, Tuple[Future, int]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._uncacheable = 0

    # ---- calling ---------------------------------------------------------

    def __call__(self, *args, **kwargs):
        try:
            key = make_key(args, kwargs, self._signature, self.typed)
        except TypeError as exc:
            if not self._binds(args, kwargs):
                # A calling error, not a key problem; f reports it itself.
                return self.__wrapped__(*args, **kwargs)
            with self._lock:
                self._uncacheable += 1
            logger.warning(
                "%s: arguments cannot be cached (%s); calling through",
                self.__name__, exc,
            )
            return self.__wrapped__(*args, **kwargs)

        with self._lock:
            if key in self._store:
                self._hits += 1
                if self.maxsize is not None:
                    self._store.move_to_end(key)
                return self._store[key]

            pending = self._pending.get(key)
            if pending is None:
                future: Future = Future()
                self._pending[key] = (future, threading.get_ident())
                self._misses += 1
                is_owner = True
            else:
                future, owner = pending
                if owner == threading.get_ident():
                    raise RecursionError(
                        f"{self.__name__} called itself with the arguments "
                        f"it is already computing"
                    )
                is_owner = False

        if is_owner:
            return self._compute(key, future, args, kwargs)
        return self._wait(future)

    def _binds(self, args, kwargs) -> bool:
        if self._signature is None:
            return True
        try:
            self._signature.bind(*args, **kwargs)
        except TypeError:
            return False
        return True

    def _compute(self, key, future: Future, args, kwargs):
        logger.debug("%s: cache miss, computing", self.__name__)
        try:
            result = self.__wrapped__(*args, **kwargs)
        except BaseException as exc:
            with self._lock:
                del self._pending[key]
            future.set_exception(exc)
            raise

        with self._lock:
            self._store[key] = result
            del self._pending[key]
            self._evict()
        future.set_result(result)
        return result

    def _wait(self, future: Future):
        logger.debug("%s: waiting on in-flight computation", self.__name__)
        try:
            result = future.result(timeout=self.timeout)
        except FutureTimeoutError:
            if not future.done():
                raise PendingComputationTimeout(
                    f"{self.__name__}: gave up after {self.timeout}s waiting "
                    f"for an in-flight computation"
                ) from None
            # Finished just after the wait expired, or the wrapped function
            # itself raised TimeoutError; result() returns or re-raises.
            result = future.result()
        with self._lock:
            self._hits += 1
        return result

    def _evict(self) -> None:
        """Drop least-recently-used entries beyond maxsize.  Caller holds the lock."""
        if self.maxsize is None:
            return
        while len(self._store) > self.maxsize:
            self._store.popitem(last=False)
            logger.debug("%s: evicted least-recently-used entry", self.__name__)

    # ---- introspection ---------------------------------------------------

    def cache_info(self) -> CacheInfo:
        with self._lock:
            return CacheInfo(
                hits=self._hits,
                misses=self._misses,
                currsize=len(self._store),
                maxsize=self.maxsize,
                uncacheable=self._uncacheable,
            )

    def cache_clear(self) -> None:
        """Remove every stored entry and reset the counters."""
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._uncacheable = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __get__(self, instance, owner=None):
        # Bind like a function so @memoize works on methods; the instance
        # becomes part of the key.
        if instance is None:
            return self
        return functools.partial(self, instance)

    def __repr__(self) -> str:
        info = self.cache_info()
        return (
            f"Memoized({self.__name__}, size={info.currsize}, "
            f"maxsize={info.maxsize}, hits={info.hits}, misses={info.misses})"
        )


# ------------------------------------------------------------------
# Public constructors
# ------------------------------------------------------------------

def wrap(
    func: Callable,
    maxsize: Optional[int] = None,
    typed: bool = False,
    timeout: Optional[float] = None,
) -> Memoized:
    """Return a new memoizing wrapper around *func* with its own empty cache."""
    return Memoized(func, maxsize=maxsize, typed=typed, timeout=timeout)


def memoize(
    func: Optional[Callable] = None,
    *,
    maxsize: Optional[int] = None,
    typed: bool = False,
    timeout: Optional[float] = None,
):
    """
    Decorator form of :func:`wrap`.

    Usable bare::

        @memoize
        def fib(n): ...

    or configured::

        @memoize(maxsize=1024)
        def fib(n): ...
    """
    if func is None:
        return functools.partial(wrap, maxsize=maxsize, typed=typed, timeout=timeout)
    return wrap(func, maxsize=maxsize, typed=typed, timeout=timeout)
