# SPDX-License-Identifier: Apache-2.0
"""Decorators that run test functions through the fork engine."""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, Optional

from .bench import Bencher
from .exceptions import ForkTestError
from .identity import ForkId
from .process.fork import fork, fork_in_out

# Absolute node id of the test pytest is running, maintained by the plugin.
_current_test: Optional[str] = None


def absolute_nodeid(path, nodeid: str) -> str:
    """Re-anchor *nodeid* at the absolute *path* of its module.

    pytest node ids are relative to the rootdir, while positional arguments
    are resolved against the working directory; an absolute path works for
    both.
    """
    _, sep, rest = nodeid.partition("::")
    if not sep:
        return str(path)
    return f"{path}::{rest}"


def set_current_test(name: Optional[str]) -> Optional[str]:
    global _current_test
    previous = _current_test
    _current_test = name
    return previous


def current_test_name() -> str:
    """Return the node id a child must run to reach the current test.

    Raises:
        ForkTestError: If no pytest test is running in this process.
    """
    if _current_test is None:
        raise ForkTestError(
            "no test is running; forktest needs the pytest plugin to name the child"
        )
    return _current_test


def forked(func: Callable) -> Callable:
    """Run the decorated test function in its own process.

    Fixtures still work: the child re-runs pytest for the same test and
    receives its own fixture instances.
    """
    if inspect.iscoroutinefunction(func):
        raise TypeError(f"{func.__qualname__}: coroutine tests cannot be forked")
    fid = ForkId.of(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> None:
        fork(fid, current_test_name(), functools.partial(func, *args, **kwargs))

    return wrapper


def forked_bench(func: Callable) -> Callable:
    """Run the decorated benchmark in its own process.

    The function must accept a ``bencher`` argument (the plugin's fixture).
    The measurements taken in the child are copied back into the parent's
    bencher, so they show up in the benchmark summary.
    """
    if inspect.iscoroutinefunction(func):
        raise TypeError(f"{func.__qualname__}: coroutine benchmarks cannot be forked")
    if "bencher" not in inspect.signature(func).parameters:
        raise TypeError(
            f"{func.__qualname__}: a forked benchmark must take a 'bencher' argument"
        )
    fid = ForkId.of(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> None:
        bencher = kwargs.get("bencher")
        if not isinstance(bencher, Bencher):
            raise TypeError(
                f"{func.__qualname__}: expected a Bencher for 'bencher', got {bencher!r}"
            )
        data = bytearray(bencher.to_bytes())
        fork_in_out(fid, current_test_name(), _BenchBody(func, args, kwargs), data)
        bencher.load(data)

    return wrapper


class _BenchBody:
    """Child side of a forked benchmark: unpack, run, pack."""

    def __init__(self, func: Callable, args: tuple, kwargs: dict[str, Any]):
        self._func = func
        self._args = args
        self._kwargs = kwargs

    def __call__(self, data: bytearray) -> Any:
        bencher = Bencher.from_bytes(data)
        result = self._func(*self._args, **{**self._kwargs, "bencher": bencher})
        data[:] = bencher.to_bytes()
        return result
