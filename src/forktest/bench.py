# SPDX-License-Identifier: Apache-2.0
"""Bencher: benchmark measurements that survive a trip through a child."""

from __future__ import annotations

import struct
import time
from typing import Any, Callable

# rounds, iterations, total_ns, min_ns, max_ns
_LAYOUT = struct.Struct("<QQQQQ")

DEFAULT_ROUNDS = 100


class Bencher:
    """Times a callable and accumulates the results.

    The state has a declared fixed-size byte layout so it can be lent to a
    forked child through an exchange buffer and read back afterwards.
    """

    SIZE = _LAYOUT.size

    def __init__(
        self,
        rounds: int = DEFAULT_ROUNDS,
        iterations: int = 0,
        total_ns: int = 0,
        min_ns: int = 0,
        max_ns: int = 0,
    ):
        if rounds < 1:
            raise ValueError(f"rounds must be positive, got {rounds}")
        self.rounds = rounds
        self.iterations = iterations
        self.total_ns = total_ns
        self.min_ns = min_ns
        self.max_ns = max_ns

    def iter(self, fn: Callable[[], Any]) -> None:
        """Call *fn* ``rounds`` times, timing each call."""
        for _ in range(self.rounds):
            start = time.perf_counter_ns()
            fn()
            elapsed = time.perf_counter_ns() - start
            if self.iterations == 0 or elapsed < self.min_ns:
                self.min_ns = elapsed
            if elapsed > self.max_ns:
                self.max_ns = elapsed
            self.total_ns += elapsed
            self.iterations += 1

    @property
    def mean_ns(self) -> float:
        if self.iterations == 0:
            return 0.0
        return self.total_ns / self.iterations

    @property
    def spread_ns(self) -> int:
        return self.max_ns - self.min_ns

    def summary(self) -> str:
        """Render like libtest: ``1,234 ns/iter (+/- 56)``."""
        return f"{self.mean_ns:,.0f} ns/iter (+/- {self.spread_ns:,})"

    def to_bytes(self) -> bytes:
        return _LAYOUT.pack(
            self.rounds, self.iterations, self.total_ns, self.min_ns, self.max_ns
        )

    @classmethod
    def from_bytes(cls, data) -> "Bencher":
        if len(data) != cls.SIZE:
            raise ValueError(
                f"expected {cls.SIZE} bytes of bencher state, got {len(data)}"
            )
        return cls(*_LAYOUT.unpack(bytes(data)))

    def load(self, data) -> None:
        """Replace this bencher's state with the one encoded in *data*."""
        other = self.from_bytes(data)
        self.rounds = other.rounds
        self.iterations = other.iterations
        self.total_ns = other.total_ns
        self.min_ns = other.min_ns
        self.max_ns = other.max_ns

    def __repr__(self) -> str:
        return (
            f"Bencher(rounds={self.rounds}, iterations={self.iterations}, "
            f"total_ns={self.total_ns}, min_ns={self.min_ns}, max_ns={self.max_ns})"
        )
