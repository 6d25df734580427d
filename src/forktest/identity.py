# SPDX-License-Identifier: Apache-2.0
"""Fork-point identity: stable cross-process identifiers for call sites.

A fork point must be recognised again in every process re-executed from
the same source tree, so its identity is derived from the source location
rather than from anything that lives in memory. The builtin ``hash()`` is
salted per process and cannot be used; an unkeyed blake2b digest can.
"""

from __future__ import annotations

import hashlib
import inspect
import sys
from dataclasses import dataclass
from typing import Callable

DELIMITER = ":"
HEX_DIGITS = 16
TERM_LENGTH = len(DELIMITER) + HEX_DIGITS


@dataclass(frozen=True)
class ForkId:
    """Opaque identity of one fork point.

    Rendered as ``':'`` followed by 16 lowercase hex digits.
    """

    value: str

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_key(cls, key: str) -> "ForkId":
        digest = hashlib.blake2b(key.encode("utf-8"), digest_size=HEX_DIGITS // 2)
        return cls(DELIMITER + digest.hexdigest())

    @classmethod
    def of(cls, func: Callable) -> "ForkId":
        """Identity of a function definition (file, qualified name, line)."""
        func = inspect.unwrap(getattr(func, "__func__", func))
        code = func.__code__
        return cls.from_key(
            f"{code.co_filename}:{func.__qualname__}:{code.co_firstlineno}"
        )


def fork_id() -> ForkId:
    """Return the identity of the caller's call site.

    Two calls on the same line differ by column on interpreters that record
    column positions (3.11+ unless ``-X no_debug_ranges`` is in effect).
    """
    frame = sys._getframe(1)
    try:
        info = inspect.getframeinfo(frame, context=0)
        code = frame.f_code
        name = getattr(code, "co_qualname", code.co_name)
        positions = getattr(info, "positions", None)
        col = positions.col_offset if positions is not None else None
        return ForkId.from_key(f"{code.co_filename}:{name}:{info.lineno}:{col}")
    finally:
        del frame
