# SPDX-License-Identifier: Apache-2.0
"""Fork configuration shared by the engine and the pytest plugin."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Optional

OCCURS_ENV = "FORKTEST_OCCURS"

# Hard cap on fork nesting; guards against a misconfiguration turning
# into a fork bomb.
DEFAULT_MAX_DEPTH = 16


@dataclass(frozen=True)
class ForkConfig:
    """Immutable settings for one pytest session.

    The plugin builds one from the ini file and the invocation arguments;
    outside pytest the defaults apply.
    """

    max_depth: int = DEFAULT_MAX_DEPTH
    """Maximum number of nested fork points before refusing to spawn."""

    occurs_env: str = OCCURS_ENV
    """Environment variable carrying the occurrence trail."""

    python: str = field(default_factory=lambda: sys.executable)
    """Interpreter used to re-run pytest in the child."""

    host_args: Optional[tuple[str, ...]] = None
    """Arguments of the host pytest run. ``None`` means ``sys.argv[1:]``."""

    pass_flags: tuple[str, ...] = ()
    """Extra flags forwarded to children; a trailing ``=`` takes a value."""

    drop_flags: tuple[str, ...] = ()
    """Extra flags removed before spawning; a trailing ``=`` takes a value."""

    strict_args: bool = True
    """Reject unknown flags instead of dropping them."""

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")

    def args(self) -> list[str]:
        """Return the host argument list to be filtered for a child."""
        if self.host_args is None:
            return sys.argv[1:]
        return list(self.host_args)


_active: Optional[ForkConfig] = None


def activate(config: Optional[ForkConfig]) -> Optional[ForkConfig]:
    """Install *config* as the session configuration and return the previous one.

    Nested sessions (e.g. in-process pytester runs) restore the outer
    configuration by activating the returned value again.
    """
    global _active
    previous = _active
    _active = config
    return previous


def current() -> ForkConfig:
    """Return the active configuration, or the defaults if none is active."""
    if _active is None:
        return ForkConfig()
    return _active
