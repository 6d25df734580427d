# SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy for forktest operations."""


class ForkTestError(Exception):
    """Base exception for all forktest errors."""

    pass


class ArgumentError(ForkTestError):
    """The host command line cannot be forwarded to a child process."""

    pass


class UnknownFlagError(ArgumentError):
    """A flag was passed to pytest that forktest does not know how to handle."""

    def __init__(self, flag: str):
        self.flag = flag
        super().__init__(
            f"The flag '{flag}' was passed to the pytest process, "
            "but forktest does not know how to handle it."
        )


class DisallowedFlagError(ArgumentError):
    """A known flag was passed to pytest that cannot be handled sensibly."""

    def __init__(self, flag: str, reason: str):
        self.flag = flag
        self.reason = reason
        super().__init__(
            f"The flag '{flag}' was passed to the pytest process, "
            f"but forktest cannot handle it; reason: {reason}"
        )


class SpawnError(ForkTestError):
    """Spawning the child process failed."""

    pass


class ExchangeError(ForkTestError):
    """Exchanging data with a child process over loopback failed."""

    pass
