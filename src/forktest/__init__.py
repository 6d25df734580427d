# SPDX-License-Identifier: Apache-2.0
"""
forktest - run tests in separate processes.

Each forked test re-runs pytest for just that test in a fresh interpreter,
so a crash, an abort or leaked global state stays in the child. The parent
sees the child's exit status and its relayed output.

Layers are loaded lazily; importing the exceptions does not pull in the
process machinery:

    from forktest import ForkTestError       # only loads exceptions
    from forktest import forked              # loads the fork engine

Example:
    import forktest

    @forktest.forked
    def test_mutates_globals():
        os.environ["LEAK"] = "1"   # never seen by sibling tests

    @forktest.forked_bench
    def test_bench_sleep(bencher):
        bencher.iter(lambda: time.sleep(0.001))
"""

# Exceptions are lightweight and always available.
from .exceptions import (
    ForkTestError,
    ArgumentError,
    UnknownFlagError,
    DisallowedFlagError,
    SpawnError,
    ExchangeError,
)

__all__ = [
    # Identity
    "ForkId",
    "fork_id",
    # Engine
    "fork",
    "fork_in_out",
    "fork_int",
    "supervise_child",
    "no_configure_child",
    "SpawnDescriptor",
    "ChildWrapper",
    # Sugar
    "forked",
    "forked_bench",
    "current_test_name",
    "Bencher",
    # Configuration
    "ForkConfig",
    "strip_cmdline",
    # Exceptions
    "ForkTestError",
    "ArgumentError",
    "UnknownFlagError",
    "DisallowedFlagError",
    "SpawnError",
    "ExchangeError",
]

__version__ = "0.1.0"

# Lazy imports: each layer loads only when first accessed.
_LAZY_IMPORTS = {
    "ForkId": ".identity",
    "fork_id": ".identity",
    "fork": ".process.fork",
    "fork_in_out": ".process.fork",
    "fork_int": ".process.fork",
    "supervise_child": ".process.fork",
    "no_configure_child": ".process.fork",
    "SpawnDescriptor": ".process.fork",
    "ChildWrapper": ".process.child",
    "forked": ".sugar",
    "forked_bench": ".sugar",
    "current_test_name": ".sugar",
    "Bencher": ".bench",
    "ForkConfig": ".config",
    "strip_cmdline": ".cmdline",
}


def __getattr__(name: str):
    if name in _LAZY_IMPORTS:
        import importlib
        module = importlib.import_module(_LAZY_IMPORTS[name], __name__)
        value = getattr(module, name)
        # Cache on the module so __getattr__ isn't called again.
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
