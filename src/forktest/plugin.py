# SPDX-License-Identifier: Apache-2.0
"""pytest plugin: session configuration, the forktest marker and benchmarks.

Registered through the ``pytest11`` entry point, so it is active in the
host run and in every child pytest the fork engine spawns.
"""

from __future__ import annotations

from typing import Optional

import pytest

from . import config as _config
from . import sugar
from .bench import DEFAULT_ROUNDS, Bencher
from .config import DEFAULT_MAX_DEPTH, ForkConfig

_BENCHMARKS = pytest.StashKey[list]()
_OUTER_CONFIG = pytest.StashKey[Optional[ForkConfig]]()


def pytest_addoption(parser):
    parser.addini(
        "forktest_max_depth",
        help="Maximum fork nesting before refusing to spawn (default: 16).",
        default=str(DEFAULT_MAX_DEPTH),
    )
    parser.addini(
        "forktest_pass_flags",
        type="linelist",
        help="Extra command line flags to forward to forked children; "
        "a trailing '=' means the flag takes a value.",
        default=[],
    )
    parser.addini(
        "forktest_drop_flags",
        type="linelist",
        help="Extra command line flags to remove before forking; "
        "a trailing '=' means the flag takes a value.",
        default=[],
    )
    parser.addini(
        "forktest_strict_args",
        type="bool",
        help="Refuse to fork when the command line has unknown flags.",
        default=True,
    )
    parser.addini(
        "forktest_bench_rounds",
        help="Calls per Bencher.iter() for the bencher fixture (default: 100).",
        default=str(DEFAULT_ROUNDS),
    )


def _int_ini(config, name: str) -> int:
    value = config.getini(name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise pytest.UsageError(f"{name} must be an integer, got {value!r}") from None


def load_config(config) -> ForkConfig:
    """Build the fork configuration for a pytest session."""
    try:
        return ForkConfig(
            max_depth=_int_ini(config, "forktest_max_depth"),
            host_args=tuple(str(arg) for arg in config.invocation_params.args),
            pass_flags=tuple(config.getini("forktest_pass_flags")),
            drop_flags=tuple(config.getini("forktest_drop_flags")),
            strict_args=bool(config.getini("forktest_strict_args")),
        )
    except ValueError as e:
        raise pytest.UsageError(f"forktest: {e}") from None


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "forktest: run this test in a freshly spawned pytest process",
    )
    config.stash[_BENCHMARKS] = []
    config.stash[_OUTER_CONFIG] = _config.activate(load_config(config))


def pytest_unconfigure(config):
    _config.activate(config.stash.get(_OUTER_CONFIG, None))


def pytest_collection_modifyitems(config, items):
    for item in items:
        if not isinstance(item, pytest.Function):
            continue
        if item.get_closest_marker("forktest") is None:
            continue
        item.obj = sugar.forked(item.obj)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_protocol(item, nextitem):
    previous = sugar.set_current_test(sugar.absolute_nodeid(item.path, item.nodeid))
    try:
        yield
    finally:
        sugar.set_current_test(previous)


@pytest.fixture
def bencher(request):
    """A Bencher whose measurements are listed in the terminal summary."""
    b = Bencher(rounds=_int_ini(request.config, "forktest_bench_rounds"))
    yield b
    if b.iterations:
        request.config.stash[_BENCHMARKS].append((request.node.nodeid, b))


def pytest_terminal_summary(terminalreporter, exitstatus, config):
    results = config.stash.get(_BENCHMARKS, [])
    if not results:
        return
    terminalreporter.write_sep("-", "forktest benchmarks")
    width = max(len(nodeid) for nodeid, _ in results)
    for nodeid, b in results:
        terminalreporter.write_line(f"{nodeid:<{width}}  bench: {b.summary()}")
