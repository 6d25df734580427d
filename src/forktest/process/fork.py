# SPDX-License-Identifier: Apache-2.0
"""Simulated fork: re-run pytest for one test and branch on the trail.

This is not ``os.fork()``. The child starts over from pytest's entry point
with a single node id, so the calling code must be structured such that the
child reaches the same fork point again. When it does, the occurrence trail
in its environment names that fork point and the body runs in the child;
everywhere else the process plays parent and spawns.

Recursive forks are supported: a child branch is taken in every descendant
whose trail contains the fork point, not only in direct children. Reaching
the same fork point twice within one process (e.g. from a recursive
function) is not supported.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import traceback
from dataclasses import dataclass, field
from typing import IO, Any, Callable, Optional, TypeVar, Union

from .. import config as _config
from ..cmdline import RUN_TEST_ARGS, strip_cmdline
from ..config import ForkConfig
from ..exceptions import SpawnError
from ..identity import ForkId
from .child import ChildWrapper, describe_status
from .exchange import ExchangeListener, exchange_with_parent
from .trail import OccurrenceTrail

logger = logging.getLogger(__name__)

R = TypeVar("R")

EX_OK = 0
EX_SOFTWARE = 70

# Anything subprocess accepts for stdin, stdout or stderr.
Disposition = Union[int, IO, None]


@dataclass
class SpawnDescriptor:
    """Everything needed to start one child; built fresh per spawn."""

    program: str
    args: list[str]
    env: dict[str, str]
    stdin: Disposition = subprocess.DEVNULL
    stdout: Disposition = subprocess.PIPE
    stderr: Disposition = subprocess.PIPE
    popen_kwargs: dict[str, Any] = field(default_factory=dict)

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def spawn(self) -> ChildWrapper:
        """Start the child.

        Raises:
            SpawnError: If the OS refused to create the process.
        """
        try:
            child = subprocess.Popen(
                self.argv,
                env=self.env,
                stdin=self.stdin,
                stdout=self.stdout,
                stderr=self.stderr,
                **self.popen_kwargs,
            )
        except OSError as e:
            raise SpawnError(f"Spawn failed: {e}") from e
        return ChildWrapper(child)


def supervise_child(child: ChildWrapper) -> None:
    """Default supervision: wait and require a successful exit."""
    child.drain()
    returncode = child.wait()
    if returncode != EX_OK:
        raise AssertionError(
            f"child exited unsuccessfully with {describe_status(returncode)}"
        )


def no_configure_child(spawn: SpawnDescriptor) -> None:
    pass


def fork(
    fork_id: ForkId,
    test_name: str,
    test: Callable[[], Any],
    *,
    config: Optional[ForkConfig] = None,
) -> None:
    """Run *test* in a child process re-executed for *test_name*.

    Args:
        fork_id: Identity of this fork point; :func:`forktest.fork_id` or
            :meth:`ForkId.of`. Must be stable across processes.
        test_name: Node id the child pytest is pointed at. It must lead the
            child back to this same fork point.
        test: Plain callable without mutable captured state; whatever it
            mutates stays in the child. Raising fails the test; returning
            ``False`` fails it too.
        config: Settings; defaults to the active pytest session's.

    Raises:
        ArgumentError: The host command line cannot be forwarded.
        SpawnError: The child could not be started.
        AssertionError: The child exited unsuccessfully.
    """
    fork_int(
        fork_id, test_name, no_configure_child, supervise_child, test,
        config=config,
    )


def fork_in_out(
    fork_id: ForkId,
    test_name: str,
    test: Callable[[bytearray], Any],
    data,
    *,
    config: Optional[ForkConfig] = None,
) -> None:
    """Like :func:`fork`, but lend *data* to the child and take it back.

    *test* receives a ``bytearray`` copy of *data* in the child; whatever it
    leaves there is written back into *data* in place. The length is fixed.

    Raises:
        ExchangeError: The loopback exchange did not complete.
    """
    view = memoryview(data).cast("B")
    if view.readonly:
        view.release()
        raise TypeError("data exchange requires a writable buffer")
    key = str(fork_id)
    size = view.nbytes

    def in_child() -> Any:
        return exchange_with_parent(key, size, test)

    try:
        with ExchangeListener() as listener:

            def configure(spawn: SpawnDescriptor) -> None:
                spawn.env[key] = listener.address

            def in_parent(child: ChildWrapper) -> None:
                child.drain()
                listener.exchange(child, view)
                supervise_child(child)

            fork_int(fork_id, test_name, configure, in_parent, in_child, config=config)
    finally:
        view.release()


def fork_int(
    fork_id: ForkId,
    test_name: str,
    process_modifier: Callable[[SpawnDescriptor], None],
    in_parent: Callable[[ChildWrapper], R],
    in_child: Callable[[], Any],
    *,
    config: Optional[ForkConfig] = None,
) -> R:
    """General form of :func:`fork`.

    In the child branch *in_child* runs and the process exits; this call
    never returns there. In the parent branch *process_modifier* may adjust
    the spawn, the child is started, and *in_parent* supervises it; the
    child is killed and its output relayed once *in_parent* is done.

    Returns:
        Whatever *in_parent* returned.
    """
    if config is None:
        config = _config.current()

    trail = OccurrenceTrail.from_environ(var=config.occurs_env)
    if fork_id in trail:
        logger.debug("%s: child branch of %s", test_name, fork_id)
        _run_child(in_child)

    if len(trail) >= config.max_depth:
        _refuse_fork_bomb(config.max_depth)

    trail = trail.append(fork_id)
    env = dict(os.environ)
    env[config.occurs_env] = trail.value
    args = strip_cmdline(
        config.args(),
        pass_flags=config.pass_flags,
        drop_flags=config.drop_flags,
        strict=config.strict_args,
    )
    spawn = SpawnDescriptor(
        program=config.python,
        args=["-m", "pytest", *args, *RUN_TEST_ARGS, test_name],
        env=env,
    )
    process_modifier(spawn)

    logger.debug("%s: spawning %s (depth %d)", test_name, spawn.argv, len(trail))
    with spawn.spawn() as child:
        return in_parent(child)


def _exit_code(in_child: Callable[[], Any]) -> int:
    try:
        result = in_child()
    except SystemExit as e:
        return EX_OK if e.code in (None, 0) else EX_SOFTWARE
    except BaseException:
        traceback.print_exc()
        return EX_SOFTWARE
    return EX_SOFTWARE if result is False else EX_OK


def _run_child(in_child: Callable[[], Any]) -> None:
    """Run the body and terminate the process with its outcome.

    ``os._exit`` keeps pytest from turning the exit into a failure report
    of its own and skips teardown that belongs to the parent's view of the
    test.
    """
    code = _exit_code(in_child)
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass  # Parent is gone
    os._exit(code)


def _refuse_fork_bomb(max_depth: int) -> None:
    message = f"forktest: Not forking due to >={max_depth} levels of recursion"
    logger.critical(message)
    try:
        sys.stderr.write(message + "\n")
        sys.stderr.flush()
    except (OSError, ValueError):
        pass
    os._exit(EX_SOFTWARE)
