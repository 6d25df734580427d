# SPDX-License-Identifier: Apache-2.0
"""ChildWrapper: owned handle of a spawned child and its captured output.

Leaving the ``with`` block kills a child that was never waited on and
copies whatever it wrote into this process's own ``sys.stdout`` and
``sys.stderr``, where the test harness captures it.
"""

import logging
import os
import signal
import subprocess
import sys
import threading
from typing import IO, Callable, Optional

logger = logging.getLogger(__name__)


def describe_status(returncode: int) -> str:
    """Render a Popen return code the way a shell would talk about it."""
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            return f"signal {-returncode}"
        return f"signal {-returncode} ({name})"
    return f"exit status {returncode}"


def _collect(stream: IO[bytes], lines: list) -> None:
    """Read *stream* line by line into *lines* until end-of-stream.

    A read error only stops this stream.
    """
    while True:
        try:
            line = stream.readline()
        except (OSError, ValueError):
            break
        if not line:
            break
        lines.append(line)


def _relay(lines: list, sink: IO[str]) -> None:
    """Write collected *lines* to *sink*, replacing undecodable bytes."""
    try:
        for line in lines:
            sink.write(line.decode("utf-8", errors="replace"))
        sink.flush()
    except (OSError, ValueError) as e:
        logger.warning("could not relay child output: %s", e)


class _PipeReader:
    """Collects one pipe of the child, in the background once started."""

    def __init__(self, stream: IO[bytes], sink: Callable[[], IO[str]]):
        self.stream = stream
        self.sink = sink
        self.lines: list = []
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=_collect, args=(self.stream, self.lines), daemon=True,
        )
        self._thread.start()

    def finish(self) -> None:
        if self._thread is None:
            _collect(self.stream, self.lines)
        else:
            self._thread.join()
        _relay(self.lines, self.sink())


class ChildWrapper:
    """Exclusive owner of a child process spawned for a fork point.

    Cleanup runs exactly once, on the first of ``close()`` or leaving the
    ``with`` block, whether by return or by exception.
    """

    def __init__(self, child: subprocess.Popen):
        self._child = child
        self._waited = False
        self._closed = False
        self._readers = []
        if child.stdout is not None:
            self._readers.append(_PipeReader(child.stdout, lambda: sys.stdout))
        if child.stderr is not None:
            self._readers.append(_PipeReader(child.stderr, lambda: sys.stderr))

    @property
    def pid(self) -> int:
        return self._child.pid

    @property
    def stdout(self) -> Optional[IO[bytes]]:
        return self._child.stdout

    @property
    def stderr(self) -> Optional[IO[bytes]]:
        return self._child.stderr

    @property
    def returncode(self) -> Optional[int]:
        return self._child.returncode

    @property
    def alive(self) -> bool:
        if self._child.poll() is not None:
            return False
        try:
            os.kill(self._child.pid, 0)
            return True
        except ProcessLookupError:
            return False

    def wait(self) -> int:
        """Block until the child exits and return its Popen return code."""
        returncode = self._child.wait()
        self._waited = True
        return returncode

    def poll(self) -> Optional[int]:
        returncode = self._child.poll()
        if returncode is not None:
            self._waited = True
        return returncode

    def kill(self) -> None:
        self._child.kill()

    def drain(self) -> None:
        """Start reading the child's pipes in the background.

        A child writing more than a pipe holds would otherwise block until
        someone reads. The collected output is relayed on ``close()``; after
        this call ``stdout`` and ``stderr`` must not be read directly.
        """
        for reader in self._readers:
            reader.start()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if not self._waited:
            try:
                self._child.kill()
            except OSError:
                pass  # Already gone

        try:
            for reader in self._readers:
                reader.finish()
        finally:
            self._child.wait()
            for stream in (self._child.stdout, self._child.stderr):
                if stream is not None:
                    stream.close()

    def __enter__(self) -> "ChildWrapper":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False
