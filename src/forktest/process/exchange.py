# SPDX-License-Identifier: Apache-2.0
"""Loopback data exchange between a parent and its forked child.

The parent listens on 127.0.0.1 and advertises the address to the child
through an environment variable. Exactly one exchange happens: the parent
sends the buffer, the child runs the body against its own copy and sends
it back. No framing is used; both ends know the length from the call site.
"""

from __future__ import annotations

import os
import socket
from typing import Callable, TypeVar

from ..exceptions import ExchangeError
from .child import ChildWrapper, describe_status

T = TypeVar("T")

LOOPBACK = "127.0.0.1"

# How often accept() checks whether the child died before connecting.
ACCEPT_POLL_INTERVAL = 0.1


def _recv_exactly(sock: socket.socket, view: memoryview, peer: str) -> None:
    received = 0
    size = len(view)
    while received < size:
        n = sock.recv_into(view[received:], size - received)
        if n == 0:
            raise ExchangeError(
                f"{peer} closed the connection after {received} of {size} bytes"
            )
        received += n


def _split_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ExchangeError(f"invalid exchange address {address!r}")
    return host, int(port)


class ExchangeListener:
    """Parent side of the exchange, bound on construction."""

    def __init__(self, host: str = LOOPBACK):
        try:
            self._sock = socket.create_server((host, 0))
        except OSError as e:
            raise ExchangeError(f"failed to bind exchange socket: {e}") from e

    @property
    def address(self) -> str:
        host, port = self._sock.getsockname()[:2]
        return f"{host}:{port}"

    def _accept(self, child: ChildWrapper) -> socket.socket:
        self._sock.settimeout(ACCEPT_POLL_INTERVAL)
        while True:
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                returncode = child.poll()
                if returncode is not None:
                    raise ExchangeError(
                        "child exited with "
                        f"{describe_status(returncode)} before connecting"
                    )
                continue
            except OSError as e:
                raise ExchangeError(f"failed to accept child connection: {e}") from e
            conn.settimeout(None)
            return conn

    def exchange(self, child: ChildWrapper, view: memoryview) -> None:
        """Send *view* to the child and refill it with the child's reply."""
        conn = self._accept(child)
        with conn:
            try:
                conn.sendall(view)
            except OSError as e:
                raise ExchangeError(f"failed to send data to child: {e}") from e
            try:
                _recv_exactly(conn, view, "child")
            except OSError as e:
                raise ExchangeError(f"failed to receive data from child: {e}") from e

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> "ExchangeListener":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


def exchange_with_parent(key: str, size: int, test: Callable[[bytearray], T]) -> T:
    """Child side: fetch *size* bytes, run *test* on them, send them back.

    The address variable is removed from the environment so that processes
    spawned further down the lineage do not try to reuse the connection.
    """
    address = os.environ.pop(key, None)
    if address is None:
        raise ExchangeError(f"failed to retrieve {key} environment variable")

    try:
        sock = socket.create_connection(_split_address(address))
    except OSError as e:
        raise ExchangeError(f"failed to establish connection with parent: {e}") from e

    with sock:
        data = bytearray(size)
        try:
            _recv_exactly(sock, memoryview(data), "parent")
        except OSError as e:
            raise ExchangeError(f"failed to receive data from parent: {e}") from e

        # The buffer goes back even when the body raises; body failures
        # reach the parent through the exit status only.
        try:
            return test(data)
        finally:
            _send_back(sock, data, size)


def _send_back(sock: socket.socket, data: bytearray, size: int) -> None:
    if len(data) != size:
        raise ExchangeError(
            f"exchange buffer changed length from {size} to {len(data)} bytes"
        )
    try:
        sock.sendall(data)
    except OSError as e:
        raise ExchangeError(f"failed to send data to parent: {e}") from e
