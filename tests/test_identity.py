# SPDX-License-Identifier: Apache-2.0
"""Tests for fork-point identities."""

import re

import pytest

import forktest
from forktest.identity import ForkId, fork_id

ID_RE = re.compile(r"^:[0-9a-f]{16}$")


def _site():
    return fork_id()


def _other_site():
    return fork_id()


def test_format():
    fid = fork_id()
    assert ID_RE.match(str(fid))
    assert len(str(fid)) == 17


def test_same_site_same_id():
    ids = [fork_id() for _ in range(3)]
    assert ids[0] == ids[1] == ids[2]
    assert _site() == _site()


def test_distinct_sites():
    assert _site() != _other_site()


def test_distinct_columns_on_one_line():
    # Both calls share a line; only the column tells them apart.
    a, b = fork_id(), fork_id()
    assert a != b


def test_hashable():
    assert len({_site(), _site(), _other_site()}) == 2


def test_frozen():
    fid = fork_id()
    with pytest.raises(AttributeError):
        fid.value = ":0000000000000000"  # type: ignore[misc]


def test_from_key_is_deterministic():
    assert ForkId.from_key("a") == ForkId.from_key("a")
    assert ForkId.from_key("a") != ForkId.from_key("b")
    assert ID_RE.match(ForkId.from_key("").value)


class TestOf:
    def test_same_function(self):
        assert ForkId.of(_site) == ForkId.of(_site)

    def test_distinct_functions(self):
        assert ForkId.of(_site) != ForkId.of(_other_site)

    def test_sees_through_wrappers(self):
        import functools

        @functools.wraps(_site)
        def wrapper():
            return _site()

        assert ForkId.of(wrapper) == ForkId.of(_site)

    def test_bound_method(self):
        assert ForkId.of(self.test_bound_method) == ForkId.of(TestOf.test_bound_method)


def test_stable_across_processes():
    """The child computes the same identity for the same call site."""

    def body(data):
        data[:] = str(_site()).encode("ascii")

    data = bytearray(17)
    forktest.fork_in_out(fork_id(), forktest.current_test_name(), body, data)
    assert data.decode("ascii") == str(_site())
