# SPDX-License-Identifier: Apache-2.0
"""Tests for the occurrence trail."""

import pytest

from forktest.config import OCCURS_ENV
from forktest.identity import ForkId
from forktest.process.trail import OccurrenceTrail

A = ForkId.from_key("a")
B = ForkId.from_key("b")
C = ForkId.from_key("c")


def test_absent_variable_is_empty():
    trail = OccurrenceTrail.from_environ({})
    assert trail.value == ""
    assert len(trail) == 0
    assert A not in trail


def test_reads_environment(monkeypatch):
    monkeypatch.setenv(OCCURS_ENV, A.value + B.value)
    trail = OccurrenceTrail.from_environ()
    assert len(trail) == 2
    assert A in trail
    assert B in trail
    assert C not in trail


def test_custom_variable():
    trail = OccurrenceTrail.from_environ({"OTHER": A.value}, var="OTHER")
    assert A in trail


def test_append_copies():
    trail = OccurrenceTrail()
    longer = trail.append(A)
    assert len(trail) == 0
    assert len(longer) == 1
    assert longer.append(B).value == A.value + B.value


def test_frozen():
    trail = OccurrenceTrail(A.value)
    with pytest.raises(AttributeError):
        trail.value = ""  # type: ignore[misc]
