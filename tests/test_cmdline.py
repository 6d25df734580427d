# SPDX-License-Identifier: Apache-2.0
"""Tests for filtering the host command line."""

import pytest

from forktest.cmdline import RUN_TEST_ARGS, strip_cmdline
from forktest.exceptions import ArgumentError, DisallowedFlagError, UnknownFlagError


def test_empty():
    assert strip_cmdline([]) == []


def test_positional_args_dropped():
    assert strip_cmdline(["tests", "tests/test_x.py::test_y"]) == []


def test_everything_after_double_dash_dropped():
    assert strip_cmdline(["-W", "error", "--", "--help", "tests"]) == ["-W", "error"]


def test_lone_dash_is_positional():
    assert strip_cmdline(["-"]) == []


class TestLongFlags:
    def test_pass_without_value(self):
        assert strip_cmdline(["--strict-markers"]) == ["--strict-markers"]

    def test_pass_with_separate_value(self):
        assert strip_cmdline(["--import-mode", "importlib"]) == [
            "--import-mode", "importlib",
        ]

    def test_pass_with_attached_value(self):
        assert strip_cmdline(["--color=yes"]) == ["--color=yes"]

    def test_drop_without_value(self):
        assert strip_cmdline(["--verbose", "--exitfirst"]) == []

    def test_drop_consumes_value(self):
        assert strip_cmdline(["--tb", "short", "--maxfail=2", "--strict"]) == ["--strict"]

    def test_missing_value(self):
        with pytest.raises(DisallowedFlagError) as excinfo:
            strip_cmdline(["--rootdir"])
        assert excinfo.value.flag == "--rootdir"


class TestShortFlags:
    def test_cluster_dropped(self):
        assert strip_cmdline(["-vvx", "-s"]) == []

    def test_attached_value(self):
        assert strip_cmdline(["-n4", "-rA", "-Werror"]) == ["-W", "error"]

    def test_separate_value(self):
        assert strip_cmdline(["-p", "no:randomly", "-k", "slow"]) == ["-p", "no:randomly"]

    def test_cluster_ending_in_value(self):
        assert strip_cmdline(["-vp", "xdist"]) == ["-p", "xdist"]

    def test_cluster_keeps_passing_flags(self):
        assert strip_cmdline(["-vl"]) == ["-l"]


class TestErrors:
    @pytest.mark.parametrize("flag", ["--help", "-h", "--collect-only", "--co", "--pdb"])
    def test_disallowed(self, flag):
        with pytest.raises(DisallowedFlagError) as excinfo:
            strip_cmdline([flag])
        assert excinfo.value.flag == flag
        assert excinfo.value.reason
        assert flag in str(excinfo.value)

    def test_disallowed_in_cluster(self):
        with pytest.raises(DisallowedFlagError) as excinfo:
            strip_cmdline(["-vh"])
        assert excinfo.value.flag == "-h"

    def test_unknown_long(self):
        with pytest.raises(UnknownFlagError) as excinfo:
            strip_cmdline(["--no-such-flag=1"])
        assert excinfo.value.flag == "--no-such-flag"
        assert "does not know how to handle" in str(excinfo.value)

    def test_unknown_short(self):
        with pytest.raises(UnknownFlagError) as excinfo:
            strip_cmdline(["-vZ"])
        assert excinfo.value.flag == "-Z"

    def test_common_base(self):
        with pytest.raises(ArgumentError):
            strip_cmdline(["--bogus"])


class TestExtensions:
    def test_pass_flags(self):
        args = ["--my-switch", "--my-opt", "1", "--my-opt=2"]
        assert strip_cmdline(args, pass_flags=["--my-switch", "--my-opt="]) == args

    def test_drop_flags(self):
        assert strip_cmdline(["--my-opt", "1", "-v"], drop_flags=["--my-opt="]) == []

    def test_extension_overrides_table(self):
        assert strip_cmdline(["--durations=5"], pass_flags=["--durations="]) == [
            "--durations=5"
        ]

    def test_non_strict_drops_unknown(self):
        assert strip_cmdline(["--bogus", "-W", "error"], strict=False) == ["-W", "error"]


def test_run_test_args_disable_capture():
    assert "--capture=no" in RUN_TEST_ARGS
    # The child must be quiet and must not touch the cache of the host run.
    assert strip_cmdline(list(RUN_TEST_ARGS)) == ["-p", "no:cacheprovider"]
