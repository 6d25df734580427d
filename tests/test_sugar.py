# SPDX-License-Identifier: Apache-2.0
"""Tests for the forked decorators and the pytest plugin, end to end."""

import os

import pytest

from forktest import sugar
from forktest.config import OCCURS_ENV
from forktest.exceptions import ForkTestError
from forktest.sugar import absolute_nodeid, current_test_name, forked


def test_absolute_nodeid():
    assert absolute_nodeid("/a/tests/test_x.py", "tests/test_x.py::T::test_y[1]") == (
        "/a/tests/test_x.py::T::test_y[1]"
    )
    assert absolute_nodeid("/a/tests/test_x.py", "tests/test_x.py") == "/a/tests/test_x.py"


def test_current_test_name_outside_test(monkeypatch):
    monkeypatch.setattr(sugar, "_current_test", None)
    with pytest.raises(ForkTestError, match="no test is running"):
        current_test_name()


def test_forked_runs_in_child():
    def body():
        assert os.environ.get(OCCURS_ENV)

    forked(body)()


def test_forked_passes_arguments():
    def body(value, *, other):
        assert (value, other) == (1, 2)

    forked(body)(1, other=2)


def test_forked_failure():
    def body():
        assert os.environ.get(OCCURS_ENV) is None

    with pytest.raises(AssertionError, match="exit status 70"):
        forked(body)()


def test_forked_rejects_coroutines():
    async def body():
        pass

    with pytest.raises(TypeError, match="coroutine"):
        forked(body)


def test_decorated_tests(pytester):
    pytester.makepyfile(
        """
        import os
        import signal

        import forktest

        STATE = []

        @forktest.forked
        def test_passes():
            STATE.append(1)
            assert os.environ.get("FORKTEST_OCCURS")

        def test_state_untouched():
            assert STATE == []

        @forktest.forked
        def test_fails():
            assert 1 == 2

        @forktest.forked
        def test_raises():
            raise RuntimeError("boom")

        @forktest.forked
        def test_killed():
            os.kill(os.getpid(), signal.SIGKILL)
        """
    )
    result = pytester.runpytest_subprocess()
    result.assert_outcomes(passed=2, failed=3)
    result.stdout.fnmatch_lines([
        "*RuntimeError: boom*",
        "*child exited unsuccessfully with signal 9 (SIGKILL)*",
    ])


def test_loud_forked_test(pytester):
    pytester.makepyfile(
        """
        import sys

        import forktest

        @forktest.forked
        def test_loud():
            print("x" * 200_000)
            print("y" * 200_000, file=sys.stderr)
        """
    )
    result = pytester.runpytest_subprocess(timeout=120)
    result.assert_outcomes(passed=1)


def test_fixtures_and_parametrize(pytester):
    pytester.makepyfile(
        """
        import pytest

        import forktest

        @forktest.forked
        def test_tmp_path(tmp_path, request):
            (tmp_path / "x").write_text("1")
            assert request.node.name == "test_tmp_path"

        @pytest.mark.parametrize("n", [1, 2, 3])
        @forktest.forked
        def test_param(n, request):
            assert request.node.name == f"test_param[{n}]"
        """
    )
    result = pytester.runpytest_subprocess("-v")
    result.assert_outcomes(passed=4)


def test_marker(pytester):
    pytester.makepyfile(
        """
        import os

        import pytest

        @pytest.mark.forktest
        def test_marked():
            assert os.environ.get("FORKTEST_OCCURS")

        def test_unmarked():
            assert not os.environ.get("FORKTEST_OCCURS")

        @pytest.mark.forktest
        class TestGroup:
            def test_method(self):
                assert os.environ.get("FORKTEST_OCCURS")

            def test_failing_method(self):
                assert not os.environ.get("FORKTEST_OCCURS")
        """
    )
    result = pytester.runpytest_subprocess()
    result.assert_outcomes(passed=3, failed=1)


def test_unknown_flag_reported(pytester):
    pytester.makeconftest(
        """
        def pytest_addoption(parser):
            parser.addoption("--custom", action="store_true")
        """
    )
    pytester.makepyfile(
        """
        import forktest

        @forktest.forked
        def test_forked():
            pass
        """
    )
    result = pytester.runpytest_subprocess("--custom")
    result.assert_outcomes(failed=1)
    result.stdout.fnmatch_lines(["*UnknownFlagError*--custom*"])


def test_extra_pass_flags(pytester):
    pytester.makeini(
        """
        [pytest]
        forktest_pass_flags = --custom
        """
    )
    pytester.makeconftest(
        """
        def pytest_addoption(parser):
            parser.addoption("--custom", action="store_true")
        """
    )
    pytester.makepyfile(
        """
        import forktest

        @forktest.forked
        def test_forked(request):
            assert request.config.getoption("--custom")
        """
    )
    result = pytester.runpytest_subprocess("--custom")
    result.assert_outcomes(passed=1)


def test_benchmark_summary(pytester):
    pytester.makeini(
        """
        [pytest]
        forktest_bench_rounds = 5
        """
    )
    pytester.makepyfile(
        """
        import os
        import time

        import forktest

        @forktest.forked_bench
        def test_bench_sleep(bencher):
            assert os.environ.get("FORKTEST_OCCURS")
            bencher.iter(lambda: time.sleep(0.001))
            assert bencher.iterations == 5
        """
    )
    result = pytester.runpytest_subprocess()
    result.assert_outcomes(passed=1)
    result.stdout.fnmatch_lines([
        "*forktest benchmarks*",
        "*test_bench_sleep*bench:*ns/iter (+/- *)",
    ])
