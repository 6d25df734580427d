# SPDX-License-Identifier: Apache-2.0
"""Filter the host pytest command line down to what a child may inherit.

The child re-runs pytest for exactly one node id, so test selection,
reporting and scheduling flags of the host are dropped, flags that shape
how tests execute (plugins, ini overrides, warnings filters, ...) are
forwarded, and flags that make no sense for a captured child are refused.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .exceptions import DisallowedFlagError, UnknownFlagError

# Appended after the filtered arguments, before the node id.
RUN_TEST_ARGS = ("-p", "no:cacheprovider", "--capture=no", "--quiet")

PASS = "pass"
DROP = "drop"
ERROR = "error"


@dataclass(frozen=True)
class Flag:
    action: str
    takes_value: bool = False
    reason: Optional[str] = None


def _error(reason: str) -> Flag:
    return Flag(ERROR, reason=reason)


_NOT_RUNNING = "tests are run but {} was passed to the process?"
_INTERACTIVE = "interactive debugging cannot be forwarded to a captured child process"

_KNOWN_FLAGS: dict[str, Flag] = {
    # General
    "-h": _error(_NOT_RUNNING.format("-h")),
    "--help": _error(_NOT_RUNNING.format("--help")),
    "-V": _error(_NOT_RUNNING.format("-V")),
    "--version": _error(_NOT_RUNNING.format("--version")),
    "--co": _error(_NOT_RUNNING.format("--co")),
    "--collect-only": _error(_NOT_RUNNING.format("--collect-only")),
    "--collectonly": _error(_NOT_RUNNING.format("--collectonly")),
    "--fixtures": _error(_NOT_RUNNING.format("--fixtures")),
    "--funcargs": _error(_NOT_RUNNING.format("--funcargs")),
    "--fixtures-per-test": _error(_NOT_RUNNING.format("--fixtures-per-test")),
    "--markers": _error(_NOT_RUNNING.format("--markers")),
    "--setup-only": _error(_NOT_RUNNING.format("--setup-only")),
    "--setup-plan": _error(_NOT_RUNNING.format("--setup-plan")),
    "--pdb": _error(_INTERACTIVE),
    "--pdbcls": Flag(ERROR, takes_value=True, reason=_INTERACTIVE),
    "--trace": _error(_INTERACTIVE),
    # Plugins and configuration
    "-p": Flag(PASS, takes_value=True),
    "-c": Flag(PASS, takes_value=True),
    "--config-file": Flag(PASS, takes_value=True),
    "-o": Flag(PASS, takes_value=True),
    "--override-ini": Flag(PASS, takes_value=True),
    "--rootdir": Flag(PASS, takes_value=True),
    "--confcutdir": Flag(PASS, takes_value=True),
    "--noconftest": Flag(PASS),
    "--import-mode": Flag(PASS, takes_value=True),
    "--pyargs": Flag(PASS),
    "--keep-duplicates": Flag(PASS),
    "--collect-in-virtualenv": Flag(PASS),
    "--strict": Flag(PASS),
    "--strict-markers": Flag(PASS),
    "--strict-config": Flag(PASS),
    "--assert": Flag(PASS, takes_value=True),
    "--basetemp": Flag(DROP, takes_value=True),
    "--debug": Flag(DROP),
    "--trace-config": Flag(DROP),
    # Warnings and execution
    "-W": Flag(PASS, takes_value=True),
    "--pythonwarnings": Flag(PASS, takes_value=True),
    "--disable-warnings": Flag(PASS),
    "--disable-pytest-warnings": Flag(PASS),
    "--runxfail": Flag(PASS),
    "--doctest-modules": Flag(PASS),
    "--doctest-glob": Flag(PASS, takes_value=True),
    # Test selection
    "-k": Flag(DROP, takes_value=True),
    "-m": Flag(DROP, takes_value=True),
    "--deselect": Flag(DROP, takes_value=True),
    "--ignore": Flag(DROP, takes_value=True),
    "--ignore-glob": Flag(DROP, takes_value=True),
    "-x": Flag(DROP),
    "--exitfirst": Flag(DROP),
    "--maxfail": Flag(DROP, takes_value=True),
    "--continue-on-collection-errors": Flag(DROP),
    "--lf": Flag(DROP),
    "--last-failed": Flag(DROP),
    "--ff": Flag(DROP),
    "--failed-first": Flag(DROP),
    "--nf": Flag(DROP),
    "--new-first": Flag(DROP),
    "--lfnf": Flag(DROP, takes_value=True),
    "--last-failed-no-failures": Flag(DROP, takes_value=True),
    "--sw": Flag(DROP),
    "--stepwise": Flag(DROP),
    "--sw-skip": Flag(DROP),
    "--stepwise-skip": Flag(DROP),
    "--cache-show": _error(_NOT_RUNNING.format("--cache-show")),
    "--cache-clear": Flag(DROP),
    # Reporting
    "-v": Flag(DROP),
    "--verbose": Flag(DROP),
    "-q": Flag(DROP),
    "--quiet": Flag(DROP),
    "--verbosity": Flag(DROP, takes_value=True),
    "-r": Flag(DROP, takes_value=True),
    "-l": Flag(PASS),
    "--showlocals": Flag(PASS),
    "--no-showlocals": Flag(PASS),
    "--tb": Flag(DROP, takes_value=True),
    "--full-trace": Flag(PASS),
    "--fulltrace": Flag(PASS),
    "--show-capture": Flag(DROP, takes_value=True),
    "--color": Flag(PASS, takes_value=True),
    "--code-highlight": Flag(PASS, takes_value=True),
    "--durations": Flag(DROP, takes_value=True),
    "--durations-min": Flag(DROP, takes_value=True),
    "--setup-show": Flag(DROP),
    "--no-header": Flag(DROP),
    "--no-summary": Flag(DROP),
    "--junitxml": Flag(DROP, takes_value=True),
    "--junit-xml": Flag(DROP, takes_value=True),
    "--junit-prefix": Flag(DROP, takes_value=True),
    "--pastebin": Flag(DROP, takes_value=True),
    # Capture; the child always runs with --capture=no
    "-s": Flag(DROP),
    "--capture": Flag(DROP, takes_value=True),
    # Logging
    "--log-level": Flag(PASS, takes_value=True),
    "--log-format": Flag(PASS, takes_value=True),
    "--log-date-format": Flag(PASS, takes_value=True),
    "--log-cli-level": Flag(PASS, takes_value=True),
    "--log-cli-format": Flag(PASS, takes_value=True),
    "--log-cli-date-format": Flag(PASS, takes_value=True),
    "--log-auto-indent": Flag(PASS, takes_value=True),
    "--log-disable": Flag(PASS, takes_value=True),
    "--log-file": Flag(DROP, takes_value=True),
    "--log-file-mode": Flag(DROP, takes_value=True),
    "--log-file-level": Flag(DROP, takes_value=True),
    "--log-file-format": Flag(DROP, takes_value=True),
    "--log-file-date-format": Flag(DROP, takes_value=True),
    # Common third-party plugins
    "-n": Flag(DROP, takes_value=True),
    "--numprocesses": Flag(DROP, takes_value=True),
    "--maxprocesses": Flag(DROP, takes_value=True),
    "--max-worker-restart": Flag(DROP, takes_value=True),
    "--dist": Flag(DROP, takes_value=True),
    "--tx": Flag(DROP, takes_value=True),
    "--forked": Flag(DROP),
    "--cov": Flag(DROP),
    "--cov-report": Flag(DROP, takes_value=True),
    "--cov-config": Flag(DROP, takes_value=True),
    "--cov-fail-under": Flag(DROP, takes_value=True),
    "--cov-append": Flag(DROP),
    "--cov-branch": Flag(DROP),
    "--cov-context": Flag(DROP, takes_value=True),
    "--no-cov": Flag(DROP),
    "--no-cov-on-fail": Flag(DROP),
    "--timeout": Flag(PASS, takes_value=True),
    "--timeout-method": Flag(PASS, takes_value=True),
    "--asyncio-mode": Flag(PASS, takes_value=True),
    "--randomly-seed": Flag(PASS, takes_value=True),
    "--randomly-dont-reorganize": Flag(PASS),
    "--randomly-dont-reset-seed": Flag(PASS),
    "--hypothesis-profile": Flag(PASS, takes_value=True),
    "--hypothesis-seed": Flag(PASS, takes_value=True),
    "--hypothesis-show-statistics": Flag(DROP),
    "--reruns": Flag(DROP, takes_value=True),
    "--reruns-delay": Flag(DROP, takes_value=True),
    "--only-rerun": Flag(DROP, takes_value=True),
    "--count": Flag(DROP, takes_value=True),
    "--html": Flag(DROP, takes_value=True),
    "--self-contained-html": Flag(DROP),
    "--json-report": Flag(DROP),
    "--json-report-file": Flag(DROP, takes_value=True),
    "--alluredir": Flag(DROP, takes_value=True),
    "--instafail": Flag(DROP),
}


def _extend(table: dict[str, Flag], entries: Iterable[str], action: str) -> None:
    for entry in entries:
        if entry.endswith("="):
            table[entry[:-1]] = Flag(action, takes_value=True)
        else:
            table[entry] = Flag(action)


def strip_cmdline(
    args: Iterable[str],
    *,
    pass_flags: Iterable[str] = (),
    drop_flags: Iterable[str] = (),
    strict: bool = True,
) -> list[str]:
    """Map the host pytest arguments to the arguments forwarded to a child.

    Args:
        args: Host arguments, without the program name.
        pass_flags: Extra flags to forward. An entry ending in ``=`` takes
            a value (``'--my-opt='``).
        drop_flags: Extra flags to remove, same syntax as *pass_flags*.
        strict: Raise on unknown flags instead of dropping them.

    Returns:
        The forwarded arguments. Positional arguments never survive: the
        child is pointed at a single node id instead.

    Raises:
        UnknownFlagError: An unknown flag was encountered in strict mode.
        DisallowedFlagError: A known flag cannot be forwarded.
    """
    table = dict(_KNOWN_FLAGS)
    _extend(table, pass_flags, PASS)
    _extend(table, drop_flags, DROP)

    ret: list[str] = []
    it = iter(args)

    def value_for(flag: str) -> str:
        value = next(it, None)
        if value is None:
            raise DisallowedFlagError(flag, "expected a value but none was given")
        return value

    for arg in it:
        if arg == "--":
            # Everything after is positional.
            break
        if not arg.startswith("-") or arg == "-":
            continue

        if arg.startswith("--"):
            name, eq, _ = arg.partition("=")
            flag = table.get(name)
            if flag is None:
                if strict:
                    raise UnknownFlagError(name)
                continue
            if flag.action == ERROR:
                raise DisallowedFlagError(name, flag.reason or "not supported")
            if flag.takes_value and not eq:
                pieces = [name, value_for(name)]
            else:
                pieces = [arg]
            if flag.action == PASS:
                ret.extend(pieces)
            continue

        # Short options: clusters (-vx) and attached values (-n4, -rA).
        for i in range(1, len(arg)):
            name = "-" + arg[i]
            flag = table.get(name)
            if flag is None:
                if strict:
                    raise UnknownFlagError(name)
                break
            if flag.action == ERROR:
                raise DisallowedFlagError(name, flag.reason or "not supported")
            if flag.takes_value:
                value = arg[i + 1:] or value_for(name)
                if flag.action == PASS:
                    ret.extend([name, value])
                break
            if flag.action == PASS:
                ret.append(name)

    return ret
