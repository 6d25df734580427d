# SPDX-License-Identifier: Apache-2.0
"""Occurrence trail: fork points already entered by this process lineage."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..config import OCCURS_ENV
from ..identity import TERM_LENGTH, ForkId


@dataclass(frozen=True)
class OccurrenceTrail:
    """Concatenated fork ids, inherited through the environment.

    A process finding its own fork id in the trail is the child branch of
    that fork point. The trail only grows by copying, one entry per spawn.
    """

    value: str = ""

    @classmethod
    def from_environ(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        var: str = OCCURS_ENV,
    ) -> "OccurrenceTrail":
        if environ is None:
            environ = os.environ
        return cls(environ.get(var, ""))

    def __contains__(self, fork_id: object) -> bool:
        return str(fork_id) in self.value

    def __len__(self) -> int:
        return len(self.value) // TERM_LENGTH

    def append(self, fork_id: ForkId) -> "OccurrenceTrail":
        return OccurrenceTrail(self.value + str(fork_id))
