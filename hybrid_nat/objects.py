#
# Copyright (C) 2023 Canonical Ltd.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as
# published by the Free Software Foundation, either version 3 of the
# License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#

"""Shared objects for the activities and workflows."""

import enum
from collections import Counter
from typing import Dict, List, Optional

from pydantic import BaseModel


class Object(BaseModel):
    """An Object for hybrid-nat"""

    def __hash__(self):
        if hasattr(self, 'name'):
            return hash(self.name)

        raise TypeError(f"unhashable type: {type(self)}")


class Outcome(str, enum.Enum):
    """What happened to a single reconciliation step."""
    CREATED = "created"
    EXISTS = "exists"
    DELETED = "deleted"
    ABSENT = "absent"
    RETAINED = "retained"
    IGNORED = "ignored"
    FAILED = "failed"


class StepResult(Object):
    """The result of running one step against the control plane."""
    name: str
    outcome: Outcome
    detail: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED


class Report(Object):
    """The collected results of running a plan."""
    name: str
    results: List[StepResult] = []
    aborted: bool = False

    def add(self, result: StepResult) -> None:
        self.results.append(result)

    @property
    def failures(self) -> List[StepResult]:
        return [r for r in self.results if r.failed]

    @property
    def ok(self) -> bool:
        return not self.aborted and not self.failures

    def counts(self) -> Dict[Outcome, int]:
        """Returns the number of steps per outcome."""
        return dict(Counter(r.outcome for r in self.results))

    def summary(self) -> str:
        counts = self.counts()
        parts = [f"{outcome.value}={counts[outcome]}" for outcome in Outcome if outcome in counts]
        state = "aborted" if self.aborted else "complete"
        return f"{self.name} {state}: {', '.join(parts) or 'nothing to do'}"


class CheckResult(Object):
    """The result of exercising one data path."""
    name: str
    passed: bool
    detail: str = ""


class LoadSummary(Object):
    """Status codes and latencies of a burst of requests against one target."""
    name: str
    codes: Dict[str, int] = {}
    latencies: List[float] = []

    @property
    def total(self) -> int:
        return sum(self.codes.values())

    @property
    def succeeded(self) -> int:
        return sum(n for code, n in self.codes.items() if code.startswith("2"))

    def summary(self) -> str:
        codes = ", ".join(f"{code}={n}" for code, n in sorted(self.codes.items()))
        line = f"{self.name}: {self.succeeded}/{self.total} ok ({codes or 'no responses'})"
        if self.latencies:
            average = sum(self.latencies) / len(self.latencies)
            line += (f", latency min={min(self.latencies):.3f}s "
                     f"avg={average:.3f}s max={max(self.latencies):.3f}s")
        return line
