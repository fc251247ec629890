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

"""Idempotent reconciliation of resources against the control plane.

Every resource is handled by a Step. Provisioning walks the steps of a
Plan in dependency order, skipping what already exists and creating what
is missing. Decommissioning walks the same graph in reverse, skipping
what is already gone. Existing resources are never compared with their
desired configuration.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

import networkx
from networkx.algorithms.dag import is_directed_acyclic_graph
from oslo_log import log as logging

from hybrid_nat.gcloud import ControlPlaneError
from hybrid_nat.objects import Outcome, Report, StepResult

LOG = logging.getLogger(__name__)

Check = Callable[[], Awaitable[bool]]
Action = Callable[[], Awaitable[Optional[str]]]


class PlanError(Exception):
    """The dependency graph of a plan is invalid."""


class Step:
    """Ensure (or remove) one resource.

    :param name: unique name of the step, by convention ``kind/name``.
    :param exists: coroutine function returning True when the resource is present.
    :param create: coroutine function creating the resource.
    :param delete: coroutine function deleting the resource. Steps without
                   one are retained on decommission.
    :param requires: names of the steps this one depends on.
    :param pool: steps sharing a pool and adjacent in the plan order are
                 run concurrently.
    :param best_effort: failures while removing are reported as ignored.
    """

    def __init__(self, name: str, exists: Check, create: Action,
                 delete: Optional[Action] = None, requires: Iterable[str] = (),
                 pool: Optional[str] = None, best_effort: bool = False):
        self.name = name
        self.exists = exists
        self.create = create
        self.delete = delete
        self.requires = list(requires)
        self.pool = pool
        self.best_effort = best_effort

    def __repr__(self):
        return f"Step({self.name!r})"

    def _failure(self, error: ControlPlaneError, removing: bool = False) -> StepResult:
        if removing and self.best_effort:
            LOG.warning(f"Ignoring failure of {self.name}: {error}")
            return StepResult(name=self.name, outcome=Outcome.IGNORED, detail=str(error))
        LOG.error(f"{self.name} failed: {error}")
        return StepResult(name=self.name, outcome=Outcome.FAILED, detail=str(error))

    async def ensure(self) -> StepResult:
        """Creates the resource unless it already exists."""
        try:
            if await self.exists():
                LOG.info(f"{self.name} already exists, skipping.")
                return StepResult(name=self.name, outcome=Outcome.EXISTS)
            LOG.info(f"Creating {self.name}")
            detail = await self.create()
        except ControlPlaneError as e:
            return self._failure(e)
        LOG.info(f"{self.name} created.")
        return StepResult(name=self.name, outcome=Outcome.CREATED, detail=detail)

    async def remove(self) -> StepResult:
        """Deletes the resource if it exists."""
        if self.delete is None:
            return StepResult(name=self.name, outcome=Outcome.RETAINED)
        try:
            if not await self.exists():
                LOG.info(f"{self.name} does not exist, skipping.")
                return StepResult(name=self.name, outcome=Outcome.ABSENT)
            LOG.info(f"Deleting {self.name}")
            detail = await self.delete()
        except ControlPlaneError as e:
            return self._failure(e, removing=True)
        LOG.info(f"{self.name} deleted.")
        return StepResult(name=self.name, outcome=Outcome.DELETED, detail=detail)


class Plan:
    """A directed acyclic graph of steps.

    :param name: name used in logs and reports.
    :param allow_external: permit requirements on steps that are not part
                           of this plan. They are assumed to be satisfied
                           by an earlier plan.
    """

    def __init__(self, name: str, steps: Iterable[Step] = (), allow_external: bool = False):
        self.name = name
        self.allow_external = allow_external
        self._steps: Dict[str, Step] = {}
        for step in steps:
            self.add(step)

    def __contains__(self, name: str) -> bool:
        return name in self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self):
        return iter(self._steps.values())

    def get(self, name: str) -> Step:
        return self._steps[name]

    def add(self, step: Step) -> Step:
        if step.name in self._steps:
            raise PlanError(f"Duplicate step {step.name} in plan {self.name}")
        self._steps[step.name] = step
        return step

    def extend(self, steps: Iterable[Step]) -> None:
        for step in steps:
            self.add(step)

    @classmethod
    def merge(cls, name: str, *plans: "Plan") -> "Plan":
        """Combines plans into one graph. Requirements must resolve within it."""
        merged = cls(name)
        for plan in plans:
            merged.extend(plan)
        return merged

    def graph(self) -> networkx.DiGraph:
        """Returns the dependency graph, with an edge from each requirement to its dependent.

        :raises PlanError: on requirements that are not part of the plan,
                           unless external requirements are allowed.
        """
        graph = networkx.DiGraph()
        graph.add_nodes_from(self._steps)
        for step in self._steps.values():
            for required in step.requires:
                if required in self._steps:
                    graph.add_edge(required, step.name)
                elif not self.allow_external:
                    raise PlanError(f"{step.name} requires unknown step {required}")
        return graph

    def order(self) -> List[Step]:
        """Returns the steps in dependency order.

        Ties are broken by insertion order so the sequence is stable and
        reads like the plan was written.

        :raises PlanError: on unknown requirements or dependency cycles.
        """
        graph = self.graph()
        if not is_directed_acyclic_graph(graph):
            cycle = [u for u, _ in networkx.find_cycle(graph)]
            path = " -> ".join(cycle + cycle[:1])
            raise PlanError(f"Dependency cycle in plan {self.name}: {path}")
        index = {name: i for i, name in enumerate(self._steps)}
        return [self._steps[name]
                for name in networkx.lexicographical_topological_sort(graph, key=index.get)]


def _batches(steps: Sequence[Step]) -> List[List[Step]]:
    """Groups adjacent steps sharing a pool."""
    batches: List[List[Step]] = []
    for step in steps:
        if batches and step.pool is not None and batches[-1][0].pool == step.pool:
            batches[-1].append(step)
        else:
            batches.append([step])
    return batches


async def gather_bounded(coros: Iterable[Awaitable], limit: int) -> list:
    """Awaits the coroutines with at most ``limit`` running at once.

    Results are returned in the order the coroutines were given.
    """
    semaphore = asyncio.Semaphore(limit)

    async def _bounded(coro):
        async with semaphore:
            return await coro

    return await asyncio.gather(*(_bounded(c) for c in coros))


async def _run(report: Report, steps: Sequence[Step], limit: int, removing: bool,
               abort_on_failure: bool) -> Report:
    for batch in _batches(steps):
        if len(batch) == 1:
            results = [await (batch[0].remove() if removing else batch[0].ensure())]
        else:
            LOG.info(f"Running {len(batch)} {batch[0].pool} steps, {limit} at a time")
            results = await gather_bounded(
                [s.remove() if removing else s.ensure() for s in batch], limit
            )
        for result in results:
            report.add(result)

        if abort_on_failure and any(r.failed for r in results):
            report.aborted = True
            LOG.error(f"Aborting {report.name} after failure of "
                      f"{', '.join(r.name for r in results if r.failed)}")
            break
    return report


async def provision(plan: Plan, limit: int = 5) -> Report:
    """Ensures every step of the plan, stopping at the first failure.

    :param plan: the plan to apply.
    :param limit: concurrency ceiling for pooled steps.
    """
    LOG.info(f"Provisioning {plan.name}: {len(plan)} steps")
    return await _run(Report(name=plan.name), plan.order(), limit,
                      removing=False, abort_on_failure=True)


async def decommission(plan: Plan, limit: int = 5) -> Report:
    """Removes every step of the plan in reverse dependency order.

    Failures are recorded and the remaining steps still run.

    :param plan: the plan to tear down.
    :param limit: concurrency ceiling for pooled steps.
    """
    LOG.info(f"Decommissioning {plan.name}: {len(plan)} steps")
    return await _run(Report(name=plan.name), list(reversed(plan.order())), limit,
                      removing=True, abort_on_failure=False)
