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

"""Tear down everything the provisioning created, in reverse dependency order."""

import asyncio
import sys
from typing import Awaitable, Callable, List, Optional

from oslo_log import log as logging

import hybrid_nat.conf
from hybrid_nat import reconciler
from hybrid_nat.config import ConfigurationError, Settings
from hybrid_nat.gcloud import Executor, Gcloud
from hybrid_nat.objects import Report
from hybrid_nat.topology import Topology
from hybrid_nat.workflows import base_parser, prepare, setup
from hybrid_nat.workflows.bootstrap_iam import iam_plan
from hybrid_nat.workflows.provision_connectivity import connectivity_plan
from hybrid_nat.workflows.provision_infra import infra_plan

CONF = hybrid_nat.conf.CONF
LOG = logging.getLogger(__name__)


def teardown_plan(topology: Topology, gcloud: Gcloud,
                  sleep: Optional[Callable[[float], Awaitable[None]]] = None) -> reconciler.Plan:
    """Returns the identity, infrastructure and connectivity plans as one graph."""
    return reconciler.Plan.merge(
        "decommission",
        iam_plan(topology, gcloud),
        infra_plan(topology, gcloud, sleep=sleep),
        connectivity_plan(topology, gcloud),
    )


async def decommission(settings: Settings, topology: Topology, gcloud: Gcloud,
                       sleep: Optional[Callable[[float], Awaitable[None]]] = None) -> Report:
    """Removes every resource, continuing past failures.

    The provider APIs are left enabled.

    :param sleep: coroutine function used between subnet deletion attempts.
    """
    return await reconciler.decommission(teardown_plan(topology, gcloud, sleep),
                                         settings.max_concurrency)


def setup_opts(argv: Optional[List[str]]):
    """Parse CLI arguments.

    :param argv: list of arguments to parse
    """
    parser = base_parser(__doc__)
    return parser.parse_known_args(argv)


async def async_main(argv: Optional[List[str]] = None,
                     executor: Optional[Executor] = None) -> int:
    """Async entry point for the decommissioning.

    Failed deletions are reported but do not change the exit code; run the
    decommissioning again to retry them.

    :param argv: list of CLI arguments
    :param executor: runs the gcloud commands, defaults to subprocesses.
    :return: the exit code.
    """
    if argv is None:
        argv = sys.argv

    (options, args) = setup_opts(argv)
    setup(args)
    try:
        settings, topology, gcloud = await prepare(options, executor)
    except ConfigurationError as e:
        LOG.error(str(e))
        return 1

    report = await decommission(settings, topology, gcloud)
    print(report.summary())
    for failure in report.failures:
        LOG.warning(f"Could not delete {failure.name}: {failure.detail}")
    if report.failures:
        print(f"{len(report.failures)} resource(s) could not be deleted, "
              f"run the decommissioning again to retry.")
    return 0


def main(argv: Optional[List[str]] = None):
    """Entry point for the decommissioning.

    :param argv: list of CLI arguments.
    """
    return asyncio.run(async_main(argv))
