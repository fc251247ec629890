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

"""Provision the registry, images, networks, hub instance and Cloud Run workloads."""

import asyncio
import sys
from typing import List, Optional

from oslo_log import log as logging

import hybrid_nat.conf
from hybrid_nat import activities, reconciler
from hybrid_nat.config import ConfigurationError, Settings
from hybrid_nat.gcloud import Executor, Gcloud
from hybrid_nat.objects import Report
from hybrid_nat.topology import Topology
from hybrid_nat.workflows import base_parser, prepare, setup

CONF = hybrid_nat.conf.CONF
LOG = logging.getLogger(__name__)


def infra_plan(topology: Topology, gcloud: Gcloud, sleep=None) -> reconciler.Plan:
    """Returns the plan for the base infrastructure.

    The APIs are expected to be enabled by the identity bootstrap.
    """
    return activities.build_plan("infra", topology.infra_resources(), gcloud,
                                 topology.settings, allow_external=True, sleep=sleep)


async def provision_infra(settings: Settings, topology: Topology, gcloud: Gcloud) -> Report:
    return await reconciler.provision(infra_plan(topology, gcloud), settings.max_concurrency)


def setup_opts(argv: Optional[List[str]]):
    """Parse CLI arguments.

    :param argv: list of arguments to parse
    """
    parser = base_parser(__doc__)
    parser.add_argument(
        "--web-responder", dest="web_responder", action="store_true", default=None,
        help="Also create the passive web responder instance in the hub.",
    )
    return parser.parse_known_args(argv)


async def async_main(argv: Optional[List[str]] = None,
                     executor: Optional[Executor] = None) -> int:
    """Async entry point for the base infrastructure.

    :param argv: list of CLI arguments
    :param executor: runs the gcloud and docker commands, defaults to subprocesses.
    :return: the exit code.
    """
    if argv is None:
        argv = sys.argv

    (options, args) = setup_opts(argv)
    setup(args)
    if options.web_responder:
        CONF.set_override("web_responder", True, group="topology")
    try:
        settings, topology, gcloud = await prepare(options, executor)
    except ConfigurationError as e:
        LOG.error(str(e))
        return 1

    report = await provision_infra(settings, topology, gcloud)
    print(report.summary())
    if not report.ok:
        for failure in report.failures:
            LOG.error(f"{failure.name}: {failure.detail}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None):
    """Entry point for the base infrastructure.

    :param argv: list of CLI arguments.
    """
    return asyncio.run(async_main(argv))
