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

"""Enable the provider APIs and set up the identities the deployment uses."""

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


def iam_plan(topology: Topology, gcloud: Gcloud) -> reconciler.Plan:
    return activities.build_plan("iam", topology.iam_resources(), gcloud, topology.settings)


async def bootstrap_iam(settings: Settings, topology: Topology, gcloud: Gcloud) -> Report:
    """Ensures the APIs, the service account and its role bindings.

    :return: the report of the provisioning run.
    """
    return await reconciler.provision(iam_plan(topology, gcloud), settings.max_concurrency)


def setup_opts(argv: Optional[List[str]]):
    """Parse CLI arguments.

    :param argv: list of arguments to parse
    """
    parser = base_parser(__doc__)
    return parser.parse_known_args(argv)


async def async_main(argv: Optional[List[str]] = None,
                     executor: Optional[Executor] = None) -> int:
    """Async entry point for the identity bootstrap.

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

    report = await bootstrap_iam(settings, topology, gcloud)
    print(report.summary())
    if not report.ok:
        for failure in report.failures:
            LOG.error(f"{failure.name}: {failure.detail}")
        return 1

    print("To run the provisioning as the service account:")
    print(f"  gcloud config set auth/impersonate_service_account "
          f"{settings.service_account_email}")
    return 0


def main(argv: Optional[List[str]] = None):
    """Entry point for the identity bootstrap.

    :param argv: list of CLI arguments.
    """
    return asyncio.run(async_main(argv))
