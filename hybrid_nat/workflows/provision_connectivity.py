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

"""Connect the spokes to the hub with HA VPN, BGP, hybrid NAT and internal load balancers."""

import asyncio
import sys
from typing import List, Mapping, Optional

from oslo_log import log as logging

import hybrid_nat.conf
from hybrid_nat import activities, reconciler
from hybrid_nat.activities import lb, routing
from hybrid_nat.config import ConfigurationError, Settings
from hybrid_nat.gcloud import ControlPlaneError, Executor, Gcloud
from hybrid_nat.objects import Report
from hybrid_nat.topology import Topology
from hybrid_nat.workflows import base_parser, prepare, setup

CONF = hybrid_nat.conf.CONF
LOG = logging.getLogger(__name__)

CONVERGENCE_NOTICE = (
    "Wait about 60 seconds for BGP to converge, then run hybrid-nat-exercise "
    "to verify both traffic flows."
)


def connectivity_plan(topology: Topology, gcloud: Gcloud,
                      shared_secrets: Optional[Mapping[str, str]] = None) -> reconciler.Plan:
    """Returns the plan for the connectivity layer.

    The networks, subnets and services are expected to exist already.
    """
    return activities.build_plan("connectivity",
                                 topology.connectivity_resources(shared_secrets),
                                 gcloud, topology.settings, allow_external=True)


async def provision_connectivity(settings: Settings, topology: Topology,
                                 gcloud: Gcloud) -> Report:
    return await reconciler.provision(connectivity_plan(topology, gcloud),
                                      settings.max_concurrency)


async def status_report(topology: Topology, gcloud: Gcloud) -> List[str]:
    """Returns human readable lines on tunnels, BGP sessions and front end addresses.

    Nothing here is fatal: the sessions usually need a minute to come up.
    """
    region = topology.settings.region
    lines = ["VPN tunnels:"]
    try:
        for tunnel in await routing.tunnel_status(gcloud, region):
            lines.append(f"  {tunnel.get('name')}: {tunnel.get('status', 'UNKNOWN')}")
    except ControlPlaneError as e:
        LOG.warning(f"Unable to list the VPN tunnels: {e}")
        lines.append("  (unavailable)")

    lines.append("BGP sessions:")
    for router in topology.advertisements():
        try:
            peers = await routing.bgp_status(gcloud, router, region)
        except ControlPlaneError as e:
            LOG.warning(f"Unable to read the status of {router}: {e}")
            lines.append(f"  {router}: not ready yet, BGP may take a minute to converge")
            continue
        for peer in peers:
            lines.append(f"  {router}/{peer.get('name')}: {peer.get('status', 'UNKNOWN')} "
                         f"({peer.get('numLearnedRoutes', 0)} learned routes)")

    lines.append("Load balancer front ends:")
    for spoke in topology.spokes:
        try:
            address = await lb.frontend_address(gcloud, spoke.forwarding_rule, region)
        except ControlPlaneError as e:
            LOG.warning(f"Unable to describe {spoke.forwarding_rule}: {e}")
            address = None
        lines.append(f"  {spoke.forwarding_rule}: {address or 'unknown'}")
    return lines


def setup_opts(argv: Optional[List[str]]):
    """Parse CLI arguments.

    :param argv: list of arguments to parse
    """
    parser = base_parser(__doc__)
    return parser.parse_known_args(argv)


async def async_main(argv: Optional[List[str]] = None,
                     executor: Optional[Executor] = None) -> int:
    """Async entry point for the connectivity layer.

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

    report = await provision_connectivity(settings, topology, gcloud)
    print(report.summary())
    if not report.ok:
        for failure in report.failures:
            LOG.error(f"{failure.name}: {failure.detail}")
        return 1

    for line in await status_report(topology, gcloud):
        print(line)
    print(CONVERGENCE_NOTICE)
    return 0


def main(argv: Optional[List[str]] = None):
    """Entry point for the connectivity layer.

    :param argv: list of CLI arguments.
    """
    return asyncio.run(async_main(argv))
