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

"""Exercise both data paths between the hub and the spokes.

Spoke to hub: every spoke's job runs in the colliding range and calls the
hub instance, which only reaches it through hybrid NAT and the VPN.

Hub to spoke: the hub instance calls every spoke's internal load balancer
over the VPN. The load mode sends a burst of such requests and
summarises the status codes and latencies.

Failures are reported per spoke and never abort the remaining checks.
"""

import asyncio
import re
import sys
from typing import Awaitable, Callable, List, Optional, Sequence

from oslo_log import log as logging

import hybrid_nat.conf
from hybrid_nat.activities import compute, lb, routing, serverless
from hybrid_nat.config import ConfigurationError, Settings
from hybrid_nat.gcloud import ControlPlaneError, Executor, Gcloud
from hybrid_nat.objects import CheckResult, LoadSummary
from hybrid_nat.topology import Spoke, Topology
from hybrid_nat.workflows import base_parser, prepare, setup

CONF = hybrid_nat.conf.CONF
LOG = logging.getLogger(__name__)

STATUS_MARKER = "HTTP_STATUS:"
LOAD_LINE = re.compile(r"^(\d{3})\s+([0-9.]+)$")


def _tail(text: str, lines: int = 5) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


async def bgp_warnings(gcloud: Gcloud, routers: Sequence[str], region: str) -> List[str]:
    """Returns a warning for every BGP session that is not up."""
    warnings = []
    for router in routers:
        try:
            peers = await routing.bgp_status(gcloud, router, region)
        except ControlPlaneError as e:
            warnings.append(f"Unable to read the BGP status of {router}: {e}")
            continue
        if not peers:
            warnings.append(f"{router} has no BGP sessions")
        for peer in peers:
            if peer.get("status") != "UP":
                warnings.append(f"BGP session {router}/{peer.get('name')} is "
                                f"{peer.get('status', 'UNKNOWN')}")
    return warnings


async def spoke_to_hub(topology: Topology, gcloud: Gcloud, spoke: Spoke) -> CheckResult:
    """Executes the spoke's job, which calls the hub instance."""
    name = f"{spoke.job} -> {topology.hub_instance}"
    LOG.info(f"Executing {spoke.job}")
    result = await serverless.execute_job(gcloud, spoke.job, topology.settings.region)
    if result.returncode != 0:
        return CheckResult(name=name, passed=False, detail=_tail(result.stderr or result.stdout))
    return CheckResult(name=name, passed=True, detail=_tail(result.stdout or result.stderr))


async def hub_to_spoke(topology: Topology, gcloud: Gcloud, spoke: Spoke) -> CheckResult:
    """Calls the spoke's load balancer from the hub instance."""
    s = topology.settings
    name = f"{topology.hub_instance} -> {spoke.forwarding_rule}"
    try:
        address = await lb.frontend_address(gcloud, spoke.forwarding_rule, s.region)
    except ControlPlaneError as e:
        return CheckResult(name=name, passed=False, detail=str(e))
    if not address:
        return CheckResult(name=name, passed=False,
                           detail=f"Could not get the address of {spoke.forwarding_rule}")

    command = (f"curl -sk --max-time {s.request_timeout} "
               f"-w '\\n{STATUS_MARKER}%{{http_code}}\\n' https://{address}/")
    LOG.info(f"Calling {spoke.forwarding_rule} ({address}) from {topology.hub_instance}")
    result = await compute.ssh(gcloud, topology.hub_instance, s.zone, command)
    if result.returncode != 0:
        return CheckResult(name=name, passed=False,
                           detail=_tail(result.stderr or result.stdout) or "curl failed")

    body, _, status = result.stdout.rpartition(STATUS_MARKER)
    status = status.strip()
    return CheckResult(name=name, passed=status.startswith("2"),
                       detail=f"{status or 'no status'}: {_tail(body)}")


def parse_load_output(name: str, output: str) -> LoadSummary:
    """Folds ``<status code> <seconds>`` lines into a summary. Other lines are ignored."""
    summary = LoadSummary(name=name)
    for line in output.splitlines():
        match = LOAD_LINE.match(line.strip())
        if not match:
            continue
        code, elapsed = match.groups()
        summary.codes[code] = summary.codes.get(code, 0) + 1
        if code != "000":
            summary.latencies.append(float(elapsed))
    return summary


async def load_test(topology: Topology, gcloud: Gcloud, spoke: Spoke, requests: int,
                    concurrency: int) -> LoadSummary:
    """Sends ``requests`` requests to the spoke's load balancer, ``concurrency`` at a time."""
    s = topology.settings
    name = spoke.forwarding_rule
    try:
        address = await lb.frontend_address(gcloud, spoke.forwarding_rule, s.region)
    except ControlPlaneError as e:
        LOG.error(f"Unable to describe {spoke.forwarding_rule}: {e}")
        return LoadSummary(name=name)
    if not address:
        LOG.error(f"Could not get the address of {spoke.forwarding_rule}")
        return LoadSummary(name=name)

    command = (f"seq {requests} | xargs -P {concurrency} -I{{}} "
               f"curl -sk -o /dev/null --max-time {s.request_timeout} "
               f"-w '%{{http_code}} %{{time_total}}\\n' https://{address}/")
    LOG.info(f"Sending {requests} requests to {name} ({address}), {concurrency} at a time")
    result = await compute.ssh(gcloud, topology.hub_instance, s.zone, command)
    if result.returncode != 0:
        LOG.warning(f"Load test against {name} exited with {result.returncode}: "
                    f"{_tail(result.stderr)}")
    return parse_load_output(name, result.stdout)


async def exercise(settings: Settings, topology: Topology, gcloud: Gcloud,
                   spokes: Optional[List[Spoke]] = None, settle: float = 0,
                   sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> List[CheckResult]:
    """Runs the checks in both directions for the given spokes.

    :param spokes: the spokes to exercise, defaults to all of them.
    :param settle: seconds to wait before testing.
    :param sleep: coroutine function used to wait.
    """
    spokes = spokes if spokes is not None else topology.spokes
    await _precheck(topology, gcloud, spokes, settle, sleep)

    results = []
    for spoke in spokes:
        results.append(await spoke_to_hub(topology, gcloud, spoke))
    for spoke in spokes:
        results.append(await hub_to_spoke(topology, gcloud, spoke))
    return results


async def exercise_load(settings: Settings, topology: Topology, gcloud: Gcloud,
                        spokes: Optional[List[Spoke]] = None, settle: float = 0,
                        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
                        ) -> List[LoadSummary]:
    """Runs the load mode against the given spokes, one spoke after the other."""
    spokes = spokes if spokes is not None else topology.spokes
    await _precheck(topology, gcloud, spokes, settle, sleep)
    return [
        await load_test(topology, gcloud, spoke, settings.load_requests,
                        settings.load_concurrency)
        for spoke in spokes
    ]


async def _precheck(topology: Topology, gcloud: Gcloud, spokes: List[Spoke], settle: float,
                    sleep: Callable[[float], Awaitable[None]]) -> None:
    if settle > 0:
        LOG.info(f"Waiting {settle}s for the network to settle")
        await sleep(settle)
    routers = [topology.hub_vpn_router] + [spoke.vpn_router for spoke in spokes]
    for warning in await bgp_warnings(gcloud, routers, topology.settings.region):
        LOG.warning(warning)


def setup_opts(argv: Optional[List[str]]):
    """Parse CLI arguments.

    :param argv: list of arguments to parse
    """
    parser = base_parser(__doc__.splitlines()[0])
    parser.add_argument(
        "--spoke", dest="spoke", default=None,
        help="Only exercise this spoke, by name (spoke-1) or number (1).",
    )
    parser.add_argument(
        "--settle", dest="settle", type=float, default=0,
        help="Seconds to wait before testing, e.g. right after provisioning.",
    )
    parser.add_argument(
        "--load", dest="load", action="store_true",
        help="Send a burst of requests from the hub to each spoke instead of the checks.",
    )
    parser.add_argument(
        "--requests", dest="requests", type=int, default=None,
        help="Requests per spoke in load mode. Defaults to [exercise] requests.",
    )
    parser.add_argument(
        "--concurrency", dest="concurrency", type=int, default=None,
        help="Requests in flight in load mode. Defaults to [exercise] concurrency.",
    )
    return parser.parse_known_args(argv)


async def async_main(argv: Optional[List[str]] = None, executor: Optional[Executor] = None,
                     sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> int:
    """Async entry point for the exerciser.

    :param argv: list of CLI arguments
    :param executor: runs the gcloud commands, defaults to subprocesses.
    :param sleep: coroutine function used for --settle.
    :return: the exit code.
    """
    if argv is None:
        argv = sys.argv

    (options, args) = setup_opts(argv)
    setup(args)
    if options.requests is not None:
        CONF.set_override("requests", options.requests, group="exercise")
    if options.concurrency is not None:
        CONF.set_override("concurrency", options.concurrency, group="exercise")
    try:
        settings, topology, gcloud = await prepare(options, executor)
        spokes = [topology.spoke(options.spoke)] if options.spoke else topology.spokes
    except ConfigurationError as e:
        LOG.error(str(e))
        return 1
    except KeyError:
        LOG.error(f"Unknown spoke {options.spoke}, the topology has "
                  f"{', '.join(s.name for s in topology.spokes)}")
        return 1

    if options.load:
        for summary in await exercise_load(settings, topology, gcloud, spokes,
                                           options.settle, sleep):
            print(summary.summary())
        return 0

    results = await exercise(settings, topology, gcloud, spokes, options.settle, sleep)
    for result in results:
        print(f"{'PASS' if result.passed else 'FAIL'} {result.name}")
        if result.detail:
            print("  " + result.detail.replace("\n", "\n  "))
    passed = sum(1 for r in results if r.passed)
    print(f"{passed}/{len(results)} checks passed")
    return 0


def main(argv: Optional[List[str]] = None):
    """Entry point for the exerciser.

    :param argv: list of CLI arguments.
    """
    return asyncio.run(async_main(argv))
