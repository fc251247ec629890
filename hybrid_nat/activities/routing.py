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

"""Cloud Router, HA VPN, BGP and Cloud NAT activities.

Router interfaces, BGP peers and advertisements are not resources of
their own in the control plane: they are parts of a router, so they are
inspected through the router description and changed with the router's
add, remove and update commands.
"""

from typing import Any, Dict, List, Optional

from oslo_log import log as logging

from hybrid_nat.activities.base import cli_step
from hybrid_nat.config import Settings
from hybrid_nat.gcloud import Gcloud
from hybrid_nat.reconciler import Step
from hybrid_nat.resources.routing import (
    BgpPeer,
    NatGateway,
    NatRule,
    RouteAdvertisement,
    Router,
    RouterInterface,
    VpnGateway,
    VpnTunnel,
)

LOG = logging.getLogger(__name__)


async def describe_router(gcloud: Gcloud, router: str, region: str) -> Optional[Dict[str, Any]]:
    return await gcloud.describe("compute", "routers", "describe", router, f"--region={region}")


def router_step(gcloud: Gcloud, router: Router, settings: Settings) -> Step:
    flags = [f"--network={router.network}"]
    if router.asn is not None:
        flags.append(f"--asn={router.asn}")
    return cli_step(gcloud, router, ("compute", "routers"),
                    scope=(f"--region={router.region}",), create_flags=flags)


def vpn_gateway_step(gcloud: Gcloud, gateway: VpnGateway, settings: Settings) -> Step:
    return cli_step(gcloud, gateway, ("compute", "vpn-gateways"),
                    scope=(f"--region={gateway.region}",),
                    create_flags=(f"--network={gateway.network}",))


def vpn_tunnel_step(gcloud: Gcloud, tunnel: VpnTunnel, settings: Settings) -> Step:
    return cli_step(
        gcloud, tunnel, ("compute", "vpn-tunnels"),
        scope=(f"--region={tunnel.region}",),
        create_flags=(
            f"--vpn-gateway={tunnel.gateway}",
            f"--peer-gcp-gateway={tunnel.peer_gateway}",
            f"--interface={tunnel.interface}",
            "--ike-version=2",
            f"--shared-secret={tunnel.shared_secret}",
            f"--router={tunnel.router}",
        ),
    )


def router_interface_step(gcloud: Gcloud, interface: RouterInterface,
                          settings: Settings) -> Step:
    region = f"--region={interface.region}"

    async def exists() -> bool:
        router = await describe_router(gcloud, interface.router, interface.region) or {}
        return any(i.get("name") == interface.interface_name
                   for i in router.get("interfaces", []))

    async def create() -> None:
        await gcloud.run(
            "compute", "routers", "add-interface", interface.router,
            f"--interface-name={interface.interface_name}",
            f"--ip-address={interface.ip_address}",
            f"--mask-length={interface.mask_length}",
            f"--vpn-tunnel={interface.tunnel}",
            region,
        )

    async def delete() -> None:
        await gcloud.run("compute", "routers", "remove-interface", interface.router,
                         f"--interface-name={interface.interface_name}", region)

    return Step(interface.key, exists, create, delete, requires=interface.requires())


def bgp_peer_step(gcloud: Gcloud, peer: BgpPeer, settings: Settings) -> Step:
    region = f"--region={peer.region}"

    async def exists() -> bool:
        router = await describe_router(gcloud, peer.router, peer.region) or {}
        return any(p.get("name") == peer.peer_name for p in router.get("bgpPeers", []))

    async def create() -> None:
        await gcloud.run(
            "compute", "routers", "add-bgp-peer", peer.router,
            f"--peer-name={peer.peer_name}",
            f"--interface={peer.interface_name}",
            f"--peer-ip-address={peer.peer_ip_address}",
            f"--peer-asn={peer.peer_asn}",
            region,
        )

    async def delete() -> None:
        await gcloud.run("compute", "routers", "remove-bgp-peer", peer.router,
                         f"--peer-name={peer.peer_name}", region)

    return Step(peer.key, exists, create, delete, requires=peer.requires())


def advertised_ranges(router: Dict[str, Any]) -> Optional[List[str]]:
    """Returns the custom advertised ranges of a router, None if not in custom mode."""
    bgp = router.get("bgp") or {}
    if bgp.get("advertiseMode") != "CUSTOM":
        return None
    return [r["range"] for r in bgp.get("advertisedIpRanges", [])]


def advertisement_step(gcloud: Gcloud, advertisement: RouteAdvertisement,
                       settings: Settings) -> Step:
    """Restricts what a router advertises to an allow-list.

    The advertisement lives and dies with its router, so nothing is
    deleted on decommission.
    """

    async def exists() -> bool:
        router = await describe_router(gcloud, advertisement.name, advertisement.region)
        if not router:
            return False
        current = advertised_ranges(router)
        return current is not None and set(current) == set(advertisement.ranges)

    async def create() -> str:
        ranges = ",".join(advertisement.ranges)
        await gcloud.run(
            "compute", "routers", "update", advertisement.name,
            f"--region={advertisement.region}",
            "--advertisement-mode=CUSTOM",
            f"--set-advertisement-ranges={ranges}",
        )
        return f"advertising {ranges}"

    return Step(advertisement.key, exists, create, requires=advertisement.requires())


def nat_step(gcloud: Gcloud, nat: NatGateway, settings: Settings) -> Step:
    if nat.private:
        flags = ("--type=PRIVATE", "--nat-all-subnet-ip-ranges",
                 "--endpoint-types=ENDPOINT_TYPE_VM")
    else:
        flags = ("--auto-allocate-nat-external-ips", "--nat-all-subnet-ip-ranges")
    return cli_step(gcloud, nat, ("compute", "routers", "nats"),
                    scope=(f"--router={nat.router}", f"--region={nat.region}"),
                    create_flags=flags)


def nat_rule_step(gcloud: Gcloud, rule: NatRule, settings: Settings) -> Step:
    return cli_step(
        gcloud, rule, ("compute", "routers", "nats", "rules"),
        ident=str(rule.number),
        scope=(f"--router={rule.router}", f"--nat={rule.nat}", f"--region={rule.region}"),
        create_flags=(f"--match={rule.match}",
                      f"--source-nat-active-ranges={rule.source_subnet}"),
    )


async def bgp_status(gcloud: Gcloud, router: str, region: str) -> List[Dict[str, Any]]:
    """Returns the BGP peer status entries of a router.

    :raises GcloudError: when the status cannot be read.
    """
    status = await gcloud.json("compute", "routers", "get-status", router,
                               f"--region={region}") or {}
    return status.get("result", {}).get("bgpPeerStatus", [])


async def tunnel_status(gcloud: Gcloud, region: str) -> List[Dict[str, Any]]:
    """Returns the VPN tunnels of the region."""
    return await gcloud.json("compute", "vpn-tunnels", "list",
                             f"--filter=region:{region}") or []
