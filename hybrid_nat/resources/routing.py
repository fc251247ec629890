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

"""VPN, BGP and NAT resources."""

from typing import ClassVar, List, Optional

from pydantic import Field

from hybrid_nat.resources import Resource, key
from hybrid_nat.resources.network import Network, Subnet


class Router(Resource):
    """A Cloud Router. Routers used for BGP carry an ASN."""
    kind: ClassVar[str] = "router"
    network: str
    region: str
    asn: Optional[int] = None

    def requires(self) -> List[str]:
        return super().requires() + [key(Network.kind, self.network)]


class VpnGateway(Resource):
    """An HA VPN gateway."""
    kind: ClassVar[str] = "vpn-gateway"
    network: str
    region: str

    def requires(self) -> List[str]:
        return super().requires() + [key(Network.kind, self.network)]


class VpnTunnel(Resource):
    """One tunnel of an HA VPN gateway towards a peer gateway."""
    kind: ClassVar[str] = "vpn-tunnel"
    region: str
    gateway: str
    peer_gateway: str
    router: str
    interface: int
    shared_secret: str = Field("", repr=False)

    def requires(self) -> List[str]:
        return super().requires() + [
            key(VpnGateway.kind, self.gateway),
            key(VpnGateway.kind, self.peer_gateway),
            key(Router.kind, self.router),
        ]


class RouterInterface(Resource):
    """A router interface bound to a tunnel. Named ``<router>/<interface>``."""
    kind: ClassVar[str] = "router-interface"
    router: str
    interface_name: str
    region: str
    ip_address: str
    mask_length: int = 30
    tunnel: str

    def requires(self) -> List[str]:
        return super().requires() + [
            key(Router.kind, self.router),
            key(VpnTunnel.kind, self.tunnel),
        ]


class BgpPeer(Resource):
    """A BGP session on a router interface. Named ``<router>/<peer>``."""
    kind: ClassVar[str] = "bgp-peer"
    router: str
    peer_name: str
    region: str
    interface_name: str
    peer_ip_address: str
    peer_asn: int

    def requires(self) -> List[str]:
        return super().requires() + [
            key(RouterInterface.kind, f"{self.router}/{self.interface_name}"),
        ]


class RouteAdvertisement(Resource):
    """The custom advertisement allow-list of a BGP router. Named by router."""
    kind: ClassVar[str] = "advertisement"
    region: str
    ranges: List[str]

    def requires(self) -> List[str]:
        return super().requires() + [key(Router.kind, self.name)]


class NatGateway(Resource):
    """A Cloud NAT gateway, either private (hybrid) or public."""
    kind: ClassVar[str] = "nat"
    router: str
    region: str
    private: bool = False

    def requires(self) -> List[str]:
        return super().requires() + [key(Router.kind, self.router)]


class NatRule(Resource):
    """A private NAT rule. Named ``<nat>/<number>``."""
    kind: ClassVar[str] = "nat-rule"
    number: int
    router: str
    nat: str
    region: str
    match: str
    source_subnet: str

    def requires(self) -> List[str]:
        return super().requires() + [
            key(NatGateway.kind, self.nat),
            key(Subnet.kind, self.source_subnet),
        ]
