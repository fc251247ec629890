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

"""The hub and spoke topology and its address plan.

The hub hosts the compute instance. Every spoke hosts a Cloud Run
service and job whose egress subnet uses the same colliding range as
every other spoke. Only ranges that are unique across the topology are
ever advertised over BGP, and traffic leaving a spoke through a tunnel
is translated into the spoke's private NAT range first.
"""

import base64
import ipaddress
import itertools
import secrets
from typing import Dict, List, Mapping, Optional, Tuple

from oslo_log import log as logging

from hybrid_nat.config import ConfigurationError, Settings
from hybrid_nat.objects import Object
from hybrid_nat.resources import Resource, key
from hybrid_nat.resources.compute import Instance
from hybrid_nat.resources.iam import ApiSet, RoleBinding, ServiceAccount
from hybrid_nat.resources.lb import (
    BackendAttachment,
    BackendService,
    ForwardingRule,
    HttpsProxy,
    NetworkEndpointGroup,
    SslCertificate,
    UrlMap,
)
from hybrid_nat.resources.network import FirewallRule, Network, Subnet, SubnetPurpose
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
from hybrid_nat.resources.serverless import Image, Registry, RunJob, RunService

LOG = logging.getLogger(__name__)

HUB = "hub"

REQUIRED_APIS = [
    "compute.googleapis.com",
    "run.googleapis.com",
    "vpcaccess.googleapis.com",
    "iap.googleapis.com",
    "artifactregistry.googleapis.com",
    "networkconnectivity.googleapis.com",
    "cloudbuild.googleapis.com",
]

SERVICE_ACCOUNT_ROLES = [
    "roles/compute.networkAdmin",
    "roles/compute.instanceAdmin.v1",
    "roles/run.admin",
    "roles/run.invoker",
    "roles/vpcaccess.admin",
    "roles/iam.serviceAccountUser",
    "roles/iap.tunnelResourceAccessor",
    "roles/artifactregistry.admin",
    "roles/networkconnectivity.hubAdmin",
]

SERVICE_AGENT_ROLE = "roles/compute.networkUser"

SERVICE_IMAGE = "http-server"
JOB_IMAGE = "http-client"

# Matches traffic whose next hop was learned over the VPN, whichever
# overlapping subnet it comes from.
HYBRID_NEXT_HOP_MATCH = "nexthop.is_hybrid"
NAT_RULE_NUMBER = 100

HUB_STARTUP_SCRIPT = """#!/bin/bash
mkdir -p /var/www
cat > /var/www/index.html <<HTMLEOF
Hello from $(hostname)
HTMLEOF
cat > /etc/systemd/system/webserver.service <<UNIT
[Unit]
Description=Simple Python HTTP Server
After=network.target
[Service]
WorkingDirectory=/var/www
ExecStart=/usr/bin/python3 -m http.server 80
Restart=always
[Install]
WantedBy=multi-user.target
UNIT
systemctl daemon-reload
systemctl enable --now webserver
"""


class TopologyError(ConfigurationError):
    """The address plan would leak or duplicate ranges."""


def generate_shared_secret() -> str:
    """Returns a fresh pre-shared key for a set of VPN tunnels."""
    return base64.b64encode(secrets.token_bytes(24)).decode()


class Spoke(Object):
    """One spoke network and the names and ranges derived from its index."""
    index: int
    asn: int
    overlap_range: str

    @property
    def name(self) -> str:
        return f"spoke-{self.index}"

    @property
    def routable_range(self) -> str:
        return f"10.{self.index}.0.0/28"

    @property
    def proxy_range(self) -> str:
        return f"10.{self.index}.1.0/26"

    @property
    def private_nat_range(self) -> str:
        return f"172.16.{self.index}.0/24"

    @property
    def advertised_ranges(self) -> List[str]:
        return [self.routable_range, self.private_nat_range]

    @property
    def vpn_router(self) -> str:
        return f"vpn-router-{self.name}"

    @property
    def nat_router(self) -> str:
        return f"nat-router-{self.name}"

    @property
    def gateway(self) -> str:
        return f"vpn-gw-{self.name}"

    @property
    def hub_gateway(self) -> str:
        return f"vpn-gw-hub-to-{self.name}"

    @property
    def service(self) -> str:
        return f"cr-{self.name}"

    @property
    def job(self) -> str:
        return f"job-{self.name}"

    @property
    def forwarding_rule(self) -> str:
        return f"ilb-{self.name}"

    def link_addresses(self, interface: int) -> Tuple[str, str]:
        """Returns the (hub, spoke) link-local addresses of a tunnel interface."""
        base = interface * 4
        return f"169.254.{self.index}.{base + 1}", f"169.254.{self.index}.{base + 2}"


class Topology(Object):
    """The full set of resources for a hub and its spokes."""
    settings: Settings
    spokes: List[Spoke]

    @property
    def name(self) -> str:
        return self.settings.project_id

    @property
    def hub_vpn_router(self) -> str:
        return "vpn-router-hub"

    @property
    def hub_instance(self) -> str:
        return "vm-hub"

    @property
    def hub_advertised_ranges(self) -> List[str]:
        return [self.settings.hub_compute_range]

    def spoke(self, name: str) -> Spoke:
        for spoke in self.spokes:
            if spoke.name == name or str(spoke.index) == name:
                return spoke
        raise KeyError(name)

    def advertisements(self) -> Dict[str, List[str]]:
        """Returns the BGP allow-list of every VPN router."""
        adverts = {self.hub_vpn_router: self.hub_advertised_ranges}
        for spoke in self.spokes:
            adverts[spoke.vpn_router] = spoke.advertised_ranges
        return adverts

    def validate(self) -> None:
        """Checks the address plan.

        :raises TopologyError: when a unique range overlaps another one or
                               the colliding range, or when an
                               advertisement contains a colliding range.
        """
        try:
            overlap = ipaddress.ip_network(self.settings.overlap_range)
            unique = {f"compute-{HUB}": ipaddress.ip_network(self.settings.hub_compute_range)}
            for spoke in self.spokes:
                unique[f"routable-{spoke.name}"] = ipaddress.ip_network(spoke.routable_range)
                unique[f"proxy-{spoke.name}"] = ipaddress.ip_network(spoke.proxy_range)
                unique[f"pnat-{spoke.name}"] = ipaddress.ip_network(spoke.private_nat_range)
        except ValueError as e:
            raise TopologyError(f"Invalid range in topology: {e}") from e

        for name, network in unique.items():
            if network.overlaps(overlap):
                raise TopologyError(f"{name} ({network}) overlaps the colliding range {overlap}")

        for (a, net_a), (b, net_b) in itertools.combinations(unique.items(), 2):
            if net_a.overlaps(net_b):
                raise TopologyError(f"{a} ({net_a}) overlaps {b} ({net_b})")

        for router, ranges in self.advertisements().items():
            for advertised in ranges:
                network = ipaddress.ip_network(advertised)
                if network.overlaps(overlap):
                    raise TopologyError(
                        f"{router} would advertise {network}, which collides with {overlap}"
                    )
                if network not in unique.values():
                    raise TopologyError(f"{router} would advertise unknown range {network}")

    # Identity

    def iam_resources(self) -> List[Resource]:
        s = self.settings
        resources: List[Resource] = [
            ApiSet(name="required", services=REQUIRED_APIS),
            ServiceAccount(
                name=s.service_account_name,
                email=s.service_account_email,
                display_name="Cloud Run NAT PoC",
                description="Service account for Cloud Run overlapping IP PoC",
            ),
        ]
        for role in SERVICE_ACCOUNT_ROLES:
            resources.append(RoleBinding(
                name=f"{s.service_account_name}/{role}",
                role=role,
                member=f"serviceAccount:{s.service_account_email}",
                service_account=s.service_account_name,
            ))
        resources.append(RoleBinding(
            name=f"run-service-agent/{SERVICE_AGENT_ROLE}",
            role=SERVICE_AGENT_ROLE,
            service_agent=True,
        ))
        return resources

    # Base infrastructure

    def infra_resources(self) -> List[Resource]:
        s = self.settings
        resources: List[Resource] = [
            Registry(
                name=s.repository,
                location=s.region,
                description="Cloud Run NAT PoC container images",
                after=[key(ApiSet.kind, "required")],
            ),
            Image(name=SERVICE_IMAGE, url=s.image_url(SERVICE_IMAGE), registry=s.repository,
                  dockerfile=f"containers/{SERVICE_IMAGE}/Dockerfile"),
            Image(name=JOB_IMAGE, url=s.image_url(JOB_IMAGE), registry=s.repository,
                  dockerfile=f"containers/{JOB_IMAGE}/Dockerfile"),
            Network(name=HUB, after=[key(ApiSet.kind, "required")]),
        ]
        resources.extend(
            Network(name=spoke.name, after=[key(ApiSet.kind, "required")])
            for spoke in self.spokes
        )

        resources.append(Subnet(
            name=f"compute-{HUB}", network=HUB, range=s.hub_compute_range, region=s.region,
            purpose=SubnetPurpose.COMPUTE, private_google_access=True,
        ))
        for spoke in self.spokes:
            resources.extend([
                Subnet(name=f"overlap-{spoke.name}", network=spoke.name, range=spoke.overlap_range,
                       region=s.region, purpose=SubnetPurpose.OVERLAP),
                Subnet(name=f"routable-{spoke.name}", network=spoke.name,
                       range=spoke.routable_range, region=s.region,
                       purpose=SubnetPurpose.ROUTABLE),
                Subnet(name=f"proxy-{spoke.name}", network=spoke.name, range=spoke.proxy_range,
                       region=s.region, purpose=SubnetPurpose.PROXY),
                Subnet(name=f"pnat-{spoke.name}", network=spoke.name,
                       range=spoke.private_nat_range, region=s.region,
                       purpose=SubnetPurpose.PRIVATE_NAT),
            ])

        private_nat_ranges = [spoke.private_nat_range for spoke in self.spokes]
        resources.extend([
            FirewallRule(name="allow-iap-ssh-hub", network=HUB, allow="tcp:22",
                         source_ranges=[s.iap_source_range]),
            FirewallRule(name="allow-nat-ingress-hub", network=HUB, allow="tcp,udp,icmp",
                         source_ranges=private_nat_ranges),
            FirewallRule(name="allow-internal-hub", network=HUB, allow="tcp,udp,icmp",
                         source_ranges=["10.0.0.0/8"]),
        ])
        resources.extend(
            FirewallRule(name=f"allow-internal-{spoke.name}", network=spoke.name,
                         allow="tcp,udp,icmp", source_ranges=["10.0.0.0/8", "172.16.0.0/16"])
            for spoke in self.spokes
        )

        resources.append(Instance(
            name=self.hub_instance, zone=s.zone, network=HUB, subnet=f"compute-{HUB}",
            startup_script=HUB_STARTUP_SCRIPT,
        ))
        if s.web_responder:
            resources.append(Instance(
                name="vm-web-hub", zone=s.zone, network=HUB, subnet=f"compute-{HUB}",
                startup_script=HUB_STARTUP_SCRIPT,
            ))

        for spoke in self.spokes:
            resources.append(RunService(
                name=spoke.service, region=s.region, image=SERVICE_IMAGE,
                image_url=s.image_url(SERVICE_IMAGE), network=spoke.name,
                subnet=f"overlap-{spoke.name}",
            ))
        for spoke in self.spokes:
            resources.append(RunJob(
                name=spoke.job, region=s.region, image=JOB_IMAGE,
                image_url=s.image_url(JOB_IMAGE), network=spoke.name,
                subnet=f"overlap-{spoke.name}", target=self.hub_instance,
            ))
        return resources

    # Connectivity

    def connectivity_resources(self, shared_secrets: Optional[Mapping[str, str]] = None
                               ) -> List[Resource]:
        """Returns the VPN, BGP, NAT and load balancer resources.

        :param shared_secrets: VPN pre-shared key per spoke name. Missing
                               ones are generated.
        """
        self.validate()
        s = self.settings
        shared_secrets = dict(shared_secrets or {})
        adverts = self.advertisements()

        resources: List[Resource] = [
            Router(name=self.hub_vpn_router, network=HUB, region=s.region, asn=s.hub_asn),
        ]
        for spoke in self.spokes:
            secret = shared_secrets.get(spoke.name) or generate_shared_secret()
            resources.extend([
                Router(name=spoke.vpn_router, network=spoke.name, region=s.region, asn=spoke.asn),
                VpnGateway(name=spoke.hub_gateway, network=HUB, region=s.region),
                VpnGateway(name=spoke.gateway, network=spoke.name, region=s.region),
            ])
            for interface in (0, 1):
                resources.extend([
                    VpnTunnel(
                        name=f"vpn-tunnel-hub-to-{spoke.name}-if{interface}", region=s.region,
                        gateway=spoke.hub_gateway, peer_gateway=spoke.gateway,
                        router=self.hub_vpn_router, interface=interface, shared_secret=secret,
                    ),
                    VpnTunnel(
                        name=f"vpn-tunnel-{spoke.name}-to-hub-if{interface}", region=s.region,
                        gateway=spoke.gateway, peer_gateway=spoke.hub_gateway,
                        router=spoke.vpn_router, interface=interface, shared_secret=secret,
                    ),
                ])
            for interface in (0, 1):
                hub_ip, spoke_ip = spoke.link_addresses(interface)
                hub_iface = f"vpn-{spoke.name}-if{interface}"
                spoke_iface = f"vpn-hub-if{interface}"
                resources.extend([
                    RouterInterface(
                        name=f"{self.hub_vpn_router}/{hub_iface}", router=self.hub_vpn_router,
                        interface_name=hub_iface, region=s.region, ip_address=hub_ip,
                        tunnel=f"vpn-tunnel-hub-to-{spoke.name}-if{interface}",
                    ),
                    BgpPeer(
                        name=f"{self.hub_vpn_router}/bgp-{spoke.name}-if{interface}",
                        router=self.hub_vpn_router, peer_name=f"bgp-{spoke.name}-if{interface}",
                        region=s.region, interface_name=hub_iface, peer_ip_address=spoke_ip,
                        peer_asn=spoke.asn,
                    ),
                    RouterInterface(
                        name=f"{spoke.vpn_router}/{spoke_iface}", router=spoke.vpn_router,
                        interface_name=spoke_iface, region=s.region, ip_address=spoke_ip,
                        tunnel=f"vpn-tunnel-{spoke.name}-to-hub-if{interface}",
                    ),
                    BgpPeer(
                        name=f"{spoke.vpn_router}/bgp-hub-if{interface}",
                        router=spoke.vpn_router, peer_name=f"bgp-hub-if{interface}",
                        region=s.region, interface_name=spoke_iface, peer_ip_address=hub_ip,
                        peer_asn=s.hub_asn,
                    ),
                ])

        for router, ranges in adverts.items():
            resources.append(RouteAdvertisement(name=router, region=s.region, ranges=ranges))

        for spoke in self.spokes:
            nat = f"hybrid-nat-{spoke.name}"
            spoke_peers = [key(BgpPeer.kind, f"{spoke.vpn_router}/bgp-hub-if{i}") for i in (0, 1)]
            resources.extend([
                Router(name=spoke.nat_router, network=spoke.name, region=s.region),
                NatGateway(name=nat, router=spoke.nat_router, region=s.region, private=True,
                           after=spoke_peers),
                NatRule(name=f"{nat}/{NAT_RULE_NUMBER}", number=NAT_RULE_NUMBER,
                        router=spoke.nat_router, nat=nat, region=s.region,
                        match=HYBRID_NEXT_HOP_MATCH, source_subnet=f"pnat-{spoke.name}"),
            ])

        resources.extend([
            Router(name="nat-router-hub", network=HUB, region=s.region),
            NatGateway(name="public-nat-hub", router="nat-router-hub", region=s.region),
        ])

        for spoke in self.spokes:
            cert = f"ssl-{spoke.name}"
            resources.extend([
                SslCertificate(name=cert, region=s.region,
                               common_name=f"ilb-{spoke.name}.internal",
                               days_valid=s.cert_days_valid),
                NetworkEndpointGroup(name=f"neg-{spoke.name}", region=s.region,
                                     service=spoke.service),
                BackendService(name=f"bs-{spoke.name}", region=s.region),
                BackendAttachment(name=f"bs-{spoke.name}/neg-{spoke.name}", region=s.region,
                                  backend_service=f"bs-{spoke.name}", neg=f"neg-{spoke.name}"),
                UrlMap(name=f"urlmap-{spoke.name}", region=s.region,
                       default_service=f"bs-{spoke.name}"),
                HttpsProxy(name=f"proxy-{spoke.name}", region=s.region,
                           url_map=f"urlmap-{spoke.name}", certificate=cert),
                ForwardingRule(name=spoke.forwarding_rule, region=s.region, network=spoke.name,
                               subnet=f"routable-{spoke.name}", proxy=f"proxy-{spoke.name}",
                               after=[key(Subnet.kind, f"proxy-{spoke.name}")]),
            ])
        return resources


def build(settings: Settings) -> Topology:
    """Builds and validates the topology described by the settings."""
    spokes = [
        Spoke(index=i, asn=settings.hub_asn + i, overlap_range=settings.overlap_range)
        for i in range(1, settings.spokes + 1)
    ]
    topology = Topology(settings=settings, spokes=spokes)
    topology.validate()
    return topology
