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

"""Steps reconciling each kind of resource through gcloud.

Every builder takes the gcloud client, the resource and the settings,
and returns the Step for that resource.
"""

from typing import Callable, Dict, Iterable, Optional, Type

from hybrid_nat.activities import compute, iam, lb, network, registry, routing, serverless
from hybrid_nat.config import Settings
from hybrid_nat.gcloud import Gcloud
from hybrid_nat.reconciler import Plan, Step
from hybrid_nat.resources import Resource
from hybrid_nat.resources import compute as compute_resources
from hybrid_nat.resources import iam as iam_resources
from hybrid_nat.resources import lb as lb_resources
from hybrid_nat.resources import network as network_resources
from hybrid_nat.resources import routing as routing_resources
from hybrid_nat.resources import serverless as serverless_resources

Builder = Callable[[Gcloud, Resource, Settings], Step]

BUILDERS: Dict[Type[Resource], Builder] = {
    iam_resources.ApiSet: iam.apis_step,
    iam_resources.ServiceAccount: iam.service_account_step,
    iam_resources.RoleBinding: iam.role_binding_step,
    serverless_resources.Registry: registry.registry_step,
    serverless_resources.Image: registry.image_step,
    network_resources.Network: network.network_step,
    network_resources.Subnet: network.subnet_step,
    network_resources.FirewallRule: network.firewall_step,
    compute_resources.Instance: compute.instance_step,
    serverless_resources.RunService: serverless.run_service_step,
    serverless_resources.RunJob: serverless.run_job_step,
    routing_resources.Router: routing.router_step,
    routing_resources.VpnGateway: routing.vpn_gateway_step,
    routing_resources.VpnTunnel: routing.vpn_tunnel_step,
    routing_resources.RouterInterface: routing.router_interface_step,
    routing_resources.BgpPeer: routing.bgp_peer_step,
    routing_resources.RouteAdvertisement: routing.advertisement_step,
    routing_resources.NatGateway: routing.nat_step,
    routing_resources.NatRule: routing.nat_rule_step,
    lb_resources.SslCertificate: lb.ssl_certificate_step,
    lb_resources.NetworkEndpointGroup: lb.neg_step,
    lb_resources.BackendService: lb.backend_service_step,
    lb_resources.BackendAttachment: lb.backend_attachment_step,
    lb_resources.UrlMap: lb.url_map_step,
    lb_resources.HttpsProxy: lb.https_proxy_step,
    lb_resources.ForwardingRule: lb.forwarding_rule_step,
}


def build_step(gcloud: Gcloud, resource: Resource, settings: Settings,
               sleep: Optional[network.Sleep] = None) -> Step:
    """Returns the step reconciling a resource.

    :param sleep: coroutine function used between subnet deletion attempts.
    """
    builder = BUILDERS.get(type(resource))
    if builder is None:
        raise TypeError(f"No step builder for {type(resource).__name__}")
    if builder is network.subnet_step:
        return network.subnet_step(gcloud, resource, settings, sleep=sleep)
    return builder(gcloud, resource, settings)


def build_plan(name: str, resources: Iterable[Resource], gcloud: Gcloud, settings: Settings,
               allow_external: bool = False, sleep: Optional[network.Sleep] = None) -> Plan:
    """Returns a plan with one step per resource, in the order given."""
    return Plan(
        name,
        (build_step(gcloud, resource, settings, sleep=sleep) for resource in resources),
        allow_external=allow_external,
    )
