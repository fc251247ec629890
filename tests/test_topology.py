import ipaddress

import pytest

from hybrid_nat import topology as topology_module
from hybrid_nat.activities import build_plan
from hybrid_nat.config import ConfigurationError, Settings
from hybrid_nat.gcloud import Gcloud
from hybrid_nat.reconciler import Plan
from hybrid_nat.resources import key
from hybrid_nat.resources.network import Subnet, SubnetPurpose
from hybrid_nat.resources.routing import (
    BgpPeer,
    NatGateway,
    NatRule,
    RouteAdvertisement,
    Router,
    VpnTunnel,
)
from hybrid_nat.topology import TopologyError


def resources_of(resources, cls):
    return [r for r in resources if isinstance(r, cls)]


def test_address_plan(topology) -> None:
    spoke = topology.spoke("spoke-2")
    assert topology.spoke("2") == spoke
    assert spoke.routable_range == "10.2.0.0/28"
    assert spoke.proxy_range == "10.2.1.0/26"
    assert spoke.private_nat_range == "172.16.2.0/24"
    assert spoke.asn == 65002
    assert spoke.link_addresses(0) == ("169.254.2.1", "169.254.2.2")
    assert spoke.link_addresses(1) == ("169.254.2.5", "169.254.2.6")
    with pytest.raises(KeyError):
        topology.spoke("spoke-3")


def test_every_spoke_reuses_the_colliding_range(topology) -> None:
    overlap = [s for s in resources_of(topology.infra_resources(), Subnet)
               if s.purpose is SubnetPurpose.OVERLAP]
    assert [s.name for s in overlap] == ["overlap-spoke-1", "overlap-spoke-2"]
    assert {s.range for s in overlap} == {"240.0.0.0/8"}


def test_unique_ranges_are_unique(topology) -> None:
    unique = [ipaddress.ip_network(s.range) for s in resources_of(topology.infra_resources(),
                                                                   Subnet)
              if s.purpose is not SubnetPurpose.OVERLAP]
    for i, a in enumerate(unique):
        for b in unique[i + 1:]:
            assert not a.overlaps(b)


@pytest.mark.parametrize("spokes", [1, 2, 5])
def test_advertisements_never_include_the_colliding_range(spokes: int) -> None:
    settings = Settings(project_id="p", spokes=spokes)
    topo = topology_module.build(settings)
    colliding = ipaddress.ip_network(settings.overlap_range)
    adverts = resources_of(topo.connectivity_resources(), RouteAdvertisement)
    assert len(adverts) == spokes + 1
    for advert in adverts:
        assert advert.ranges
        for advertised in advert.ranges:
            assert not ipaddress.ip_network(advertised).overlaps(colliding)


def test_advertised_ranges(topology) -> None:
    adverts = {a.name: a.ranges for a in
               resources_of(topology.connectivity_resources(), RouteAdvertisement)}
    assert adverts == {
        "vpn-router-hub": ["10.0.0.0/28"],
        "vpn-router-spoke-1": ["10.1.0.0/28", "172.16.1.0/24"],
        "vpn-router-spoke-2": ["10.2.0.0/28", "172.16.2.0/24"],
    }


def test_colliding_configuration_is_rejected() -> None:
    with pytest.raises(TopologyError):
        topology_module.build(Settings(project_id="p", overlap_range="10.0.0.0/8"))
    with pytest.raises(TopologyError):
        topology_module.build(Settings(project_id="p", hub_compute_range="10.1.0.0/24"))
    with pytest.raises(ConfigurationError):
        topology_module.build(Settings(project_id="p", overlap_range="not-a-range"))


def test_translation_uses_the_private_nat_pool(topology) -> None:
    resources = topology.connectivity_resources()
    rules = {r.nat: r for r in resources_of(resources, NatRule)}
    assert set(rules) == {"hybrid-nat-spoke-1", "hybrid-nat-spoke-2"}
    rule = rules["hybrid-nat-spoke-1"]
    assert rule.number == 100
    assert rule.match == "nexthop.is_hybrid"
    assert rule.source_subnet == "pnat-spoke-1"
    pnat = [s for s in resources_of(topology.infra_resources(), Subnet)
            if s.name == rule.source_subnet][0]
    assert pnat.purpose is SubnetPurpose.PRIVATE_NAT
    assert pnat.range == "172.16.1.0/24"


def test_nat_routers_are_not_bgp_routers(topology) -> None:
    resources = topology.connectivity_resources()
    bgp_routers = {r.name for r in resources_of(resources, Router) if r.asn is not None}
    for nat in resources_of(resources, NatGateway):
        assert nat.router not in bgp_routers


def test_private_nat_waits_for_the_bgp_sessions(topology) -> None:
    resources = topology.connectivity_resources()
    nat = [n for n in resources_of(resources, NatGateway) if n.name == "hybrid-nat-spoke-1"][0]
    assert key(BgpPeer.kind, "vpn-router-spoke-1/bgp-hub-if0") in nat.requires()
    assert key(BgpPeer.kind, "vpn-router-spoke-1/bgp-hub-if1") in nat.requires()


def test_bgp_peers_point_at_each_other(topology) -> None:
    peers = {p.name: p for p in resources_of(topology.connectivity_resources(), BgpPeer)}
    hub_side = peers["vpn-router-hub/bgp-spoke-1-if1"]
    spoke_side = peers["vpn-router-spoke-1/bgp-hub-if1"]
    assert hub_side.peer_ip_address == "169.254.1.6"
    assert spoke_side.peer_ip_address == "169.254.1.5"
    assert hub_side.peer_asn == 65001
    assert spoke_side.peer_asn == 65000


def test_shared_secrets_are_per_spoke(topology) -> None:
    tunnels = resources_of(topology.connectivity_resources({"spoke-1": "s3cret"}), VpnTunnel)
    by_spoke = {t.name: t.shared_secret for t in tunnels}
    assert by_spoke["vpn-tunnel-hub-to-spoke-1-if0"] == "s3cret"
    assert by_spoke["vpn-tunnel-spoke-1-to-hub-if1"] == "s3cret"
    assert by_spoke["vpn-tunnel-spoke-2-to-hub-if0"] not in ("", "s3cret")
    assert by_spoke["vpn-tunnel-spoke-2-to-hub-if0"] == by_spoke["vpn-tunnel-hub-to-spoke-2-if1"]
    assert "s3cret" not in repr(tunnels[0])


def test_single_hop_variant() -> None:
    topo = topology_module.build(Settings(project_id="p", spokes=1))
    assert [s.name for s in topo.spokes] == ["spoke-1"]
    names = {r.name for r in topo.infra_resources()}
    assert "cr-spoke-1" in names and "cr-spoke-2" not in names


def test_web_responder_is_optional(settings) -> None:
    names = {r.name for r in topology_module.build(settings).infra_resources()}
    assert "vm-web-hub" not in names
    settings = settings.model_copy(update={"web_responder": True})
    names = {r.name for r in topology_module.build(settings).infra_resources()}
    assert "vm-web-hub" in names


def test_plans_resolve_as_one_graph(topology, settings) -> None:
    gcloud = Gcloud("p")
    merged = Plan.merge(
        "all",
        build_plan("iam", topology.iam_resources(), gcloud, settings),
        build_plan("infra", topology.infra_resources(), gcloud, settings, allow_external=True),
        build_plan("connectivity", topology.connectivity_resources(), gcloud, settings,
                   allow_external=True),
    )
    order = [s.name for s in merged.order()]
    assert order.index("subnet/proxy-spoke-1") < order.index("forwarding-rule/ilb-spoke-1")
    assert order.index("instance/vm-hub") < order.index("run-job/job-spoke-1")
    assert order.index("bgp-peer/vpn-router-spoke-1/bgp-hub-if0") < \
        order.index("nat/hybrid-nat-spoke-1")
