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

"""Config options describing the hub and spoke topology."""

from oslo_config import cfg

topology_group = cfg.OptGroup(
    "topology",
    title="Topology options",
    help="""Options under this group define the size and the address plan
            of the hub and spoke networks.""",
)

opts = [
    cfg.IntOpt(
        "spokes",
        default=2,
        min=1,
        max=99,
        help="Number of spoke networks attached to the hub. A single spoke "
        "gives the single-hop variant.",
    ),
    cfg.StrOpt(
        "overlap_range",
        default="240.0.0.0/8",
        help="The colliding range reused by the serverless subnet of every spoke.",
    ),
    cfg.StrOpt(
        "hub_compute_range",
        default="10.0.0.0/28",
        help="The range of the hub compute subnet.",
    ),
    cfg.IntOpt(
        "hub_asn",
        default=65000,
        help="BGP ASN of the hub VPN router. Spoke N uses hub_asn + N.",
    ),
    cfg.StrOpt(
        "iap_source_range",
        default="35.235.240.0/20",
        help="Source range used by identity-aware proxy TCP forwarding.",
    ),
    cfg.BoolOpt(
        "web_responder",
        default=False,
        help="Also create a passive web responder instance in the hub.",
    ),
]


def register_opts(conf: cfg.CONF):
    """Register configuration options.

    :param conf: configuration option manager
    """
    conf.register_group(topology_group)
    conf.register_opts(opts, group=topology_group)
