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

"""Config options for cross network connectivity."""

from oslo_config import cfg

connectivity_group = cfg.OptGroup(
    "connectivity",
    title="Connectivity options",
    help="Options defined in this group tune the VPN and load balancer setup.",
)

opts = [
    cfg.IntOpt(
        "cert_days_valid",
        default=30,
        min=1,
        help="Validity in days of the self-signed load balancer certificates.",
    ),
]


def register_opts(conf: cfg.CONF):
    """Register configuration options.

    :param conf: configuration option manager
    """
    conf.register_group(connectivity_group)
    conf.register_opts(opts, group=connectivity_group)
