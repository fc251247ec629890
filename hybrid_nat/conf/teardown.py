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

"""Config options for decommissioning."""

from oslo_config import cfg

teardown_group = cfg.OptGroup(
    "teardown",
    title="Teardown options",
    help="Options defined in this group tune how resources are deleted.",
)

opts = [
    cfg.IntOpt(
        "subnet_delete_attempts",
        default=6,
        min=1,
        help="How many times a subnet deletion is attempted while serverless "
        "address reservations are being released.",
    ),
    cfg.FloatOpt(
        "subnet_delete_backoff",
        default=10.0,
        min=0,
        help="Seconds to wait after the first failed subnet deletion. The wait "
        "doubles after every further failure.",
    ),
    cfg.IntOpt(
        "max_concurrency",
        default=5,
        min=1,
        help="Maximum number of concurrent serverless create or delete calls.",
    ),
]


def register_opts(conf: cfg.CONF):
    """Register configuration options.

    :param conf: configuration option manager.
    """
    conf.register_group(teardown_group)
    conf.register_opts(opts, group=teardown_group)
