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

"""Config options for exercising the data paths."""

from oslo_config import cfg

exercise_group = cfg.OptGroup(
    "exercise",
    title="Exercise options",
    help="Options defined in this group control the end to end checks.",
)

opts = [
    cfg.IntOpt(
        "request_timeout",
        default=30,
        min=1,
        help="Seconds curl on the hub instance waits for a load balancer. Has to "
        "leave room for the response delay of the spoke services and a cold start.",
    ),
    cfg.IntOpt(
        "concurrency",
        default=5,
        min=1,
        help="Requests kept in flight by the load mode.",
    ),
    cfg.IntOpt(
        "requests",
        default=20,
        min=1,
        help="Requests sent to each spoke by the load mode.",
    ),
]


def register_opts(conf: cfg.CONF):
    """Register configuration options.

    :param conf: configuration option manager
    """
    conf.register_group(exercise_group)
    conf.register_opts(opts, group=exercise_group)
