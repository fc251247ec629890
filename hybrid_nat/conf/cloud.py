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

"""Config options for the target cloud project."""

from oslo_config import cfg

opts = [
    cfg.StrOpt(
        "project_id",
        help="The project to provision into. Falls back to the PROJECT_ID "
        "environment variable and then to the active gcloud configuration.",
    ),
    cfg.StrOpt(
        "region",
        help="The region every regional resource is created in. Falls back to "
        "the REGION environment variable, then to europe-north2.",
    ),
    cfg.StrOpt(
        "zone",
        help="The zone for the hub instances. Defaults to '<region>-a'.",
    ),
    cfg.StrOpt(
        "gcloud_binary",
        default="gcloud",
        help="The gcloud executable used to talk to the control plane.",
    ),
    cfg.StrOpt(
        "docker_binary",
        default="docker",
        help="The docker executable used to build the container images.",
    ),
    cfg.StrOpt(
        "service_account_name",
        default="cloud-run-nat-poc",
        help="The name of the service account created by the identity bootstrap.",
    ),
]


def register_opts(conf: cfg.CONF):
    """Register configuration options.

    :param conf: configuration option manager
    """
    conf.register_opts(opts)
