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

"""Config options for the container images."""

from oslo_config import cfg

images_group = cfg.OptGroup(
    "images",
    title="Container image options",
    help="""Options under this group define where the payload images are
            built from and pushed to.""",
)

opts = [
    cfg.StrOpt(
        "repository",
        default="cloud-run-nat-poc",
        help="Name of the Artifact Registry docker repository.",
    ),
    cfg.StrOpt("tag", default="latest", help="Tag applied to every built image."),
    cfg.StrOpt(
        "build_context",
        help="Directory used as the docker build context. Defaults to the "
        "source tree this package was installed from.",
    ),
    cfg.StrOpt(
        "platform",
        default="linux/amd64",
        help="Target platform passed to docker build.",
    ),
]


def register_opts(conf: cfg.CONF):
    """Register configuration options.

    :param conf: configuration option manager
    """
    conf.register_group(images_group)
    conf.register_opts(opts, group=images_group)
