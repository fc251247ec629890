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

"""Command line entry points driving the reconcilers."""

import argparse
from typing import List, Optional, Tuple

from oslo_log import log as logging

import hybrid_nat.conf
from hybrid_nat import config
from hybrid_nat import topology
from hybrid_nat.gcloud import Executor, Gcloud

CONF = hybrid_nat.conf.CONF
LOG = logging.getLogger(__name__)


def base_parser(description: str) -> argparse.ArgumentParser:
    """Returns a parser with the options every entry point accepts."""
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--spokes", dest="spokes", type=int, default=None,
        help="Number of spokes. Defaults to [topology] spokes; 1 gives the single-hop variant.",
    )
    return parser


def setup(args: List[str]) -> None:
    """Loads the configuration and sets up logging.

    :param args: the arguments left over after parsing the entry point's own options,
                 including the program name.
    """
    config.parse_args(args)
    logging.setup(CONF, "hybrid-nat")
    CONF.log_opt_values(LOG, logging.DEBUG)


async def prepare(options: argparse.Namespace, executor: Optional[Executor] = None,
                  environ=None) -> Tuple[config.Settings, topology.Topology, Gcloud]:
    """Resolves the settings and topology for an invocation.

    :param options: the entry point's parsed options.
    :param executor: runs the gcloud and docker commands, defaults to subprocesses.
    :param environ: the environment to read, defaults to os.environ.
    """
    settings = await config.load_settings(environ=environ, executor=executor,
                                          spokes=options.spokes)
    LOG.info(f"Using project {settings.project_id} in {settings.region} "
             f"with {settings.spokes} spoke(s)")
    gcloud = Gcloud(settings.project_id, binary=settings.gcloud_binary,
                    docker_binary=settings.docker_binary, executor=executor)
    return settings, topology.build(settings), gcloud
