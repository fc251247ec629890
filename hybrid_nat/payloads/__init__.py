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

"""Minimal HTTP programs deployed on Cloud Run to exercise the network paths."""

import os
import socket
import sys
from typing import List, Mapping, Optional

from oslo_log import log as logging

import hybrid_nat.conf
from hybrid_nat import config

CONF = hybrid_nat.conf.CONF

DEFAULT_PORT = 8080


def setup(argv: Optional[List[str]] = None) -> None:
    """Loads the configuration and sets up logging for a payload."""
    config.parse_args(argv if argv is not None else sys.argv)
    logging.setup(CONF, "hybrid-nat")


def port(environ: Optional[Mapping[str, str]] = None) -> int:
    environ = os.environ if environ is None else environ
    return int(environ.get("PORT") or DEFAULT_PORT)


def identity(environ: Optional[Mapping[str, str]] = None):
    """Returns the (hostname, service) pair a payload reports about itself."""
    environ = os.environ if environ is None else environ
    return socket.gethostname(), environ.get("K_SERVICE", "")
