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

"""Configuration options for hybrid-nat."""

from oslo_config import cfg

from hybrid_nat.conf import cloud
from hybrid_nat.conf import connectivity
from hybrid_nat.conf import exercise
from hybrid_nat.conf import images
from hybrid_nat.conf import teardown
from hybrid_nat.conf import topology

CONF = cfg.CONF

cloud.register_opts(CONF)
connectivity.register_opts(CONF)
exercise.register_opts(CONF)
images.register_opts(CONF)
teardown.register_opts(CONF)
topology.register_opts(CONF)
