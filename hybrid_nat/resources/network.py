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

"""Network, subnet and firewall resources."""

import enum
from typing import ClassVar, List

from hybrid_nat.resources import Resource, key


class SubnetPurpose(str, enum.Enum):
    """What a subnet is used for."""
    COMPUTE = "compute"
    OVERLAP = "overlap"
    ROUTABLE = "routable"
    PROXY = "proxy"
    PRIVATE_NAT = "private-nat"


class Network(Resource):
    """A custom mode VPC network."""
    kind: ClassVar[str] = "network"


class Subnet(Resource):
    """A regional subnet of a network."""
    kind: ClassVar[str] = "subnet"
    network: str
    range: str
    region: str
    purpose: SubnetPurpose
    private_google_access: bool = False

    def requires(self) -> List[str]:
        return super().requires() + [key(Network.kind, self.network)]


class FirewallRule(Resource):
    """An ingress rule of a network."""
    kind: ClassVar[str] = "firewall"
    network: str
    allow: str
    source_ranges: List[str]

    def requires(self) -> List[str]:
        return super().requires() + [key(Network.kind, self.network)]
