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

"""Compute instance resources."""

from typing import ClassVar, List

from hybrid_nat.resources import Resource, key
from hybrid_nat.resources.network import Subnet


class Instance(Resource):
    """A VM without an external address."""
    kind: ClassVar[str] = "instance"
    zone: str
    network: str
    subnet: str
    machine_type: str = "e2-micro"
    startup_script: str = ""

    def requires(self) -> List[str]:
        return super().requires() + [key(Subnet.kind, self.subnet)]
